"""
Convergence diagnostics for MCMC output.

Rank-normalized split R-hat and bulk effective sample size (Vehtari,
Gelman, Simpson, Carpenter & Buerkner, 2021) computed by ArviZ. The
wrappers here take a (n_chains, n_draws) array for one scalar quantity
and settle the degenerate cases (constant or too-short chains) before
ArviZ sees them, so no divide-by-zero warnings escape.
"""

from __future__ import annotations

import arviz as az
import numpy as np
from numpy.typing import NDArray

from pyposterior.core.exceptions import DimensionError

MIN_DRAWS = 4


def _as_chains(x: NDArray) -> NDArray:
    x = np.asarray(x, dtype=np.float64)
    if x.ndim == 1:
        x = x.reshape(1, -1)
    if x.ndim != 2:
        raise DimensionError(f"expected (n_chains, n_draws) array, got shape {x.shape}")
    return x


def rhat(x: NDArray) -> float:
    """
    Rank-normalized split R-hat: max of bulk and folded (tail) R-hat.

    NaN for constant draws, fewer than 4 draws per chain, or a single
    chain.
    """
    x = _as_chains(x)
    if x.shape[0] < 2 or x.shape[1] < MIN_DRAWS or np.ptp(x) == 0:
        return float('nan')
    return float(az.rhat(x, method='rank'))


def ess(x: NDArray) -> float:
    """ESS of the mean of raw draws, over split chains."""
    x = _as_chains(x)
    if x.shape[1] < MIN_DRAWS:
        return float('nan')
    if np.ptp(x) == 0:
        return float(x.size)
    return float(az.ess(x, method='mean'))


def ess_bulk(x: NDArray) -> float:
    """Bulk ESS: ESS of rank-normalized split chains."""
    x = _as_chains(x)
    if x.shape[1] < MIN_DRAWS:
        return float('nan')
    if np.ptp(x) == 0:
        return float(x.size)
    return float(az.ess(x, method='bulk'))


def integrated_autocorr_time(x: NDArray) -> float:
    """Integrated autocorrelation time n / ESS of a single series."""
    x = np.asarray(x, dtype=np.float64).ravel()
    e = ess(x)
    if not np.isfinite(e) or e <= 0:
        return 1.0
    return float(len(x) / e)


def diagnose(values: NDArray) -> tuple[NDArray, NDArray]:
    """
    R-hat and bulk ESS for every column of a (chains, draws, k) array.

    Returns:
        (rhat, ess_bulk), each shape (k,)
    """
    values = np.asarray(values, dtype=np.float64)
    if values.ndim != 3:
        raise DimensionError(f"expected (chains, draws, k) array, got shape {values.shape}")
    k = values.shape[2]
    r = np.array([rhat(values[:, :, j]) for j in range(k)], dtype=np.float64)
    e = np.array([ess_bulk(values[:, :, j]) for j in range(k)], dtype=np.float64)
    return r, e
