"""
Repeated-measures linear mixed model with AR(1) residual correlation.

    y = X beta + u[unit] + e
    u[j] = sigma_u * z[j],   z[j] ~ Normal(0, 1)
    e within each correlation block ~ MVN(0, sigma^2 R(rho)),
    R(rho)[s, t] = rho^|s - t|

Residuals are independent across blocks. Within a block the AR(1)
likelihood is evaluated sequentially:

    e_1 ~ Normal(0, sigma)
    e_t | e_{t-1} ~ Normal(rho e_{t-1}, sigma sqrt(1 - rho^2))

which equals the multivariate normal with covariance sigma^2 R(rho) for
equally spaced observations.

Data keys: 'y', 'X', 'group_<group>' and, when blocked, 'block_first'
(as built by pyposterior.data.prepare with groups=[group],
block_keys=...).

Generated quantities: 'emm' = X_new @ beta when aux has 'X_new'
(estimated marginal means for new covariate combinations).
Simulation: one new unit with design rows aux['X_new'].
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import numpy as np
from numpy.typing import NDArray
from scipy import stats as sp_stats

from pyposterior.core.capabilities import (
    CAPABILITY_BLOCKED,
    CAPABILITY_DESIGN_MATRIX,
    CAPABILITY_GROUPED,
)
from pyposterior.core.exceptions import DimensionError, ValidationError
from pyposterior.model._checks import require, require_codes
from pyposterior.model._priors import half_normal_lpdf, normal_lpdf
from pyposterior.model.spec import ModelSpec, Parameter


def ar1_covariance(n: int, rho: float, sigma: float) -> NDArray:
    """Covariance sigma^2 * rho^|s - t| of an n-step stationary AR(1) block."""
    lags = np.abs(np.subtract.outer(np.arange(n), np.arange(n)))
    return sigma ** 2 * rho ** lags


def _block_starts(data: Any) -> NDArray:
    n = len(data['y'])
    is_first = np.zeros(n, dtype=bool)
    if data.supports(CAPABILITY_BLOCKED):
        is_first[data['block_first']] = True
    else:
        is_first[:] = True
    return is_first


@dataclass(frozen=True)
class _AR1DataCheck:
    group: str
    n_fixed: int
    n_units: int

    def __call__(self, data: Any) -> None:
        key = f'group_{self.group}'
        require(
            data, 'ar1_mixed',
            capabilities=(CAPABILITY_DESIGN_MATRIX, CAPABILITY_GROUPED),
            keys=('y', 'X', key),
        )
        n = len(data['y'])
        if data['X'].shape != (n, self.n_fixed):
            raise DimensionError(
                f"ar1_mixed: X must have shape ({n}, {self.n_fixed}), got {data['X'].shape}"
            )
        require_codes(data[key], self.n_units, key, 'ar1_mixed')
        if data.supports(CAPABILITY_BLOCKED):
            require(data, 'ar1_mixed', keys=('block_first',))


@dataclass(frozen=True)
class _AR1Density:
    group: str
    prior_scale: float

    def __call__(self, params: dict, data: Any) -> float:
        beta = params['beta']
        sigma = float(params['sigma'])
        sigma_u = float(params['sigma_u'])
        rho = float(params['rho'])
        z = params['z']

        lp = normal_lpdf(beta, 0.0, self.prior_scale)
        lp += half_normal_lpdf(sigma, self.prior_scale)
        lp += half_normal_lpdf(sigma_u, self.prior_scale)
        lp += normal_lpdf(z, 0.0, 1.0)
        # rho: flat on (-1, 1)

        y = data['y']
        g = data[f'group_{self.group}']
        e = y - data['X'] @ beta - sigma_u * z[g]

        is_first = _block_starts(data)
        prev = np.concatenate([[0.0], e[:-1]])
        cond_mean = np.where(is_first, 0.0, rho * prev)
        cond_sd = np.where(is_first, sigma, sigma * np.sqrt(1.0 - rho * rho))
        lp += float(np.sum(sp_stats.norm.logpdf(e, cond_mean, cond_sd)))
        return lp


def _ar1_generated(params: dict, data: Any, aux: dict) -> dict:
    if 'X_new' not in aux:
        return {}
    X_new = np.atleast_2d(np.asarray(aux['X_new'], dtype=np.float64))
    return {'emm': X_new @ params['beta']}


def _ar1_simulate(params: dict, data: Any, aux: dict, rng: np.random.Generator):
    if 'X_new' not in aux:
        raise ValidationError("AR(1) simulation needs aux['X_new'] (design rows of the new unit)")
    X_new = np.atleast_2d(np.asarray(aux['X_new'], dtype=np.float64))
    n_t = X_new.shape[0]

    u_new = rng.normal(0.0, float(params['sigma_u']))
    mean = X_new @ params['beta'] + u_new
    cov = ar1_covariance(n_t, float(params['rho']), float(params['sigma']))
    return rng.multivariate_normal(mean, cov, method='cholesky')


def ar1_mixed_model(
    n_fixed: int,
    n_units: int,
    *,
    group: str = 'unit',
    prior_scale: float = 10.0,
) -> ModelSpec:
    """
    Build the AR(1) repeated-measures mixed model.

    Args:
        n_fixed: Number of fixed-effect columns in X.
        n_units: Number of levels of the random-intercept grouping.
        group: Grouping name; the density reads data['group_<group>'].
        prior_scale: Scale of the normal prior on beta and the
            half-normal priors on sigma and sigma_u.
    """
    return ModelSpec(
        name='ar1_mixed',
        parameters=(
            Parameter('beta', (n_fixed,)),
            Parameter('sigma', support='positive'),
            Parameter('sigma_u', support='positive'),
            Parameter('rho', support='bounded', lower=-1.0, upper=1.0),
            Parameter('z', (n_units,)),
        ),
        log_density_fn=_AR1Density(group=group, prior_scale=float(prior_scale)),
        generated_fn=_ar1_generated,
        simulate_fn=_ar1_simulate,
        check_data_fn=_AR1DataCheck(group=group, n_fixed=int(n_fixed), n_units=int(n_units)),
    )
