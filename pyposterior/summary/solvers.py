"""
Posterior summaries.

Public API:
    summarize(draws, params=None, ...) -> SummarySolution
    posterior_mode(x) -> float
    credible_interval(x, probs) -> ndarray
    prob_greater(a, b) -> float
    compare(draws, name_a, name_b) -> float
    pairwise_probabilities(matrix, labels) -> DataFrame
    marginal_means(draws, coef, X_new) -> SummarySolution
"""

from __future__ import annotations

from typing import Any, Literal, Sequence, TYPE_CHECKING

import numpy as np
from numpy.typing import ArrayLike, NDArray
from scipy import stats as sp_stats

from pyposterior.core.compute.timing import Timer
from pyposterior.core.exceptions import DimensionError, ValidationError
from pyposterior.core.result import Result
from pyposterior.core.validation import (
    check_1d,
    check_2d,
    check_array,
    check_consistent_length,
    check_finite,
    check_min_samples,
    check_probabilities,
)
from pyposterior.sampling._diagnostics import ess_bulk, rhat
from pyposterior.sampling.draws import PosteriorDraws, flat_names
from pyposterior.summary.solution import SummaryParams, SummarySolution

if TYPE_CHECKING:
    import pandas as pd

PointChoice = Literal['mean', 'median', 'mode']

KDE_GRID_SIZE = 512


def posterior_mode(x: ArrayLike) -> float:
    """
    Mode of a sample: argmax of a Gaussian KDE on a 512-point grid.

    Constant samples return their value.
    """
    x = check_array(x, 'x').ravel()
    check_finite(x, 'x')
    check_min_samples(x, 1, 'x')
    if x.size == 1 or np.ptp(x) == 0:
        return float(x[0])
    kde = sp_stats.gaussian_kde(x)
    grid = np.linspace(x.min(), x.max(), KDE_GRID_SIZE)
    return float(grid[np.argmax(kde(grid))])


def credible_interval(
    x: ArrayLike,
    probs: Sequence[float] = (0.025, 0.975),
) -> NDArray[np.floating[Any]]:
    """
    Equal-tailed credible interval(s) from sample quantiles.

    Returns:
        Shape (len(probs),) for 1D x, (len(probs), k) for (n, k) x.
    """
    x = check_array(x, 'x')
    p = check_probabilities(probs, 'probs')
    return np.quantile(x, p, axis=0)


def prob_greater(a: ArrayLike, b: ArrayLike | float) -> float:
    """
    P(a > b) from paired draws: count(a_i > b_i) / N.

    b may be a scalar threshold.

    Raises:
        DimensionError: a and b have different lengths.
    """
    a = check_array(a, 'a')
    check_1d(a, 'a')
    if np.ndim(b) == 0:
        b = np.full_like(a, float(b))
    else:
        b = check_array(b, 'b')
        check_1d(b, 'b')
    check_consistent_length(a, b, names=('a', 'b'))
    check_min_samples(a, 1, 'a')
    return int(np.count_nonzero(a > b)) / len(a)


def compare(draws: PosteriorDraws, name_a: str, name_b: str) -> float:
    """P(name_a > name_b) over paired posterior draws."""
    return prob_greater(draws.column(name_a), draws.column(name_b))


def pairwise_probabilities(
    matrix: ArrayLike,
    labels: Sequence[str] | None = None,
) -> 'pd.DataFrame':
    """
    All pairwise P(col_i > col_j) on paired draws.

    Args:
        matrix: (n_draws, k) draws, one column per quantity.
        labels: Column labels; defaults to '0'..'k-1'.

    Returns:
        (k, k) DataFrame; entry [i, j] is P(col_i > col_j), diagonal NaN.
    """
    import pandas as pd

    m = check_array(matrix, 'matrix')
    check_2d(m, 'matrix')
    k = m.shape[1]
    if labels is None:
        labels = [str(i) for i in range(k)]
    labels = list(labels)
    if len(labels) != k:
        raise DimensionError(f"labels: expected {k} labels, got {len(labels)}")

    out = np.full((k, k), np.nan)
    for i in range(k):
        for j in range(k):
            if i != j:
                out[i, j] = np.count_nonzero(m[:, i] > m[:, j]) / m.shape[0]
    return pd.DataFrame(out, index=labels, columns=labels)


def summarize(
    draws: PosteriorDraws,
    params: Sequence[str] | None = None,
    *,
    probs: Sequence[float] = (0.025, 0.975),
    point: PointChoice = 'mean',
) -> SummarySolution:
    """
    Summarize posterior draws.

    Parameters
    ----------
    draws : PosteriorDraws
    params : list of str or None
        Parameter names ('beta'), flattened element names ('beta[1]') or
        generated quantity names. None summarizes every parameter.
    probs : pair of float
        Credible interval quantiles.
    point : str
        Point estimate: 'mean', 'median' or 'mode' (KDE mode).

    Returns
    -------
    SummarySolution
    """
    if not isinstance(draws, PosteriorDraws):
        raise ValidationError(f"draws must be PosteriorDraws, got {type(draws).__name__}")
    names, chains = _expand(draws, params)
    stacked = np.stack(chains, axis=-1)   # (n_chains, n_draws, k)
    return _summarize_chains(names, stacked, probs, point)


def marginal_means(
    draws: PosteriorDraws,
    coef: str,
    X_new: ArrayLike,
    *,
    names: Sequence[str] | None = None,
    probs: Sequence[float] = (0.025, 0.975),
    point: PointChoice = 'mean',
) -> SummarySolution:
    """
    Estimated marginal means X_new @ coef for every draw, summarized.

    Args:
        draws: Posterior draws containing the coefficient vector.
        coef: Name of the fixed-effect coefficient parameter.
        X_new: (m, n_fixed) rows of the design matrix to evaluate,
            e.g. DesignMatrix.row(...) stacked.
        names: Labels for the m rows; default 'emm[i]'.

    Returns:
        SummarySolution; samples(name) gives the draws of each mean.
    """
    beta = draws.get(coef, by_chain=True)
    if beta.ndim != 3:
        raise DimensionError(f"{coef}: expected a vector parameter, got shape {beta.shape[2:]}")
    X = np.atleast_2d(check_array(X_new, 'X_new'))
    if X.shape[1] != beta.shape[2]:
        raise DimensionError(
            f"X_new has {X.shape[1]} columns but {coef} has {beta.shape[2]} elements"
        )
    if names is None:
        names = [f"emm[{i}]" for i in range(X.shape[0])]
    names = tuple(names)
    if len(names) != X.shape[0]:
        raise DimensionError(f"names: expected {X.shape[0]} labels, got {len(names)}")

    emm = beta @ X.T   # (n_chains, n_draws, m)
    return _summarize_chains(names, emm, probs, point)


def _expand(draws: PosteriorDraws, params: Sequence[str] | None) -> tuple[tuple[str, ...], list[NDArray]]:
    """Resolve requested names into flat names and (chains, draws) columns."""
    if params is None:
        params = list(draws.schema)
    elif isinstance(params, str):
        params = [params]

    flat = set(draws.param_names)
    names: list[str] = []
    columns: list[NDArray] = []
    for name in params:
        if name in draws.schema:
            arr = draws.get(name, by_chain=True)
            shape = draws.schema[name]
        elif name in draws.generated:
            arr = draws.get(name, by_chain=True)
            shape = arr.shape[2:]
        elif name in flat:
            names.append(name)
            columns.append(draws.column(name, by_chain=True))
            continue
        else:
            raise KeyError(
                f"{name!r} is neither a parameter nor a generated quantity. "
                f"Available: {list(draws.schema) + list(draws.generated)}"
            )
        block = arr.reshape(draws.n_chains, draws.n_draws, -1)
        names.extend(flat_names({name: shape}))
        columns.extend(block[:, :, j] for j in range(block.shape[2]))
    return tuple(names), columns


def _summarize_chains(
    names: tuple[str, ...],
    values: NDArray,
    probs: Sequence[float],
    point: str,
) -> SummarySolution:
    if point not in ('mean', 'median', 'mode'):
        raise ValidationError(f"point must be 'mean', 'median' or 'mode', got {point!r}")
    p = check_probabilities(probs, 'probs')
    if p.shape != (2,) or not p[0] < p[1]:
        raise ValidationError(f"probs must be two increasing values, got {p.tolist()}")

    timer = Timer()
    timer.start()

    n_chains, n_draws, k = values.shape
    pooled = values.reshape(n_chains * n_draws, k)

    with timer.section('moments'):
        mean = pooled.mean(axis=0)
        sd = pooled.std(axis=0, ddof=1) if pooled.shape[0] > 1 else np.full(k, np.nan)
        lower, upper = np.quantile(pooled, p, axis=0)

    with timer.section('point'):
        if point == 'mean':
            estimate = mean
        elif point == 'median':
            estimate = np.median(pooled, axis=0)
        else:
            estimate = np.array([posterior_mode(pooled[:, j]) for j in range(k)])

    with timer.section('diagnostics'):
        r = np.array([rhat(values[:, :, j]) for j in range(k)])
        e = np.array([ess_bulk(values[:, :, j]) for j in range(k)])

    timer.stop()

    params = SummaryParams(
        names=names,
        estimate=np.asarray(estimate, dtype=np.float64),
        mean=mean,
        sd=sd,
        lower=lower,
        upper=upper,
        ess_bulk=e,
        rhat=r,
        samples=pooled,
        probs=(float(p[0]), float(p[1])),
        point=point,
    )
    return SummarySolution(
        _result=Result(
            params=params,
            info={'n_chains': n_chains, 'n_draws': n_draws, 'point': point},
            timing=timer.result(),
            backend_name='cpu_summary',
        )
    )
