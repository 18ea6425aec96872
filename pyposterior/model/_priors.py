"""
Log densities of common priors, summed over array arguments.

Thin wrappers over scipy.stats so that model densities read as a list of
sampling statements.
"""

import numpy as np
from scipy import stats as sp_stats

_LOG2 = float(np.log(2.0))


def normal_lpdf(x, loc=0.0, scale=1.0) -> float:
    return float(np.sum(sp_stats.norm.logpdf(x, loc, scale)))


def half_normal_lpdf(x, scale=1.0) -> float:
    """Half-normal on x > 0 (x assumed positive by its support)."""
    x = np.asarray(x, dtype=np.float64)
    return float(np.sum(_LOG2 + sp_stats.norm.logpdf(x, 0.0, scale)))


def lognormal_lpdf(x, log_loc=0.0, log_scale=1.0) -> float:
    x = np.asarray(x, dtype=np.float64)
    return float(np.sum(sp_stats.norm.logpdf(np.log(x), log_loc, log_scale) - np.log(x)))


def gamma_lpdf(x, shape, rate) -> float:
    return float(np.sum(sp_stats.gamma.logpdf(x, shape, scale=1.0 / rate)))
