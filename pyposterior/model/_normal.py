"""
Conjugate normal-mean model with known observation noise.

    mu  ~ Normal(prior_mean, prior_sd)
    y_i ~ Normal(mu, sigma)         sigma known

The marginal likelihood has a closed form, which makes this model the
reference case for checking the bridge sampling estimator.

Data keys: 'y' (n,), 'sigma', 'prior_mean', 'prior_sd' (scalars).
"""

from __future__ import annotations

from typing import Any

import numpy as np
from numpy.typing import ArrayLike
from scipy import stats as sp_stats

from pyposterior.model._priors import normal_lpdf
from pyposterior.model.spec import ModelSpec, Parameter


def _normal_density(params: dict, data: Any) -> float:
    mu = params['mu']
    lp = normal_lpdf(mu, data['prior_mean'], data['prior_sd'])
    lp += normal_lpdf(data['y'], mu, data['sigma'])
    return lp


def _normal_simulate(params: dict, data: Any, aux: dict, rng: np.random.Generator):
    n_new = int(aux.get('n', 1))
    return rng.normal(params['mu'], float(data['sigma']), size=n_new)


def normal_model() -> ModelSpec:
    """Normal mean with known sigma and a normal prior."""
    return ModelSpec(
        name='normal_mean',
        parameters=(Parameter('mu'),),
        log_density_fn=_normal_density,
        simulate_fn=_normal_simulate,
    )


def normal_log_marginal(
    y: ArrayLike,
    sigma: float,
    prior_mean: float,
    prior_sd: float,
) -> float:
    """
    Exact log marginal likelihood of normal_model().

    y ~ MVN(prior_mean * 1, sigma^2 I + prior_sd^2 11')
    """
    y = np.asarray(y, dtype=np.float64)
    n = len(y)
    cov = sigma ** 2 * np.eye(n) + prior_sd ** 2 * np.ones((n, n))
    return float(sp_stats.multivariate_normal.logpdf(y, np.full(n, prior_mean), cov))
