"""
Hierarchical Ornstein-Uhlenbeck model with Student-t innovations.

Each series s drifts toward its long-run mean mu[s] at rate lambda[s]:

    y_t | y_prev ~ StudentT(nu,
                            mu + (y_prev - mu) exp(-lambda dt),
                            sigma sqrt((1 - exp(-2 lambda dt)) / (2 lambda)))

The first observation of a series uses the stationary scale
sigma / sqrt(2 lambda). Series-level parameters are partially pooled:

    mu[s]          ~ Normal(mu_pop, tau_mu)
    log lambda[s]  ~ Normal(log_lambda_pop, tau_lambda)

Time points may be irregular. Adding series to the pool is expected to
sharpen the population parameters; the formulation here is kept as
published even where that improvement is not observed.

Data keys: 'y', 'time', 'group_<group>', 'block_first'
(one correlation block per series, rows sorted by time within a block).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import numpy as np
from scipy import stats as sp_stats

from pyposterior.core.capabilities import CAPABILITY_BLOCKED, CAPABILITY_GROUPED
from pyposterior.core.exceptions import ValidationError
from pyposterior.model._checks import require, require_codes
from pyposterior.model._priors import gamma_lpdf, half_normal_lpdf, lognormal_lpdf, normal_lpdf
from pyposterior.model.spec import ModelSpec, Parameter


def _transition(y_prev, mu, lam, sigma, dt):
    decay = np.exp(-lam * dt)
    mean = mu + (y_prev - mu) * decay
    scale = sigma * np.sqrt(-np.expm1(-2.0 * lam * dt) / (2.0 * lam))
    return mean, scale


@dataclass(frozen=True)
class _OUDataCheck:
    group: str
    n_series: int

    def __call__(self, data: Any) -> None:
        key = f'group_{self.group}'
        require(
            data, 'ou_student_t',
            capabilities=(CAPABILITY_GROUPED, CAPABILITY_BLOCKED),
            keys=('y', 'time', key, 'block_first'),
        )
        require_codes(data[key], self.n_series, key, 'ou_student_t')
        is_first = np.zeros(len(data['y']), dtype=bool)
        is_first[data['block_first']] = True
        if np.any(np.diff(data['time'])[~is_first[1:]] <= 0):
            raise ValidationError("ou_student_t: time must increase strictly within each series")


@dataclass(frozen=True)
class _OUDensity:
    group: str

    def __call__(self, params: dict, data: Any) -> float:
        mu = params['mu']
        lam = params['lam']
        sigma = float(params['sigma'])
        nu = float(params['nu'])

        lp = normal_lpdf(params['mu_pop'], 0.0, 10.0)
        lp += half_normal_lpdf(params['tau_mu'], 5.0)
        lp += normal_lpdf(params['log_lambda_pop'], 0.0, 2.0)
        lp += half_normal_lpdf(params['tau_lambda'], 1.0)
        lp += half_normal_lpdf(sigma, 5.0)
        lp += gamma_lpdf(nu, 2.0, 0.1)
        lp += normal_lpdf(mu, params['mu_pop'], params['tau_mu'])
        lp += lognormal_lpdf(lam, params['log_lambda_pop'], params['tau_lambda'])

        y = data['y']
        t = data['time']
        g = data[f'group_{self.group}']
        n = len(y)

        is_first = np.zeros(n, dtype=bool)
        is_first[data['block_first']] = True

        mu_i = mu[g]
        lam_i = lam[g]
        y_prev = np.concatenate([[0.0], y[:-1]])
        dt = np.where(is_first, 1.0, np.concatenate([[1.0], np.diff(t)]))

        mean, scale = _transition(y_prev, mu_i, lam_i, sigma, dt)
        stationary = sigma / np.sqrt(2.0 * lam_i)
        mean = np.where(is_first, mu_i, mean)
        scale = np.where(is_first, stationary, scale)

        lp += float(np.sum(sp_stats.t.logpdf(y, nu, mean, scale)))
        return lp


def _ou_simulate(params: dict, data: Any, aux: dict, rng: np.random.Generator):
    if 'times' not in aux:
        raise ValidationError("OU simulation needs aux['times'] for the new series")
    times = np.asarray(aux['times'], dtype=np.float64)
    sigma = float(params['sigma'])
    nu = float(params['nu'])

    # new series: draw its own long-run mean and reversion rate
    mu_new = rng.normal(float(params['mu_pop']), float(params['tau_mu']))
    lam_new = float(np.exp(rng.normal(float(params['log_lambda_pop']),
                                      float(params['tau_lambda']))))

    out = np.empty(len(times), dtype=np.float64)
    scale0 = sigma / np.sqrt(2.0 * lam_new)
    out[0] = mu_new + scale0 * rng.standard_t(nu)
    for k in range(1, len(times)):
        mean, scale = _transition(out[k - 1], mu_new, lam_new, sigma, times[k] - times[k - 1])
        out[k] = mean + scale * rng.standard_t(nu)
    return out


def ou_student_t_model(n_series: int, *, group: str = 'series') -> ModelSpec:
    """
    Build the hierarchical OU Student-t model.

    Args:
        n_series: Number of series in the pool.
        group: Grouping name; the density reads data['group_<group>'].
    """
    return ModelSpec(
        name='ou_student_t',
        parameters=(
            Parameter('mu_pop'),
            Parameter('tau_mu', support='positive'),
            Parameter('log_lambda_pop'),
            Parameter('tau_lambda', support='positive'),
            Parameter('mu', (n_series,)),
            Parameter('lam', (n_series,), support='positive'),
            Parameter('sigma', support='positive'),
            Parameter('nu', support='bounded', lower=1.0),
        ),
        log_density_fn=_OUDensity(group=group),
        simulate_fn=_ou_simulate,
        check_data_fn=_OUDataCheck(group=group, n_series=int(n_series)),
    )
