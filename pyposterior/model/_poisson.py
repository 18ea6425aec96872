"""
Poisson scoring model for match outcomes.

    log lambda_home = intercept + home + attack[h] - defence[a]
    log lambda_away = intercept        + attack[a] - defence[h]
    goals ~ Poisson(lambda)

With pooled=True, team effects are partially pooled:
attack ~ Normal(0, sigma_att), defence ~ Normal(0, sigma_def).
With pooled=False, team effects have fixed Normal(0, team_sd) priors.
The two variants are the competing predictive models compared by
Bayes factor.

Data keys: 'home_team', 'away_team' (int team indices),
'home_goals', 'away_goals' (counts).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import numpy as np
from scipy import stats as sp_stats

from pyposterior.core.exceptions import DimensionError, ValidationError
from pyposterior.model._checks import require, require_codes
from pyposterior.model._priors import half_normal_lpdf, normal_lpdf
from pyposterior.model.spec import ModelSpec, Parameter


_KEYS = ('home_team', 'away_team', 'home_goals', 'away_goals')


@dataclass(frozen=True)
class _PoissonGoalsDataCheck:
    n_teams: int

    def __call__(self, data: Any) -> None:
        require(data, 'poisson_goals', keys=_KEYS)
        n = len(data['home_goals'])
        if any(len(data[k]) != n for k in _KEYS):
            raise DimensionError(
                f"poisson_goals: {', '.join(_KEYS)} must all have length {n}"
            )
        for key in ('home_team', 'away_team'):
            require_codes(data[key], self.n_teams, key, 'poisson_goals')
        for key in ('home_goals', 'away_goals'):
            goals = data[key]
            if np.any(goals < 0) or np.any(goals != np.round(goals)):
                raise ValidationError(f"poisson_goals: {key!r} must hold non-negative counts")


@dataclass(frozen=True)
class _PoissonGoalsDensity:
    pooled: bool
    team_sd: float

    def __call__(self, params: dict, data: Any) -> float:
        attack = params['attack']
        defence = params['defence']

        lp = normal_lpdf(params['intercept'], 0.0, 1.0)
        lp += normal_lpdf(params['home'], 0.0, 1.0)
        if self.pooled:
            lp += half_normal_lpdf(params['sigma_att'], 1.0)
            lp += half_normal_lpdf(params['sigma_def'], 1.0)
            lp += normal_lpdf(attack, 0.0, params['sigma_att'])
            lp += normal_lpdf(defence, 0.0, params['sigma_def'])
        else:
            lp += normal_lpdf(attack, 0.0, self.team_sd)
            lp += normal_lpdf(defence, 0.0, self.team_sd)

        h = data['home_team']
        a = data['away_team']
        log_home, log_away = _log_rates(params, h, a)
        lp += float(np.sum(sp_stats.poisson.logpmf(data['home_goals'], np.exp(log_home))))
        lp += float(np.sum(sp_stats.poisson.logpmf(data['away_goals'], np.exp(log_away))))
        return lp


def _log_rates(params: dict, home_team, away_team):
    attack = params['attack']
    defence = params['defence']
    log_home = params['intercept'] + params['home'] + attack[home_team] - defence[away_team]
    log_away = params['intercept'] + attack[away_team] - defence[home_team]
    return log_home, log_away


def _poisson_goals_simulate(params: dict, data: Any, aux: dict, rng: np.random.Generator):
    if 'home_team' not in aux or 'away_team' not in aux:
        raise ValidationError("Poisson simulation needs aux['home_team'] and aux['away_team']")
    h = np.atleast_1d(np.asarray(aux['home_team'], dtype=np.int64))
    a = np.atleast_1d(np.asarray(aux['away_team'], dtype=np.int64))
    log_home, log_away = _log_rates(params, h, a)
    home = rng.poisson(np.exp(log_home))
    away = rng.poisson(np.exp(log_away))
    return np.column_stack([home, away]).ravel().astype(np.float64)


def _poisson_goals_generated(params: dict, data: Any, aux: dict) -> dict:
    h = data['home_team']
    a = data['away_team']
    log_home, log_away = _log_rates(params, h, a)
    return {'rate_home': np.exp(log_home), 'rate_away': np.exp(log_away)}


def poisson_goals_model(n_teams: int, *, pooled: bool = True, team_sd: float = 1.0) -> ModelSpec:
    """
    Build the Poisson scoring model.

    Args:
        n_teams: Number of teams (team indices are 0..n_teams-1).
        pooled: Partially pool team effects with estimated scales.
        team_sd: Prior scale of team effects when pooled=False.
    """
    parameters = [
        Parameter('intercept'),
        Parameter('home'),
        Parameter('attack', (n_teams,)),
        Parameter('defence', (n_teams,)),
    ]
    if pooled:
        parameters += [
            Parameter('sigma_att', support='positive'),
            Parameter('sigma_def', support='positive'),
        ]
    return ModelSpec(
        name='poisson_goals_pooled' if pooled else 'poisson_goals_fixed',
        parameters=tuple(parameters),
        log_density_fn=_PoissonGoalsDensity(pooled=pooled, team_sd=float(team_sd)),
        generated_fn=_poisson_goals_generated,
        simulate_fn=_poisson_goals_simulate,
        check_data_fn=_PoissonGoalsDataCheck(n_teams=int(n_teams)),
    )
