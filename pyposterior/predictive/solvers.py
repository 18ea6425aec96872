"""
Public API: simulate_predictive(draws, model, data, ...) -> PredictiveSimulation
"""

from __future__ import annotations

from typing import Any, Mapping

from pyposterior.model.spec import ModelSpec
from pyposterior.predictive.design import PredictiveDesign
from pyposterior.predictive.solution import PredictiveSimulation
from pyposterior.sampling.draws import PosteriorDraws


def simulate_predictive(
    draws: PosteriorDraws,
    model: ModelSpec,
    data: Any,
    *,
    n_replicates: int,
    aux: Mapping[str, Any] | None = None,
    seed: int | None = None,
) -> PredictiveSimulation:
    """
    Simulate synthetic new units from the posterior predictive distribution.

    For each replicate a posterior draw is chosen uniformly with
    replacement and passed to model.simulate, which draws the unit's
    latent effects and its outcome vector with the full residual
    covariance.

    Parameters
    ----------
    draws : PosteriorDraws
    model : ModelSpec
        Must define simulate_fn.
    data : DataPayload
    n_replicates : int
        Number of synthetic units.
    aux : dict or None
        Inputs describing the new unit, e.g. {'X_new': rows} for the
        AR(1) mixed model or {'times': t, 'dose': d} for the PK model.
    seed : int or None
        Seed; iterating the result again repeats the same replicates.

    Returns
    -------
    PredictiveSimulation
        Lazy iterable of outcome vectors; len() == n_replicates.
    """
    design = PredictiveDesign.for_simulation(
        draws, model, data, n_replicates, aux=aux, seed=seed
    )
    return PredictiveSimulation(_design=design)
