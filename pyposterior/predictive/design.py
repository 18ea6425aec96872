"""
Design for posterior predictive simulation.

Immutable, validated at construction.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

import numpy as np

from pyposterior.core.exceptions import ValidationError
from pyposterior.core.validation import check_positive_int
from pyposterior.model.spec import ModelSpec
from pyposterior.sampling.draws import PosteriorDraws


@dataclass(frozen=True)
class PredictiveDesign:
    """
    Frozen design for predictive simulation.

    Attributes:
        draws: Posterior draws to resample from.
        model: Model providing simulate(params, data, aux, rng).
        data: Data passed to the simulator.
        n_replicates: Number of synthetic units.
        aux: Extra simulator inputs (new unit's covariates, times, ...).
        seed: Root seed. Always set: when the caller gives none, fresh
            entropy is drawn once so every pass over the simulation
            repeats the same sequence.
    """
    draws: PosteriorDraws
    model: ModelSpec
    data: Any
    n_replicates: int
    aux: Mapping[str, Any]
    seed: int

    @classmethod
    def for_simulation(
        cls,
        draws: PosteriorDraws,
        model: ModelSpec,
        data: Any,
        n_replicates: int,
        *,
        aux: Mapping[str, Any] | None = None,
        seed: int | None = None,
    ) -> PredictiveDesign:
        """
        Create a predictive design with validation.

        Raises:
            ValidationError: Bad replicate count, a model without a
                simulator, or draws that do not match the model.
        """
        if not isinstance(draws, PosteriorDraws):
            raise ValidationError(f"draws must be PosteriorDraws, got {type(draws).__name__}")
        if not isinstance(model, ModelSpec):
            raise ValidationError(f"model must be a ModelSpec, got {type(model).__name__}")
        if model.simulate_fn is None:
            raise ValidationError(f"model {model.name!r} has no simulate_fn")
        if draws.schema != model.schema:
            raise ValidationError(
                f"draws schema {draws.schema} does not match model "
                f"{model.name!r} schema {model.schema}"
            )
        n_replicates = check_positive_int(n_replicates, 'n_replicates')
        if draws.n_samples < 1:
            raise ValidationError("draws: no posterior draws to resample")

        if seed is None:
            seed = int(np.random.SeedSequence().generate_state(1)[0])

        return cls(
            draws=draws,
            model=model,
            data=data,
            n_replicates=n_replicates,
            aux=dict(aux) if aux is not None else {},
            seed=int(seed),
        )
