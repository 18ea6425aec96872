"""
Design for bridge sampling.

BridgeDesign bundles the posterior draws, the model whose density is
re-evaluated and the data the density reads, together with the proposal
and iteration settings. Immutable, validated at construction.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from pyposterior.core.compute.tolerances import BRIDGE_DEFAULT, BridgeSettings
from pyposterior.core.exceptions import ValidationError
from pyposterior.model.spec import ModelSpec
from pyposterior.sampling.draws import PosteriorDraws

METHODS = ('normal', 'mixture')


@dataclass(frozen=True)
class BridgeDesign:
    """
    Frozen design for one marginal likelihood estimate.

    Attributes:
        draws: Posterior draws of model.
        model: Model whose unnormalized log density is evaluated.
        data: Data passed to the density.
        method: Proposal family, 'normal' or 'mixture'.
        n_components: Mixture components; None selects by BIC.
        max_iter: Iteration cap for the fixed-point recursion.
        tol: Relative-change tolerance on the bridge constant.
        use_neff: Weight by the effective size of the held-out draws
            instead of their raw count.
        seed: Seed for proposal draws.
        settings: Numerical settings (max mixture components).
    """
    draws: PosteriorDraws
    model: ModelSpec
    data: Any
    method: str
    n_components: int | None
    max_iter: int
    tol: float
    use_neff: bool
    seed: int | None
    settings: BridgeSettings

    @classmethod
    def for_bridge(
        cls,
        draws: PosteriorDraws,
        model: ModelSpec,
        data: Any,
        *,
        method: str = 'normal',
        n_components: int | None = None,
        max_iter: int | None = None,
        tol: float | None = None,
        use_neff: bool = True,
        seed: int | None = None,
        settings: BridgeSettings = BRIDGE_DEFAULT,
    ) -> BridgeDesign:
        """
        Create a bridge design with validation.

        Raises:
            ValidationError: Mismatched draws and model, data the model
                cannot use, too few draws, or settings out of range.
        """
        if not isinstance(draws, PosteriorDraws):
            raise ValidationError(f"draws must be PosteriorDraws, got {type(draws).__name__}")
        if not isinstance(model, ModelSpec):
            raise ValidationError(f"model must be a ModelSpec, got {type(model).__name__}")
        if draws.schema != model.schema:
            raise ValidationError(
                f"draws schema {draws.schema} does not match model "
                f"{model.name!r} schema {model.schema}"
            )
        model.check_data(data)
        if draws.n_draws < 4:
            raise ValidationError(
                f"bridge sampling needs at least 4 draws per chain to split "
                f"into fitting and iteration halves, got {draws.n_draws}"
            )
        if method not in METHODS:
            raise ValidationError(f"method must be one of {METHODS}, got {method!r}")
        if n_components is not None:
            if method != 'mixture':
                raise ValidationError("n_components is only used with method='mixture'")
            if isinstance(n_components, bool) or not isinstance(n_components, int) or n_components < 1:
                raise ValidationError(
                    f"n_components must be a positive integer, got {n_components!r}"
                )

        max_iter = settings.max_iter if max_iter is None else max_iter
        tol = settings.tol if tol is None else float(tol)
        if isinstance(max_iter, bool) or not isinstance(max_iter, int) or max_iter < 1:
            raise ValidationError(f"max_iter must be a positive integer, got {max_iter!r}")
        if not tol > 0:
            raise ValidationError(f"tol must be > 0, got {tol}")

        return cls(
            draws=draws,
            model=model,
            data=data,
            method=method,
            n_components=n_components,
            max_iter=max_iter,
            tol=tol,
            use_neff=bool(use_neff),
            seed=seed,
            settings=settings,
        )
