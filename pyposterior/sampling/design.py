"""
Design for MCMC sampling.

SamplerDesign holds the run configuration handed to a sampler. The model
and data are passed to the sampler alongside it, never stored globally.
Immutable, validated at construction.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from pyposterior.core.compute.tolerances import SAMPLER_DEFAULT, SamplerSettings
from pyposterior.core.exceptions import ValidationError
from pyposterior.core.validation import check_positive_int


@dataclass(frozen=True)
class SamplerDesign:
    """
    Frozen design for an MCMC run.

    Attributes:
        n_chains: Number of independent chains.
        n_warmup: Warmup (adaptation) iterations per chain, discarded.
        n_iter: Total iterations per chain, warmup included.
        thin: Keep every thin-th post-warmup draw.
        seed: Root seed; each chain gets its own spawned stream.
        target_accept: Acceptance rate the step size adapts toward.
        max_depth: Trajectory depth limit for tree-building samplers.
        init: Optional initial ModelParameters shared by all chains.
        init_radius: Random inits are uniform in [-r, r] on the
            unconstrained scale.
        settings: Numerical settings (divergence threshold, init attempts).
    """
    n_chains: int
    n_warmup: int
    n_iter: int
    thin: int
    seed: int | None
    target_accept: float
    max_depth: int
    init: Mapping[str, Any] | None
    init_radius: float
    settings: SamplerSettings

    @classmethod
    def for_sampling(
        cls,
        n_chains: int = 4,
        n_warmup: int = 1000,
        n_iter: int = 2000,
        *,
        thin: int = 1,
        seed: int | None = None,
        target_accept: float = 0.234,
        max_depth: int = 10,
        init: Mapping[str, Any] | None = None,
        init_radius: float | None = None,
        settings: SamplerSettings = SAMPLER_DEFAULT,
    ) -> SamplerDesign:
        """
        Create a sampling design with validation.

        Raises:
            ValidationError: If any setting is out of range.
        """
        n_chains = check_positive_int(n_chains, 'n_chains')
        n_iter = check_positive_int(n_iter, 'n_iter')
        thin = check_positive_int(thin, 'thin')
        max_depth = check_positive_int(max_depth, 'max_depth')
        if isinstance(n_warmup, bool) or not isinstance(n_warmup, int) or n_warmup < 0:
            raise ValidationError(f"n_warmup must be a non-negative integer, got {n_warmup!r}")
        if n_warmup >= n_iter:
            raise ValidationError(
                f"n_warmup ({n_warmup}) must be less than n_iter ({n_iter}); "
                f"n_iter counts warmup iterations too"
            )
        if (n_iter - n_warmup) // thin < 1:
            raise ValidationError(
                f"thin={thin} leaves no draws from {n_iter - n_warmup} post-warmup iterations"
            )
        if not 0.0 < target_accept < 1.0:
            raise ValidationError(f"target_accept must be in (0, 1), got {target_accept}")

        radius = settings.init_radius if init_radius is None else float(init_radius)
        if not radius > 0:
            raise ValidationError(f"init_radius must be > 0, got {radius}")
        if seed is not None and (isinstance(seed, bool) or not isinstance(seed, int) or seed < 0):
            raise ValidationError(f"seed must be a non-negative integer or None, got {seed!r}")

        return cls(
            n_chains=n_chains,
            n_warmup=n_warmup,
            n_iter=n_iter,
            thin=thin,
            seed=seed,
            target_accept=float(target_accept),
            max_depth=max_depth,
            init=dict(init) if init is not None else None,
            init_radius=radius,
            settings=settings,
        )

    @property
    def n_draws(self) -> int:
        """Post-warmup draws kept per chain."""
        return (self.n_iter - self.n_warmup) // self.thin
