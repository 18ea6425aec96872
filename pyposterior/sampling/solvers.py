"""
Public API: sample(model, data, ...) -> SamplingSolution
"""

from __future__ import annotations

import warnings
from typing import Any, Mapping

from pyposterior.core.compute.tolerances import SAMPLER_DEFAULT, SamplerSettings
from pyposterior.core.exceptions import SamplerDivergence, ValidationError
from pyposterior.core.protocols import Sampler
from pyposterior.model.spec import ModelSpec
from pyposterior.sampling.backends.cpu import CPUMetropolisBackend
from pyposterior.sampling.design import SamplerDesign
from pyposterior.sampling.solution import SamplingSolution


def sample(
    model: ModelSpec,
    data: Any,
    *,
    sampler: Sampler | None = None,
    design: SamplerDesign | None = None,
    n_chains: int = 4,
    n_warmup: int = 1000,
    n_iter: int = 2000,
    thin: int = 1,
    seed: int | None = None,
    target_accept: float = 0.234,
    max_depth: int = 10,
    init: Mapping[str, Any] | None = None,
    init_radius: float | None = None,
    settings: SamplerSettings = SAMPLER_DEFAULT,
) -> SamplingSolution:
    """
    Draw from the posterior of model given data.

    Parameters
    ----------
    model : ModelSpec
        The model whose log density is sampled.
    data : DataPayload
        Prepared data, passed to the density unchanged.
    sampler : Sampler or None
        Any object satisfying the Sampler protocol. Defaults to the
        reference CPUMetropolisBackend.
    design : SamplerDesign or None
        Prebuilt design. When given, the run-configuration keywords
        below are ignored.
    n_chains, n_warmup, n_iter, thin, seed, target_accept, max_depth,
    init, init_radius, settings
        Forwarded to SamplerDesign.for_sampling. n_iter counts warmup
        iterations; warmup draws are discarded.

    Returns
    -------
    SamplingSolution

    Raises
    ------
    ValidationError
        The data does not meet the model's requirements.
    SamplerInitializationError
        No chain could find a finite starting point.

    Warns
    -----
    SamplerDivergence
        Once per run if any post-warmup iteration diverged.
    RuntimeWarning
        If convergence diagnostics fail their thresholds.
    """
    if not isinstance(model, ModelSpec):
        raise ValidationError(f"model must be a ModelSpec, got {type(model).__name__}")
    model.check_data(data)

    if design is None:
        design = SamplerDesign.for_sampling(
            n_chains,
            n_warmup,
            n_iter,
            thin=thin,
            seed=seed,
            target_accept=target_accept,
            max_depth=max_depth,
            init=init,
            init_radius=init_radius,
            settings=settings,
        )

    if sampler is None:
        sampler = CPUMetropolisBackend()
    elif not isinstance(sampler, Sampler):
        raise ValidationError(
            f"sampler must provide name and sample(model, data, design), "
            f"got {type(sampler).__name__}"
        )

    result = sampler.sample(model, data, design)

    n_divergent = result.params.n_divergent
    if n_divergent:
        warnings.warn(
            f"{n_divergent} divergent iteration(s) after warmup in model "
            f"{model.name!r}; draws near those regions may be biased",
            SamplerDivergence,
            stacklevel=2,
        )
    for message in result.warnings:
        if 'divergent' in message:
            continue
        warnings.warn(message, RuntimeWarning, stacklevel=2)

    return SamplingSolution(_result=result, _design=design)
