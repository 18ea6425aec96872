"""
Public API:
    bridge_sampler(draws, model, data, ...) -> BridgeSolution
    bayes_factor(a, b) -> BayesFactorResult
    posterior_model_probs(*estimates, prior_probs=None) -> ndarray
"""

from __future__ import annotations

from typing import Any, Literal, Sequence

import numpy as np
from numpy.typing import NDArray
from scipy.special import logsumexp

from pyposterior.core.compute.tolerances import BRIDGE_DEFAULT, BridgeSettings
from pyposterior.core.exceptions import ValidationError
from pyposterior.core.protocols import Backend
from pyposterior.core.validation import check_probabilities
from pyposterior.bridge._common import BridgeParams
from pyposterior.bridge.backends.cpu import CPUBridgeBackend
from pyposterior.bridge.design import BridgeDesign
from pyposterior.bridge.solution import BayesFactorResult, BridgeSolution
from pyposterior.model.spec import ModelSpec
from pyposterior.sampling.draws import PosteriorDraws

MethodChoice = Literal['normal', 'mixture']


def bridge_sampler(
    draws: PosteriorDraws,
    model: ModelSpec,
    data: Any,
    *,
    method: MethodChoice = 'normal',
    n_components: int | None = None,
    max_iter: int | None = None,
    tol: float | None = None,
    use_neff: bool = True,
    seed: int | None = None,
    backend: Backend[BridgeDesign, BridgeParams] | None = None,
    settings: BridgeSettings = BRIDGE_DEFAULT,
) -> BridgeSolution:
    """
    Estimate the log marginal likelihood of model from its posterior draws.

    Parameters
    ----------
    draws : PosteriorDraws
        Posterior draws of model, e.g. SamplingSolution.draws or
        PosteriorDraws.load(path) from an earlier session.
    model : ModelSpec
        The model the draws came from; its density is re-evaluated
        directly, no sampler run is needed.
    data : DataPayload
        Data the density reads.
    method : str
        'normal' (moment-matched multivariate normal proposal) or
        'mixture' (Gaussian mixture proposal).
    n_components : int or None
        Mixture components; None selects by BIC up to
        settings.max_components.
    max_iter, tol : optional
        Iteration cap and relative-change tolerance; default from settings.
    use_neff : bool
        Weight by effective rather than raw held-out draw count.
    seed : int or None
        Seed for proposal draws. A fixed seed makes the estimate
        reproducible.
    backend : Backend or None
        Any object with a name and solve(design) returning
        Result[BridgeParams]. Defaults to CPUBridgeBackend for the
        chosen method.

    Returns
    -------
    BridgeSolution

    Raises
    ------
    BridgeNonConvergenceError
        The fixed-point recursion did not converge; the partial logml and
        its error percentage are attached to the exception.
    """
    design = BridgeDesign.for_bridge(
        draws,
        model,
        data,
        method=method,
        n_components=n_components,
        max_iter=max_iter,
        tol=tol,
        use_neff=use_neff,
        seed=seed,
        settings=settings,
    )
    if backend is None:
        backend = CPUBridgeBackend(method=design.method)
    elif not isinstance(backend, Backend):
        raise ValidationError(
            f"backend must provide name and solve(design), got {type(backend).__name__}"
        )
    result = backend.solve(design)
    return BridgeSolution(_result=result, _design=design)


def _logml(estimate: BridgeSolution | float) -> tuple[float, str | None]:
    if isinstance(estimate, BridgeSolution):
        return estimate.logml, estimate.model_name
    if hasattr(estimate, 'logml'):
        return float(estimate.logml), None
    try:
        return float(estimate), None
    except (TypeError, ValueError) as e:
        raise ValidationError(
            f"expected a BridgeSolution or a log marginal likelihood, got {estimate!r}"
        ) from e


def bayes_factor(
    a: BridgeSolution | float,
    b: BridgeSolution | float,
) -> BayesFactorResult:
    """
    Bayes factor of model a over model b from two bridge estimates.

    Both arguments accept a BridgeSolution or a plain log marginal
    likelihood.
    """
    logml_a, name_a = _logml(a)
    logml_b, name_b = _logml(b)
    log_bf = logml_a - logml_b
    with np.errstate(over='ignore'):
        bf = float(np.exp(log_bf))
    return BayesFactorResult(bf=bf, log_bf=log_bf, model_a=name_a, model_b=name_b)


def posterior_model_probs(
    *estimates: BridgeSolution | float,
    prior_probs: Sequence[float] | None = None,
) -> NDArray[np.floating[Any]]:
    """
    Posterior model probabilities from log marginal likelihoods.

    Args:
        *estimates: Two or more BridgeSolution objects or logml values.
        prior_probs: Prior model probabilities; equal by default.
            Must sum to 1.

    Returns:
        Probabilities in the order of the estimates, summing to 1.
    """
    if len(estimates) < 2:
        raise ValidationError(f"need at least 2 estimates, got {len(estimates)}")
    logml = np.array([_logml(e)[0] for e in estimates], dtype=np.float64)

    if prior_probs is None:
        prior = np.full(len(logml), 1.0 / len(logml))
    else:
        prior = check_probabilities(prior_probs, 'prior_probs')
        if prior.shape != logml.shape:
            raise ValidationError(
                f"prior_probs: expected {len(logml)} values, got {prior.shape[0]}"
            )
        if not np.isclose(prior.sum(), 1.0):
            raise ValidationError(f"prior_probs must sum to 1, got {prior.sum()}")

    with np.errstate(divide='ignore'):
        log_post = logml + np.log(prior)
    return np.exp(log_post - logsumexp(log_post))
