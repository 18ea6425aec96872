"""
Marginal likelihood estimation by bridge sampling.

Public API:
    bridge_sampler(draws, model, data, ...) -> BridgeSolution
    bayes_factor(a, b) -> BayesFactorResult
    posterior_model_probs(*estimates, prior_probs=None)
"""

from pyposterior.bridge.design import BridgeDesign
from pyposterior.bridge.solution import BridgeSolution, BayesFactorResult
from pyposterior.bridge.solvers import bridge_sampler, bayes_factor, posterior_model_probs
from pyposterior.bridge.backends.cpu import CPUBridgeBackend
from pyposterior.bridge._common import BridgeParams

__all__ = [
    "bridge_sampler",
    "bayes_factor",
    "posterior_model_probs",
    "BridgeDesign",
    "BridgeSolution",
    "BayesFactorResult",
    "BridgeParams",
    "CPUBridgeBackend",
]
