"""
Posterior predictive simulation.

Public API:
    simulate_predictive(draws, model, data, n_replicates=...) -> PredictiveSimulation
    ar1_covariance(n, rho, sigma)
"""

from pyposterior.predictive.design import PredictiveDesign
from pyposterior.predictive.solution import PredictiveSimulation
from pyposterior.predictive.solvers import simulate_predictive
from pyposterior.model._ar1 import ar1_covariance

__all__ = [
    "simulate_predictive",
    "PredictiveDesign",
    "PredictiveSimulation",
    "ar1_covariance",
]
