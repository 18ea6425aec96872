"""
PyPosterior: Bayesian analysis pipeline for longitudinal and grouped data.

Prepare long-format data, declare a model, sample its posterior, estimate
its marginal likelihood by bridge sampling, summarize and compare
posterior draws, and simulate new units from the posterior predictive.

Submodules:
    data: DataPreparer (long/wide reshaping, design matrices, correlation blocks)
    model: ModelSpec and built-in models
    sampling: Sampler contract, reference sampler, PosteriorDraws
    bridge: Marginal likelihood, Bayes factors, posterior model probabilities
    summary: Posterior summaries and paired comparisons
    predictive: Posterior predictive simulation
"""

__version__ = "0.1.0"

from pyposterior import data
from pyposterior import model
from pyposterior import sampling
from pyposterior import bridge
from pyposterior import summary
from pyposterior import predictive

__all__ = [
    "__version__",
    "data",
    "model",
    "sampling",
    "bridge",
    "summary",
    "predictive",
]
