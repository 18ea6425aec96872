"""
Posterior summaries.

Public API:
    summarize(draws, params=None, ...) -> SummarySolution
    posterior_mode, credible_interval
    prob_greater, compare, pairwise_probabilities
    marginal_means
"""

from pyposterior.summary.solution import SummaryParams, SummarySolution
from pyposterior.summary.solvers import (
    summarize,
    posterior_mode,
    credible_interval,
    prob_greater,
    compare,
    pairwise_probabilities,
    marginal_means,
)

__all__ = [
    "summarize",
    "posterior_mode",
    "credible_interval",
    "prob_greater",
    "compare",
    "pairwise_probabilities",
    "marginal_means",
    "SummaryParams",
    "SummarySolution",
]
