"""
MCMC sampling.

Public API:
    sample(model, data, ...) -> SamplingSolution
    SamplerDesign           run configuration
    CPUMetropolisBackend    reference adaptive Metropolis sampler
    PosteriorDraws          draws container (save/load, concatenate)
    rhat, ess_bulk          convergence diagnostics
"""

from pyposterior.sampling.design import SamplerDesign
from pyposterior.sampling.draws import PosteriorDraws
from pyposterior.sampling.solution import SamplingSolution
from pyposterior.sampling.solvers import sample
from pyposterior.sampling.backends.cpu import CPUMetropolisBackend
from pyposterior.sampling._common import DrawsParams
from pyposterior.sampling._diagnostics import (
    rhat,
    ess,
    ess_bulk,
    integrated_autocorr_time,
    diagnose,
)

__all__ = [
    "sample",
    "SamplerDesign",
    "PosteriorDraws",
    "SamplingSolution",
    "CPUMetropolisBackend",
    "DrawsParams",
    "rhat",
    "ess",
    "ess_bulk",
    "integrated_autocorr_time",
    "diagnose",
]
