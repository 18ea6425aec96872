"""
Common data structures for MCMC sampling.

DrawsParams is the parameter payload wrapped by Result[P] and exposed
through SamplingSolution.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import numpy as np
from numpy.typing import NDArray

from pyposterior.sampling.draws import PosteriorDraws


@dataclass(frozen=True)
class DrawsParams:
    """
    Parameter payload for a sampling run.

    - draws: post-warmup PosteriorDraws
    - rhat / ess_bulk: per flattened parameter, in draws.param_names order
    - n_divergent: post-warmup divergent iterations across chains
    - acceptance_rate / step_scale: per chain, after warmup
    """
    draws: PosteriorDraws
    rhat: NDArray[np.floating[Any]]             # shape (n_flat,)
    ess_bulk: NDArray[np.floating[Any]]         # shape (n_flat,)
    n_divergent: int
    acceptance_rate: NDArray[np.floating[Any]]  # shape (n_chains,)
    step_scale: NDArray[np.floating[Any]]       # shape (n_chains,)
