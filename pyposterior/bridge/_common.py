"""
Common data structures for bridge sampling.

BridgeParams is the parameter payload wrapped by Result[P] and exposed
through BridgeSolution.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import numpy as np
from numpy.typing import NDArray


@dataclass(frozen=True)
class BridgeParams:
    """
    Parameter payload for a bridge sampling estimate.

    - logml: log marginal likelihood estimate
    - re2: approximate relative mean-squared error of exp(logml)
    - error_percentage: 100 * sqrt(re2)
    - q11 / q12: target / proposal log density at held-out posterior draws
    - q21 / q22: target / proposal log density at proposal draws
    """
    logml: float
    re2: float
    error_percentage: float
    iterations: int
    method: str
    n_components: int
    neff: float
    q11: NDArray[np.floating[Any]]
    q12: NDArray[np.floating[Any]]
    q21: NDArray[np.floating[Any]]
    q22: NDArray[np.floating[Any]]
