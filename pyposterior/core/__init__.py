"""
Core infrastructure for PyPosterior.

Shared abstractions used by every pipeline component (data, model,
sampling, bridge, summary, predictive).

Key components:
    protocols: DataSource, Backend, Sampler protocols
    result: Generic Result[P] envelope
    exceptions: Exception hierarchy
    validation: Input validators
    compute: Timing and numerical settings
"""

from pyposterior.core.protocols import DataSource, Backend, Sampler
from pyposterior.core.result import Result
from pyposterior.core.exceptions import (
    PyPosteriorError,
    PyPosteriorWarning,
    ValidationError,
    DimensionError,
    MalformedInputError,
    NumericalError,
    NotPositiveDefiniteError,
    InvalidDensityError,
    ConvergenceError,
    BridgeNonConvergenceError,
    SamplerInitializationError,
    SamplerDivergence,
)

__all__ = [
    # Protocols
    "DataSource",
    "Backend",
    "Sampler",
    # Result
    "Result",
    # Exceptions
    "PyPosteriorError",
    "PyPosteriorWarning",
    "ValidationError",
    "DimensionError",
    "MalformedInputError",
    "NumericalError",
    "NotPositiveDefiniteError",
    "InvalidDensityError",
    "ConvergenceError",
    "BridgeNonConvergenceError",
    "SamplerInitializationError",
    "SamplerDivergence",
]
