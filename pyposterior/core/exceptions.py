"""
Errors and warnings raised by PyPosterior.

Catch PyPosteriorError to handle anything the package raises on purpose.
Errors keep the numbers needed to diagnose them (chain index, offending
value, last estimate) as attributes next to the message. None of them is
retried internally. A divergent sampler iteration is not an error: it is
rejected, flagged in the draws and reported through SamplerDivergence.
"""

from typing import Any


class PyPosteriorError(Exception):
    """Root of every PyPosterior exception."""


class PyPosteriorWarning(UserWarning):
    """Root of every PyPosterior warning."""


class ValidationError(PyPosteriorError):
    """An argument or dataset was rejected before any computation ran."""


class DimensionError(ValidationError):
    """Shapes disagree: wrong ndim, mismatched row counts or wrong width."""


class MalformedInputError(ValidationError):
    """
    Covariate or grouping specification does not fit the data.

    A referenced column is missing, a term expands to nothing, or a
    grouping key yields an empty or non-contiguous block.

    Attributes:
        column: Column or term at fault, when there is one.
        key: Grouping key value at fault, when there is one.
    """

    def __init__(self, message: str, column: str | None = None, key: Any = None):
        super().__init__(message)
        self.column = column
        self.key = key


class NumericalError(PyPosteriorError):
    """Arithmetic broke down mid-computation (integration, factorization, ...)."""


class NotPositiveDefiniteError(NumericalError):
    """
    A covariance could not be Cholesky factorized.

    Attributes:
        matrix_name: Which matrix failed, e.g. 'proposal_covariance'.
        min_eigenvalue: Its smallest eigenvalue, if it was computed.
    """

    def __init__(
        self,
        message: str,
        matrix_name: str | None = None,
        min_eigenvalue: float | None = None,
    ):
        super().__init__(message)
        self.matrix_name = matrix_name
        self.min_eigenvalue = min_eigenvalue


class InvalidDensityError(NumericalError):
    """
    A model's log density broke its contract.

    The density must return a finite real or negative infinity. NaN,
    positive infinity, or a non-scalar indicate a bug in the model.

    Attributes:
        model_name: Name of the offending model
        value: The value that was returned
        parameters: The parameter values at which it was evaluated
    """

    def __init__(
        self,
        message: str,
        model_name: str | None = None,
        value: Any = None,
        parameters: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.model_name = model_name
        self.value = value
        self.parameters = parameters


class ConvergenceError(PyPosteriorError):
    """
    An iterative estimate stopped before meeting its tolerance.

    Attributes:
        iterations: Iterations run before stopping.
        final_change: Change measured on the last iteration.
        reason: Short tag, e.g. 'max_iterations'.
        threshold: Tolerance the change had to fall below.
    """

    def __init__(
        self,
        message: str,
        iterations: int,
        final_change: float | None = None,
        reason: str | None = None,
        threshold: float | None = None,
    ):
        super().__init__(message)
        self.iterations = iterations
        self.final_change = final_change
        self.reason = reason
        self.threshold = threshold


class BridgeNonConvergenceError(ConvergenceError):
    """
    Bridge sampling fixed-point iteration did not converge.

    Carries the partial estimate reached when iteration stopped so the
    caller can judge it; it is never returned as a regular result.

    Attributes:
        logml: Log marginal likelihood at the last iteration
        error_percentage: Approximate percentage error of that estimate,
            or None if it could not be computed
    """

    def __init__(
        self,
        message: str,
        iterations: int,
        logml: float,
        error_percentage: float | None = None,
        final_change: float | None = None,
        threshold: float | None = None,
    ):
        super().__init__(
            message,
            iterations=iterations,
            final_change=final_change,
            reason='max_iterations',
            threshold=threshold,
        )
        self.logml = logml
        self.error_percentage = error_percentage


class SamplerInitializationError(PyPosteriorError):
    """
    Sampler could not find a starting point with finite log density.

    Fatal for the run.

    Attributes:
        chain: Index of the chain that failed to initialize
        attempts: Number of initialization attempts made
    """

    def __init__(self, message: str, chain: int | None = None, attempts: int = 0):
        super().__init__(message)
        self.chain = chain
        self.attempts = attempts


class SamplerDivergence(PyPosteriorWarning, RuntimeWarning):
    """
    One or more sampler iterations diverged.

    Divergent iterations are rejected and flagged in the draws'
    sample statistics; the run continues.
    """
