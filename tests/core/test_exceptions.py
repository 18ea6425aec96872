"""
Tests for the PyPosterior exception hierarchy.

Validates:
    - Inheritance chain (all exceptions catchable via PyPosteriorError)
    - Diagnostic attributes on the numerical and convergence errors
    - SamplerDivergence is a warning, not an exception to raise
"""

import warnings

import pytest

from pyposterior.core.exceptions import (
    BridgeNonConvergenceError,
    ConvergenceError,
    DimensionError,
    InvalidDensityError,
    MalformedInputError,
    NotPositiveDefiniteError,
    NumericalError,
    PyPosteriorError,
    PyPosteriorWarning,
    SamplerDivergence,
    SamplerInitializationError,
    ValidationError,
)


class TestHierarchy:

    @pytest.mark.parametrize("exc_cls", [
        ValidationError,
        DimensionError,
        MalformedInputError,
        NumericalError,
        NotPositiveDefiniteError,
        InvalidDensityError,
        ConvergenceError,
        BridgeNonConvergenceError,
        SamplerInitializationError,
    ])
    def test_catchable_as_base(self, exc_cls):
        assert issubclass(exc_cls, PyPosteriorError)

    def test_input_errors_are_validation_errors(self):
        assert issubclass(DimensionError, ValidationError)
        assert issubclass(MalformedInputError, ValidationError)

    def test_invalid_density_is_numerical(self):
        assert issubclass(InvalidDensityError, NumericalError)

    def test_bridge_error_is_convergence_error(self):
        assert issubclass(BridgeNonConvergenceError, ConvergenceError)

    def test_divergence_is_runtime_warning(self):
        assert issubclass(SamplerDivergence, RuntimeWarning)
        assert issubclass(SamplerDivergence, PyPosteriorWarning)
        assert not issubclass(SamplerDivergence, PyPosteriorError)


class TestAttributes:

    def test_malformed_input_defaults(self):
        e = MalformedInputError("bad")
        assert e.column is None
        assert e.key is None
        assert str(e) == "bad"

    def test_malformed_input_carries_column_and_key(self):
        e = MalformedInputError("empty block", column='subject', key='s3')
        assert e.column == 'subject'
        assert e.key == 's3'

    def test_invalid_density(self):
        e = InvalidDensityError("nan", model_name='m', value=float('nan'), parameters={'mu': 1.0})
        assert e.model_name == 'm'
        assert e.parameters == {'mu': 1.0}

    def test_convergence_error(self):
        e = ConvergenceError("slow", iterations=10, final_change=0.5, reason='max_iterations', threshold=1e-8)
        assert e.iterations == 10
        assert e.final_change == 0.5
        assert e.reason == 'max_iterations'
        assert e.threshold == 1e-8

    def test_bridge_error_carries_partial_estimate(self):
        e = BridgeNonConvergenceError(
            "no convergence", iterations=1000, logml=-12.5, error_percentage=3.2,
        )
        assert e.logml == -12.5
        assert e.error_percentage == 3.2
        assert e.reason == 'max_iterations'
        assert e.iterations == 1000

    def test_sampler_initialization(self):
        e = SamplerInitializationError("no init", chain=2, attempts=100)
        assert e.chain == 2
        assert e.attempts == 100

    def test_not_positive_definite(self):
        e = NotPositiveDefiniteError("npd", matrix_name='cov', min_eigenvalue=-1e-3)
        assert e.matrix_name == 'cov'
        assert e.min_eigenvalue == -1e-3

    def test_divergence_can_be_warned(self):
        with pytest.warns(SamplerDivergence):
            warnings.warn("diverged", SamplerDivergence)
