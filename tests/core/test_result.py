"""
Tests for the Result envelope.
"""

from dataclasses import FrozenInstanceError, dataclass

import pytest

from pyposterior.core.result import Result


@dataclass(frozen=True)
class _Params:
    value: float


class TestResult:

    def test_fields(self):
        r = Result(params=_Params(1.0), info={'seed': 1}, timing=None, backend_name='cpu_x')
        assert r.params.value == 1.0
        assert r.info['seed'] == 1
        assert r.timing is None
        assert r.backend_name == 'cpu_x'
        assert r.warnings == ()

    def test_immutable(self):
        r = Result(params=_Params(1.0), info={}, timing=None, backend_name='cpu_x')
        with pytest.raises(FrozenInstanceError):
            r.backend_name = 'other'

    def test_has_warning(self):
        r = Result(
            params=_Params(1.0), info={}, timing=None, backend_name='cpu_x',
            warnings=("R-hat above 1.01 for 2 parameter(s)", "3 divergent iteration(s)"),
        )
        assert r.has_warning('R-hat')
        assert r.has_warning('divergent')
        assert not r.has_warning('ESS')
