"""
Result envelope shared by the sampling, bridge and summary backends.

Each backend defines its own frozen payload (DrawsParams, BridgeParams,
SummaryParams) and wraps it in a Result together with run metadata, so
seeds, timings and warnings are read the same way everywhere.
"""

from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

P = TypeVar('P')


@dataclass(frozen=True)
class Result(Generic[P]):
    """
    Frozen output of one backend run.

    Attributes:
        params: Backend-specific payload.
        info: Run metadata such as method, seed and iteration counts.
        timing: Seconds per phase from Timer.result(), or None.
        backend_name: Name of the backend that ran, e.g. 'cpu_metropolis'.
        warnings: Messages for problems that did not stop the run.
    """
    params: P
    info: dict[str, Any]
    timing: dict[str, float] | None
    backend_name: str
    warnings: tuple[str, ...] = field(default_factory=tuple)

    def has_warning(self, substring: str) -> bool:
        return any(substring in w for w in self.warnings)
