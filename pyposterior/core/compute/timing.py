"""
Wall-clock bookkeeping for Result.timing.

A backend starts one Timer, wraps its phases ('sampling', 'proposal',
'iteration', ...) in sections and hands timer.result() to its Result.
"""

from collections import defaultdict
from contextlib import contextmanager
from time import perf_counter
from typing import Iterator


class Timer:
    """
    Total run time plus per-phase seconds.

    A phase entered more than once accumulates. Phases may nest, so
    their sum need not equal the total.

        timer = Timer()
        timer.start()
        with timer.section('warmup'):
            ...
        timer.stop()
        timer.result()   # {'total_seconds': ..., 'warmup': ...}
    """

    def __init__(self):
        self._phases: dict[str, float] = defaultdict(float)
        self._t0: float | None = None
        self._elapsed: float | None = None

    def start(self) -> None:
        self._t0 = perf_counter()
        self._elapsed = None

    def stop(self) -> None:
        if self._t0 is None:
            raise RuntimeError("Timer.stop() called before start()")
        self._elapsed = perf_counter() - self._t0

    @contextmanager
    def section(self, name: str) -> Iterator[None]:
        entered = perf_counter()
        try:
            yield
        finally:
            self._phases[name] += perf_counter() - entered

    def result(self) -> dict[str, float]:
        """Seconds keyed by phase, with the overall run under 'total_seconds'."""
        if self._elapsed is None:
            raise RuntimeError("Timer.result() called before stop()")
        return {'total_seconds': self._elapsed, **self._phases}
