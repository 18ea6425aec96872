"""
Solution wrappers for bridge sampling.

BridgeSolution wraps Result[BridgeParams]; BayesFactorResult holds the
comparison of two estimates.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, TYPE_CHECKING

from pyposterior.core.result import Result
from pyposterior.bridge._common import BridgeParams

if TYPE_CHECKING:
    from pyposterior.bridge.design import BridgeDesign


@dataclass
class BridgeSolution:
    """
    User-facing bridge sampling estimate.

    Matches the print method of the bridgesampling R package.
    """
    _result: Result[BridgeParams]
    _design: 'BridgeDesign'

    @property
    def logml(self) -> float:
        """Log marginal likelihood estimate."""
        return self._result.params.logml

    @property
    def error_percentage(self) -> float:
        """Approximate percentage error, 100 * sqrt(re2)."""
        return self._result.params.error_percentage

    @property
    def re2(self) -> float:
        """Approximate relative mean-squared error."""
        return self._result.params.re2

    @property
    def iterations(self) -> int:
        return self._result.params.iterations

    @property
    def method(self) -> str:
        return self._result.params.method

    @property
    def n_components(self) -> int:
        """Proposal mixture components (1 for the normal proposal)."""
        return self._result.params.n_components

    @property
    def model_name(self) -> str:
        return self._design.model.name

    @property
    def seed(self) -> int | None:
        return self._design.seed

    @property
    def info(self) -> dict[str, Any]:
        return self._result.info

    @property
    def timing(self) -> dict[str, float] | None:
        return self._result.timing

    @property
    def backend_name(self) -> str:
        return self._result.backend_name

    @property
    def warnings(self) -> tuple[str, ...]:
        return self._result.warnings

    def summary(self) -> str:
        """
        Produces:
            Bridge sampling estimate of the log marginal likelihood: -12.34567
            Estimate obtained in 6 iteration(s) via method "normal".
        """
        lines = [
            f"\nBridge sampling estimate of the log marginal likelihood: {self.logml:.5f}",
            f"Estimate obtained in {self.iterations} iteration(s) via method \"{self.method}\"",
        ]
        if self.method == 'mixture':
            lines.append(f"Proposal components: {self.n_components}")
        lines.append("")
        lines.append(f"Model: {self.model_name}")
        lines.append(f"Approximate relative mean-squared error: {self.re2:.4g}")
        lines.append(f"Percentage error: {self.error_percentage:.3g}%")
        for w in self.warnings:
            lines.append(f"Warning: {w}")
        return "\n".join(lines)

    def __repr__(self) -> str:
        return (
            f"BridgeSolution(model={self.model_name!r}, logml={self.logml:.6f}, "
            f"error={self.error_percentage:.3g}%, method={self.method!r})"
        )


@dataclass(frozen=True)
class BayesFactorResult:
    """
    Bayes factor of model a over model b.

    Attributes:
        bf: exp(log_bf); may overflow to inf for very large differences.
        log_bf: logml_a - logml_b.
        model_a, model_b: Model names, when known.
    """
    bf: float
    log_bf: float
    model_a: str | None = None
    model_b: str | None = None

    def summary(self) -> str:
        a = self.model_a or 'a'
        b = self.model_b or 'b'
        return (
            f"Estimated Bayes factor in favor of {a} over {b}: {self.bf:.5g}\n"
            f"log Bayes factor: {self.log_bf:.5f}"
        )

    def __repr__(self) -> str:
        return f"BayesFactorResult(bf={self.bf:.5g}, log_bf={self.log_bf:.5f})"
