"""
Posterior summary solution types.

SummaryParams holds the per-quantity table; SummarySolution renders it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, TYPE_CHECKING

import numpy as np
from numpy.typing import NDArray

from pyposterior.core.result import Result

if TYPE_CHECKING:
    import pandas as pd


@dataclass(frozen=True)
class SummaryParams:
    """
    Parameter payload for a posterior summary.

    Per-quantity statistics are arrays of shape (k,), in the order of
    names. samples holds the pooled draws the statistics came from.
    """
    names: tuple[str, ...]
    estimate: NDArray[np.floating[Any]]
    mean: NDArray[np.floating[Any]]
    sd: NDArray[np.floating[Any]]
    lower: NDArray[np.floating[Any]]
    upper: NDArray[np.floating[Any]]
    ess_bulk: NDArray[np.floating[Any]]
    rhat: NDArray[np.floating[Any]]
    samples: NDArray[np.floating[Any]]     # shape (n_samples, k)
    probs: tuple[float, float]
    point: str


@dataclass
class SummarySolution:
    """
    User-facing posterior summary.

    Wraps Result[SummaryParams]; one row per scalar quantity.
    """
    _result: Result[SummaryParams]

    @property
    def names(self) -> tuple[str, ...]:
        return self._result.params.names

    @property
    def estimate(self) -> NDArray[np.floating[Any]]:
        """Point estimates (mean, median or KDE mode)."""
        return self._result.params.estimate

    @property
    def mean(self) -> NDArray[np.floating[Any]]:
        return self._result.params.mean

    @property
    def sd(self) -> NDArray[np.floating[Any]]:
        return self._result.params.sd

    @property
    def lower(self) -> NDArray[np.floating[Any]]:
        """Lower credible bound at probs[0]."""
        return self._result.params.lower

    @property
    def upper(self) -> NDArray[np.floating[Any]]:
        """Upper credible bound at probs[1]."""
        return self._result.params.upper

    @property
    def ess_bulk(self) -> NDArray[np.floating[Any]]:
        return self._result.params.ess_bulk

    @property
    def rhat(self) -> NDArray[np.floating[Any]]:
        return self._result.params.rhat

    @property
    def probs(self) -> tuple[float, float]:
        return self._result.params.probs

    @property
    def point(self) -> str:
        return self._result.params.point

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

    def samples(self, name: str) -> NDArray[np.floating[Any]]:
        """Pooled draws of one summarized quantity."""
        return self._result.params.samples[:, self._index(name)]

    def __getitem__(self, name: str) -> dict[str, float]:
        j = self._index(name)
        p = self._result.params
        return {
            'estimate': float(p.estimate[j]),
            'mean': float(p.mean[j]),
            'sd': float(p.sd[j]),
            'lower': float(p.lower[j]),
            'upper': float(p.upper[j]),
            'ess_bulk': float(p.ess_bulk[j]),
            'rhat': float(p.rhat[j]),
        }

    def __len__(self) -> int:
        return len(self.names)

    def _index(self, name: str) -> int:
        try:
            return self.names.index(name)
        except ValueError:
            raise KeyError(f"{name!r} not summarized. Available: {list(self.names)}") from None

    def to_dataframe(self) -> 'pd.DataFrame':
        """One row per quantity, indexed by name."""
        import pandas as pd

        lo, hi = self.probs
        return pd.DataFrame(
            {
                self.point: self.estimate,
                'mean': self.mean,
                'sd': self.sd,
                f'{lo:.1%}': self.lower,
                f'{hi:.1%}': self.upper,
                'ess_bulk': self.ess_bulk,
                'rhat': self.rhat,
            },
            index=pd.Index(self.names, name='parameter'),
        )

    def summary(self) -> str:
        """
        Produces:
                       mean     mean       sd     2.5%    97.5%  ess_bulk   rhat
            beta[0]  1.2300   1.2300   0.1100   1.0100   1.4500    3412.0  1.000
        """
        lo, hi = self.probs
        width = max(10, max(len(n) for n in self.names))
        lines = [
            f"{'':<{width}s} {self.point:>9s} {'mean':>9s} {'sd':>9s} "
            f"{lo:>8.1%} {hi:>8.1%} {'ess_bulk':>9s} {'rhat':>6s}"
        ]
        for j, name in enumerate(self.names):
            lines.append(
                f"{name:<{width}s} {self.estimate[j]:9.4f} {self.mean[j]:9.4f} "
                f"{self.sd[j]:9.4f} {self.lower[j]:8.4f} {self.upper[j]:8.4f} "
                f"{self.ess_bulk[j]:9.1f} {self.rhat[j]:6.3f}"
            )
        return "\n".join(lines)

    def __repr__(self) -> str:
        return f"SummarySolution(k={len(self.names)}, point={self.point!r})"
