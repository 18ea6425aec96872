"""
Solution wrapper for sampling runs.

SamplingSolution wraps Result[DrawsParams] and provides accessors and an
R-style summary of the draws with convergence diagnostics.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, TYPE_CHECKING

import numpy as np
from numpy.typing import NDArray

from pyposterior.core.result import Result
from pyposterior.sampling._common import DrawsParams
from pyposterior.sampling.draws import PosteriorDraws

if TYPE_CHECKING:
    from pyposterior.sampling.design import SamplerDesign


@dataclass
class SamplingSolution:
    """User-facing result of a sampling run."""
    _result: Result[DrawsParams]
    _design: 'SamplerDesign'

    @property
    def draws(self) -> PosteriorDraws:
        """Post-warmup draws."""
        return self._result.params.draws

    @property
    def rhat(self) -> NDArray[np.floating[Any]]:
        """Rank-normalized split R-hat per flattened parameter."""
        return self._result.params.rhat

    @property
    def ess_bulk(self) -> NDArray[np.floating[Any]]:
        """Bulk effective sample size per flattened parameter."""
        return self._result.params.ess_bulk

    @property
    def n_divergent(self) -> int:
        return self._result.params.n_divergent

    @property
    def acceptance_rate(self) -> NDArray[np.floating[Any]]:
        """Post-warmup acceptance rate per chain."""
        return self._result.params.acceptance_rate

    @property
    def converged(self) -> bool:
        """True if no R-hat exceeds the threshold and nothing diverged."""
        return not self._result.has_warning('R-hat') and self.n_divergent == 0

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
        Stan-style print of the draws.

        Produces:
            Inference for model 'normal_mean': 4 chains, 1000 draws each

                       mean     sd    2.5%   97.5%  ess_bulk   rhat
            mu        1.234  0.101   1.036   1.432    1523.4  1.001
        """
        draws = self.draws
        lines = [
            f"\nInference for model {draws.model_name!r}: "
            f"{draws.n_chains} chains, {draws.n_draws} draws each "
            f"(warmup {self._design.n_warmup}, thin {self._design.thin})",
            "",
        ]
        names = draws.param_names
        width = max(8, max(len(n) for n in names))
        lines.append(
            f"{'':<{width}s} {'mean':>10s} {'sd':>10s} {'2.5%':>10s} "
            f"{'97.5%':>10s} {'ess_bulk':>9s} {'rhat':>6s}"
        )
        mat = draws.as_matrix()
        lo, hi = np.quantile(mat, [0.025, 0.975], axis=0)
        mean = mat.mean(axis=0)
        sd = mat.std(axis=0, ddof=1) if mat.shape[0] > 1 else np.zeros(mat.shape[1])
        for j, name in enumerate(names):
            lines.append(
                f"{name:<{width}s} {mean[j]:10.4f} {sd[j]:10.4f} {lo[j]:10.4f} "
                f"{hi[j]:10.4f} {self.ess_bulk[j]:9.1f} {self.rhat[j]:6.3f}"
            )
        lines.append("")
        rates = ", ".join(f"{a:.2f}" for a in self.acceptance_rate)
        lines.append(f"Acceptance rate by chain: {rates}")
        lines.append(f"Divergent iterations: {self.n_divergent}")
        for w in self.warnings:
            lines.append(f"Warning: {w}")
        return "\n".join(lines)

    def __repr__(self) -> str:
        return (
            f"SamplingSolution(model={self.draws.model_name!r}, "
            f"chains={self.draws.n_chains}, draws={self.draws.n_draws}, "
            f"converged={self.converged}, backend={self.backend_name!r})"
        )
