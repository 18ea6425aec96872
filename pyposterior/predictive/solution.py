"""
Lazy posterior predictive simulation.

PredictiveSimulation produces replicates on demand. Iterating it again
restarts the generator from the design seed, so every pass yields the
same sequence and nothing is held in memory unless to_array() is called.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterator, Sequence, TYPE_CHECKING

import numpy as np
from numpy.typing import NDArray

from pyposterior.core.exceptions import DimensionError
from pyposterior.core.validation import check_probabilities

if TYPE_CHECKING:
    from pyposterior.predictive.design import PredictiveDesign


@dataclass
class PredictiveSimulation:
    """
    Restartable iterable of synthetic outcome vectors.

    len() is the number of replicates. Each replicate picks a posterior
    draw uniformly with replacement, then simulates one new unit from it.
    """
    _design: 'PredictiveDesign'

    @property
    def n_replicates(self) -> int:
        return self._design.n_replicates

    @property
    def seed(self) -> int:
        return self._design.seed

    @property
    def model_name(self) -> str:
        return self._design.model.name

    def __len__(self) -> int:
        return self._design.n_replicates

    def __iter__(self) -> Iterator[NDArray[np.floating[Any]]]:
        for _, y in self._replicates():
            yield y

    def draw_indices(self) -> NDArray[np.integer[Any]]:
        """Pooled-draw index used by each replicate."""
        return np.array([i for i, _ in self._replicates()], dtype=np.int64)

    def _replicates(self) -> Iterator[tuple[int, NDArray]]:
        d = self._design
        rng = np.random.default_rng(d.seed)
        n = d.draws.n_samples
        for _ in range(d.n_replicates):
            index = int(rng.integers(n))
            params = d.draws.sample(index)
            yield index, d.model.simulate(params, d.data, d.aux, rng)

    def to_array(self) -> NDArray[np.floating[Any]]:
        """
        Materialize all replicates as (n_replicates, dim).

        Raises:
            DimensionError: Replicates differ in length.
        """
        reps = list(self)
        dims = {len(r) for r in reps}
        if len(dims) != 1:
            raise DimensionError(f"replicates differ in length: {sorted(dims)}")
        return np.stack(reps)

    def quantiles(self, probs: Sequence[float] = (0.025, 0.5, 0.975)) -> NDArray[np.floating[Any]]:
        """Per-dimension quantiles, shape (len(probs), dim)."""
        p = check_probabilities(probs, 'probs')
        return np.quantile(self.to_array(), p, axis=0)

    def summary(self, probs: Sequence[float] = (0.025, 0.5, 0.975)) -> str:
        """
        Produces:
            Posterior predictive simulation: model 'ar1_mixed', 1000 replicates

                   mean       sd     2.5%      50%    97.5%
            y[0]  1.234    0.456    0.345    1.230    2.120
        """
        arr = self.to_array()
        p = check_probabilities(probs, 'probs')
        q = np.quantile(arr, p, axis=0)
        mean = arr.mean(axis=0)
        sd = arr.std(axis=0, ddof=1) if arr.shape[0] > 1 else np.full(arr.shape[1], np.nan)

        lines = [
            f"\nPosterior predictive simulation: model {self.model_name!r}, "
            f"{self.n_replicates} replicates",
            "",
        ]
        header = f"{'':<8s} {'mean':>9s} {'sd':>9s}" + "".join(f" {x:>8.1%}" for x in p)
        lines.append(header)
        for j in range(arr.shape[1]):
            row = f"{f'y[{j}]':<8s} {mean[j]:9.4f} {sd[j]:9.4f}"
            row += "".join(f" {q[i, j]:8.4f}" for i in range(len(p)))
            lines.append(row)
        return "\n".join(lines)

    def __repr__(self) -> str:
        return (
            f"PredictiveSimulation(model={self.model_name!r}, "
            f"n_replicates={self.n_replicates}, seed={self.seed})"
        )
