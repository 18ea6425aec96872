"""
PosteriorDraws: the central artifact consumed by all downstream analysis.

Draws are stored as a (n_chains, n_draws, n_flat) array over the
flattened constrained parameters, with the parameter schema
(name -> shape) that every draw shares. Per-iteration sampler
statistics and generated quantities travel alongside.

Draws persist to a single .npz file so bridge sampling and summaries
can run in a different process or session from the sampling run.
"""

from __future__ import annotations

import json
import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Sequence, TYPE_CHECKING

import numpy as np
from numpy.typing import NDArray

from pyposterior.core.exceptions import DimensionError, ValidationError

if TYPE_CHECKING:
    import pandas as pd
    from pyposterior.model.spec import ModelSpec

FORMAT_VERSION = 1


def flat_names(schema: Mapping[str, tuple[int, ...]]) -> tuple[str, ...]:
    """Flattened element names for a schema, in storage order."""
    names: list[str] = []
    for name, shape in schema.items():
        if tuple(shape) == ():
            names.append(name)
        else:
            names.extend(
                f"{name}[{','.join(str(i) for i in idx)}]"
                for idx in np.ndindex(*shape)
            )
    return tuple(names)


@dataclass(frozen=True)
class PosteriorDraws:
    """
    Post-warmup posterior draws for one model.

    Attributes:
        model_name: Name of the model the draws came from.
        schema: Parameter name -> shape, in storage order.
        values: (n_chains, n_draws, n_flat) constrained parameter values.
        sample_stats: Name -> (n_chains, n_draws) per-iteration statistics
            ('log_density', 'accepted', 'divergent', ...).
        generated: Name -> (n_chains, n_draws, *shape) derived quantities.
    """
    model_name: str
    schema: dict[str, tuple[int, ...]]
    values: NDArray[np.floating[Any]]
    sample_stats: dict[str, NDArray] = field(default_factory=dict)
    generated: dict[str, NDArray] = field(default_factory=dict)

    def __post_init__(self):
        values = np.asarray(self.values, dtype=np.float64)
        if values.ndim != 3:
            raise DimensionError(
                f"values: expected (chains, draws, params) array, got shape {values.shape}"
            )
        schema = {str(k): tuple(int(s) for s in v) for k, v in self.schema.items()}
        n_flat = sum(math.prod(s) for s in schema.values())
        if values.shape[2] != n_flat:
            raise DimensionError(
                f"values: schema has {n_flat} scalars but values have {values.shape[2]} columns"
            )
        for name, arr in self.sample_stats.items():
            if np.shape(arr) != values.shape[:2]:
                raise DimensionError(
                    f"sample_stats[{name!r}]: expected shape {values.shape[:2]}, "
                    f"got {np.shape(arr)}"
                )
        for name, arr in self.generated.items():
            if np.shape(arr)[:2] != values.shape[:2]:
                raise DimensionError(
                    f"generated[{name!r}]: leading shape must be {values.shape[:2]}, "
                    f"got {np.shape(arr)}"
                )
        object.__setattr__(self, 'values', values)
        object.__setattr__(self, 'schema', schema)

    # === Shape ===

    @property
    def n_chains(self) -> int:
        return self.values.shape[0]

    @property
    def n_draws(self) -> int:
        """Draws per chain."""
        return self.values.shape[1]

    @property
    def n_samples(self) -> int:
        """Total draws across chains."""
        return self.n_chains * self.n_draws

    @property
    def parameter_names(self) -> tuple[str, ...]:
        return tuple(self.schema)

    @property
    def param_names(self) -> tuple[str, ...]:
        """Flattened element names (columns of values)."""
        return flat_names(self.schema)

    # === Access ===

    def _slice(self, name: str) -> slice:
        start = 0
        for pname, shape in self.schema.items():
            size = math.prod(shape)
            if pname == name:
                return slice(start, start + size)
            start += size
        raise KeyError(
            f"no parameter {name!r}. Available: {list(self.schema)}"
            + (f"; generated: {list(self.generated)}" if self.generated else "")
        )

    def get(self, name: str, *, by_chain: bool = False) -> NDArray:
        """
        Draws of one parameter or generated quantity.

        Returns:
            (n_samples, *shape) pooled over chains, or
            (n_chains, n_draws, *shape) when by_chain=True.
        """
        if name in self.generated and name not in self.schema:
            arr = np.asarray(self.generated[name])
            shape = arr.shape[2:]
        else:
            shape = self.schema.get(name)
            if shape is None:
                self._slice(name)  # raises KeyError with available names
            arr = self.values[:, :, self._slice(name)].reshape(
                self.n_chains, self.n_draws, *shape
            )
        if by_chain:
            return arr
        return arr.reshape(self.n_samples, *shape)

    def column(self, flat_name: str, *, by_chain: bool = False) -> NDArray:
        """Draws of one flattened element such as 'beta[1]'."""
        names = self.param_names
        if flat_name not in names:
            return self.get(flat_name, by_chain=by_chain)
        j = names.index(flat_name)
        col = self.values[:, :, j]
        return col if by_chain else col.reshape(-1)

    def as_matrix(self, names: Sequence[str] | None = None) -> NDArray:
        """Pooled (n_samples, k) matrix of flattened columns."""
        if names is None:
            return self.values.reshape(self.n_samples, -1)
        return np.column_stack([self.column(n) for n in names])

    def sample(self, index: int) -> dict[str, NDArray]:
        """ModelParameters of one pooled draw (chain-major index)."""
        if not 0 <= index < self.n_samples:
            raise IndexError(f"draw index {index} out of range [0, {self.n_samples})")
        chain, draw = divmod(int(index), self.n_draws)
        vector = self.values[chain, draw]
        out: dict[str, NDArray] = {}
        start = 0
        for name, shape in self.schema.items():
            size = math.prod(shape)
            out[name] = vector[start:start + size].reshape(shape)
            start += size
        return out

    def unconstrained(self, model: 'ModelSpec') -> NDArray:
        """(n_chains, n_draws, model.dim) draws mapped to the unconstrained space."""
        self._check_model(model)
        out = np.empty((self.n_chains, self.n_draws, model.dim), dtype=np.float64)
        for c in range(self.n_chains):
            for d in range(self.n_draws):
                out[c, d] = model.pack(model.unflatten(self.values[c, d]))
        return out

    def with_generated(
        self,
        model: 'ModelSpec',
        data: Any,
        aux: Mapping[str, Any] | None = None,
    ) -> PosteriorDraws:
        """Return a copy with the model's generated quantities computed per draw."""
        self._check_model(model)
        collected: dict[str, list[NDArray]] = {}
        for i in range(self.n_samples):
            gq = model.generated_quantities(self.sample(i), data, aux)
            for k, v in gq.items():
                collected.setdefault(k, []).append(v)
        generated = dict(self.generated)
        for k, v in collected.items():
            arr = np.stack(v)
            generated[k] = arr.reshape(self.n_chains, self.n_draws, *arr.shape[1:])
        return PosteriorDraws(
            model_name=self.model_name,
            schema=self.schema,
            values=self.values,
            sample_stats=self.sample_stats,
            generated=generated,
        )

    def to_dataframe(self) -> 'pd.DataFrame':
        """Long table: one row per draw with chain, draw and flattened columns."""
        import pandas as pd

        chain = np.repeat(np.arange(self.n_chains), self.n_draws)
        draw = np.tile(np.arange(self.n_draws), self.n_chains)
        df = pd.DataFrame(self.as_matrix(), columns=list(self.param_names))
        df.insert(0, 'draw', draw)
        df.insert(0, 'chain', chain)
        for name, arr in self.sample_stats.items():
            df[name] = np.asarray(arr).reshape(-1)
        return df

    # === Persistence ===

    def save(self, path: str | Path) -> Path:
        """
        Write draws to a compressed .npz file.

        Returns:
            The path written (with '.npz' appended if missing).
        """
        path = Path(path)
        if path.suffix != '.npz':
            path = path.with_name(path.name + '.npz')

        meta = {
            'format_version': FORMAT_VERSION,
            'model_name': self.model_name,
            'schema': [[name, list(shape)] for name, shape in self.schema.items()],
            'sample_stats': list(self.sample_stats),
            'generated': list(self.generated),
        }
        arrays = {'values': self.values, 'meta': np.array(json.dumps(meta))}
        for i, name in enumerate(self.sample_stats):
            arrays[f'stat_{i}'] = np.asarray(self.sample_stats[name])
        for i, name in enumerate(self.generated):
            arrays[f'gen_{i}'] = np.asarray(self.generated[name])

        np.savez_compressed(path, **arrays)
        return path

    @classmethod
    def load(cls, path: str | Path) -> PosteriorDraws:
        """
        Read draws written by save().

        Raises:
            ValidationError: Unknown format version or missing metadata.
        """
        with np.load(Path(path), allow_pickle=False) as f:
            if 'meta' not in f.files:
                raise ValidationError(f"{path}: not a PosteriorDraws file (no metadata)")
            meta = json.loads(str(f['meta']))
            if meta.get('format_version') != FORMAT_VERSION:
                raise ValidationError(
                    f"{path}: unsupported format version {meta.get('format_version')!r}"
                )
            schema = {name: tuple(shape) for name, shape in meta['schema']}
            sample_stats = {
                name: f[f'stat_{i}'] for i, name in enumerate(meta['sample_stats'])
            }
            generated = {
                name: f[f'gen_{i}'] for i, name in enumerate(meta['generated'])
            }
            values = f['values']

        return cls(
            model_name=meta['model_name'],
            schema=schema,
            values=values,
            sample_stats=sample_stats,
            generated=generated,
        )

    @classmethod
    def concatenate(cls, parts: Sequence[PosteriorDraws]) -> PosteriorDraws:
        """
        Pool chains sampled separately (e.g. in different processes).

        Raises:
            ValidationError: Parts disagree on model, schema or draw count.
        """
        if not parts:
            raise ValidationError("concatenate: no draws given")
        first = parts[0]
        for p in parts[1:]:
            if p.model_name != first.model_name or p.schema != first.schema:
                raise ValidationError(
                    f"concatenate: draws from {p.model_name!r} do not share the "
                    f"schema of {first.model_name!r}"
                )
            if p.n_draws != first.n_draws:
                raise ValidationError(
                    f"concatenate: draws per chain differ ({first.n_draws} vs {p.n_draws})"
                )
        stats_keys = set(first.sample_stats).intersection(*(p.sample_stats for p in parts))
        gen_keys = set(first.generated).intersection(*(p.generated for p in parts))
        return cls(
            model_name=first.model_name,
            schema=first.schema,
            values=np.concatenate([p.values for p in parts], axis=0),
            sample_stats={
                k: np.concatenate([p.sample_stats[k] for p in parts], axis=0)
                for k in sorted(stats_keys)
            },
            generated={
                k: np.concatenate([p.generated[k] for p in parts], axis=0)
                for k in sorted(gen_keys)
            },
        )

    # === Internals ===

    def _check_model(self, model: 'ModelSpec') -> None:
        if model.schema != self.schema:
            raise ValidationError(
                f"model {model.name!r} schema {model.schema} does not match "
                f"draws schema {self.schema}"
            )

    def __repr__(self) -> str:
        return (
            f"PosteriorDraws(model={self.model_name!r}, chains={self.n_chains}, "
            f"draws={self.n_draws}, params={list(self.schema)})"
        )
