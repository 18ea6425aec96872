"""
DataPayload: the frozen numeric arrays a model's log density conditions on.

prepare() builds one from long-format observations. Models look arrays up
by name ('y', 'X', 'group_subject', 'block_first', ...) and never learn
where they came from. Small hand-made payloads for custom models come
from DataPayload.from_arrays(...) or DataPayload.from_dataframe(...).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, TYPE_CHECKING

import numpy as np
from numpy.typing import ArrayLike

from pyposterior.core.capabilities import (
    ALL_CAPABILITIES,
    CAPABILITY_BLOCKED,
    CAPABILITY_DESIGN_MATRIX,
    CAPABILITY_GROUPED,
    CAPABILITY_MATERIALIZED,
    CAPABILITY_REPEATABLE,
)
from pyposterior.core.exceptions import ValidationError

if TYPE_CHECKING:
    import pandas as pd

_BASE_CAPABILITIES = frozenset({CAPABILITY_MATERIALIZED, CAPABILITY_REPEATABLE})


@dataclass(frozen=True)
class DataPayload:
    """
    Named read-only arrays plus metadata (column names, group levels).

    Every stored array is a private copy with its write flag cleared, so
    a density cannot alter the data between evaluations. Integer arrays
    (group indices) keep their dtype; the rest become float64.
    """
    _data: dict[str, np.ndarray]
    _capabilities: frozenset[str]
    _metadata: dict[str, Any] = field(default_factory=dict)

    def __getitem__(self, key: str) -> np.ndarray:
        try:
            return self._data[key]
        except KeyError:
            raise KeyError(
                f"no array {key!r} in DataPayload; has {sorted(self.keys())}"
            ) from None

    def __contains__(self, key: str) -> bool:
        return key in self._data

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def keys(self) -> frozenset[str]:
        """Public array names; names starting with '_' are internal."""
        return frozenset(k for k in self._data if not k.startswith('_'))

    @property
    def n_observations(self) -> int:
        return self._metadata.get('n_observations', 0)

    @property
    def metadata(self) -> dict[str, Any]:
        return dict(self._metadata)

    def supports(self, capability: str) -> bool:
        return capability in self._capabilities

    def with_arrays(self, **named_arrays: ArrayLike) -> DataPayload:
        """Copy of this payload with arrays added or replaced."""
        data = dict(self._data)
        data.update((name, _freeze(arr)) for name, arr in named_arrays.items())
        return DataPayload(data, self._capabilities | _inferred(data), dict(self._metadata))

    @classmethod
    def from_arrays(
        cls,
        *,
        capabilities: frozenset[str] | None = None,
        metadata: dict[str, Any] | None = None,
        **named_arrays: ArrayLike,
    ) -> DataPayload:
        """
        Payload from keyword arrays or scalars.

        n_observations is the length of the first non-scalar array unless
        metadata overrides it. Capabilities implied by the array names
        ('X', 'group_<name>', 'block_first') are added to those given.

        Raises:
            ValidationError: No arrays, an array is not numeric, or an
                unknown capability.
        """
        if not named_arrays:
            raise ValidationError("DataPayload.from_arrays: no arrays given")
        unknown = set(capabilities or ()) - ALL_CAPABILITIES
        if unknown:
            raise ValidationError(
                f"DataPayload.from_arrays: unknown capabilities {sorted(unknown)}; "
                f"expected a subset of {sorted(ALL_CAPABILITIES)}"
            )

        data = {name: _freeze(arr) for name, arr in named_arrays.items()}
        lengths = [a.shape[0] for a in data.values() if a.ndim > 0]
        meta: dict[str, Any] = {
            'n_observations': lengths[0] if lengths else 0,
            'source': 'arrays',
        }
        meta.update(metadata or {})

        return cls(
            _data=data,
            _capabilities=_BASE_CAPABILITIES | frozenset(capabilities or ()) | _inferred(data),
            _metadata=meta,
        )

    @classmethod
    def from_dataframe(cls, df: 'pd.DataFrame') -> DataPayload:
        """Payload with one float64 array per DataFrame column."""
        data: dict[str, np.ndarray] = {}
        for col in df.columns:
            try:
                values = df[col].to_numpy(dtype=np.float64)
            except (TypeError, ValueError) as e:
                raise ValidationError(
                    f"DataPayload.from_dataframe: column {col!r} is not numeric"
                ) from e
            data[str(col)] = _freeze(values)

        return cls(
            _data=data,
            _capabilities=_BASE_CAPABILITIES,
            _metadata={
                'n_observations': len(df),
                'source': 'dataframe',
                'columns': list(data),
            },
        )


def _freeze(arr: ArrayLike) -> np.ndarray:
    a = np.array(arr)
    if a.dtype.kind not in 'iu':
        try:
            a = a.astype(np.float64)
        except (TypeError, ValueError) as e:
            raise ValidationError(f"cannot store non-numeric array: {e}") from e
    a.setflags(write=False)
    return a


def _inferred(data: dict[str, np.ndarray]) -> frozenset[str]:
    """Capabilities implied by array names."""
    caps = set()
    if 'X' in data and data['X'].ndim == 2:
        caps.add(CAPABILITY_DESIGN_MATRIX)
    if any(k.startswith('group_') and data[k].dtype.kind in 'iu' for k in data):
        caps.add(CAPABILITY_GROUPED)
    if 'block_first' in data:
        caps.add(CAPABILITY_BLOCKED)
    return frozenset(caps)
