"""
Correlation blocks: contiguous runs of observations sharing a grouping key.

Residual correlation (AR(1), unstructured, ...) is modelled within a
block, never across blocks. Order inside a block is significant: it
defines the lag distance between observations.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Hashable, Sequence

import numpy as np
import pandas as pd
from numpy.typing import NDArray

from pyposterior.core.exceptions import MalformedInputError


@dataclass(frozen=True)
class CorrelationBlock:
    """
    One block as a half-open row range [first, last).

    Attributes:
        key: Grouping key value (a tuple when several key columns are used).
        first: Index of the first row in the block.
        last: One past the index of the last row in the block.
    """
    key: Any
    first: int
    last: int

    @property
    def length(self) -> int:
        return self.last - self.first


def correlation_blocks(
    frame: pd.DataFrame,
    keys: Hashable | Sequence[Hashable],
) -> tuple[CorrelationBlock, ...]:
    """
    Partition rows into contiguous correlation blocks.

    Rows are never reordered: rows sharing a key must already be
    adjacent (sort the ObservationSet by unit and time first).

    Args:
        frame: Long-format observations.
        keys: Column name or list of column names forming the key.

    Returns:
        Blocks in row order. Their ranges cover every row exactly once.

    Raises:
        MalformedInputError: Empty frame (zero-length block), missing key
            column, missing key value, or a key whose rows are not
            contiguous.
    """
    key_cols = [keys] if isinstance(keys, (str, int)) else list(keys)
    if not key_cols:
        raise MalformedInputError("correlation_blocks: no key columns given")

    for col in key_cols:
        if col not in frame.columns:
            raise MalformedInputError(
                f"grouping key {col!r} not found. Available: {list(frame.columns)}",
                column=str(col),
            )
        if frame[col].isna().any():
            raise MalformedInputError(
                f"grouping key {col!r} has missing values",
                column=str(col),
            )

    n = len(frame)
    if n == 0:
        raise MalformedInputError(
            f"grouping key {key_cols} produces a zero-length block: no observations",
            column=str(key_cols[0]),
        )

    if len(key_cols) == 1:
        key_values = list(frame[key_cols[0]].to_numpy())
    else:
        key_values = list(frame[key_cols].itertuples(index=False, name=None))

    blocks: list[CorrelationBlock] = []
    seen: set[Any] = set()
    start = 0

    for i in range(1, n + 1):
        if i < n and key_values[i] == key_values[start]:
            continue
        key = key_values[start]
        if key in seen:
            raise MalformedInputError(
                f"rows with key {key!r} are not contiguous (row {start}); "
                f"sort the observations by {key_cols} first",
                column=str(key_cols[0]),
                key=key,
            )
        seen.add(key)
        blocks.append(CorrelationBlock(key=key, first=start, last=i))
        start = i

    return tuple(blocks)


def block_bounds(blocks: Sequence[CorrelationBlock]) -> tuple[NDArray, NDArray]:
    """Return (first, last) index arrays for a sequence of blocks."""
    first = np.array([b.first for b in blocks], dtype=np.int64)
    last = np.array([b.last for b in blocks], dtype=np.int64)
    return first, last
