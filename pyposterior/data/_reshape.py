"""
Long/wide conversion for repeated-measures tables.

Wide format: one row per unit, one column per time point.
Long format: one row per unit x time point.

Both directions keep unit order (row order / first appearance) and time
order (column order / first appearance), so long -> wide -> long
reproduces a unit-major ObservationSet exactly.
"""

from __future__ import annotations

from pathlib import Path
from typing import Sequence, Hashable

import numpy as np
import pandas as pd

from pyposterior.core.exceptions import MalformedInputError, ValidationError


def read_table(path: str | Path, **read_kwargs) -> pd.DataFrame:
    """
    Read a delimited table (CSV or TSV) into a DataFrame.

    Args:
        path: File path ending in .csv, .tsv or .txt (tab separated)
        **read_kwargs: Passed through to pandas.read_csv

    Raises:
        ValidationError: On an unsupported file format
    """
    path = Path(path)
    suffix = path.suffix.lower()

    if suffix == '.csv':
        return pd.read_csv(path, **read_kwargs)
    if suffix in ('.tsv', '.txt'):
        return pd.read_csv(path, sep='\t', **read_kwargs)
    raise ValidationError(
        f"Unknown file format: {suffix!r} (expected .csv, .tsv or .txt)"
    )


def to_long(
    wide: pd.DataFrame,
    id_col: Hashable,
    time_cols: Sequence[Hashable] | None = None,
    *,
    time_name: str = 'time',
    value_name: str = 'value',
    dropna: bool = True,
) -> pd.DataFrame:
    """
    Convert a wide table to long format.

    Args:
        wide: One row per unit.
        id_col: Column holding the unit identifier.
        time_cols: Columns holding the repeated measures, in time order.
            Default: every column except id_col.
        time_name: Name of the time column in the output.
        value_name: Name of the response column in the output.
        dropna: Drop unit x time cells with a missing response.

    Returns:
        DataFrame with columns [id_col, time_name, value_name], sorted by
        unit (input row order) then time (time_cols order), fresh index.

    Raises:
        MalformedInputError: Missing columns or duplicated unit ids.
    """
    if id_col not in wide.columns:
        raise MalformedInputError(
            f"id column {id_col!r} not found. Available: {list(wide.columns)}",
            column=str(id_col),
        )

    if time_cols is None:
        time_cols = [c for c in wide.columns if c != id_col]
    time_cols = list(time_cols)

    if not time_cols:
        raise MalformedInputError("to_long: no time columns to stack")

    missing = [c for c in time_cols if c not in wide.columns]
    if missing:
        raise MalformedInputError(
            f"time columns {missing} not found. Available: {list(wide.columns)}",
            column=str(missing[0]),
        )

    duplicated = wide[id_col].duplicated()
    if duplicated.any():
        dup = wide.loc[duplicated, id_col].iloc[0]
        raise MalformedInputError(
            f"unit id {dup!r} appears in more than one row of the wide table",
            column=str(id_col),
            key=dup,
        )

    n_units = len(wide)
    n_times = len(time_cols)

    long = wide.melt(
        id_vars=[id_col],
        value_vars=time_cols,
        var_name=time_name,
        value_name=value_name,
    )

    # melt stacks column by column; reorder to unit-major
    unit_pos = np.tile(np.arange(n_units), n_times)
    time_pos = np.repeat(np.arange(n_times), n_units)
    order = np.lexsort((time_pos, unit_pos))
    long = long.iloc[order]

    if dropna:
        long = long[long[value_name].notna()]

    return long.reset_index(drop=True)


def to_wide(
    long: pd.DataFrame,
    id_col: Hashable,
    time_col: Hashable,
    value_col: Hashable,
) -> pd.DataFrame:
    """
    Convert a long table to wide format.

    Units appear in order of first appearance; time columns appear in
    order of first appearance. Missing unit x time cells are NaN.

    Raises:
        MalformedInputError: Missing columns or a unit with two rows at
            the same time point.
    """
    for col in (id_col, time_col, value_col):
        if col not in long.columns:
            raise MalformedInputError(
                f"column {col!r} not found. Available: {list(long.columns)}",
                column=str(col),
            )

    dup = long.duplicated(subset=[id_col, time_col])
    if dup.any():
        row = long.loc[dup].iloc[0]
        raise MalformedInputError(
            f"unit {row[id_col]!r} has more than one observation at "
            f"{time_col}={row[time_col]!r}",
            column=str(time_col),
            key=row[id_col],
        )

    units = pd.unique(long[id_col])
    times = pd.unique(long[time_col])

    wide = long.pivot(index=id_col, columns=time_col, values=value_col)
    wide = wide.reindex(index=units, columns=times)
    wide.columns.name = None
    wide.index.name = id_col
    return wide.reset_index()
