"""
Fixed-effects design matrices from term lists.

A term is a column name ('time', 'drug') or an interaction of column
names joined by ':' ('drug:time'). Numeric columns enter as-is;
non-numeric (or pandas categorical) columns are dummy coded with
treatment contrasts against a reference level, one column per
non-reference level.

Column naming follows R's model.matrix: '(Intercept)', 'age',
'drug[B]', 'drug[B]:time'.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Hashable, Mapping, Sequence

import numpy as np
import pandas as pd
from numpy.typing import NDArray

from pyposterior.core.exceptions import MalformedInputError


@dataclass(frozen=True)
class DesignMatrix:
    """
    Fixed-effects design matrix with the encoding used to build it.

    Attributes:
        values: (n_obs, n_fixed) float array.
        column_names: One name per column.
        terms: Parsed terms, each a tuple of column names.
        intercept: Whether the first column is the intercept.
        levels: Categorical column name -> ordered levels (reference first).
    """
    values: NDArray[np.floating[Any]]
    column_names: tuple[str, ...]
    terms: tuple[tuple[str, ...], ...]
    intercept: bool
    levels: dict[str, tuple[Any, ...]]

    @property
    def n_obs(self) -> int:
        return self.values.shape[0]

    @property
    def n_fixed(self) -> int:
        return self.values.shape[1]

    def transform(self, frame: pd.DataFrame) -> NDArray[np.floating[Any]]:
        """
        Encode new rows with this matrix's terms and levels.

        Used for estimated marginal means and predictive simulation of
        new covariate combinations.

        Raises:
            MalformedInputError: Missing column or unknown level.
        """
        values, _ = _encode(frame, self.terms, self.intercept, self.levels)
        return values

    def row(self, **covariates: Any) -> NDArray[np.floating[Any]]:
        """Encode a single covariate combination, shape (n_fixed,)."""
        return self.transform(pd.DataFrame([covariates]))[0]


def parse_terms(terms: Sequence[str]) -> tuple[tuple[str, ...], ...]:
    """
    Split term strings into tuples of column names.

    Raises:
        MalformedInputError: Empty term or empty interaction component.
    """
    if isinstance(terms, str):
        terms = [terms]

    parsed = []
    for term in terms:
        parts = tuple(p.strip() for p in str(term).split(':'))
        if any(p == '' for p in parts):
            raise MalformedInputError(
                f"malformed term {term!r}: empty covariate name",
                column=str(term),
            )
        parsed.append(parts)
    return tuple(parsed)


def design_matrix(
    frame: pd.DataFrame,
    terms: Sequence[str],
    *,
    intercept: bool = True,
    reference: Mapping[str, Hashable] | None = None,
) -> DesignMatrix:
    """
    Build a fixed-effects design matrix.

    Args:
        frame: Long-format observations.
        terms: Term strings, e.g. ['drug', 'time', 'drug:time'].
        intercept: Prepend an '(Intercept)' column of ones.
        reference: Optional reference level per categorical column.
            Default: first sorted level.

    Returns:
        DesignMatrix with one row per frame row, in frame order.

    Raises:
        MalformedInputError: Absent covariate, empty term, missing values
            in a covariate, or a reference level not present in the data.
    """
    parsed = parse_terms(terms)
    if not parsed and not intercept:
        raise MalformedInputError("design matrix has no columns")

    reference = dict(reference or {})
    columns = sorted({c for term in parsed for c in term})

    for col in columns:
        if col not in frame.columns:
            raise MalformedInputError(
                f"covariate {col!r} not found. Available: {list(frame.columns)}",
                column=col,
            )
        if frame[col].isna().any():
            raise MalformedInputError(
                f"covariate {col!r} has missing values",
                column=col,
            )

    unknown_ref = set(reference) - set(columns)
    if unknown_ref:
        raise MalformedInputError(
            f"reference given for covariate(s) not in any term: {sorted(unknown_ref)}",
            column=sorted(unknown_ref)[0],
        )

    levels: dict[str, tuple[Any, ...]] = {}
    for col in columns:
        if _is_categorical(frame[col]):
            levels[col] = _levels(frame[col], reference.get(col, _NO_REFERENCE), col)

    values, names = _encode(frame, parsed, intercept, levels)

    return DesignMatrix(
        values=values,
        column_names=tuple(names),
        terms=parsed,
        intercept=intercept,
        levels=levels,
    )


_NO_REFERENCE = object()


def _is_categorical(series: pd.Series) -> bool:
    if isinstance(series.dtype, pd.CategoricalDtype):
        return True
    if pd.api.types.is_bool_dtype(series):
        return True
    return not pd.api.types.is_numeric_dtype(series)


def _levels(series: pd.Series, reference: Any, col: str) -> tuple[Any, ...]:
    if isinstance(series.dtype, pd.CategoricalDtype):
        levels = list(series.cat.categories)
    else:
        levels = sorted(pd.unique(series), key=lambda v: (str(type(v)), v))

    if reference is not _NO_REFERENCE:
        if reference not in levels:
            raise MalformedInputError(
                f"reference level {reference!r} not found in covariate {col!r} "
                f"(levels: {levels})",
                column=col,
                key=reference,
            )
        levels.remove(reference)
        levels.insert(0, reference)

    return tuple(levels)


def _encode_column(
    frame: pd.DataFrame,
    col: str,
    levels: dict[str, tuple[Any, ...]],
) -> tuple[NDArray, list[str]]:
    if col not in frame.columns:
        raise MalformedInputError(
            f"covariate {col!r} not found. Available: {list(frame.columns)}",
            column=col,
        )

    series = frame[col]
    if col not in levels:
        try:
            x = series.to_numpy(dtype=np.float64)
        except (ValueError, TypeError) as e:
            raise MalformedInputError(
                f"covariate {col!r} was numeric when the design was built "
                f"but is not numeric now",
                column=col,
            ) from e
        return x.reshape(-1, 1), [col]

    col_levels = levels[col]
    values = series.to_numpy()
    unknown = set(pd.unique(values)) - set(col_levels)
    if unknown:
        raise MalformedInputError(
            f"covariate {col!r} has unknown level(s) {sorted(map(str, unknown))}",
            column=col,
            key=sorted(map(str, unknown))[0],
        )

    block = np.column_stack(
        [(values == level).astype(np.float64) for level in col_levels[1:]]
    ) if len(col_levels) > 1 else np.empty((len(values), 0))
    names = [f"{col}[{level}]" for level in col_levels[1:]]
    return block, names


def _encode(
    frame: pd.DataFrame,
    terms: tuple[tuple[str, ...], ...],
    intercept: bool,
    levels: dict[str, tuple[Any, ...]],
) -> tuple[NDArray, list[str]]:
    n = len(frame)
    blocks: list[NDArray] = []
    names: list[str] = []

    if intercept:
        blocks.append(np.ones((n, 1), dtype=np.float64))
        names.append('(Intercept)')

    for term in terms:
        block, block_names = _encode_column(frame, term[0], levels)
        for col in term[1:]:
            other, other_names = _encode_column(frame, col, levels)
            # row-wise outer product: every pairing of the two encodings
            block = np.einsum('ij,ik->ijk', block, other).reshape(n, -1)
            block_names = [f"{a}:{b}" for a in block_names for b in other_names]
        blocks.append(block)
        names.extend(block_names)

    values = np.hstack(blocks) if blocks else np.empty((n, 0))
    return values.astype(np.float64), names
