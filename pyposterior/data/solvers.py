"""
DataPreparer entry point.

prepare() turns a long-format ObservationSet into the DataPayload a model
density reads: response vector, fixed-effects design matrix, integer group
indices for random effects and correlation block ranges. It is a pure
transform; row order is preserved.
"""

from __future__ import annotations

from typing import Any, Hashable, Mapping, Sequence

import numpy as np
import pandas as pd

from pyposterior.core.capabilities import (
    CAPABILITY_BLOCKED,
    CAPABILITY_DESIGN_MATRIX,
    CAPABILITY_GROUPED,
)
from pyposterior.core.exceptions import MalformedInputError
from pyposterior.data._blocks import block_bounds, correlation_blocks
from pyposterior.data._terms import design_matrix
from pyposterior.data.payload import DataPayload


def prepare(
    frame: pd.DataFrame,
    response: str,
    terms: Sequence[str] = (),
    *,
    groups: Sequence[str] | None = None,
    block_keys: Hashable | Sequence[Hashable] | None = None,
    intercept: bool = True,
    reference: Mapping[str, Hashable] | None = None,
    extra: Mapping[str, Any] | None = None,
) -> DataPayload:
    """
    Build a DataPayload from long-format observations.

    Args:
        frame: Long-format observations, one row per unit x time.
        response: Name of the numeric response column.
        terms: Fixed-effect terms (see design_matrix).
        groups: Grouping columns for random effects. Each becomes an
            integer index array 'group_<name>' (0-based, levels in order
            of first appearance) plus 'n_<name>' in metadata.
        block_keys: Key column(s) for correlation blocks. Adds
            'block_first', 'block_last' and 'block_length' arrays.
        intercept: Include an intercept column.
        reference: Reference level per categorical covariate.
        extra: Additional named arrays or scalars to carry (e.g. 'time').

    Returns:
        DataPayload with arrays 'y' and 'X' (plus group/block arrays) and
        metadata 'column_names', 'group_levels', 'design', 'blocks'.

    Raises:
        MalformedInputError: Missing response or covariates, a non-numeric
            or missing response, or an invalid block partition.
    """
    if response not in frame.columns:
        raise MalformedInputError(
            f"response {response!r} not found. Available: {list(frame.columns)}",
            column=response,
        )

    try:
        y = frame[response].to_numpy(dtype=np.float64)
    except (ValueError, TypeError) as e:
        raise MalformedInputError(
            f"response {response!r} is not numeric", column=response,
        ) from e
    if not np.all(np.isfinite(y)):
        raise MalformedInputError(
            f"response {response!r} has {int(np.sum(~np.isfinite(y)))} missing "
            f"or non-finite values",
            column=response,
        )

    design = design_matrix(frame, terms, intercept=intercept, reference=reference)

    arrays: dict[str, Any] = {'y': y, 'X': design.values}
    capabilities = {CAPABILITY_DESIGN_MATRIX}
    metadata: dict[str, Any] = {
        'response': response,
        'column_names': design.column_names,
        'design': design,
        'group_levels': {},
    }

    for name in groups or ():
        if name not in frame.columns:
            raise MalformedInputError(
                f"grouping column {name!r} not found. Available: {list(frame.columns)}",
                column=name,
            )
        if frame[name].isna().any():
            raise MalformedInputError(
                f"grouping column {name!r} has missing values", column=name,
            )
        codes, levels = pd.factorize(frame[name], sort=False)
        arrays[f'group_{name}'] = codes.astype(np.int64)
        metadata['group_levels'][name] = tuple(levels)
        metadata[f'n_{name}'] = len(levels)
        capabilities.add(CAPABILITY_GROUPED)

    if block_keys is not None:
        blocks = correlation_blocks(frame, block_keys)
        first, last = block_bounds(blocks)
        arrays['block_first'] = first
        arrays['block_last'] = last
        arrays['block_length'] = last - first
        metadata['blocks'] = blocks
        capabilities.add(CAPABILITY_BLOCKED)

    if extra:
        arrays.update(extra)

    return DataPayload.from_arrays(
        capabilities=frozenset(capabilities),
        metadata=metadata,
        **arrays,
    )
