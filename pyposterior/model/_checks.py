"""
Data requirements of the built-in models.

Each model's data check runs once, before sampling or bridge sampling
starts, so the densities themselves are left with arithmetic only.
"""

from __future__ import annotations

from typing import Any, Iterable

import numpy as np

from pyposterior.core.capabilities import (
    CAPABILITY_BLOCKED,
    CAPABILITY_DESIGN_MATRIX,
    CAPABILITY_GROUPED,
)
from pyposterior.core.exceptions import MalformedInputError

_HOW_TO_GET = {
    CAPABILITY_DESIGN_MATRIX: "a design matrix 'X'",
    CAPABILITY_GROUPED: "integer 'group_<name>' codes, e.g. prepare(..., groups=[...])",
    CAPABILITY_BLOCKED: "correlation blocks, e.g. prepare(..., block_keys=...)",
}


def require(
    data: Any,
    model_name: str,
    *,
    capabilities: Iterable[str] = (),
    keys: Iterable[str] = (),
) -> None:
    """
    Raises:
        MalformedInputError: data lacks a capability or a named array.
    """
    if data is None:
        raise MalformedInputError(f"model {model_name!r} needs data, got None")
    for cap in capabilities:
        if not data.supports(cap):
            raise MalformedInputError(
                f"model {model_name!r} needs {cap!r} data: {_HOW_TO_GET[cap]}"
            )
    for key in keys:
        if key not in data:
            raise MalformedInputError(
                f"model {model_name!r}: data has no array {key!r}", column=key,
            )


def require_codes(codes: Any, n_levels: int, key: str, model_name: str) -> None:
    """Group codes must be integers in [0, n_levels)."""
    codes = np.asarray(codes)
    if codes.dtype.kind not in 'iu':
        raise MalformedInputError(
            f"model {model_name!r}: {key!r} must hold integer codes, got {codes.dtype}",
            column=key,
        )
    if codes.size and (codes.min() < 0 or codes.max() >= n_levels):
        raise MalformedInputError(
            f"model {model_name!r}: {key!r} codes must lie in [0, {n_levels}), "
            f"got range [{codes.min()}, {codes.max()}]",
            column=key,
        )
