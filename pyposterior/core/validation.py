"""
Argument checks shared by the data, summary and sampling layers.

Every check names the offending argument in its message and raises
instead of repairing input. The only conversion performed is turning
array-likes (lists, Series, integer arrays) into float arrays.
"""

from typing import Any

import numpy as np
from numpy.typing import ArrayLike, NDArray

from pyposterior.core.exceptions import DimensionError, ValidationError

FloatArray = NDArray[np.floating[Any]]


def check_array(array: ArrayLike, name: str) -> FloatArray:
    """
    Return `array` as a numpy array with a floating dtype.

    Integer and boolean input is promoted to float64; float32 is kept.
    Object and string arrays are refused.

    Raises:
        ValidationError: The input is not numeric.
    """
    try:
        arr = np.asarray(array)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"{name}: not convertible to an array ({e})") from e

    kind = arr.dtype.kind
    if kind == 'O':
        raise ValidationError(
            f"{name}: has object dtype; values are mixed or non-numeric"
        )
    if kind == 'f':
        return arr
    if kind in 'iub':
        return arr.astype(np.float64)
    raise ValidationError(f"{name}: non-numeric dtype {arr.dtype}")


def check_finite(array: FloatArray, name: str) -> None:
    """Refuse arrays holding NaN or +/-inf, reporting how many of each."""
    finite = np.isfinite(array)
    if finite.all():
        return
    n_nan = int(np.count_nonzero(np.isnan(array)))
    n_inf = int(array.size - np.count_nonzero(finite) - n_nan)
    raise ValidationError(f"{name}: contains non-finite values ({n_nan} NaN, {n_inf} Inf)")


def _require_ndim(array: FloatArray, ndim: int, name: str) -> None:
    if array.ndim != ndim:
        raise DimensionError(
            f"{name}: expected {ndim}D array, got shape {array.shape}"
        )


def check_1d(array: FloatArray, name: str) -> None:
    _require_ndim(array, 1, name)


def check_2d(array: FloatArray, name: str) -> None:
    _require_ndim(array, 2, name)


def check_consistent_length(*arrays: FloatArray, names: tuple[str, ...]) -> None:
    """
    Require every array to have the same number of rows.

    Raises:
        ValueError: `names` does not label every array (a caller bug).
        DimensionError: Row counts differ.
    """
    if len(names) != len(arrays):
        raise ValueError(f"got {len(arrays)} arrays but {len(names)} names")
    rows = [a.shape[0] for a in arrays]
    if len(set(rows)) > 1:
        listing = ", ".join(f"{n}={r}" for n, r in zip(names, rows))
        raise DimensionError(f"Inconsistent lengths: {listing}")


def check_min_samples(array: FloatArray, min_samples: int, name: str) -> None:
    n = array.shape[0]
    if n < min_samples:
        raise ValidationError(f"{name}: needs at least {min_samples} rows, got {n}")


def check_positive_int(value: Any, name: str) -> int:
    """Accept Python or numpy integers >= 1; bools and floats are refused."""
    if isinstance(value, bool) or not isinstance(value, (int, np.integer)):
        raise ValidationError(f"{name}: expected an integer, got {type(value).__name__}")
    if value < 1:
        raise ValidationError(f"{name}: must be at least 1, got {value}")
    return int(value)


def check_probabilities(probs: ArrayLike, name: str) -> FloatArray:
    arr = check_array(probs, name)
    check_finite(arr, name)
    outside = (arr < 0.0) | (arr > 1.0)
    if outside.any():
        raise ValidationError(
            f"{name}: probabilities must lie in [0, 1], got {arr[outside].tolist()}"
        )
    return arr
