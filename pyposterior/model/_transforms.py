"""
Support transforms between unconstrained reals and constrained parameters.

Each transform maps a flat unconstrained vector to a constrained value
of the parameter's shape and returns log|det J| of that map, so that a
density over the constrained parameters becomes a density over R^d:

    log p_unc(y) = log p(x(y)) + log|det dx/dy|

Supports:
    real            identity
    positive        x = exp(y)
    unit_interval   x = logistic(y)
    lower / upper   x = lower + exp(y), x = upper - exp(y),
                    or lower + (upper - lower) * logistic(y)
    correlation     K x K correlation matrix from K(K-1)/2 canonical
                    partial correlations z = tanh(y), via its Cholesky
                    factor (Lewandowski, Kurowicka & Joe, 2009)
"""

from __future__ import annotations

import math
from typing import Any

import numpy as np
from numpy.typing import NDArray
from scipy.special import expit, log_expit

from pyposterior.core.exceptions import ValidationError

SUPPORTS = ('real', 'positive', 'unit_interval', 'bounded', 'correlation')


def unconstrained_size(shape: tuple[int, ...], support: str) -> int:
    """Number of unconstrained reals needed for a parameter."""
    if support == 'correlation':
        K = shape[0]
        return K * (K - 1) // 2
    return int(math.prod(shape))


def constrain(
    y: NDArray,
    shape: tuple[int, ...],
    support: str,
    lower: float | None = None,
    upper: float | None = None,
) -> tuple[NDArray, float]:
    """
    Map unconstrained y to the parameter's support.

    Returns:
        (value with the parameter's shape, log|det J|)
    """
    y = np.asarray(y, dtype=np.float64)

    if support == 'real':
        return y.reshape(shape), 0.0

    if support == 'positive':
        return np.exp(y).reshape(shape), float(np.sum(y))

    if support == 'unit_interval':
        log_jac = float(np.sum(log_expit(y) + log_expit(-y)))
        return expit(y).reshape(shape), log_jac

    if support == 'bounded':
        if lower is not None and upper is not None:
            width = upper - lower
            x = lower + width * expit(y)
            log_jac = float(np.sum(math.log(width) + log_expit(y) + log_expit(-y)))
            return x.reshape(shape), log_jac
        if lower is not None:
            return (lower + np.exp(y)).reshape(shape), float(np.sum(y))
        if upper is not None:
            return (upper - np.exp(y)).reshape(shape), float(np.sum(y))
        return y.reshape(shape), 0.0

    if support == 'correlation':
        return _corr_constrain(y, shape[0])

    raise ValidationError(f"unknown support {support!r}; expected one of {SUPPORTS}")


def unconstrain(
    x: Any,
    shape: tuple[int, ...],
    support: str,
    lower: float | None = None,
    upper: float | None = None,
) -> NDArray:
    """
    Inverse of constrain(): map a constrained value to a flat vector.

    Raises:
        ValidationError: If the value lies outside the support.
    """
    x = np.asarray(x, dtype=np.float64)
    if x.shape != tuple(shape):
        raise ValidationError(f"expected shape {tuple(shape)}, got {x.shape}")

    if support == 'real':
        return x.ravel().copy()

    if support == 'positive':
        if np.any(x <= 0):
            raise ValidationError("positive parameter has values <= 0")
        return np.log(x).ravel()

    if support == 'unit_interval':
        if np.any(x <= 0) or np.any(x >= 1):
            raise ValidationError("unit_interval parameter has values outside (0, 1)")
        return (np.log(x) - np.log1p(-x)).ravel()

    if support == 'bounded':
        if lower is not None and upper is not None:
            if np.any(x <= lower) or np.any(x >= upper):
                raise ValidationError(
                    f"bounded parameter has values outside ({lower}, {upper})"
                )
            p = (x - lower) / (upper - lower)
            return (np.log(p) - np.log1p(-p)).ravel()
        if lower is not None:
            if np.any(x <= lower):
                raise ValidationError(f"bounded parameter has values <= {lower}")
            return np.log(x - lower).ravel()
        if upper is not None:
            if np.any(x >= upper):
                raise ValidationError(f"bounded parameter has values >= {upper}")
            return np.log(upper - x).ravel()
        return x.ravel().copy()

    if support == 'correlation':
        return _corr_unconstrain(x)

    raise ValidationError(f"unknown support {support!r}; expected one of {SUPPORTS}")


def _corr_constrain(y: NDArray, K: int) -> tuple[NDArray, float]:
    """
    Correlation matrix from canonical partial correlations.

    CPCs are ordered column by column: z[1,0], z[2,0], ..., z[K-1,0],
    z[2,1], ... . Column c of the CPC array contributes
    (K - c - 2) / 2 * log(1 - z^2) per entry to the Jacobian of the
    matrix, and the tanh map contributes log(1 - z^2).
    """
    z = np.tanh(y)
    log1m_z2 = np.log1p(-z * z)
    log_jac = float(np.sum(log1m_z2))

    L = np.zeros((K, K), dtype=np.float64)
    L[0, 0] = 1.0
    sum_sq = np.zeros(K, dtype=np.float64)
    pos = 0
    for c in range(K - 1):
        for i in range(c + 1, K):
            L[i, c] = z[pos] * math.sqrt(max(1.0 - sum_sq[i], 0.0))
            log_jac += 0.5 * (K - c - 2) * log1m_z2[pos]
            sum_sq[i] += L[i, c] ** 2
            pos += 1
    for i in range(1, K):
        L[i, i] = math.sqrt(max(1.0 - sum_sq[i], 0.0))

    omega = L @ L.T
    np.fill_diagonal(omega, 1.0)
    return omega, log_jac


def _corr_unconstrain(omega: NDArray) -> NDArray:
    K = omega.shape[0]
    if omega.shape != (K, K) or not np.allclose(omega, omega.T):
        raise ValidationError("correlation parameter must be a symmetric square matrix")
    if not np.allclose(np.diag(omega), 1.0):
        raise ValidationError("correlation parameter must have a unit diagonal")
    try:
        L = np.linalg.cholesky(omega)
    except np.linalg.LinAlgError as e:
        raise ValidationError("correlation parameter is not positive definite") from e

    y = np.empty(K * (K - 1) // 2, dtype=np.float64)
    sum_sq = np.zeros(K, dtype=np.float64)
    pos = 0
    for c in range(K - 1):
        for i in range(c + 1, K):
            z = L[i, c] / math.sqrt(1.0 - sum_sq[i])
            y[pos] = np.arctanh(np.clip(z, -1.0 + 1e-15, 1.0 - 1e-15))
            sum_sq[i] += L[i, c] ** 2
            pos += 1
    return y
