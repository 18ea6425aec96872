"""
ModelSpec: a declarative, stateless statistical model.

A ModelSpec names its parameters (with supports), provides an
unnormalized log density over (ModelParameters, DataPayload), and
optionally a generated-quantities function and a generative simulator.

The density is a plain callable held by the ModelSpec. It can be evaluated
directly at any time, in any process, without a sampler run; the
sampler, the bridge estimator and user code all call the same function.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping

import numpy as np
from numpy.typing import NDArray

from pyposterior.core.exceptions import (
    InvalidDensityError,
    ValidationError,
)
from pyposterior.model._transforms import (
    SUPPORTS,
    constrain,
    unconstrain,
    unconstrained_size,
)

ModelParameters = dict[str, NDArray]
LogDensityFn = Callable[[ModelParameters, Any], float]
GeneratedFn = Callable[[ModelParameters, Any, Mapping[str, Any]], Mapping[str, Any]]
SimulateFn = Callable[[ModelParameters, Any, Mapping[str, Any], np.random.Generator], NDArray]
CheckDataFn = Callable[[Any], None]


@dataclass(frozen=True)
class Parameter:
    """
    Declared model parameter.

    Attributes:
        name: Parameter name (unique within a model).
        shape: Value shape; () for scalars.
        support: 'real', 'positive', 'unit_interval', 'bounded' or
            'correlation'.
        lower: Lower bound for support='bounded'.
        upper: Upper bound for support='bounded'.
    """
    name: str
    shape: tuple[int, ...] = ()
    support: str = 'real'
    lower: float | None = None
    upper: float | None = None

    def __post_init__(self):
        if not self.name or not isinstance(self.name, str):
            raise ValidationError(f"parameter name must be a non-empty string, got {self.name!r}")
        shape = tuple(int(s) for s in self.shape)
        if any(s < 1 for s in shape):
            raise ValidationError(f"{self.name}: shape entries must be >= 1, got {shape}")
        object.__setattr__(self, 'shape', shape)

        if self.support not in SUPPORTS:
            raise ValidationError(
                f"{self.name}: support must be one of {SUPPORTS}, got {self.support!r}"
            )
        if self.support == 'correlation' and (len(shape) != 2 or shape[0] != shape[1]):
            raise ValidationError(
                f"{self.name}: correlation support needs a square (K, K) shape, got {shape}"
            )
        if self.support == 'bounded':
            if self.lower is None and self.upper is None:
                raise ValidationError(f"{self.name}: bounded support needs lower and/or upper")
            if (self.lower is not None and self.upper is not None
                    and not self.lower < self.upper):
                raise ValidationError(
                    f"{self.name}: lower ({self.lower}) must be < upper ({self.upper})"
                )

    @property
    def size(self) -> int:
        """Number of constrained scalars."""
        return int(math.prod(self.shape))

    @property
    def unconstrained_size(self) -> int:
        """Number of unconstrained reals."""
        return unconstrained_size(self.shape, self.support)

    def flat_names(self) -> list[str]:
        """Names of the flattened elements: 'mu', 'beta[0]', 'Omega[0,1]'."""
        if self.shape == ():
            return [self.name]
        return [
            f"{self.name}[{','.join(str(i) for i in idx)}]"
            for idx in np.ndindex(*self.shape)
        ]


@dataclass(frozen=True)
class ModelSpec:
    """
    Statistical model: parameters, log density, optional extras.

    Attributes:
        name: Model identifier (used in messages and persisted draws).
        parameters: Declared parameters, in order.
        log_density_fn: fn(params, data) -> unnormalized log density.
            Must return a finite float or -inf.
        generated_fn: Optional fn(params, data, aux) -> {name: array} of
            derived quantities (e.g. estimated marginal means).
        simulate_fn: Optional fn(params, data, aux, rng) -> outcome vector
            for one synthetic unit.
        check_data_fn: Optional fn(data) that raises ValidationError when
            the data cannot be used with this model. Run once per
            sample() or bridge_sampler() call, never per evaluation.
    """
    name: str
    parameters: tuple[Parameter, ...]
    log_density_fn: LogDensityFn
    generated_fn: GeneratedFn | None = None
    simulate_fn: SimulateFn | None = None
    check_data_fn: CheckDataFn | None = None
    _offsets: tuple[tuple[int, int], ...] = field(init=False, repr=False, compare=False)
    _flat_offsets: tuple[tuple[int, int], ...] = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        params = tuple(self.parameters)
        if not params:
            raise ValidationError(f"model {self.name!r}: at least one parameter required")
        names = [p.name for p in params]
        if len(set(names)) != len(names):
            raise ValidationError(f"model {self.name!r}: duplicate parameter names {names}")
        if not callable(self.log_density_fn):
            raise ValidationError(f"model {self.name!r}: log_density_fn must be callable")
        object.__setattr__(self, 'parameters', params)

        offsets, flat_offsets = [], []
        pos = flat_pos = 0
        for p in params:
            offsets.append((pos, pos + p.unconstrained_size))
            flat_offsets.append((flat_pos, flat_pos + p.size))
            pos += p.unconstrained_size
            flat_pos += p.size
        object.__setattr__(self, '_offsets', tuple(offsets))
        object.__setattr__(self, '_flat_offsets', tuple(flat_offsets))

    # === Schema ===

    @property
    def parameter_names(self) -> tuple[str, ...]:
        return tuple(p.name for p in self.parameters)

    @property
    def supports(self) -> dict[str, str]:
        """Parameter name -> support."""
        return {p.name: p.support for p in self.parameters}

    @property
    def schema(self) -> dict[str, tuple[int, ...]]:
        """Parameter name -> shape."""
        return {p.name: p.shape for p in self.parameters}

    @property
    def dim(self) -> int:
        """Dimension of the unconstrained parameter space."""
        return self._offsets[-1][1]

    @property
    def flat_size(self) -> int:
        """Number of constrained scalars across all parameters."""
        return self._flat_offsets[-1][1]

    def flat_names(self) -> tuple[str, ...]:
        return tuple(n for p in self.parameters for n in p.flat_names())

    # === Transforms ===

    def unpack(self, theta: NDArray) -> tuple[ModelParameters, float]:
        """
        Unconstrained vector -> (ModelParameters, log|det J|).

        Raises:
            ValidationError: If theta has the wrong length.
        """
        theta = np.asarray(theta, dtype=np.float64)
        if theta.shape != (self.dim,):
            raise ValidationError(
                f"model {self.name!r}: expected unconstrained vector of length "
                f"{self.dim}, got shape {theta.shape}"
            )
        params: ModelParameters = {}
        log_jac = 0.0
        for p, (a, b) in zip(self.parameters, self._offsets):
            value, lj = constrain(theta[a:b], p.shape, p.support, p.lower, p.upper)
            params[p.name] = value
            log_jac += lj
        return params, log_jac

    def pack(self, params: Mapping[str, Any]) -> NDArray:
        """
        ModelParameters -> unconstrained vector.

        Raises:
            ValidationError: Missing parameter or value outside its support.
        """
        self._check_names(params)
        parts = []
        for p in self.parameters:
            try:
                parts.append(unconstrain(params[p.name], p.shape, p.support, p.lower, p.upper))
            except ValidationError as e:
                raise ValidationError(f"model {self.name!r}, parameter {p.name!r}: {e}") from e
        return np.concatenate(parts)

    def flatten(self, params: Mapping[str, Any]) -> NDArray:
        """ModelParameters -> flat constrained vector (draw storage order)."""
        self._check_names(params)
        parts = []
        for p in self.parameters:
            value = np.asarray(params[p.name], dtype=np.float64)
            if value.shape != p.shape:
                raise ValidationError(
                    f"model {self.name!r}, parameter {p.name!r}: expected shape "
                    f"{p.shape}, got {value.shape}"
                )
            parts.append(value.ravel())
        return np.concatenate(parts)

    def unflatten(self, vector: NDArray) -> ModelParameters:
        """Flat constrained vector -> ModelParameters."""
        vector = np.asarray(vector, dtype=np.float64)
        if vector.shape != (self.flat_size,):
            raise ValidationError(
                f"model {self.name!r}: expected flat vector of length "
                f"{self.flat_size}, got shape {vector.shape}"
            )
        return {
            p.name: vector[a:b].reshape(p.shape)
            for p, (a, b) in zip(self.parameters, self._flat_offsets)
        }

    # === Densities ===

    def check_data(self, data: Any) -> None:
        """
        Validate data against this model's requirements; no-op without a check.

        Raises:
            ValidationError: Missing arrays or capabilities, bad shapes or
                values the density cannot condition on.
        """
        if self.check_data_fn is not None:
            self.check_data_fn(data)

    def log_density(self, params: Mapping[str, Any], data: Any) -> float:
        """
        Evaluate the unnormalized log density on the constrained scale.

        Returns:
            A finite float or -inf.

        Raises:
            InvalidDensityError: Non-scalar, NaN or +inf result.
        """
        value = self.log_density_fn(params, data)
        return self._check_density(value, params)

    def log_density_unconstrained(self, theta: NDArray, data: Any) -> float:
        """Log density over the unconstrained space (adds log|det J|)."""
        params, log_jac = self.unpack(theta)
        lp = self.log_density(params, data)
        if lp == -np.inf:
            return lp
        return lp + log_jac

    def generated_quantities(
        self,
        params: Mapping[str, Any],
        data: Any,
        aux: Mapping[str, Any] | None = None,
    ) -> dict[str, NDArray]:
        """Derived quantities for one draw, or {} if the model has none."""
        if self.generated_fn is None:
            return {}
        out = self.generated_fn(params, data, aux or {})
        return {k: np.asarray(v, dtype=np.float64) for k, v in out.items()}

    def simulate(
        self,
        params: Mapping[str, Any],
        data: Any,
        aux: Mapping[str, Any] | None,
        rng: np.random.Generator,
    ) -> NDArray:
        """
        Draw one synthetic outcome vector for a new unit.

        Raises:
            ValidationError: If the model has no simulator.
        """
        if self.simulate_fn is None:
            raise ValidationError(f"model {self.name!r} has no simulate_fn")
        return np.atleast_1d(np.asarray(
            self.simulate_fn(params, data, aux or {}, rng), dtype=np.float64
        ))

    def shifted(self, constant: float) -> ModelSpec:
        """
        Same model with the log density shifted by a constant.

        Equivalent to scaling the unnormalized density by exp(constant);
        the log marginal likelihood shifts by exactly `constant`.
        """
        return ModelSpec(
            name=f"{self.name}+{constant:g}",
            parameters=self.parameters,
            log_density_fn=_ShiftedDensity(self.log_density_fn, float(constant)),
            generated_fn=self.generated_fn,
            simulate_fn=self.simulate_fn,
            check_data_fn=self.check_data_fn,
        )

    # === Internals ===

    def _check_names(self, params: Mapping[str, Any]) -> None:
        missing = [n for n in self.parameter_names if n not in params]
        if missing:
            raise ValidationError(f"model {self.name!r}: missing parameter(s) {missing}")

    def _check_density(self, value: Any, params: Mapping[str, Any]) -> float:
        arr = np.asarray(value, dtype=np.float64) if _is_numeric(value) else None
        if arr is None or arr.size != 1:
            raise InvalidDensityError(
                f"model {self.name!r}: log density must be a scalar, got {value!r}",
                model_name=self.name,
                value=value,
                parameters=dict(params),
            )
        lp = float(arr.reshape(()))
        if math.isnan(lp) or lp == math.inf:
            raise InvalidDensityError(
                f"model {self.name!r}: log density returned {lp}; expected a "
                f"finite value or -inf",
                model_name=self.name,
                value=lp,
                parameters=dict(params),
            )
        return lp


@dataclass(frozen=True)
class _ShiftedDensity:
    """Picklable wrapper adding a constant to a log density."""
    fn: LogDensityFn
    constant: float

    def __call__(self, params: ModelParameters, data: Any) -> float:
        return self.fn(params, data) + self.constant


def _is_numeric(value: Any) -> bool:
    try:
        np.asarray(value, dtype=np.float64)
    except (TypeError, ValueError):
        return False
    return True
