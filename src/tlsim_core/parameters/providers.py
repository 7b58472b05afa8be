# src/tlsim_core/parameters/providers.py
"""
Per-unit-length parameter providers.

A provider turns per-segment arrays of position, local voltage and local current
(plus the current time) into a `ParameterSet`: R', L', G' and C' for every segment,
all in SI units. Two variants exist and are chosen when a line is built:

- `ConstantParameters`: values that only vary with position. They are evaluated
  once per discretization and cached.
- `FunctionalParameters`: values that depend on the local line state. They are
  re-evaluated whenever the engine asks, never cached across steps.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Protocol, Tuple, Union, runtime_checkable

import numpy as np
import pint

from ..units import PER_UNIT_LENGTH_UNITS, Quantity, QuantityLike, to_magnitude
from .exceptions import ParameterDefinitionError, ParameterEvaluationError

logger = logging.getLogger(__name__)

PARAMETER_NAMES: Tuple[str, ...] = ('resistance', 'inductance', 'conductance', 'capacitance')

PositionProfile = Callable[[np.ndarray], Any]
StateFunction = Callable[[np.ndarray, np.ndarray, np.ndarray, float], Any]


@dataclass(frozen=True)
class ParameterSet:
    """R', L', G', C' per segment (ohm/m, H/m, S/m, F/m)."""
    resistance: np.ndarray
    inductance: np.ndarray
    conductance: np.ndarray
    capacitance: np.ndarray

    def __len__(self) -> int:
        return len(self.inductance)

    @property
    def characteristic_impedance(self) -> np.ndarray:
        """Lossless characteristic impedance sqrt(L'/C') per segment, in ohm."""
        return np.sqrt(self.inductance / self.capacitance)

    @property
    def phase_velocity(self) -> np.ndarray:
        """Lossless phase velocity 1/sqrt(L'C') per segment, in m/s."""
        return 1.0 / np.sqrt(self.inductance * self.capacitance)


@runtime_checkable
class ParameterProvider(Protocol):
    """Anything that can produce a `ParameterSet` for a discretized line."""
    is_state_dependent: bool

    def evaluate(self, x: np.ndarray, v: np.ndarray, i: np.ndarray, t: float) -> ParameterSet:
        ...


def _coerce_result(name: str, value: Any, shape: Tuple[int, ...], t: Optional[float],
                   inputs: Dict[str, Any]) -> np.ndarray:
    """Converts a provider result to a finite float array of the segment shape."""
    if isinstance(value, Quantity):
        try:
            value = value.to(PER_UNIT_LENGTH_UNITS[name]).magnitude
        except pint.DimensionalityError as e:
            raise ParameterEvaluationError(
                parameter=name, time=t,
                details=f"Result has units '{value.units}', expected '{PER_UNIT_LENGTH_UNITS[name]}'."
            ) from e
    try:
        arr = np.broadcast_to(np.asarray(value, dtype=float), shape).copy()
    except (TypeError, ValueError) as e:
        raise ParameterEvaluationError(
            parameter=name, time=t,
            details=f"Result of shape {np.shape(value)} cannot be broadcast to {shape} segments ({e})."
        ) from e

    bad = ~np.isfinite(arr)
    if np.any(bad):
        raise ParameterEvaluationError(
            parameter=name, time=t,
            details="Evaluation produced a non-finite value (NaN or infinity).",
            bad_indices=np.flatnonzero(bad),
            input_values=inputs,
        )
    return arr


class ConstantParameters:
    """
    State-independent line parameters.

    Each parameter is a scalar (number, unit string, pint `Quantity`) or a callable
    of position returning values for an array of segment midpoints. Plain numbers are
    taken to be in SI per-unit-length units.
    """
    is_state_dependent = False

    def __init__(self,
                 inductance: Union[QuantityLike, PositionProfile],
                 capacitance: Union[QuantityLike, PositionProfile],
                 resistance: Union[QuantityLike, PositionProfile] = 0.0,
                 conductance: Union[QuantityLike, PositionProfile] = 0.0):
        self._definitions: Dict[str, Any] = {}
        supplied = {'resistance': resistance, 'inductance': inductance,
                    'conductance': conductance, 'capacitance': capacitance}
        for name, value in supplied.items():
            if callable(value):
                self._definitions[name] = value
            else:
                self._definitions[name] = _scalar_magnitude(name, value)
        self._cache: Dict[bytes, ParameterSet] = {}

    def evaluate(self, x: np.ndarray, v: np.ndarray = None, i: np.ndarray = None,
                 t: float = 0.0) -> ParameterSet:
        x = np.asarray(x, dtype=float)
        key = x.tobytes()
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        values = {}
        for name in PARAMETER_NAMES:
            definition = self._definitions[name]
            raw = definition(x) if callable(definition) else definition
            values[name] = _coerce_result(name, raw, x.shape, None, {'x': x})
        result = ParameterSet(**values)
        self._cache[key] = result
        logger.debug("Evaluated constant parameters for %d segments.", x.size)
        return result

    def __repr__(self):
        return f"ConstantParameters({self._definitions!r})"


class FunctionalParameters:
    """
    State-dependent line parameters.

    Each parameter is either a constant (as accepted by `ConstantParameters`) or a
    pure function ``f(v, i, x, t)`` of the per-segment local voltage, local current and
    midpoint position arrays and the scalar time. Functions are re-evaluated on every
    call and must be deterministic and side-effect free.
    """
    is_state_dependent = True

    def __init__(self,
                 inductance: Union[QuantityLike, StateFunction],
                 capacitance: Union[QuantityLike, StateFunction],
                 resistance: Union[QuantityLike, StateFunction] = 0.0,
                 conductance: Union[QuantityLike, StateFunction] = 0.0):
        self._definitions: Dict[str, Any] = {}
        supplied = {'resistance': resistance, 'inductance': inductance,
                    'conductance': conductance, 'capacitance': capacitance}
        for name, value in supplied.items():
            if callable(value):
                self._definitions[name] = value
            else:
                self._definitions[name] = _scalar_magnitude(name, value)

    def evaluate(self, x: np.ndarray, v: np.ndarray, i: np.ndarray, t: float) -> ParameterSet:
        x = np.asarray(x, dtype=float)
        inputs = {'v': v, 'i': i, 'x': x, 't': t}
        values = {}
        for name in PARAMETER_NAMES:
            definition = self._definitions[name]
            raw = definition(v, i, x, t) if callable(definition) else definition
            values[name] = _coerce_result(name, raw, x.shape, t, inputs)
        return ParameterSet(**values)

    def __repr__(self):
        return f"FunctionalParameters({self._definitions!r})"


def _scalar_magnitude(name: str, value: QuantityLike) -> float:
    unit = PER_UNIT_LENGTH_UNITS[name]
    try:
        magnitude = to_magnitude(value, unit)
    except (pint.errors.PintError, TypeError, ValueError) as e:
        raise ParameterDefinitionError(
            parameter=name, user_input=str(value),
            details=f"Cannot interpret value as '{unit}': {e}"
        ) from e
    if not np.isfinite(magnitude):
        raise ParameterDefinitionError(
            parameter=name, user_input=str(value), details="Value must be finite."
        )
    return magnitude


def kinetic_inductance_parameters(geometric_inductance: QuantityLike,
                                  kinetic_inductance: QuantityLike,
                                  critical_current: QuantityLike,
                                  capacitance: QuantityLike,
                                  resistance: QuantityLike = 0.0,
                                  conductance: QuantityLike = 0.0) -> FunctionalParameters:
    """
    Parameters of a superconducting line whose kinetic inductance grows with current:

        L'(I) = L_geo + L_k * (1 + (I / I*)^2)

    where I* is the characteristic (critical) current of the non-linearity.
    """
    l_geo = _scalar_magnitude('inductance', geometric_inductance)
    l_kin = _scalar_magnitude('inductance', kinetic_inductance)
    try:
        i_star = to_magnitude(critical_current, 'ampere')
    except (pint.errors.PintError, TypeError, ValueError) as e:
        raise ParameterDefinitionError(
            parameter='critical_current', user_input=str(critical_current),
            details=f"Cannot interpret value as a current: {e}"
        ) from e
    if not np.isfinite(i_star) or i_star <= 0:
        raise ParameterDefinitionError(
            parameter='critical_current', user_input=str(critical_current),
            details="Critical current must be a positive, finite value."
        )

    def inductance(v, i, x, t):
        return l_geo + l_kin * (1.0 + (i / i_star) ** 2)

    return FunctionalParameters(
        inductance=inductance,
        capacitance=capacitance,
        resistance=resistance,
        conductance=conductance,
    )
