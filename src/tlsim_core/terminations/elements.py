# src/tlsim_core/terminations/elements.py
"""
Concrete terminations: passive loads, ideal and resistive sources, matched
terminations that take their resistance from the attached line, and non-linear loads.

Sign convention everywhere: i is the current flowing from the line node into the
termination. A source delivering power to the line therefore has i < 0.
"""

import logging
import math
from typing import Callable, Dict, Optional, Tuple

from ..constants import DEFAULT_ABSOLUTE_TOLERANCE, DEFAULT_MAX_ITERATIONS, DEFAULT_RELATIVE_TOLERANCE
from ..lines import LineEnd
from .base import NonlinearRelationBase, TerminationBase, register_termination
from .capabilities import ILineBinding, ILinearRelation, INonlinearRelation, provides
from .exceptions import TerminationError
from .waveforms import WaveformLike, as_waveform

logger = logging.getLogger(__name__)


def _non_negative_resistance(owner: str, name: str, value: float) -> float:
    value = float(value)
    if not math.isfinite(value) or value < 0.0:
        raise TerminationError(
            termination=owner,
            details=f"'{name}' must be non-negative and finite, got {value!r}. Use an open circuit for infinite resistance."
        )
    return value


def _waveform_value(termination: TerminationBase, t: float) -> float:
    try:
        value = float(termination.waveform(t))
    except (TypeError, ValueError, ArithmeticError) as e:
        raise TerminationError(
            termination=termination.name,
            details=f"Waveform evaluation failed at t = {t:.6e} s: {e}"
        ) from e
    return value


def _safe_exp(x: float) -> float:
    return math.exp(x) if x < 709.0 else math.inf


# --- Passive terminations ---

@register_termination("Resistor")
class Resistor(TerminationBase):
    """v = R * i. A zero resistance behaves as a short circuit."""

    def __init__(self, name: str, resistance: float):
        super().__init__(name)
        self.resistance = _non_negative_resistance(name, "resistance", resistance)

    @classmethod
    def declare_parameters(cls) -> Dict[str, str]:
        return {"resistance": "ohm"}

    @provides(ILinearRelation)
    class LinearRelation:
        def get_coefficients(self, termination: "Resistor", t: float) -> Tuple[float, float, float]:
            return 1.0, -termination.resistance, 0.0


@register_termination("Open")
class OpenCircuit(TerminationBase):
    """i = 0."""

    @classmethod
    def declare_parameters(cls) -> Dict[str, str]:
        return {}

    @provides(ILinearRelation)
    class LinearRelation:
        def get_coefficients(self, termination: "OpenCircuit", t: float) -> Tuple[float, float, float]:
            return 0.0, 1.0, 0.0


@register_termination("Short")
class ShortCircuit(TerminationBase):
    """v = 0."""

    @classmethod
    def declare_parameters(cls) -> Dict[str, str]:
        return {}

    @provides(ILinearRelation)
    class LinearRelation:
        def get_coefficients(self, termination: "ShortCircuit", t: float) -> Tuple[float, float, float]:
            return 1.0, 0.0, 0.0


# --- Sources ---

@register_termination("VoltageSource")
class VoltageSource(TerminationBase):
    """
    v = Vs(t) + Rs * i.

    With zero series resistance this is an ideal source and fixes the node voltage.
    """
    accepts_waveform = True

    def __init__(self, name: str, waveform: WaveformLike, series_resistance: float = 0.0):
        super().__init__(name)
        self.waveform = as_waveform(waveform)
        self.series_resistance = _non_negative_resistance(name, "series_resistance", series_resistance)

    @classmethod
    def declare_parameters(cls) -> Dict[str, str]:
        return {"series_resistance": "ohm"}

    @provides(ILinearRelation)
    class LinearRelation:
        def get_coefficients(self, termination: "VoltageSource", t: float) -> Tuple[float, float, float]:
            return 1.0, -termination.series_resistance, _waveform_value(termination, t)


@register_termination("CurrentSource")
class CurrentSource(TerminationBase):
    """Injects Is(t) into the node: i = -Is(t)."""
    accepts_waveform = True
    waveform_unit = "ampere"

    def __init__(self, name: str, waveform: WaveformLike):
        super().__init__(name)
        self.waveform = as_waveform(waveform)

    @classmethod
    def declare_parameters(cls) -> Dict[str, str]:
        return {}

    @provides(ILinearRelation)
    class LinearRelation:
        def get_coefficients(self, termination: "CurrentSource", t: float) -> Tuple[float, float, float]:
            return 0.0, 1.0, -_waveform_value(termination, t)


# --- Matched terminations ---

class _LineMatched(TerminationBase):
    """Common part of terminations whose resistance is the attached line's Z0."""

    def __init__(self, name: str):
        super().__init__(name)
        self._impedance: Optional[float] = None

    @property
    def impedance(self) -> float:
        if self._impedance is None:
            raise TerminationError(
                termination=self.name,
                details="Matched termination is not bound to a line; attach it to exactly one line endpoint."
            )
        return self._impedance

    @property
    def is_bound(self) -> bool:
        return self._impedance is not None

    @provides(ILineBinding)
    class LineBinding:
        def bind(self, termination: "_LineMatched", line, end) -> None:
            termination._impedance = line.characteristic_impedance(at_end=(end is LineEnd.END))
            logger.debug(
                "Bound '%s' to %s.%s (Z0 = %.6g ohm).",
                termination.name, line.name, end.value, termination._impedance
            )


@register_termination("MatchedLoad")
class MatchedLoad(_LineMatched):
    """A resistor equal to the characteristic impedance of the line it terminates."""

    @classmethod
    def declare_parameters(cls) -> Dict[str, str]:
        return {}

    @provides(ILinearRelation)
    class LinearRelation:
        def get_coefficients(self, termination: "MatchedLoad", t: float) -> Tuple[float, float, float]:
            return 1.0, -termination.impedance, 0.0


@register_termination("MatchedSource")
class MatchedSource(_LineMatched):
    """A voltage source whose series resistance equals the attached line's Z0."""
    accepts_waveform = True

    def __init__(self, name: str, waveform: WaveformLike):
        super().__init__(name)
        self.waveform = as_waveform(waveform)

    @classmethod
    def declare_parameters(cls) -> Dict[str, str]:
        return {}

    @provides(ILinearRelation)
    class LinearRelation:
        def get_coefficients(self, termination: "MatchedSource", t: float) -> Tuple[float, float, float]:
            return 1.0, -termination.impedance, _waveform_value(termination, t)


# --- Non-linear terminations ---

@register_termination("Diode")
class Diode(TerminationBase):
    """
    Shockley diode to ground, anode on the line node:
        i = Is * (exp(v / (n * Vt)) - 1)
    """

    def __init__(self, name: str, saturation_current: float = 1.0e-14,
                 emission_coefficient: float = 1.0, thermal_voltage: float = 0.025852):
        super().__init__(name)
        if not saturation_current > 0 or not math.isfinite(saturation_current):
            raise TerminationError(termination=name, details="saturation_current must be positive and finite.")
        if not emission_coefficient > 0 or not thermal_voltage > 0:
            raise TerminationError(
                termination=name, details="emission_coefficient and thermal_voltage must be positive."
            )
        self.saturation_current = float(saturation_current)
        self.emission_coefficient = float(emission_coefficient)
        self.thermal_voltage = float(thermal_voltage)

    @property
    def slope_voltage(self) -> float:
        """n * Vt."""
        return self.emission_coefficient * self.thermal_voltage

    @property
    def critical_voltage(self) -> float:
        nvt = self.slope_voltage
        return nvt * math.log(nvt / (math.sqrt(2.0) * self.saturation_current))

    @classmethod
    def declare_parameters(cls) -> Dict[str, str]:
        return {
            "saturation_current": "ampere",
            "emission_coefficient": "dimensionless",
            "thermal_voltage": "volt",
        }

    @provides(INonlinearRelation)
    class NonlinearRelation(NonlinearRelationBase):
        def explicit_current(self, termination: "Diode", v: float, t: float) -> Tuple[float, float]:
            nvt = termination.slope_voltage
            e = _safe_exp(v / nvt)
            i = termination.saturation_current * (e - 1.0)
            return i, termination.saturation_current * e / nvt

        def residual(self, termination: "Diode", v: float, i: float, t: float) -> float:
            return i - self.explicit_current(termination, v, t)[0]

        def jacobian(self, termination: "Diode", v: float, i: float, t: float) -> Tuple[float, float]:
            return -self.explicit_current(termination, v, t)[1], 1.0

        def limit_voltage(self, termination: "Diode", v_new: float, v_old: float) -> float:
            # Junction voltage limiting (pnjlim) keeps exp() from overshooting.
            nvt = termination.slope_voltage
            if v_new > termination.critical_voltage and abs(v_new - v_old) > 2.0 * nvt:
                if v_old > 0.0:
                    arg = 1.0 + (v_new - v_old) / nvt
                    return v_old + nvt * math.log(arg) if arg > 0.0 else termination.critical_voltage
                return nvt * math.log(v_new / nvt)
            return v_new


class NonlinearLoad(TerminationBase):
    """
    An arbitrary termination relation ``relation(v, i, t) = 0``.

    Args:
        name: Termination name.
        relation: Residual function of terminal voltage, current and time.
        jacobian: Optional ``jacobian(v, i, t) -> (df/dv, df/di)``; finite differences
                  are used when omitted.
        max_iterations: Newton iteration cap for solving the relation.
        abs_tol: Absolute Newton tolerance.
        rel_tol: Relative Newton tolerance.
    """

    def __init__(self, name: str,
                 relation: Callable[[float, float, float], float],
                 jacobian: Optional[Callable[[float, float, float], Tuple[float, float]]] = None,
                 max_iterations: int = DEFAULT_MAX_ITERATIONS,
                 abs_tol: float = DEFAULT_ABSOLUTE_TOLERANCE,
                 rel_tol: float = DEFAULT_RELATIVE_TOLERANCE):
        super().__init__(name)
        if not callable(relation):
            raise TerminationError(termination=name, details="relation must be callable as relation(v, i, t).")
        if jacobian is not None and not callable(jacobian):
            raise TerminationError(termination=name, details="jacobian must be callable or None.")
        if max_iterations < 1:
            raise TerminationError(termination=name, details="max_iterations must be at least 1.")
        self.relation = relation
        self.relation_jacobian = jacobian
        self.max_iterations = int(max_iterations)
        self.abs_tol = float(abs_tol)
        self.rel_tol = float(rel_tol)

    @classmethod
    def declare_parameters(cls) -> Dict[str, str]:
        return {}

    @provides(INonlinearRelation)
    class NonlinearRelation(NonlinearRelationBase):
        def residual(self, termination: "NonlinearLoad", v: float, i: float, t: float) -> float:
            return float(termination.relation(v, i, t))

        def jacobian(self, termination: "NonlinearLoad", v: float, i: float, t: float) -> Tuple[float, float]:
            if termination.relation_jacobian is None:
                return super().jacobian(termination, v, i, t)
            dfdv, dfdi = termination.relation_jacobian(v, i, t)
            return float(dfdv), float(dfdi)
