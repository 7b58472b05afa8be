# src/tlsim_core/lines/line.py
import logging
from enum import Enum
from typing import Optional

import numpy as np
import pint

from ..parameters import ParameterProvider, ParameterSet
from ..units import Quantity, QuantityLike, to_magnitude
from .discretization import Discretization, discretize
from .exceptions import InvalidDiscretizationError

logger = logging.getLogger(__name__)


class LineEnd(Enum):
    """The two endpoints of a line: x = 0 and x = length."""
    START = "start"
    END = "end"


class TransmissionLine:
    """
    A uniform-grid transmission line: a name, a physical length, a segment count and
    the provider of its per-unit-length parameters.

    The discretization is computed on construction, so an unusable length or segment
    count fails here rather than when the simulation starts.
    """
    def __init__(self, name: str, length: QuantityLike, segments: int, parameters: ParameterProvider):
        if not isinstance(name, str) or not name:
            raise ValueError("A transmission line needs a non-empty string name.")
        if not isinstance(parameters, ParameterProvider):
            raise TypeError(
                f"Line '{name}': parameters must provide 'evaluate' and 'is_state_dependent', "
                f"got {type(parameters).__name__}."
            )
        self.name = name
        self.parameters = parameters

        if isinstance(length, (str, Quantity)):
            try:
                length = to_magnitude(length, 'meter')
            except (pint.errors.PintError, TypeError, ValueError) as e:
                raise InvalidDiscretizationError(
                    quantity="length", value=length, details=str(e), line=name
                ) from e
        self.discretization: Discretization = discretize(length, segments, line=name)

    @property
    def length(self) -> float:
        return self.discretization.length

    @property
    def segments(self) -> int:
        return self.discretization.segments

    @property
    def dx(self) -> float:
        return self.discretization.dx

    @property
    def is_state_dependent(self) -> bool:
        return bool(self.parameters.is_state_dependent)

    def parameters_at(self, voltages: np.ndarray, currents: np.ndarray, t: float) -> ParameterSet:
        """
        Evaluates the per-segment parameters for a grid state.

        The local voltage of a segment is the mean of its two end nodes; the local
        current is the segment's own current sample.
        """
        voltages = np.asarray(voltages, dtype=float)
        currents = np.asarray(currents, dtype=float)
        v_local = 0.5 * (voltages[:-1] + voltages[1:])
        return self.parameters.evaluate(self.discretization.segment_midpoints, v_local, currents, t)

    def initial_parameters(self) -> ParameterSet:
        """Parameters of the unexcited line (zero voltage and current, t = 0)."""
        n = self.segments
        return self.parameters_at(np.zeros(n + 1), np.zeros(n), 0.0)

    def max_stable_time_step(self, params: Optional[ParameterSet] = None) -> float:
        """Largest time step dx * min(sqrt(L'C')) for which the leapfrog update is stable."""
        params = params if params is not None else self.initial_parameters()
        with np.errstate(invalid='ignore'):
            per_segment = self.dx * np.sqrt(params.inductance * params.capacitance)
        # Non-physical (negative or zero) L'C' products allow no step at all.
        per_segment = np.where(np.isfinite(per_segment), per_segment, 0.0)
        return float(np.min(per_segment))

    def characteristic_impedance(self, at_end: bool = False) -> float:
        """Lossless Z0 = sqrt(L'/C') of the first (or last) segment of the unexcited line."""
        z0 = self.initial_parameters().characteristic_impedance
        return float(z0[-1] if at_end else z0[0])

    def __repr__(self):
        return f"TransmissionLine({self.name!r}, length={self.length!r}, segments={self.segments})"
