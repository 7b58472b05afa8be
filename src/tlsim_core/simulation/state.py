# src/tlsim_core/simulation/state.py
from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional, Sequence, Tuple, Union

import numpy as np

from ..lines import TransmissionLine
from .exceptions import InitialConditionError


def _frozen(values, name: str) -> np.ndarray:
    arr = np.array(values, dtype=float)
    if arr.ndim != 1:
        raise ValueError(f"{name} must be a one-dimensional array, got shape {arr.shape}.")
    arr.flags.writeable = False
    return arr


@dataclass(frozen=True)
class GridState:
    """
    Staggered-grid state of one line.

    Attributes:
        voltages: N + 1 node voltages at time t_n.
        currents: N segment currents at time t_n - dt/2.
        boundary_currents: +x directed current entering the line at x = 0 and leaving
                           it at x = L over the last step (zero before the first step).
    """
    voltages: np.ndarray
    currents: np.ndarray
    boundary_currents: np.ndarray = field(default_factory=lambda: np.zeros(2))

    def __post_init__(self):
        voltages = _frozen(self.voltages, "voltages")
        currents = _frozen(self.currents, "currents")
        boundary = _frozen(self.boundary_currents, "boundary_currents")
        if len(voltages) != len(currents) + 1:
            raise ValueError(
                f"A grid state needs one more voltage than currents, got "
                f"{len(voltages)} voltages and {len(currents)} currents."
            )
        if len(boundary) != 2:
            raise ValueError(f"boundary_currents must hold 2 values, got {len(boundary)}.")
        object.__setattr__(self, 'voltages', voltages)
        object.__setattr__(self, 'currents', currents)
        object.__setattr__(self, 'boundary_currents', boundary)

    @property
    def segments(self) -> int:
        return len(self.currents)

    @classmethod
    def zeros(cls, segments: int) -> "GridState":
        return cls(np.zeros(segments + 1), np.zeros(segments))


InitialLineState = Union[GridState, Tuple[Sequence[float], Sequence[float]]]


@dataclass(frozen=True)
class SimulationState:
    """The complete state after `step` completed steps: time, grids and termination currents."""
    step: int
    time: float
    grids: Dict[str, GridState]
    termination_currents: Dict[str, float] = field(default_factory=dict)


def initial_simulation_state(lines: Mapping[str, TransmissionLine],
                             initial_state: Optional[Mapping[str, InitialLineState]] = None) -> SimulationState:
    """
    Builds the state at t = 0. Lines without an entry start at rest.

    Raises:
        InitialConditionError: For unknown line names or wrongly sized arrays.
    """
    initial_state = dict(initial_state or {})
    unknown = sorted(set(initial_state) - set(lines))
    if unknown:
        raise InitialConditionError(
            details=f"Initial state given for unknown line(s) {unknown}. Known lines: {sorted(lines)}.",
            line=unknown[0],
        )

    grids: Dict[str, GridState] = {}
    for name, line in lines.items():
        given = initial_state.get(name)
        if given is None:
            grids[name] = GridState.zeros(line.segments)
            continue
        try:
            grid = given if isinstance(given, GridState) else GridState(*given)
        except (TypeError, ValueError) as e:
            raise InitialConditionError(details=f"Unusable initial state: {e}", line=name) from e
        if grid.segments != line.segments:
            raise InitialConditionError(
                details=(f"The line has {line.segments} segments, so it needs {line.segments + 1} voltages "
                         f"and {line.segments} currents; got {len(grid.voltages)} and {len(grid.currents)}."),
                line=name,
            )
        if not (np.all(np.isfinite(grid.voltages)) and np.all(np.isfinite(grid.currents))):
            raise InitialConditionError(details="Initial voltages and currents must be finite.", line=name)
        grids[name] = GridState(grid.voltages, grid.currents)
    return SimulationState(step=0, time=0.0, grids=grids)
