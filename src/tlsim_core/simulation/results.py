# src/tlsim_core/simulation/results.py
"""
Recorded simulation output.

A `Trace` is an append-only list of `Snapshot`s owned by the driver. Each snapshot
holds, per line, either the full `GridState` or, in `RecordMode.ENDPOINTS`, only
the two endpoint voltages and boundary currents.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterator, List, Mapping, Optional, Union

import numpy as np

from ..lines.discretization import Discretization
from .state import GridState, SimulationState


class RecordMode(Enum):
    FULL = "full"
    ENDPOINTS = "endpoints"


@dataclass(frozen=True)
class EndpointState:
    """Voltages at x = 0 and x = L, and the matching +x directed boundary currents."""
    voltages: np.ndarray
    boundary_currents: np.ndarray

    @classmethod
    def of(cls, grid: GridState) -> "EndpointState":
        voltages = np.array([grid.voltages[0], grid.voltages[-1]])
        voltages.flags.writeable = False
        return cls(voltages, grid.boundary_currents)


LineRecord = Union[GridState, EndpointState]


@dataclass(frozen=True)
class Snapshot:
    step: int
    time: float
    lines: Dict[str, LineRecord]
    termination_currents: Dict[str, float]

    @classmethod
    def of(cls, state: SimulationState, mode: RecordMode = RecordMode.FULL) -> "Snapshot":
        if mode is RecordMode.FULL:
            lines: Dict[str, LineRecord] = dict(state.grids)
        else:
            lines = {name: EndpointState.of(grid) for name, grid in state.grids.items()}
        return cls(step=state.step, time=state.time, lines=lines,
                   termination_currents=dict(state.termination_currents))


class Trace:
    """
    Time series of recorded snapshots with per-line accessors.

    Array accessors stack the recorded samples along the first axis, one row per
    snapshot. `discretizations` maps line names to their grids so that nodes can be
    looked up by position.
    """

    def __init__(self, time_step: float, mode: RecordMode = RecordMode.FULL,
                 discretizations: Optional[Mapping[str, Discretization]] = None):
        self.time_step = time_step
        self.mode = mode
        self.discretizations: Dict[str, Discretization] = dict(discretizations or {})
        self._snapshots: List[Snapshot] = []

    def append(self, snapshot: Snapshot):
        if self._snapshots and snapshot.step <= self._snapshots[-1].step:
            raise ValueError(
                f"Snapshots must be appended in step order; got step {snapshot.step} "
                f"after step {self._snapshots[-1].step}."
            )
        self._snapshots.append(snapshot)

    def __len__(self) -> int:
        return len(self._snapshots)

    def __iter__(self) -> Iterator[Snapshot]:
        return iter(self._snapshots)

    def __getitem__(self, index: int) -> Snapshot:
        return self._snapshots[index]

    @property
    def snapshots(self) -> List[Snapshot]:
        return list(self._snapshots)

    @property
    def times(self) -> np.ndarray:
        return np.array([s.time for s in self._snapshots])

    @property
    def steps(self) -> np.ndarray:
        return np.array([s.step for s in self._snapshots], dtype=int)

    @property
    def line_names(self) -> List[str]:
        return list(self._snapshots[0].lines) if self._snapshots else []

    def _records(self, line: str) -> List[LineRecord]:
        if self._snapshots and line not in self._snapshots[0].lines:
            raise KeyError(f"No line named '{line}' in the trace. Recorded lines: {self.line_names}.")
        return [s.lines[line] for s in self._snapshots]

    def _full_records(self, line: str) -> List[GridState]:
        if self.mode is not RecordMode.FULL:
            raise ValueError(
                f"Full grid data of line '{line}' was not recorded (record mode '{self.mode.value}')."
            )
        return self._records(line)

    def voltages(self, line: str) -> np.ndarray:
        """Node voltages, shape (snapshots, N + 1)."""
        return np.array([r.voltages for r in self._full_records(line)])

    def currents(self, line: str) -> np.ndarray:
        """Segment currents, shape (snapshots, N); row n holds the currents at t_n - dt/2."""
        return np.array([r.currents for r in self._full_records(line)])

    def probe_voltage(self, line: str, position: Optional[float] = None,
                      index: Optional[int] = None) -> np.ndarray:
        """Voltage history of one node, selected by `index` or by the nearest `position` (in m)."""
        if (position is None) == (index is None):
            raise ValueError("Give exactly one of 'position' and 'index'.")
        if index is None:
            if line not in self.discretizations:
                raise KeyError(f"The trace has no grid recorded for line '{line}'.")
            index = self.discretizations[line].node_index(position)
        return self.voltages(line)[:, index]

    def endpoint_voltages(self, line: str) -> np.ndarray:
        """Voltages at x = 0 and x = L, shape (snapshots, 2). Available in every record mode."""
        return np.array([[r.voltages[0], r.voltages[-1]] for r in self._records(line)])

    def boundary_currents(self, line: str) -> np.ndarray:
        """+x directed currents at x = 0 and x = L, shape (snapshots, 2)."""
        return np.array([r.boundary_currents for r in self._records(line)])

    def termination_current(self, termination: str) -> np.ndarray:
        """Current into a termination (load convention), one value per snapshot."""
        if self._snapshots and termination not in self._snapshots[-1].termination_currents:
            raise KeyError(f"No termination named '{termination}' in the trace.")
        return np.array([s.termination_currents.get(termination, 0.0) for s in self._snapshots])

    def __repr__(self):
        span = f"t = {self._snapshots[0].time:.3e} .. {self._snapshots[-1].time:.3e} s" if self._snapshots else "empty"
        return f"Trace({len(self._snapshots)} snapshot(s), {span}, mode={self.mode.value})"
