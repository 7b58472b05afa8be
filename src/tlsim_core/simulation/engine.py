# src/tlsim_core/simulation/engine.py
"""
The explicit staggered leapfrog time march.

The `TimeSteppingEngine` holds the network, the time step and the precomputed
update coefficients of lines with constant parameters. It owns no simulation
state: `step` maps a `SimulationState` to a new one and leaves its input
untouched, so a failed step never corrupts the caller's state.

One step n -> n+1:
  0. parameters of state-dependent lines from the state at t_n, stability re-check;
  1. current update on every segment of every line;
  2. interior voltage update on every line;
  3. node (boundary and junction) resolution.
Phases 1 and 2 may run on a thread pool, one task per line, with a barrier after
each phase. Phase 3 always runs sequentially in node order.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

import numpy as np

from ..constants import STABILITY_RELATIVE_SLACK
from ..lines import LineEnd, TransmissionLine
from ..network import Network
from ..parameters import ParameterSet
from .exceptions import StabilityViolationError
from .nodes import Attachment, NodeSolver
from .state import GridState, SimulationState

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LineCoefficients:
    """
    Update coefficients of one line for a given parameter set and time step.

    Current update:   I+ = ca * I - cb * (V[k+1] - V[k])
    Interior update:  V+ = da * V - db * (I+[k] - I+[k-1])     (k = 1 .. N-1)
    """
    ca: np.ndarray
    cb: np.ndarray
    da: np.ndarray
    db: np.ndarray
    half_capacitance: Tuple[float, float]  # C' dx / 2 at x = 0 and x = L
    half_conductance: Tuple[float, float]

    @classmethod
    def compute(cls, params: ParameterSet, dx: float, dt: float) -> "LineCoefficients":
        r, l, g, c = params.resistance, params.inductance, params.conductance, params.capacitance
        l_plus = l / dt + 0.5 * r
        ca = (l / dt - 0.5 * r) / l_plus
        cb = (1.0 / dx) / l_plus

        # Node capacitance/conductance per length: mean of the two adjacent segments.
        c_node = 0.5 * (c[:-1] + c[1:])
        g_node = 0.5 * (g[:-1] + g[1:])
        c_plus = c_node / dt + 0.5 * g_node
        da = (c_node / dt - 0.5 * g_node) / c_plus
        db = (1.0 / dx) / c_plus

        half = 0.5 * dx
        return cls(
            ca=ca, cb=cb, da=da, db=db,
            half_capacitance=(float(c[0] * half), float(c[-1] * half)),
            half_conductance=(float(g[0] * half), float(g[-1] * half)),
        )


def check_stability(line: TransmissionLine, params: ParameterSet, dt: float,
                    time: Optional[float] = None, step: Optional[int] = None) -> float:
    """
    Returns the stability bound of `line` for `params`.

    Raises:
        StabilityViolationError: If `dt` exceeds the bound by more than the relative slack.
    """
    bound = line.max_stable_time_step(params)
    if not dt <= bound * (1.0 + STABILITY_RELATIVE_SLACK):
        raise StabilityViolationError(line=line.name, time_step=dt, bound=bound, time=time, step=step)
    return bound


class TimeSteppingEngine:
    """
    Advances the state of a `Network` by one time step at a time.

    Args:
        network: The validated network.
        time_step: The fixed time step dt in seconds.
        max_workers: Number of threads for the per-line phases; None or 1 runs
                     everything in the calling thread.

    Raises:
        StabilityViolationError: If `time_step` exceeds the stability bound of any line
                                 for its initial parameters.
    """

    def __init__(self, network: Network, time_step: float, max_workers: Optional[int] = None):
        time_step = float(time_step)
        if not np.isfinite(time_step) or time_step <= 0.0:
            raise ValueError(f"The time step must be positive and finite, got {time_step!r}.")
        self.network = network
        self.time_step = time_step
        self.max_workers = max_workers

        self._constant: Dict[str, LineCoefficients] = {}
        self.stability_bound = np.inf
        for name, line in network.lines.items():
            params = line.initial_parameters()
            bound = check_stability(line, params, time_step)
            self.stability_bound = min(self.stability_bound, bound)
            if not line.is_state_dependent:
                self._constant[name] = LineCoefficients.compute(params, line.dx, time_step)
        logger.debug("Stability bound of '%s': %.6e s (dt = %.6e s).",
                     network.name, self.stability_bound, time_step)

        self._node_solvers: List[NodeSolver] = [NodeSolver(node, network) for node in network.nodes.values()]
        self._executor: Optional[ThreadPoolExecutor] = None
        if max_workers is not None and max_workers > 1:
            self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="tlsim")

    def close(self):
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    def _map(self, func, items: List[str]) -> List:
        if self._executor is None:
            return [func(item) for item in items]
        # list() waits for every task: the barrier between phases.
        return list(self._executor.map(func, items))

    def step(self, state: SimulationState) -> SimulationState:
        """
        Computes the state one time step after `state`.

        Raises:
            StabilityViolationError: If a state-dependent line became unstable.
            NonConvergenceError: If a non-linear node solve fails.
            ParameterEvaluationError: If line parameters cannot be evaluated.
            TerminationError: If a termination cannot be evaluated.
        """
        dt = self.time_step
        t = state.time
        names = list(self.network.lines)

        # Phase 0: coefficients from the state at the end of the previous step.
        coefficients: Dict[str, LineCoefficients] = {}
        for name in names:
            if name in self._constant:
                coefficients[name] = self._constant[name]
                continue
            line = self.network.lines[name]
            grid = state.grids[name]
            params = line.parameters_at(grid.voltages, grid.currents, t)
            check_stability(line, params, dt, time=t, step=state.step)
            coefficients[name] = LineCoefficients.compute(params, line.dx, dt)

        # Phase 1: currents.
        def update_currents(name: str) -> np.ndarray:
            coef = coefficients[name]
            grid = state.grids[name]
            v = grid.voltages
            return coef.ca * grid.currents - coef.cb * (v[1:] - v[:-1])

        new_currents = dict(zip(names, self._map(update_currents, names)))

        # Phase 2: interior voltages. End nodes are set by the node solvers.
        def update_voltages(name: str) -> np.ndarray:
            coef = coefficients[name]
            i_new = new_currents[name]
            v = state.grids[name].voltages.copy()
            v[1:-1] = coef.da * v[1:-1] - coef.db * (i_new[1:] - i_new[:-1])
            return v

        new_voltages = dict(zip(names, self._map(update_voltages, names)))

        # Phase 3: nodes.
        boundary = {name: np.zeros(2) for name in names}
        termination_currents: Dict[str, float] = {}
        for solver in self._node_solvers:
            attachments = []
            old_voltages = []
            for ep in solver.node.endpoints:
                coef = coefficients[ep.line]
                side = 0 if ep.end is LineEnd.START else 1
                i_new = new_currents[ep.line]
                inflow = -i_new[0] if side == 0 else i_new[-1]
                attachments.append(Attachment(
                    line=ep.line, end=ep.end, inflow=float(inflow),
                    capacitance=coef.half_capacitance[side], conductance=coef.half_conductance[side],
                ))
                old_voltages.append(state.grids[ep.line].voltages[-side])

            v_old = float(np.mean(old_voltages))
            solution = solver.solve(v_old, attachments, t, dt, state.termination_currents)
            for ep, i_att in zip(solver.node.endpoints, solution.attachment_currents):
                side = 0 if ep.end is LineEnd.START else 1
                new_voltages[ep.line][-side] = solution.voltage
                # i_att flows into the node: against +x at the start, along +x at the end.
                boundary[ep.line][side] = -i_att if side == 0 else i_att
            termination_currents.update(solution.termination_currents)

        grids = {
            name: GridState(new_voltages[name], new_currents[name], boundary[name])
            for name in names
        }
        return SimulationState(
            step=state.step + 1,
            time=(state.step + 1) * dt,
            grids=grids,
            termination_currents=termination_currents,
        )
