# src/tlsim_core/simulation/driver.py
"""
The stateful simulation driver and the public run facades.

`Simulation` owns the clock, the current `SimulationState` and the recorded
`Trace`; it repeatedly asks the `TimeSteppingEngine` for the next state. Runs are
resumable: every call to `run` continues from the last completed step and
appends to the same trace. `iter_steps` streams snapshots lazily without
recording them.

`run_simulation` and `simulate_file` are facades: they set everything up and
turn any diagnosable failure into a single `SimulationRunError` (or
`NetworkBuildError` for descriptions that cannot be built).
"""

import logging
import math
from pathlib import Path
from typing import Iterator, Mapping, Optional, Union

from ..constants import PROGRESS_LOG_INTERVAL
from ..errors import DiagnosableError, NetworkBuildError, SimulationRunError, format_diagnostic_report
from ..network import Network, NetworkBuilder
from ..parser import NetlistParser
from .config import ConfigParsingError, SimulationConfig, parse_simulation_config
from .engine import TimeSteppingEngine
from .results import RecordMode, Snapshot, Trace
from .state import InitialLineState, SimulationState, initial_simulation_state

logger = logging.getLogger(__name__)


def suggest_time_step(network: Network, courant_number: float = 1.0) -> float:
    """
    Largest stable time step of `network` for its initial parameters, scaled by
    `courant_number` (0 < courant_number <= 1).
    """
    if not 0.0 < courant_number <= 1.0:
        raise ValueError(f"courant_number must lie in (0, 1], got {courant_number}.")
    bound = min(line.max_stable_time_step() for line in network.lines.values())
    return courant_number * bound


def steps_for_duration(duration: float, time_step: float) -> int:
    """Number of steps needed to cover `duration`: ceil(duration / dt)."""
    if duration < 0:
        raise ValueError(f"duration must not be negative, got {duration}.")
    # The small offset keeps an exact multiple of dt from rounding up one step.
    return int(math.ceil(duration / time_step - 1e-9))


class Simulation:
    """
    A resumable time-domain simulation of one network.

    Args:
        network: The validated network.
        time_step: Fixed time step in seconds.
        initial_state: Optional per-line initial state, a `GridState` or a
                       (voltages, currents) pair. Missing lines start at rest.
        max_workers: Threads for the per-line update phases (None: sequential).
        record: `RecordMode.FULL` stores every grid sample, `RecordMode.ENDPOINTS`
                only the endpoint voltages and boundary currents.
        record_every: Record every k-th step (the initial state is always recorded).

    Raises:
        StabilityViolationError: If `time_step` exceeds the stability bound.
        InitialConditionError: If `initial_state` does not match the network.
    """

    def __init__(self, network: Network, time_step: float,
                 initial_state: Optional[Mapping[str, InitialLineState]] = None,
                 max_workers: Optional[int] = None,
                 record: RecordMode = RecordMode.FULL,
                 record_every: int = 1):
        if record_every < 1:
            raise ValueError(f"record_every must be at least 1, got {record_every}.")
        self.network = network
        self.record_mode = RecordMode(record)
        self.record_every = int(record_every)

        state = initial_simulation_state(network.lines, initial_state)
        self._state = SimulationState(
            step=state.step, time=state.time, grids=state.grids,
            termination_currents={name: 0.0 for node in network.nodes.values() for name in node.terminations},
        )
        self.engine = TimeSteppingEngine(network, time_step, max_workers=max_workers)
        self.trace = Trace(self.engine.time_step, self.record_mode,
                           {name: line.discretization for name, line in network.lines.items()})
        self.trace.append(Snapshot.of(self._state, self.record_mode))
        logger.info("Simulation of '%s' ready: dt = %.6e s (stability bound %.6e s).",
                    network.name, self.engine.time_step, self.engine.stability_bound)

    @property
    def state(self) -> SimulationState:
        return self._state

    @property
    def time(self) -> float:
        return self._state.time

    @property
    def step_count(self) -> int:
        return self._state.step

    @property
    def time_step(self) -> float:
        return self.engine.time_step

    def _resolve_steps(self, duration: Optional[float], steps: Optional[int]) -> int:
        if (duration is None) == (steps is None):
            raise ValueError("Give exactly one of 'duration' and 'steps'.")
        if steps is not None:
            if steps < 0:
                raise ValueError(f"steps must not be negative, got {steps}.")
            return int(steps)
        return steps_for_duration(duration, self.time_step)

    def _advance(self) -> SimulationState:
        # The engine never mutates its input, so a failure keeps the last good state.
        new_state = self.engine.step(self._state)
        self._state = new_state
        if new_state.step % PROGRESS_LOG_INTERVAL == 0:
            logger.debug("Step %d, t = %.6e s.", new_state.step, new_state.time)
        return new_state

    def step(self) -> Snapshot:
        """Advances one time step, records it (subject to `record_every`) and returns it."""
        state = self._advance()
        snapshot = Snapshot.of(state, self.record_mode)
        if state.step % self.record_every == 0:
            self.trace.append(snapshot)
        return snapshot

    def run(self, duration: Optional[float] = None, steps: Optional[int] = None) -> Trace:
        """
        Advances by `steps` steps, or by ceil(duration / dt) steps, and returns the
        trace. Successive calls continue where the previous one stopped.
        """
        count = self._resolve_steps(duration, steps)
        logger.info("Running '%s' for %d step(s) from t = %.6e s.", self.network.name, count, self.time)
        for _ in range(count):
            self.step()
        logger.info("Run complete at step %d, t = %.6e s (%d snapshot(s) recorded).",
                    self.step_count, self.time, len(self.trace))
        return self.trace

    def iter_steps(self, duration: Optional[float] = None, steps: Optional[int] = None) -> Iterator[Snapshot]:
        """
        Lazily advances the simulation, yielding one snapshot per step without
        recording it. Stopping the iteration early leaves the simulation at the last
        yielded step.
        """
        count = self._resolve_steps(duration, steps)
        for _ in range(count):
            yield Snapshot.of(self._advance(), self.record_mode)

    def close(self):
        self.engine.close()

    def __enter__(self) -> "Simulation":
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False


def run_simulation(network: Network,
                   time_step: Optional[float] = None,
                   duration: Optional[float] = None,
                   steps: Optional[int] = None,
                   initial_state: Optional[Mapping[str, InitialLineState]] = None,
                   config: Optional[SimulationConfig] = None) -> Trace:
    """
    Runs a complete simulation and returns its trace.

    Explicit arguments override the matching `config` fields. Without a time step
    the largest stable one (scaled by the configured Courant number) is used.

    Raises:
        SimulationRunError: For any failure, with a diagnostic report as message and
                            the root cause chained.
    """
    config = config or SimulationConfig()
    try:
        if time_step is None:
            time_step = config.time_step or suggest_time_step(network, config.courant_number)
        if duration is None and steps is None:
            duration, steps = config.duration, config.steps

        logger.info("--- Starting simulation of '%s' ---", network.name)
        with Simulation(network, time_step, initial_state=initial_state,
                        max_workers=config.max_workers, record=config.record,
                        record_every=config.record_every) as sim:
            trace = sim.run(duration=duration, steps=steps)
        logger.info("--- Simulation of '%s' successful ---", network.name)
        return trace

    except DiagnosableError as e:
        logger.error("A diagnosable error occurred during simulation: %s", e)
        raise SimulationRunError(e.get_diagnostic_report()) from e

    except Exception as e:
        logger.critical("An unexpected internal error occurred during simulation: %s", e, exc_info=True)
        report = format_diagnostic_report(
            error_type=f"An Unexpected Simulation Error Occurred ({type(e).__name__})",
            details=f"The simulator encountered an unexpected error: {e}",
            suggestion="Check the run arguments (time step, duration or steps); otherwise review the traceback.",
            context={'element': network.name}
        )
        raise SimulationRunError(report) from e


def simulate_file(path: Union[str, Path], **overrides) -> Trace:
    """
    Parses, builds and runs a YAML network description using its 'simulation' block.

    Raises:
        NetworkBuildError: If the description cannot be parsed or built.
        SimulationRunError: If the run fails.
    """
    try:
        description = NetlistParser().parse_file(path)
    except DiagnosableError as e:
        raise NetworkBuildError(e.get_diagnostic_report()) from e
    network = NetworkBuilder.from_ir(description)
    try:
        config = parse_simulation_config(description.raw_simulation_config)
    except ConfigParsingError as e:
        report = format_diagnostic_report(
            error_type="Simulation Configuration Error",
            details=str(e),
            suggestion="Give times with units (e.g. '5 ps', '10 ns') and either 'duration' or 'steps'.",
            context={'source_file': description.source_yaml_path}
        )
        raise NetworkBuildError(report) from e
    return run_simulation(network, config=config, **overrides)
