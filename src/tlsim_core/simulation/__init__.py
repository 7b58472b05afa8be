from .exceptions import InitialConditionError, StabilityViolationError
from .state import GridState, SimulationState
from .results import EndpointState, RecordMode, Snapshot, Trace
from .engine import LineCoefficients, TimeSteppingEngine, check_stability
from .config import ConfigParsingError, SimulationConfig, parse_simulation_config
from .driver import Simulation, run_simulation, simulate_file, steps_for_duration, suggest_time_step

__all__ = [
    # Exceptions
    "StabilityViolationError",
    "InitialConditionError",
    "ConfigParsingError",
    # State & Results
    "GridState",
    "SimulationState",
    "EndpointState",
    "Snapshot",
    "Trace",
    "RecordMode",
    # Engine
    "TimeSteppingEngine",
    "LineCoefficients",
    "check_stability",
    # Driver
    "Simulation",
    "SimulationConfig",
    "parse_simulation_config",
    "run_simulation",
    "simulate_file",
    "steps_for_duration",
    "suggest_time_step",
]
