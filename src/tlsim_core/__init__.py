import logging
from pathlib import Path
from typing import Union

from .log_config import setup_logging

setup_logging()
logger = logging.getLogger(__name__)
logger.info("TLSim Core package initialized.")

from .units import ureg, pint, Quantity, ADMITTANCE_DIMENSIONALITY, IMPEDANCE_DIMENSIONALITY
from .parameters import (
    ConstantParameters,
    FunctionalParameters,
    ParameterExpression,
    kinetic_inductance_parameters,
)
from .lines import LineEnd, TransmissionLine, discretize
from .terminations import (
    CurrentSource,
    Diode,
    MatchedLoad,
    MatchedSource,
    NonlinearLoad,
    OpenCircuit,
    Resistor,
    ShortCircuit,
    VoltageSource,
)
from .network import Network, NetworkBuilder
from .parser import NetlistParser
from .simulation import (
    RecordMode,
    Simulation,
    Trace,
    run_simulation,
    simulate_file,
    suggest_time_step,
)
from .errors import DiagnosableError, TLSimError, NetworkBuildError, SimulationRunError


def load_network(source: Union[str, Path]) -> Network:
    """
    Parses and builds a network from a YAML file path or YAML text.

    Raises:
        NetworkBuildError: If the description cannot be parsed or built.
    """
    try:
        description = NetlistParser().parse(source)
    except DiagnosableError as e:
        raise NetworkBuildError(e.get_diagnostic_report()) from e
    return NetworkBuilder.from_ir(description)


__all__ = [
    # Units
    "ureg", "pint", "Quantity",
    # Canonical dimensionalities
    "ADMITTANCE_DIMENSIONALITY", "IMPEDANCE_DIMENSIONALITY",
    # Parameters & Lines
    "ConstantParameters", "FunctionalParameters", "ParameterExpression",
    "kinetic_inductance_parameters",
    "TransmissionLine", "LineEnd", "discretize",
    # Terminations
    "Resistor", "OpenCircuit", "ShortCircuit", "VoltageSource", "CurrentSource",
    "MatchedLoad", "MatchedSource", "Diode", "NonlinearLoad",
    # Network
    "Network", "NetworkBuilder", "NetlistParser", "load_network",
    # Simulation
    "Simulation", "Trace", "RecordMode",
    "run_simulation", "simulate_file", "suggest_time_step",
    # Top-Level Errors (Actionable Diagnostics)
    "TLSimError", "NetworkBuildError", "SimulationRunError",
]
