# src/tlsim_core/analysis/tools.py

"""
Post-run analysis of recorded traces: stored and absorbed energy, Kirchhoff
current residuals at nodes and ideal reflection coefficients.
"""

import logging
import math
from typing import Dict

import numpy as np
from scipy.integrate import trapezoid

from ..lines import LineEnd, TransmissionLine
from ..network import Network, Node
from ..simulation.results import RecordMode, Trace
from .exceptions import AnalysisError

logger = logging.getLogger(__name__)


def _node_capacitances(line: TransmissionLine, capacitance: np.ndarray) -> np.ndarray:
    """Lumped capacitance of every voltage node of a line, half-cells at the ends."""
    dx = line.dx
    c_nodes = np.empty(line.segments + 1)
    c_nodes[0] = 0.5 * capacitance[0] * dx
    c_nodes[-1] = 0.5 * capacitance[-1] * dx
    c_nodes[1:-1] = 0.5 * (capacitance[:-1] + capacitance[1:]) * dx
    return c_nodes


def stored_energy(trace: Trace, network: Network) -> np.ndarray:
    """
    Electromagnetic energy stored on all lines, one value per snapshot except the last.

    The value for snapshot m is the energy the leapfrog scheme conserves exactly,

        E^m = 1/2 sum C_k (V_k^m)^2 + 1/2 sum L' dx I^{m-1/2} I^{m+1/2},

    so it needs the currents of snapshot m + 1 as well. On a network whose lines and
    terminations are all passive it never increases once the sources are off.

    Raises:
        AnalysisError: If the trace is not a full, consecutive recording.
    """
    if trace.mode is not RecordMode.FULL:
        raise AnalysisError(details="Stored energy needs a trace recorded with RecordMode.FULL.")
    if len(trace) < 2:
        raise AnalysisError(details="Stored energy needs at least two snapshots.")
    if np.any(np.diff(trace.steps) != 1):
        raise AnalysisError(details="Stored energy needs consecutive snapshots (record_every=1).")

    energy = np.zeros(len(trace) - 1)
    for name, line in network.lines.items():
        voltages = trace.voltages(name)
        currents = trace.currents(name)
        constant = None if line.is_state_dependent else line.initial_parameters()
        for m in range(len(trace) - 1):
            params = constant if constant is not None else line.parameters_at(voltages[m], currents[m], trace[m].time)
            c_nodes = _node_capacitances(line, params.capacitance)
            energy[m] += 0.5 * np.dot(c_nodes, voltages[m] ** 2)
            energy[m] += 0.5 * line.dx * np.dot(params.inductance, currents[m] * currents[m + 1])
    return energy


def _termination_node(network: Network, termination: str) -> Node:
    for node in network.nodes.values():
        if termination in node.terminations:
            return node
    raise AnalysisError(details=f"Termination '{termination}' is not attached to any node.", element=termination)


def absorbed_energy(trace: Trace, network: Network, termination: str) -> float:
    """
    Energy delivered into a termination over the recorded interval (negative for a
    source delivering energy to the network).

    The power v * i is formed at the step midpoints, where the termination currents
    are recorded, and integrated with the trapezoidal rule.
    """
    if np.any(np.diff(trace.steps) != 1):
        raise AnalysisError(details="Absorbed energy needs consecutive snapshots (record_every=1).")
    node = _termination_node(network, termination)
    endpoint = node.endpoints[0]
    side = 0 if endpoint.end is LineEnd.START else 1
    v = trace.endpoint_voltages(endpoint.line)[:, side]
    i = trace.termination_current(termination)
    if len(trace) < 2:
        return 0.0

    v_mid = 0.5 * (v[1:] + v[:-1])
    t_mid = 0.5 * (trace.times[1:] + trace.times[:-1])
    power = v_mid * i[1:]
    # Hold the end samples for half a step so the integral spans the whole trace.
    t_ext = np.concatenate(([trace.times[0]], t_mid, [trace.times[-1]]))
    p_ext = np.concatenate(([power[0]], power, [power[-1]]))
    return float(trapezoid(p_ext, t_ext))


def node_current_residuals(trace: Trace, network: Network) -> Dict[str, np.ndarray]:
    """
    Kirchhoff current residual of every node for every recorded step after the first:
    current delivered by the attached lines minus current drawn by the terminations.
    """
    residuals: Dict[str, np.ndarray] = {}
    boundary = {name: trace.boundary_currents(name)[1:] for name in network.lines}
    for node in network.nodes.values():
        total = np.zeros(max(len(trace) - 1, 0))
        for ep in node.endpoints:
            if ep.end is LineEnd.START:
                total -= boundary[ep.line][:, 0]
            else:
                total += boundary[ep.line][:, 1]
        for term in node.terminations:
            total -= trace.termination_current(term)[1:]
        residuals[node.name] = total
    return residuals


def reflection_coefficient(load_impedance: float, line_impedance: float) -> float:
    """
    Voltage reflection coefficient (ZL - Z0) / (ZL + Z0) of a resistive load.
    An infinite load (open circuit) gives +1, a zero load (short) gives -1.
    """
    if line_impedance <= 0 or not math.isfinite(line_impedance):
        raise ValueError(f"The line impedance must be positive and finite, got {line_impedance}.")
    if math.isinf(load_impedance):
        return 1.0
    return (load_impedance - line_impedance) / (load_impedance + line_impedance)
