# src/tlsim_core/simulation/nodes.py
"""
Resolution of boundary and junction nodes.

Every node is solved the same way, whatever it joins. The half-cell capacitance
and conductance of each attached line endpoint are lumped at the node, the line
currents flowing in are summed, and Kirchhoff's current law is integrated with
the trapezoidal rule over the step together with the attached termination
relations:

    Ch (V+ - V) / dt + Gh * Vm = I_line - sum_k i_k(Vm)       Vm = (V+ + V) / 2

Linear terminations contribute i_k = (delta_k - alpha_k * Vm) / gamma_k and give a
closed-form solution. A termination with gamma = 0 fixes V+ directly. Non-linear
terminations are solved for Vm by a bounded Newton iteration.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Mapping, Sequence, Tuple

from ..constants import DEFAULT_ABSOLUTE_TOLERANCE, DEFAULT_MAX_ITERATIONS, DEFAULT_RELATIVE_TOLERANCE
from ..errors import FrameworkLogicError
from ..lines import LineEnd
from ..network import Network, Node
from ..terminations import TerminationBase, bounded_newton

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Attachment:
    """One line endpoint joined to a node, with its half-cell lumped values for the step."""
    line: str
    end: LineEnd
    inflow: float        # line current flowing into the node at t_n + dt/2
    capacitance: float   # C' * dx / 2 of the end segment
    conductance: float   # G' * dx / 2 of the end segment


@dataclass(frozen=True)
class NodeSolution:
    voltage: float
    attachment_currents: Tuple[float, ...]
    termination_currents: Dict[str, float]


class NodeSolver:
    """Solves one node of a network; holds only the node's static structure."""

    def __init__(self, node: Node, network: Network):
        self.node = node
        self.terminations: List[TerminationBase] = list(network.node_terminations(node))
        self.constraint = None
        self.linear: List[TerminationBase] = []
        self.nonlinear: List[TerminationBase] = []
        for term in self.terminations:
            if term.is_voltage_constraint:
                if self.constraint is not None:
                    raise FrameworkLogicError(
                        f"Node '{node.name}' holds more than one voltage constraint after validation."
                    )
                self.constraint = term
            elif term.is_linear:
                self.linear.append(term)
            else:
                self.nonlinear.append(term)

    def solve(self, v_old: float, attachments: Sequence[Attachment], t: float, dt: float,
              previous_currents: Mapping[str, float]) -> NodeSolution:
        """
        Advances the node voltage from t to t + dt.

        Args:
            v_old: Node voltage at t.
            attachments: The attached line endpoints for this step.
            t: Time at the start of the step.
            dt: Time step.
            previous_currents: Termination currents of the previous step, used as
                               Newton starting points.

        Raises:
            NonConvergenceError: If a non-linear solve fails.
            TerminationError: If a termination cannot be evaluated.
        """
        t_mid = t + 0.5 * dt
        t_next = t + dt
        ch = sum(a.capacitance for a in attachments)
        gh = sum(a.conductance for a in attachments)
        i_line = sum(a.inflow for a in attachments)
        beta = dt / (2.0 * ch)

        # Linear terminations: i = s0_k - s1_k * Vm, with delta averaged over the step.
        linear_terms: List[Tuple[str, float, float]] = []
        for term in self.linear:
            alpha, gamma, delta_old = term.linear_coefficients(t)
            _, _, delta_new = term.linear_coefficients(t_next)
            linear_terms.append((term.name, 0.5 * (delta_old + delta_new) / gamma, alpha / gamma))
        s0 = sum(s for _, s, _ in linear_terms)
        s1 = sum(s for _, _, s in linear_terms)
        diag = 1.0 + beta * gh - beta * s1
        rhs = v_old + beta * i_line - beta * s0

        if self.constraint is not None:
            alpha, _, delta = self.constraint.linear_coefficients(t_next)
            v_next = delta / alpha
            v_mid = 0.5 * (v_next + v_old)
        elif not self.nonlinear:
            v_mid = rhs / diag
            v_next = 2.0 * v_mid - v_old
        else:
            v_mid = self._solve_nonlinear(v_old, diag, rhs, beta, t_mid, previous_currents)
            v_next = 2.0 * v_mid - v_old

        currents: Dict[str, float] = {}
        for name, s0_k, s1_k in linear_terms:
            currents[name] = s0_k - s1_k * v_mid
        for term in self.nonlinear:
            currents[term.name] = term.current_and_slope(v_mid, t_mid, previous_currents.get(term.name, 0.0))[0]

        attachment_currents = tuple(
            a.inflow - a.capacitance * (v_next - v_old) / dt - a.conductance * v_mid
            for a in attachments
        )
        if self.constraint is not None:
            # The constraint absorbs whatever the rest of the node does not.
            currents[self.constraint.name] = sum(attachment_currents) - sum(currents.values())

        return NodeSolution(voltage=v_next, attachment_currents=attachment_currents,
                            termination_currents=currents)

    def _solve_nonlinear(self, v_old: float, diag: float, rhs: float, beta: float, t_mid: float,
                         previous_currents: Mapping[str, float]) -> float:
        def currents_at(v: float) -> Tuple[float, float]:
            total, slope = 0.0, 0.0
            for term in self.nonlinear:
                i, di_dv = term.current_and_slope(v, t_mid, previous_currents.get(term.name, 0.0))
                total += i
                slope += di_dv
            return total, slope

        def residual(v: float) -> float:
            return diag * v - rhs + beta * currents_at(v)[0]

        def derivative(v: float) -> float:
            return diag + beta * currents_at(v)[1]

        def limit(v_new: float, v_prev: float) -> float:
            for term in self.nonlinear:
                v_new = term.limit_voltage(v_new, v_prev)
            return v_new

        result = bounded_newton(
            residual, v_old, derivative=derivative,
            max_iterations=DEFAULT_MAX_ITERATIONS,
            abs_tol=DEFAULT_ABSOLUTE_TOLERANCE, rel_tol=DEFAULT_RELATIVE_TOLERANCE,
            limit=limit, element=self.node.name, unknown="node voltage", time=t_mid,
        )
        logger.debug("Node '%s' converged in %d iteration(s) at t = %.6e s.",
                     self.node.name, result.iterations, t_mid)
        return result.root
