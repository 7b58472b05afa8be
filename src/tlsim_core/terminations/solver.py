# src/tlsim_core/terminations/solver.py
"""
Bounded scalar Newton iteration shared by non-linear terminations and the node solver.

Every solve is an explicit loop with an iteration cap. A non-finite residual or
derivative, a singular derivative or an exhausted iteration budget raises
`NonConvergenceError`; there are no silent fallbacks and no retries.
"""

import logging
import math
from dataclasses import dataclass
from typing import Callable, Optional

from ..constants import (
    DEFAULT_ABSOLUTE_TOLERANCE,
    DEFAULT_MAX_ITERATIONS,
    DEFAULT_RELATIVE_TOLERANCE,
    FINITE_DIFFERENCE_STEP,
)
from .exceptions import NonConvergenceError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NewtonResult:
    root: float
    iterations: int
    residual: float


def numeric_derivative(func: Callable[[float], float], x: float) -> float:
    """Central finite difference with a step relative to |x|."""
    h = FINITE_DIFFERENCE_STEP * max(1.0, abs(x))
    return (func(x + h) - func(x - h)) / (2.0 * h)


def bounded_newton(
    func: Callable[[float], float],
    x0: float,
    derivative: Optional[Callable[[float], float]] = None,
    max_iterations: int = DEFAULT_MAX_ITERATIONS,
    abs_tol: float = DEFAULT_ABSOLUTE_TOLERANCE,
    rel_tol: float = DEFAULT_RELATIVE_TOLERANCE,
    limit: Optional[Callable[[float, float], float]] = None,
    element: str = "<unnamed>",
    unknown: str = "value",
    time: Optional[float] = None,
    residual_tol: Optional[float] = None,
) -> NewtonResult:
    """
    Solves func(x) = 0 by Newton's method starting from `x0`.

    Converged when the residual is exactly zero, or when the (possibly limited)
    update satisfies |dx| <= abs_tol + rel_tol * max(|x|, 1) AND the residual at
    the updated point is within `residual_tol`. A small step alone is not enough.

    Args:
        func: Scalar residual function.
        x0: Initial guess.
        derivative: d func / dx. A central finite difference is used when omitted.
        max_iterations: Iteration cap.
        abs_tol: Absolute tolerance on the update.
        rel_tol: Relative tolerance on the update.
        limit: Optional ``limit(x_new, x_old) -> x_new`` restricting each update.
        element: Name used in diagnostics.
        unknown: Name of the unknown used in diagnostics ("voltage", "current").
        time: Simulation time used in diagnostics.
        residual_tol: Bound on |func(x)| at the accepted root. Defaults to
                      abs_tol + rel_tol * max(|x|, 1).

    Raises:
        NonConvergenceError: On a non-finite residual, derivative or update, a zero
                             derivative, or when the iteration cap is reached. The
                             error carries the residual at the last iterate.
    """
    def residual_at(x: float, iteration: int) -> float:
        fx = float(func(x))
        if not math.isfinite(fx):
            raise NonConvergenceError(
                element=element, unknown=unknown, iterations=iteration, residual=fx, time=time,
                details=f"The residual became non-finite at {unknown} = {x!r}."
            )
        return fx

    def residual_bound(x: float) -> float:
        if residual_tol is not None:
            return residual_tol
        return abs_tol + rel_tol * max(abs(x), 1.0)

    x = float(x0)
    fx = residual_at(x, 0)
    if fx == 0.0:
        return NewtonResult(root=x, iterations=0, residual=0.0)

    for iteration in range(1, max_iterations + 1):
        dfx = float(derivative(x)) if derivative is not None else numeric_derivative(func, x)
        if not math.isfinite(dfx) or dfx == 0.0:
            raise NonConvergenceError(
                element=element, unknown=unknown, iterations=iteration, residual=fx, time=time,
                details=f"The derivative is {'zero' if dfx == 0.0 else 'non-finite'} at {unknown} = {x!r}."
            )

        x_new = x - fx / dfx
        if limit is not None:
            x_new = float(limit(x_new, x))
        if not math.isfinite(x_new):
            raise NonConvergenceError(
                element=element, unknown=unknown, iterations=iteration, residual=fx, time=time,
                details="The Newton update produced a non-finite value."
            )

        f_new = residual_at(x_new, iteration)
        small_step = abs(x_new - x) <= abs_tol + rel_tol * max(abs(x_new), 1.0)
        if f_new == 0.0 or (small_step and abs(f_new) <= residual_bound(x_new)):
            return NewtonResult(root=x_new, iterations=iteration, residual=f_new)
        x, fx = x_new, f_new

    raise NonConvergenceError(
        element=element, unknown=unknown, iterations=max_iterations, residual=fx, time=time,
        details=(f"The iteration cap of {max_iterations} was reached without meeting the tolerance; "
                 f"last {unknown} = {x!r}.")
    )
