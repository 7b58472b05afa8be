# src/tlsim_core/simulation/exceptions.py
"""
Diagnosable exceptions raised while setting up or stepping a simulation.

Construction-time failures (`StabilityViolationError` before the first step,
`InitialConditionError`) are raised before any state exists. A failure during a
step aborts that step only: the simulation keeps the state of the last completed
step and its trace stays valid.
"""
from dataclasses import dataclass
from typing import Optional

from ..errors import DiagnosableError, format_diagnostic_report


@dataclass()
class StabilityViolationError(DiagnosableError):
    """The time step exceeds dx * min(sqrt(L'C')) for a line."""
    line: str
    time_step: float
    bound: float
    time: Optional[float] = None
    step: Optional[int] = None

    def __str__(self):
        when = f" at step {self.step} (t = {self.time:.6e} s)" if self.step is not None else ""
        return (f"Time step {self.time_step:.6e} s exceeds the stability bound "
                f"{self.bound:.6e} s of line '{self.line}'{when}.")

    def get_diagnostic_report(self) -> str:
        ratio = self.time_step / self.bound if self.bound > 0 else float("inf")
        details = (
            f"The explicit update of line '{self.line}' is only stable for time steps up to "
            f"{self.bound:.6e} s (dx * min sqrt(L'C')).\n"
            f"The requested time step is {self.time_step:.6e} s, {ratio:.4g} times the bound."
        )
        if self.step is not None:
            details += "\nThe bound shrank during the run because the line parameters depend on the line state."
        return format_diagnostic_report(
            error_type="Stability Violation",
            details=details,
            suggestion=(
                "Reduce the time step (suggest_time_step() returns the largest stable value), "
                "or use fewer segments on the limiting line. For state-dependent lines leave "
                "headroom with a Courant number below 1."
            ),
            context={'element': self.line, 'time': self.time, 'step': self.step}
        )


@dataclass()
class InitialConditionError(DiagnosableError):
    """An initial state refers to an unknown line or has arrays of the wrong length."""
    details: str
    line: Optional[str] = None

    def __str__(self):
        where = f"Line '{self.line}': " if self.line else ""
        return f"{where}{self.details}"

    def get_diagnostic_report(self) -> str:
        return format_diagnostic_report(
            error_type="Invalid Initial Condition",
            details=self.details,
            suggestion=(
                "Give initial states only for lines of the network, with N + 1 node voltages "
                "and N segment currents for a line of N segments."
            ),
            context={'element': self.line}
        )
