# src/tlsim_core/terminations/exceptions.py
"""Diagnosable exceptions raised by terminations and their non-linear solves."""
from dataclasses import dataclass
from typing import Optional

from ..errors import DiagnosableError, format_diagnostic_report


@dataclass()
class TerminationError(DiagnosableError):
    """
    Raised for invalid termination arguments, or when a termination is asked to
    resolve a quantity its relation does not determine.
    """
    termination: str
    details: str

    def __str__(self):
        return f"Termination '{self.termination}': {self.details}"

    def get_diagnostic_report(self) -> str:
        return format_diagnostic_report(
            error_type="Termination Error",
            details=self.details,
            suggestion=(
                "Check the termination's parameters (resistances must be non-negative and finite, "
                "waveforms must produce finite values) and that it is attached to a line."
            ),
            context={'element': self.termination}
        )


@dataclass()
class NonConvergenceError(DiagnosableError):
    """Raised when a bounded Newton solve fails to converge or meets a non-finite residual."""
    element: str
    unknown: str
    details: str
    iterations: int
    residual: float
    time: Optional[float] = None

    def __str__(self):
        time_str = f" at t = {self.time:.6e} s" if self.time is not None else ""
        return (f"Newton solve for the {self.unknown} of '{self.element}' did not converge{time_str} "
                f"after {self.iterations} iteration(s): {self.details}")

    def get_diagnostic_report(self) -> str:
        return format_diagnostic_report(
            error_type="Non-Linear Solve Did Not Converge",
            details=(
                f"Solving for the {self.unknown} stopped after {self.iterations} iteration(s).\n"
                f"{self.details}\n"
                f"Last residual: {self.residual!r}"
            ),
            suggestion=(
                "Check that the termination relation has a solution for the voltages that "
                "occur on the line, that it is continuous and finite, and consider a smaller "
                "time step or a larger iteration cap."
            ),
            context={'element': self.element, 'time': self.time}
        )
