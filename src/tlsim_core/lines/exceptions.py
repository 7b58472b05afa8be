# src/tlsim_core/lines/exceptions.py
from dataclasses import dataclass
from typing import Any, Optional

from ..errors import DiagnosableError, format_diagnostic_report


@dataclass(frozen=True)
class InvalidDiscretizationError(DiagnosableError):
    """Raised when a line length or segment count cannot be discretized."""
    quantity: str
    value: Any
    details: str
    line: Optional[str] = None

    def __str__(self):
        where = f"Line '{self.line}': " if self.line else ""
        return f"{where}invalid {self.quantity} {self.value!r}: {self.details}"

    def get_diagnostic_report(self) -> str:
        return format_diagnostic_report(
            error_type="Invalid Discretization",
            details=f"The {self.quantity} {self.value!r} is not usable: {self.details}",
            suggestion=(
                "Give every line a positive, finite length and an integer number of "
                "segments of at least 1."
            ),
            context={'element': self.line, 'user_input': str(self.value)}
        )
