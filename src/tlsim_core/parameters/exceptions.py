# src/tlsim_core/parameters/exceptions.py
"""
Diagnosable exceptions for the per-unit-length parameter model.

Every error raised while defining or evaluating line parameters is a concrete
`DiagnosableError`, so the facades can turn it into an actionable report.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import numpy as np

from ..errors import DiagnosableError, format_diagnostic_report


class ParameterError(DiagnosableError):
    """Base class for all parameter-related errors."""
    def get_diagnostic_report(self) -> str:
        return format_diagnostic_report(
            error_type="Generic Parameter Error",
            details=str(self),
            suggestion="Review the line parameter definitions for correctness.",
            context={}
        )


@dataclass(frozen=True)
class ParameterDefinitionError(ParameterError):
    """Raised when a parameter value or expression cannot be accepted as defined."""
    parameter: str
    user_input: str
    details: str
    owner: Optional[str] = None

    def __str__(self):
        return f"Parameter '{self.parameter}': {self.details} (input: '{self.user_input}')"

    def get_diagnostic_report(self) -> str:
        return format_diagnostic_report(
            error_type="Invalid Parameter Definition",
            details=self.details,
            suggestion=(
                "Give per-unit-length values with compatible units (e.g. '1 uH/m', '400 pF/m'). "
                "Expressions may only use the symbols v, i, x, t, np, pi and Quantity; "
                "literals with units must be written as Quantity('...')."
            ),
            context={'element': self.owner or self.parameter, 'user_input': self.user_input}
        )


@dataclass(frozen=True)
class ParameterEvaluationError(ParameterError):
    """Raised when evaluating a parameter yields an unusable (non-finite, mis-shaped) result."""
    parameter: str
    details: str
    time: Optional[float] = None
    bad_indices: Optional[np.ndarray] = None
    input_values: Dict[str, Any] = field(default_factory=dict)

    def __str__(self):
        time_str = f" at t = {self.time:.6e} s" if self.time is not None else ""
        return f"Evaluation error for '{self.parameter}'{time_str}: {self.details}"

    def get_diagnostic_report(self) -> str:
        details_str = self.details
        if self.bad_indices is not None and self.bad_indices.size > 0:
            first = int(self.bad_indices[0])
            inputs_at_first = {
                name: val[first] if isinstance(val, np.ndarray) and val.ndim > 0 and val.size > first else val
                for name, val in self.input_values.items()
            }
            input_details = "\n".join(f"  - {name} = {val}" for name, val in inputs_at_first.items())
            details_str += (
                f"\n\nThe first bad value is at segment {first} with inputs:\n{input_details}"
            )
            if self.bad_indices.size > 1:
                details_str += f"\n\nNote: {self.bad_indices.size} segments are affected."
        return format_diagnostic_report(
            error_type="Parameter Evaluation Error",
            details=details_str,
            suggestion=(
                "Check the parameter function for operations that may be invalid for the "
                "local voltage, current, position or time (division by zero, overflow, "
                "logarithms of non-positive numbers)."
            ),
            context={'element': self.parameter, 'time': self.time}
        )
