# src/tlsim_core/analysis/exceptions.py
"""Diagnosable exceptions for the post-run analysis helpers."""
from dataclasses import dataclass
from typing import Optional

from ..errors import DiagnosableError, format_diagnostic_report


@dataclass()
class AnalysisError(DiagnosableError, ValueError):
    """A trace does not hold the data an analysis needs."""
    details: str
    element: Optional[str] = None

    def __str__(self):
        return self.details

    def get_diagnostic_report(self) -> str:
        return format_diagnostic_report(
            error_type="Analysis Error",
            details=self.details,
            suggestion=(
                "Energy and grid analyses need a trace recorded with RecordMode.FULL and "
                "record_every=1 for the same network the trace was produced from."
            ),
            context={'element': self.element}
        )
