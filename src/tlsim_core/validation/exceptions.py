# src/tlsim_core/validation/exceptions.py
"""The diagnosable error raised when topology validation finds error-level issues."""
from typing import List

from ..errors import DiagnosableError, format_diagnostic_report
from .issues import ValidationIssue, ValidationIssueLevel


class TopologyError(DiagnosableError):
    """
    Raised when a network's connectivity is invalid. Carries every error-level
    `ValidationIssue` found in one validation pass.
    """
    def __init__(self, issues: List[ValidationIssue], network: str = "network"):
        self.network = network
        self.issues: List[ValidationIssue] = [
            issue for issue in issues if issue.level == ValidationIssueLevel.ERROR
        ]
        if not self.issues:
            summary_message = "TopologyError was raised with no error-level issues."
        else:
            summary_message = (
                f"Topology validation of '{network}' failed with {len(self.issues)} error(s):\n"
                + "\n".join(f"  - {issue}" for issue in self.issues)
            )
        super().__init__(summary_message)

    @property
    def codes(self) -> List[str]:
        return [issue.code for issue in self.issues]

    def get_diagnostic_report(self) -> str:
        details = (
            f"The connectivity of network '{self.network}' is invalid.\n"
            f"Found {len(self.issues)} error(s):\n\n"
            + "\n".join(f"  - {issue}" for issue in self.issues)
        )
        first_issue = self.issues[0] if self.issues else None
        return format_diagnostic_report(
            error_type="Network Topology Error",
            details=details,
            suggestion=(
                "Assign every line endpoint to exactly one node, give each node at least two members "
                "including a line endpoint, and use at most one voltage-fixing termination per node."
            ),
            context={'element': first_issue.element if first_issue else self.network}
        )
