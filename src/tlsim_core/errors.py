# src/tlsim_core/errors.py
import logging
from typing import Any, Dict, List, Protocol, abstractmethod
from typing import runtime_checkable

logger = logging.getLogger(__name__)

# --- Errors Seen By Callers ---

class TLSimError(Exception):
    """Root of every error that the public TLSim Core API lets escape."""


class NetworkBuildError(TLSimError):
    """
    A network could not be assembled, whether from YAML or through the builder.

    Carries a finished diagnostic report as its message.
    """


class SimulationRunError(TLSimError):
    """
    A run started by one of the facades failed after the network existed:
    an unstable time step, a termination solve that did not converge or an
    unusable initial state. The underlying error is chained as ``__cause__``.
    """


class FrameworkLogicError(TLSimError):
    """The solver reached a state its own bookkeeping rules out."""


# --- Diagnostic Contract ---

@runtime_checkable
class Diagnosable(Protocol):
    """Anything able to explain itself as a multi-line, user-readable report."""
    def get_diagnostic_report(self) -> str:
        ...


class DiagnosableError(Exception, Diagnosable):
    """
    Base for the internal errors of each subsystem.

    The facades catch this type, ask it for its report and re-raise the
    report as a ``NetworkBuildError`` or ``SimulationRunError``.
    """
    @abstractmethod
    def get_diagnostic_report(self) -> str:
        raise NotImplementedError


# --- Report Rendering ---

_REPORT_TITLE = " TLSim Core: Actionable Diagnostic Report "
_REPORT_WIDTH = 72

# (context key, label, renderer) in display order.
_CONTEXT_FIELDS = (
    ("element", "Element", str),
    ("source_file", "Source File", str),
    ("user_input", "User Input", lambda value: f"'{value}'"),
    ("time", "Sim. Time", lambda value: f"{value:.6e} s"),
    ("step", "Step", str),
)


def _indented(block: str) -> List[str]:
    return ["  " + row for row in block.splitlines()]


def format_diagnostic_report(
    error_type: str,
    details: str,
    suggestion: str,
    context: Dict[str, Any]
) -> str:
    """
    Render a diagnostic in the layout shared by every TLSim Core error.

    Args:
        error_type: Short category heading, e.g. "Stability Violation".
        details: What went wrong; may span several lines.
        suggestion: What the user can change to fix it. Omitted when empty.
        context: Optional facts about where it happened. Keys understood are
                 'element', 'source_file', 'user_input', 'time' and 'step';
                 missing or None values are left out of the report.

    Returns:
        The report text, framed by a title bar and a closing rule.
    """
    label_width = max(len(label) for _, label, _ in _CONTEXT_FIELDS) + 4
    rows = ["\n", _REPORT_TITLE.center(_REPORT_WIDTH, "="),
            f"{'Error Type:':<{label_width}}{error_type}"]
    for key, label, render in _CONTEXT_FIELDS:
        value = context.get(key)
        if value is None or value == "":
            continue
        rows.append(f"{label + ':':<{label_width}}{render(value)}")

    rows.append("\nDetails:")
    rows.extend(_indented(details))
    if suggestion:
        rows.append("\nSuggestion:")
        rows.extend(_indented(suggestion))
    rows.append("=" * _REPORT_WIDTH)
    return "\n".join(rows)
