# src/tlsim_core/validation/issues.py
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class ValidationIssueLevel(Enum):
    """Severity level of a validation issue."""
    ERROR = "ERROR"
    WARNING = "WARNING"
    INFO = "INFO"

    def __str__(self):
        return self.value


@dataclass
class ValidationIssue:
    """A single finding of the topology validator, with the element it concerns."""
    level: ValidationIssueLevel
    code: str
    message: str
    element: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        parts = [f"[{self.level.name} - {self.code}]"]
        if self.element:
            parts.append(f"Element: {self.element}")
        parts.append(f"Message: {self.message}")
        return " ".join(parts)
