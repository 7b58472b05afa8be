# src/tlsim_core/parser/exceptions.py
"""
Diagnosable exceptions for the parsing and schema validation stage.

`ParsingError` covers file-level problems and YAML syntax; `SchemaValidationError`
covers documents that load but do not match the network description schema.
"""
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict

from ..errors import DiagnosableError, format_diagnostic_report


class BaseParsingError(DiagnosableError):
    """Common base class for YAML parsing and schema validation errors."""
    def get_diagnostic_report(self) -> str:
        return format_diagnostic_report(
            error_type="Generic Parsing Error",
            details=str(self),
            suggestion="Please check the format and content of the network description.",
            context={}
        )


@dataclass(frozen=True)
class ParsingError(BaseParsingError):
    """A missing or unreadable file, or YAML that cannot be loaded as a mapping."""
    details: str
    file_path: Path

    def __str__(self):
        return f"Parsing error in '{self.file_path}': {self.details}"

    def get_diagnostic_report(self) -> str:
        return format_diagnostic_report(
            error_type="YAML Parsing or File Error",
            details=self.details,
            suggestion="Ensure the file exists, is readable, and contains valid YAML with a mapping at its root.",
            context={'source_file': self.file_path}
        )


def _format_errors(errors: Dict[Any, Any], prefix: str = "") -> list:
    """Flattens Cerberus' nested error tree into 'field.sub: message' lines."""
    lines = []
    for key, value in sorted(errors.items(), key=lambda kv: str(kv[0])):
        path = f"{prefix}.{key}" if prefix else str(key)
        for item in value if isinstance(value, list) else [value]:
            if isinstance(item, dict):
                lines.extend(_format_errors(item, path))
            else:
                lines.append(f"Field '{path}': {item}")
    return lines


@dataclass(frozen=True)
class SchemaValidationError(BaseParsingError):
    """The YAML loaded, but does not match the structure of a network description."""
    errors: Dict[str, Any]
    file_path: Path

    @property
    def messages(self) -> list:
        return _format_errors(self.errors)

    def __str__(self):
        return (
            f"YAML schema validation failed for '{self.file_path}':\n"
            + "\n".join(f"  - {line}" for line in self.messages)
        )

    def get_diagnostic_report(self) -> str:
        messages = self.messages
        details = (
            "The structure of the YAML document does not conform to the required schema.\n"
            f"See details for {len(messages)} issue(s) below:\n\n"
            + "\n".join(f"  - {line}" for line in messages)
        )
        return format_diagnostic_report(
            error_type="YAML Schema Validation Error",
            details=details,
            suggestion=(
                "Correct the listed fields. Every line needs 'id', 'length', 'segments' and "
                "'parameters' (at least inductance and capacitance); node members are "
                "'<line>.start', '<line>.end' or termination ids; identifiers may not contain '.' or '-'."
            ),
            context={'source_file': self.file_path}
        )
