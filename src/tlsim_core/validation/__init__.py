from .exceptions import TopologyError
from .issue_codes import TopologyIssueCode
from .issues import ValidationIssue, ValidationIssueLevel
from .topology_validator import TopologyValidator

__all__ = [
    "TopologyError",
    "TopologyIssueCode",
    "ValidationIssue",
    "ValidationIssueLevel",
    "TopologyValidator",
]
