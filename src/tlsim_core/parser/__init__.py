from .raw_data import (
    ParsedLineData,
    ParsedNetworkDescription,
    ParsedNodeData,
    ParsedTerminationData,
)
from .parser import NetlistParser
from .exceptions import ParsingError, SchemaValidationError

__all__ = [
    # IR Data Structures
    "ParsedNetworkDescription",
    "ParsedLineData",
    "ParsedTerminationData",
    "ParsedNodeData",
    # Parser and Exceptions
    "NetlistParser",
    "ParsingError",
    "SchemaValidationError",
]
