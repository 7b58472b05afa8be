# src/tlsim_core/parser/raw_data.py
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

# Intermediate Representation produced by the NetlistParser and consumed by
# NetworkBuilder.from_ir. Values are kept as written (unit strings, numbers,
# expression mappings); unit conversion happens in the builder.


@dataclass(frozen=True)
class ParsedLineData:
    """IR for one transmission line."""
    line_id: str
    raw_length: Any
    segments: int
    raw_parameters_dict: Dict[str, Any]
    source_yaml_path: Path


@dataclass(frozen=True)
class ParsedTerminationData:
    """IR for one termination (source, load or non-linear element)."""
    termination_id: str
    termination_type: str
    raw_parameters_dict: Dict[str, Any]
    source_yaml_path: Path
    raw_waveform: Optional[Dict[str, Any]] = None


@dataclass(frozen=True)
class ParsedNodeData:
    """IR for a node: line endpoints ('tl1.end') and termination ids sharing one voltage."""
    node_id: str
    members: List[str]
    source_yaml_path: Path


@dataclass(frozen=True)
class ParsedNetworkDescription:
    """Top-level IR for one network description file."""
    network_name: str
    source_yaml_path: Path
    lines: List[ParsedLineData]
    terminations: List[ParsedTerminationData]
    nodes: List[ParsedNodeData]
    raw_simulation_config: Optional[Dict[str, Any]] = field(default=None)
