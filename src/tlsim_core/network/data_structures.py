# src/tlsim_core/network/data_structures.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Dict, Iterator, Optional, Tuple, Union

from ..lines import LineEnd

logger = logging.getLogger(__name__)

if TYPE_CHECKING:
    from ..lines import TransmissionLine
    from ..terminations import TerminationBase


@dataclass(frozen=True)
class Endpoint:
    """One end of a named line, written 'line.start' or 'line.end'."""
    line: str
    end: LineEnd

    def __str__(self) -> str:
        return f"{self.line}.{self.end.value}"

    @classmethod
    def coerce(cls, value: Union["Endpoint", Tuple[str, Union[str, LineEnd]], str]) -> "Endpoint":
        """Accepts an `Endpoint`, a (line, end) pair or a 'line.end' string."""
        if isinstance(value, Endpoint):
            return value
        if isinstance(value, str):
            line, sep, end = value.rpartition('.')
            if not sep or not line:
                raise ValueError(f"Endpoint '{value}' must be written as '<line>.start' or '<line>.end'.")
            return cls(line, LineEnd(end))
        line, end = value
        return cls(str(line), end if isinstance(end, LineEnd) else LineEnd(end))


@dataclass(frozen=True)
class Node:
    """
    A set of line endpoints and terminations that share one voltage.

    A node with a single line endpoint is a boundary; a node with two or more line
    endpoints is a junction.
    """
    name: str
    endpoints: Tuple[Endpoint, ...]
    terminations: Tuple[str, ...] = ()

    @property
    def is_junction(self) -> bool:
        return len(self.endpoints) >= 2

    @property
    def member_count(self) -> int:
        return len(self.endpoints) + len(self.terminations)


@dataclass(frozen=True)
class Network:
    """
    A validated, simulation-ready network: lines, terminations and the nodes that
    connect them. Produced by `NetworkBuilder`; holds no imperative logic.
    """
    name: str
    lines: Dict[str, TransmissionLine]
    terminations: Dict[str, TerminationBase]
    nodes: Dict[str, Node]
    source_file_path: Optional[Path] = None
    _endpoint_index: Dict[Endpoint, str] = field(default_factory=dict, repr=False, compare=False)

    def __post_init__(self):
        if not self._endpoint_index:
            for node in self.nodes.values():
                for endpoint in node.endpoints:
                    self._endpoint_index[endpoint] = node.name

    def node_of(self, line: str, end: LineEnd) -> Node:
        """The node that the given line endpoint belongs to."""
        return self.nodes[self._endpoint_index[Endpoint(line, end)]]

    def node_terminations(self, node: Node) -> Iterator[TerminationBase]:
        for name in node.terminations:
            yield self.terminations[name]

    @property
    def junctions(self) -> Tuple[Node, ...]:
        return tuple(node for node in self.nodes.values() if node.is_junction)

    def __str__(self) -> str:
        return (f"Network('{self.name}': {len(self.lines)} line(s), "
                f"{len(self.terminations)} termination(s), {len(self.nodes)} node(s))")
