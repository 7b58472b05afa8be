from .data_structures import Endpoint, Network, Node
from .builder import NetworkBuilder
from ..validation import TopologyError

__all__ = [
    "Endpoint",
    "Node",
    "Network",
    "NetworkBuilder",
    "TopologyError",
]
