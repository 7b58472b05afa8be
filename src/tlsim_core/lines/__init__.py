# src/tlsim_core/lines/__init__.py
from .discretization import Discretization, discretize
from .exceptions import InvalidDiscretizationError
from .line import LineEnd, TransmissionLine

__all__ = [
    "Discretization",
    "discretize",
    "InvalidDiscretizationError",
    "LineEnd",
    "TransmissionLine",
]
