# src/tlsim_core/terminations/capabilities.py
"""
Capability protocols for terminations.

The node solver never inspects concrete termination classes. It asks a termination
for a capability (`ILinearRelation`, `INonlinearRelation`, `ILineBinding`) and uses
whichever the termination provides. Implementations are nested classes marked with
`@provides`, discovered through the class MRO by `TerminationBase`.
"""

import logging
from typing import (
    TYPE_CHECKING,
    Optional,
    Protocol,
    Tuple,
    Type,
    TypeVar,
    runtime_checkable,
)

if TYPE_CHECKING:
    from ..lines import LineEnd, TransmissionLine
    from .base import TerminationBase

logger = logging.getLogger(__name__)


@runtime_checkable
class TerminationCapability(Protocol):
    """Marker protocol for all termination capabilities."""
    pass


TCapability = TypeVar("TCapability", bound=TerminationCapability)


@runtime_checkable
class ILinearRelation(TerminationCapability, Protocol):
    """
    The termination relation is affine in v and i:  alpha * v + gamma * i = delta(t).

    `gamma == 0` marks a hard voltage constraint (ideal voltage source, short).
    """
    def get_coefficients(self, termination: "TerminationBase", t: float) -> Tuple[float, float, float]:
        ...


@runtime_checkable
class INonlinearRelation(TerminationCapability, Protocol):
    """The termination relation f(v, i, t) = 0 is an arbitrary (differentiable) function."""

    def residual(self, termination: "TerminationBase", v: float, i: float, t: float) -> float:
        ...

    def jacobian(self, termination: "TerminationBase", v: float, i: float, t: float) -> Tuple[float, float]:
        """Returns (df/dv, df/di)."""
        ...

    def explicit_current(self, termination: "TerminationBase", v: float, t: float) -> Optional[Tuple[float, float]]:
        """Returns (i, di/dv) when the current is an explicit function of voltage, else None."""
        ...

    def limit_voltage(self, termination: "TerminationBase", v_new: float, v_old: float) -> float:
        """Restricts a proposed Newton update of the terminal voltage."""
        ...


@runtime_checkable
class ILineBinding(TerminationCapability, Protocol):
    """The termination derives its value from the line it is attached to."""

    def bind(self, termination: "TerminationBase", line: "TransmissionLine", end: "LineEnd") -> None:
        ...


def provides(capability_protocol: Type[TerminationCapability]):
    """
    Class decorator marking a nested class as the implementation of a capability.

    Args:
        capability_protocol: The capability Protocol (e.g. ILinearRelation) that the
                             decorated class implements.
    """
    def decorator(cls: Type) -> Type:
        if not issubclass(capability_protocol, TerminationCapability):
            raise TypeError(
                f"Decorator argument for @provides must be a TerminationCapability "
                f"Protocol, but got {capability_protocol}."
            )
        cls._implements_capability = capability_protocol
        logger.debug(
            "Class '%s' registered as providing capability '%s'.",
            cls.__name__, capability_protocol.__name__
        )
        return cls
    return decorator
