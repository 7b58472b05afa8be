# src/tlsim_core/terminations/base.py

import inspect
import logging
import math
from abc import ABC, abstractmethod
from enum import Enum
from typing import ClassVar, Dict, Optional, Tuple, Type

from ..constants import (
    DEFAULT_ABSOLUTE_TOLERANCE,
    DEFAULT_MAX_ITERATIONS,
    DEFAULT_RELATIVE_TOLERANCE,
    FINITE_DIFFERENCE_STEP,
)
from .capabilities import (
    ILinearRelation,
    INonlinearRelation,
    TCapability,
    TerminationCapability,
)
from .exceptions import NonConvergenceError, TerminationError
from .solver import bounded_newton

logger = logging.getLogger(__name__)


class TerminalQuantity(Enum):
    """The unknown a termination is asked to resolve."""
    VOLTAGE = "voltage"
    CURRENT = "current"


class NonlinearRelationBase:
    """
    Default pieces of an `INonlinearRelation` implementation.

    Subclasses must implement `residual`; the Jacobian falls back to central finite
    differences, no explicit current is known and voltage updates are not limited.
    """
    def residual(self, termination: "TerminationBase", v: float, i: float, t: float) -> float:
        raise NotImplementedError

    def jacobian(self, termination: "TerminationBase", v: float, i: float, t: float) -> Tuple[float, float]:
        hv = FINITE_DIFFERENCE_STEP * max(1.0, abs(v))
        hi = FINITE_DIFFERENCE_STEP * max(1.0, abs(i))
        dfdv = (self.residual(termination, v + hv, i, t) - self.residual(termination, v - hv, i, t)) / (2.0 * hv)
        dfdi = (self.residual(termination, v, i + hi, t) - self.residual(termination, v, i - hi, t)) / (2.0 * hi)
        return dfdv, dfdi

    def explicit_current(self, termination: "TerminationBase", v: float, t: float) -> Optional[Tuple[float, float]]:
        return None

    def limit_voltage(self, termination: "TerminationBase", v_new: float, v_old: float) -> float:
        return v_new


class TerminationBase(ABC):
    """
    Abstract base class for everything that can terminate a line endpoint.

    A termination is a relation f(v, i, t) = 0 between the voltage of the node it
    sits on and the current i flowing from that node into the termination (load
    convention). Behaviour is exposed through capabilities; this base class
    discovers them and derives `residual` and `resolve` from them.
    """
    termination_type_str: ClassVar[str] = "BaseTermination"
    accepts_waveform: ClassVar[bool] = False
    #: Unit of the source waveform amplitude when built from a network description.
    waveform_unit: ClassVar[str] = "volt"

    #: Iteration cap and tolerances for solving the relation for one unknown.
    max_iterations: int = DEFAULT_MAX_ITERATIONS
    abs_tol: float = DEFAULT_ABSOLUTE_TOLERANCE
    rel_tol: float = DEFAULT_RELATIVE_TOLERANCE

    def __init__(self, name: str):
        if not isinstance(name, str) or not name:
            raise ValueError("A termination needs a non-empty string name.")
        self.name: str = name
        self._capability_cache: Dict[Type[TerminationCapability], TerminationCapability] = {}
        logger.debug("Initialized %s '%s'", type(self).__name__, name)

    @classmethod
    @abstractmethod
    def declare_parameters(cls) -> Dict[str, str]:
        """Declare constructor parameter names and their units (used by the netlist builder)."""
        pass

    @classmethod
    def declare_capabilities(cls) -> Dict[Type[TerminationCapability], Type]:
        """Finds the nested `@provides` classes along the MRO, most specific first."""
        discovered = {}
        for base_class in cls.__mro__:
            for _, member_obj in inspect.getmembers(base_class):
                if hasattr(member_obj, '_implements_capability'):
                    protocol = member_obj._implements_capability
                    if protocol not in discovered:
                        discovered[protocol] = member_obj
        return discovered

    def get_capability(self, capability_type: Type[TCapability]) -> Optional[TCapability]:
        """Returns the (cached) capability implementation, or None if not provided."""
        if capability_type in self._capability_cache:
            return self._capability_cache[capability_type]
        impl_class = type(self).declare_capabilities().get(capability_type)
        if impl_class:
            instance = impl_class()
            self._capability_cache[capability_type] = instance
            return instance
        return None

    # --- Derived behaviour ---

    @property
    def is_linear(self) -> bool:
        return self.get_capability(ILinearRelation) is not None

    @property
    def is_voltage_constraint(self) -> bool:
        """True for relations that fix the voltage regardless of current (gamma == 0)."""
        linear = self.get_capability(ILinearRelation)
        if linear is None:
            return False
        alpha, gamma, _ = linear.get_coefficients(self, 0.0)
        return gamma == 0.0 and alpha != 0.0

    def linear_coefficients(self, t: float) -> Tuple[float, float, float]:
        """(alpha, gamma, delta) of the affine relation alpha*v + gamma*i = delta at time t."""
        linear = self.get_capability(ILinearRelation)
        if linear is None:
            raise TerminationError(termination=self.name, details="The relation is not linear.")
        alpha, gamma, delta = linear.get_coefficients(self, t)
        if not math.isfinite(delta):
            raise TerminationError(
                termination=self.name, details=f"The source value at t = {t:.6e} s is not finite."
            )
        return alpha, gamma, delta

    def residual(self, v: float, i: float, t: float) -> float:
        """Evaluates f(v, i, t); zero when (v, i) satisfies the termination."""
        linear = self.get_capability(ILinearRelation)
        if linear is not None:
            alpha, gamma, delta = self.linear_coefficients(t)
            return alpha * v + gamma * i - delta
        return float(self._nonlinear().residual(self, v, i, t))

    def resolve(self, unknown: TerminalQuantity, known: float, t: float, guess: float = 0.0) -> float:
        """
        Solves the relation for `unknown` given the other terminal quantity.

        Linear relations are solved in closed form. Non-linear relations use a bounded
        Newton iteration started at `guess`.

        Raises:
            TerminationError: If the relation does not determine `unknown`.
            NonConvergenceError: If the Newton iteration fails.
        """
        linear = self.get_capability(ILinearRelation)
        if linear is not None:
            alpha, gamma, delta = self.linear_coefficients(t)
            if unknown is TerminalQuantity.VOLTAGE:
                if alpha == 0.0:
                    raise TerminationError(
                        termination=self.name, details="The relation does not determine the voltage."
                    )
                return (delta - gamma * known) / alpha
            if gamma == 0.0:
                raise TerminationError(
                    termination=self.name, details="The relation does not determine the current."
                )
            return (delta - alpha * known) / gamma

        relation = self._nonlinear()
        if unknown is TerminalQuantity.CURRENT:
            explicit = relation.explicit_current(self, known, t)
            if explicit is not None:
                return explicit[0]
            func = lambda i: relation.residual(self, known, i, t)
            deriv = lambda i: relation.jacobian(self, known, i, t)[1]
        else:
            func = lambda v: relation.residual(self, v, known, t)
            deriv = lambda v: relation.jacobian(self, v, known, t)[0]
        result = bounded_newton(
            func, guess, derivative=deriv,
            max_iterations=self.max_iterations, abs_tol=self.abs_tol, rel_tol=self.rel_tol,
            element=self.name, unknown=unknown.value, time=t,
        )
        return result.root

    def current_and_slope(self, v: float, t: float, guess: float = 0.0) -> Tuple[float, float]:
        """
        Current drawn at terminal voltage `v` and its derivative di/dv.

        Used by the node solver for non-linear terminations.
        """
        relation = self._nonlinear()
        explicit = relation.explicit_current(self, v, t)
        if explicit is not None:
            return explicit
        i = self.resolve(TerminalQuantity.CURRENT, v, t, guess=guess)
        dfdv, dfdi = relation.jacobian(self, v, i, t)
        if not (math.isfinite(dfdv) and math.isfinite(dfdi)) or dfdi == 0.0:
            raise NonConvergenceError(
                element=self.name, unknown="current", iterations=0, residual=float("nan"), time=t,
                details=f"The relation is singular in the current at v = {v!r}."
            )
        return i, -dfdv / dfdi

    def limit_voltage(self, v_new: float, v_old: float) -> float:
        linear = self.get_capability(ILinearRelation)
        if linear is not None:
            return v_new
        return self._nonlinear().limit_voltage(self, v_new, v_old)

    def _nonlinear(self) -> INonlinearRelation:
        relation = self.get_capability(INonlinearRelation)
        if relation is None:
            raise TerminationError(
                termination=self.name,
                details=f"{type(self).__name__} provides neither a linear nor a non-linear relation."
            )
        return relation

    def __str__(self) -> str:
        return f"{type(self).__name__}('{self.name}')"

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name='{self.name}')"


# --- Global Termination Registry and Decorator ---

TERMINATION_REGISTRY: Dict[str, Type[TerminationBase]] = {}


def register_termination(type_str: str):
    """
    A class decorator registering a termination class under `type_str`, making it
    available to the netlist builder.
    """
    def decorator(cls: Type[TerminationBase]):
        if not issubclass(cls, TerminationBase):
            raise TypeError(f"Class {cls.__name__} must inherit from TerminationBase.")

        params = cls.declare_parameters()
        if not isinstance(params, dict) or not all(isinstance(k, str) and isinstance(v, str) for k, v in params.items()):
            raise TypeError(
                f"Termination class '{cls.__name__}' violates API contract. "
                f"declare_parameters() must return a Dict[str, str], but returned: {params!r}."
            )
        if not (cls.declare_capabilities().keys() & {ILinearRelation, INonlinearRelation}):
            raise TypeError(
                f"Termination class '{cls.__name__}' must provide ILinearRelation or INonlinearRelation."
            )

        if type_str in TERMINATION_REGISTRY:
            logger.warning("Termination type '%s' is being redefined/overwritten.", type_str)
        cls.termination_type_str = type_str
        TERMINATION_REGISTRY[type_str] = cls
        logger.debug("Registered termination type '%s' -> %s", type_str, cls.__name__)
        return cls
    return decorator
