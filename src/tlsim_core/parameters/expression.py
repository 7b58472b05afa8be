# src/tlsim_core/parameters/expression.py
"""
Textual parameter expressions over the local line state.

An expression is a Python expression over the symbols `v` (local voltage), `i`
(local current), `x` (position) and `t` (time), with `np`, `pi` and `Quantity`
in scope. Literals with units must be written explicitly, e.g.
``Quantity('1 uH/m') * (1 + (i / Quantity('0.2 A'))**2)``.

The expression is checked once with pint at construction, with the four state
symbols bound to quantities in V, A, m and s. At run time it is evaluated on
plain SI floats: every `Quantity(...)` literal is replaced by its magnitude in
SI base units, which is consistent because SI derived units are coherent.
"""

import ast
import functools
import logging
from typing import Any, Callable, Dict, FrozenSet, Set

import numpy as np
import pint

from ..units import Quantity, ureg
from .exceptions import ParameterDefinitionError, ParameterEvaluationError

logger = logging.getLogger(__name__)

STATE_SYMBOLS: FrozenSet[str] = frozenset({'v', 'i', 'x', 't'})
POSITION_SYMBOLS: FrozenSet[str] = frozenset({'x'})
_LIBRARY_SYMBOLS: FrozenSet[str] = frozenset({'np', 'numpy', 'pi', 'Quantity'})
_STATE_UNITS = {'v': 'volt', 'i': 'ampere', 'x': 'meter', 't': 'second'}


class _DependencyVisitor(ast.NodeVisitor):
    """Collects bare identifiers and dotted attribute chains from an expression tree."""
    def __init__(self):
        self.dependencies: Set[str] = set()

    def visit_Name(self, node: ast.Name):
        self.dependencies.add(node.id)

    def visit_Attribute(self, node: ast.Attribute):
        parts = []
        curr = node
        while isinstance(curr, ast.Attribute):
            parts.append(curr.attr)
            curr = curr.value
        if isinstance(curr, ast.Name):
            # 'np.exp' is recorded by its root name only
            self.dependencies.add(curr.id)
        else:
            self.generic_visit(node)


def extract_symbols(expression_str: str) -> Set[str]:
    """
    Returns the set of root identifiers used in a Python expression.

    Raises:
        SyntaxError: If the expression is not valid Python syntax. The caller is
                     responsible for turning this into a diagnostic.
    """
    if not expression_str.strip():
        return set()
    tree = ast.parse(expression_str, mode='eval')
    visitor = _DependencyVisitor()
    visitor.visit(tree)
    return visitor.dependencies


@functools.lru_cache(maxsize=256)
def _si_literal(value: Any, units: Any = None) -> float:
    qty = ureg.Quantity(value, units) if units is not None else ureg.Quantity(value)
    if not isinstance(qty, Quantity):
        return float(qty)
    return float(qty.to_base_units().magnitude)


def _si_quantity(value: Any, units: Any = None) -> Any:
    """Run-time stand-in for `Quantity(...)` that yields SI base-unit magnitudes."""
    try:
        return _si_literal(value, units)
    except TypeError:
        # Unhashable arguments (arrays) bypass the cache.
        qty = ureg.Quantity(value, units) if units is not None else ureg.Quantity(value)
        return np.asarray(qty.to_base_units().magnitude, dtype=float)


class ParameterExpression:
    """
    A compiled, dimension-checked expression for one per-unit-length parameter.

    Instances are callable as ``expr(v, i, x, t)`` with numpy arrays (or floats) in
    SI units and return a float array in the SI unit of `dimension`.
    """
    def __init__(self, expression: str, dimension: str, name: str = "parameter"):
        self.expression = expression
        self.dimension = dimension
        self.name = name

        try:
            symbols = extract_symbols(expression)
        except SyntaxError as e:
            raise ParameterDefinitionError(
                parameter=name, user_input=expression,
                details=f"Invalid expression syntax: {e.msg}"
            ) from e
        if not symbols and not expression.strip():
            raise ParameterDefinitionError(
                parameter=name, user_input=expression, details="Expression is empty."
            )

        unknown = symbols - STATE_SYMBOLS - _LIBRARY_SYMBOLS
        if unknown:
            raise ParameterDefinitionError(
                parameter=name, user_input=expression,
                details=f"Unknown symbol(s) {sorted(unknown)}. Allowed state symbols are v, i, x and t."
            )
        self.symbols: FrozenSet[str] = frozenset(symbols & STATE_SYMBOLS)

        try:
            self._target_unit = ureg.parse_expression(dimension)
        except (pint.errors.PintError, AttributeError, SyntaxError, TypeError) as e:
            raise ParameterDefinitionError(
                parameter=name, user_input=dimension, details=f"Unknown dimension '{dimension}': {e}"
            ) from e

        self._code = compile(expression, f"<{name}>", 'eval')
        self._check_dimension()
        logger.debug("Compiled expression for '%s': %s [%s]", name, expression, dimension)

    @property
    def is_state_dependent(self) -> bool:
        """True when the expression depends on anything besides position."""
        return not self.symbols <= POSITION_SYMBOLS

    def _check_dimension(self):
        scope: Dict[str, Any] = {'np': np, 'numpy': np, 'pi': np.pi, 'Quantity': Quantity}
        scope.update({sym: Quantity(np.zeros(1), unit) for sym, unit in _STATE_UNITS.items()})
        try:
            with np.errstate(all='ignore'):
                result = eval(self._code, {"__builtins__": {}}, scope)
        except pint.DimensionalityError as e:
            raise ParameterDefinitionError(
                parameter=self.name, user_input=self.expression,
                details=f"Dimensionally inconsistent expression: {e}"
            ) from e
        except Exception as e:
            raise ParameterDefinitionError(
                parameter=self.name, user_input=self.expression,
                details=f"Expression could not be evaluated ({type(e).__name__}: {e})"
            ) from e

        if isinstance(result, Quantity) and not result.dimensionless:
            if result.dimensionality != self._target_unit.dimensionality:
                raise ParameterDefinitionError(
                    parameter=self.name, user_input=self.expression,
                    details=(f"Expression has dimension '{result.dimensionality}' but "
                             f"'{self.dimension}' ({self._target_unit.dimensionality}) was declared.")
                )
            self._scale = 1.0
        else:
            # A plain or dimensionless result is read in the declared unit.
            self._scale = float((1.0 * self._target_unit).to_base_units().magnitude)

    def __call__(self, v, i, x, t) -> np.ndarray:
        scope = {'np': np, 'numpy': np, 'pi': np.pi, 'Quantity': _si_quantity,
                 'v': v, 'i': i, 'x': x, 't': t}
        try:
            with np.errstate(all='ignore'):
                result = eval(self._code, {"__builtins__": {}}, scope)
        except Exception as e:
            raise ParameterEvaluationError(
                parameter=self.name,
                details=f"Expression '{self.expression}' raised {type(e).__name__}: {e}",
                time=float(t) if np.ndim(t) == 0 else None,
            ) from e
        return np.asarray(result, dtype=float) * self._scale

    def position_function(self) -> Callable[[np.ndarray], np.ndarray]:
        """Returns a function of position only, for expressions that ignore v, i and t."""
        if self.is_state_dependent:
            raise ParameterDefinitionError(
                parameter=self.name, user_input=self.expression,
                details="Expression depends on v, i or t and cannot be used as a constant profile."
            )
        return lambda x: self(0.0, 0.0, x, 0.0)

    def __repr__(self):
        return f"ParameterExpression({self.expression!r}, {self.dimension!r})"
