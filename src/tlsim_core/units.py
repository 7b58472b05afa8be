# --- src/tlsim_core/units.py ---
import logging
from numbers import Real
from typing import Union

import pint

logger = logging.getLogger(__name__)
ureg = pint.UnitRegistry()
Quantity = ureg.Quantity
logger.debug("Pint Unit Registry initialized.")

# --- Canonical dimensionality objects for explicit checks ---
IMPEDANCE_DIMENSIONALITY = ureg.parse_expression('ohm').dimensionality
ADMITTANCE_DIMENSIONALITY = ureg.parse_expression('siemens').dimensionality

# Per-unit-length line parameters, keyed by the canonical parameter names used
# throughout the package.
PER_UNIT_LENGTH_UNITS = {
    'resistance': 'ohm / meter',
    'inductance': 'henry / meter',
    'conductance': 'siemens / meter',
    'capacitance': 'farad / meter',
}
PER_UNIT_LENGTH_DIMENSIONALITY = {
    name: ureg.parse_expression(unit).dimensionality
    for name, unit in PER_UNIT_LENGTH_UNITS.items()
}

QuantityLike = Union[Real, str, Quantity]


def to_magnitude(value: QuantityLike, unit: str) -> float:
    """
    Converts a user-supplied value into a plain float expressed in `unit`.

    Plain numbers (and unit-less strings such as "50") are taken to already be in
    `unit`. Strings with units and `Quantity` objects are converted, which raises
    `pint.DimensionalityError` when the dimensions are incompatible.
    """
    if isinstance(value, Quantity):
        return float(value.to(unit).magnitude)
    if isinstance(value, str):
        qty = ureg.Quantity(value)
        if not isinstance(qty, Quantity):
            return float(qty)
        if qty.dimensionless and not ureg.parse_expression(unit).dimensionless:
            return float(qty.magnitude)
        return float(qty.to(unit).magnitude)
    if isinstance(value, Real):
        return float(value)
    raise TypeError(f"Cannot interpret {value!r} (type {type(value).__name__}) as a quantity in '{unit}'.")
