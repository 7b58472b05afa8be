# src/tlsim_core/parameters/__init__.py
from .exceptions import (
    ParameterError,
    ParameterDefinitionError,
    ParameterEvaluationError,
)
from .expression import ParameterExpression, extract_symbols
from .providers import (
    PARAMETER_NAMES,
    ConstantParameters,
    FunctionalParameters,
    ParameterProvider,
    ParameterSet,
    kinetic_inductance_parameters,
)

__all__ = [
    # Exceptions
    "ParameterError",
    "ParameterDefinitionError",
    "ParameterEvaluationError",
    # Providers
    "PARAMETER_NAMES",
    "ParameterSet",
    "ParameterProvider",
    "ConstantParameters",
    "FunctionalParameters",
    "kinetic_inductance_parameters",
    # Expressions
    "ParameterExpression",
    "extract_symbols",
]
