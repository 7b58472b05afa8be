from .exceptions import AnalysisError
from .tools import (
    absorbed_energy,
    node_current_residuals,
    reflection_coefficient,
    stored_energy,
)

__all__ = [
    "AnalysisError",
    "stored_energy",
    "absorbed_energy",
    "node_current_residuals",
    "reflection_coefficient",
]
