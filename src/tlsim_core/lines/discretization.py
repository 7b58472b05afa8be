# src/tlsim_core/lines/discretization.py
"""
Uniform spatial discretization of a line into a staggered grid.

A line of length L split into N segments has N + 1 voltage nodes at
x_k = k * dx (k = 0..N) and N current samples at the segment midpoints
x_{k+1/2} = (k + 1/2) * dx, with dx = L / N.
"""

import logging
from dataclasses import dataclass
from numbers import Integral, Real
from typing import Optional

import numpy as np

from .exceptions import InvalidDiscretizationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Discretization:
    length: float
    segments: int
    dx: float
    node_positions: np.ndarray
    segment_midpoints: np.ndarray

    @property
    def node_count(self) -> int:
        return self.segments + 1

    def node_index(self, position: float) -> int:
        """Index of the voltage node nearest to `position` (clamped to the line)."""
        index = int(round(float(position) / self.dx))
        return min(max(index, 0), self.segments)


def discretize(length: float, segments: int, line: Optional[str] = None) -> Discretization:
    """
    Partitions a line of `length` metres into `segments` equal segments.

    Raises:
        InvalidDiscretizationError: If the segment count is not an integer >= 1, or
                                    the length is not a positive finite number.
    """
    if isinstance(segments, bool) or not isinstance(segments, Integral):
        raise InvalidDiscretizationError(
            quantity="segment count", value=segments,
            details="must be an integer.", line=line
        )
    if segments < 1:
        raise InvalidDiscretizationError(
            quantity="segment count", value=segments,
            details="a line needs at least one segment.", line=line
        )
    if isinstance(length, bool) or not isinstance(length, Real):
        raise InvalidDiscretizationError(
            quantity="length", value=length, details="must be a real number.", line=line
        )
    length = float(length)
    if not np.isfinite(length) or length <= 0.0:
        raise InvalidDiscretizationError(
            quantity="length", value=length,
            details="must be positive and finite.", line=line
        )

    segments = int(segments)
    dx = length / segments
    # Exact end point: x_N equals the length, not N * dx.
    nodes = np.linspace(0.0, length, segments + 1)
    midpoints = (np.arange(segments, dtype=float) + 0.5) * dx
    logger.debug("Discretized %s: L=%g m, N=%d, dx=%g m.", line or "line", length, segments, dx)
    return Discretization(
        length=length,
        segments=segments,
        dx=dx,
        node_positions=nodes,
        segment_midpoints=midpoints,
    )
