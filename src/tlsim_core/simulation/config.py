# src/tlsim_core/simulation/config.py
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import pint

from ..units import to_magnitude
from .results import RecordMode

logger = logging.getLogger(__name__)


class ConfigParsingError(ValueError):
    """Custom exception for errors during simulation configuration parsing."""
    pass


@dataclass(frozen=True)
class SimulationConfig:
    """
    Run settings, usually read from the 'simulation' block of a network description.

    When `time_step` is None the driver uses `courant_number` times the largest
    stable time step of the network.
    """
    time_step: Optional[float] = None
    duration: Optional[float] = None
    steps: Optional[int] = None
    courant_number: float = 1.0
    max_workers: Optional[int] = None
    record: RecordMode = RecordMode.FULL
    record_every: int = 1


def parse_simulation_config(raw_config: Optional[Dict[str, Any]]) -> SimulationConfig:
    """
    Parses a raw 'simulation' mapping such as ``{'time_step': '5 ps', 'duration': '10 ns'}``.

    Times may be unit strings, pint quantities or plain numbers in seconds.
    """
    if not raw_config:
        return SimulationConfig()
    try:
        time_step = raw_config.get('time_step')
        duration = raw_config.get('duration')
        steps = raw_config.get('steps')
        time_step = to_magnitude(time_step, 'second') if time_step is not None else None
        duration = to_magnitude(duration, 'second') if duration is not None else None

        if time_step is not None and not time_step > 0:
            raise ValueError(f"time_step must be positive, got {time_step} s.")
        if duration is not None and not duration >= 0:
            raise ValueError(f"duration must not be negative, got {duration} s.")
        if duration is not None and steps is not None:
            raise ValueError("Give either 'duration' or 'steps', not both.")
        if steps is not None and (isinstance(steps, bool) or int(steps) != steps or steps < 0):
            raise ValueError(f"steps must be a non-negative integer, got {steps!r}.")

        courant = float(raw_config.get('courant_number', 1.0))
        if not 0.0 < courant <= 1.0:
            raise ValueError(f"courant_number must lie in (0, 1], got {courant}.")

        record_every = int(raw_config.get('record_every', 1))
        if record_every < 1:
            raise ValueError(f"record_every must be at least 1, got {record_every}.")

        config = SimulationConfig(
            time_step=time_step,
            duration=duration,
            steps=int(steps) if steps is not None else None,
            courant_number=courant,
            max_workers=raw_config.get('max_workers'),
            record=RecordMode(raw_config.get('record', RecordMode.FULL.value)),
            record_every=record_every,
        )
    except (KeyError, TypeError, ValueError, pint.errors.PintError) as e:
        raise ConfigParsingError(f"Failed to parse simulation configuration: {e}") from e
    logger.debug("Parsed simulation configuration: %s", config)
    return config
