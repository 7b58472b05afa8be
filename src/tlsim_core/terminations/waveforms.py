# src/tlsim_core/terminations/waveforms.py
"""
Source waveforms: scalar functions of time used by voltage and current sources.

All waveforms are deterministic. `SampledWaveform` accepts finite sequences and lazy
iterables (generators); lazily produced samples are pulled on demand and kept in a
bounded window, so repeated queries for recent times return the same value.
"""

import logging
import math
from collections import deque
from collections.abc import Sequence
from typing import Any, Callable, Deque, Dict, Iterable, Iterator, Optional, Tuple, Type, Union

import numpy as np
import pint

from ..constants import DEFAULT_SAMPLE_HISTORY
from ..units import to_magnitude
from .exceptions import TerminationError

logger = logging.getLogger(__name__)


class Waveform:
    """Base class; subclasses implement `value(t)`."""

    def value(self, t: float) -> float:
        raise NotImplementedError

    def __call__(self, t: float) -> float:
        return self.value(t)

    def __repr__(self):
        fields = ", ".join(f"{k}={v!r}" for k, v in vars(self).items() if not k.startswith("_"))
        return f"{type(self).__name__}({fields})"


class ConstantWaveform(Waveform):
    def __init__(self, amplitude: float = 0.0):
        self.amplitude = float(amplitude)

    def value(self, t: float) -> float:
        return self.amplitude


class StepWaveform(Waveform):
    """0 before `delay`, a linear ramp over `rise_time`, then `amplitude`."""
    def __init__(self, amplitude: float = 1.0, delay: float = 0.0, rise_time: float = 0.0):
        if rise_time < 0:
            raise ValueError("rise_time must be non-negative.")
        self.amplitude = float(amplitude)
        self.delay = float(delay)
        self.rise_time = float(rise_time)

    def value(self, t: float) -> float:
        if t < self.delay:
            return 0.0
        if self.rise_time > 0.0 and t < self.delay + self.rise_time:
            return self.amplitude * (t - self.delay) / self.rise_time
        return self.amplitude


class PulseWaveform(Waveform):
    """
    Trapezoidal pulse: `delay`, linear `rise_time`, flat `width`, linear `fall_time`.
    With a `period` the pulse repeats.
    """
    def __init__(self, amplitude: float = 1.0, delay: float = 0.0, rise_time: float = 0.0,
                 width: float = 0.0, fall_time: float = 0.0, period: Optional[float] = None):
        if min(rise_time, width, fall_time) < 0:
            raise ValueError("Pulse rise_time, width and fall_time must be non-negative.")
        if period is not None and period < rise_time + width + fall_time:
            raise ValueError("Pulse period must be at least rise_time + width + fall_time.")
        self.amplitude = float(amplitude)
        self.delay = float(delay)
        self.rise_time = float(rise_time)
        self.width = float(width)
        self.fall_time = float(fall_time)
        self.period = float(period) if period is not None else None

    def value(self, t: float) -> float:
        tau = t - self.delay
        if tau < 0.0:
            return 0.0
        if self.period:
            tau = math.fmod(tau, self.period)
        if tau < self.rise_time:
            return self.amplitude * tau / self.rise_time
        tau -= self.rise_time
        if tau < self.width:
            return self.amplitude
        tau -= self.width
        if tau < self.fall_time:
            return self.amplitude * (1.0 - tau / self.fall_time)
        return 0.0


class SineWaveform(Waveform):
    """offset + amplitude * sin(2 pi f (t - delay) + phase) for t >= delay, offset before."""
    def __init__(self, amplitude: float = 1.0, frequency: float = 1.0e9, phase: float = 0.0,
                 delay: float = 0.0, offset: float = 0.0):
        self.amplitude = float(amplitude)
        self.frequency = float(frequency)
        self.phase = float(phase)
        self.delay = float(delay)
        self.offset = float(offset)

    def value(self, t: float) -> float:
        if t < self.delay:
            return self.offset
        return self.offset + self.amplitude * math.sin(
            2.0 * math.pi * self.frequency * (t - self.delay) + self.phase
        )


class GaussianPulseWaveform(Waveform):
    """amplitude * exp(-((t - center) / width)^2 / 2)."""
    def __init__(self, amplitude: float = 1.0, center: float = 0.0, width: float = 1.0e-10):
        if width <= 0:
            raise ValueError("Gaussian width must be positive.")
        self.amplitude = float(amplitude)
        self.center = float(center)
        self.width = float(width)

    def value(self, t: float) -> float:
        return self.amplitude * math.exp(-0.5 * ((t - self.center) / self.width) ** 2)


class FunctionWaveform(Waveform):
    """Wraps any callable of time. The callable must be pure."""
    def __init__(self, func: Callable[[float], float]):
        if not callable(func):
            raise TypeError("FunctionWaveform needs a callable of time.")
        self.func = func

    def value(self, t: float) -> float:
        return float(self.func(t))


class SampledWaveform(Waveform):
    """
    Samples taken every `interval` seconds starting at `start`.

    Between samples the value is held (or linearly interpolated with
    `interpolate=True`). Before `start` the first sample is returned; past the last
    sample the last value is held.

    Sequences and arrays are kept whole. Any other iterable is treated as a stream:
    it is consumed only as far as the requested times require, and besides the
    first sample only the newest `history` samples are retained, so memory stays
    bounded however long the run. Reading a stream backwards past that window
    raises ``ValueError``.
    """
    def __init__(self, samples: Iterable[float], interval: float, start: float = 0.0,
                 interpolate: bool = False, history: int = DEFAULT_SAMPLE_HISTORY):
        if not interval > 0:
            raise ValueError("Sample interval must be positive.")
        if history < 2:
            raise ValueError("A sampled waveform must retain at least two samples.")
        self.interval = float(interval)
        self.start = float(start)
        self.interpolate = interpolate
        self.history: Optional[int] = None
        self._first: Optional[float] = None
        self._consumed = 0
        if isinstance(samples, (Sequence, np.ndarray)):
            self._window: Deque[float] = deque()
        else:
            self.history = int(history)
            self._window = deque(maxlen=self.history)
        self._source: Optional[Iterator[float]] = iter(samples)

    def _fill_to(self, index: int) -> None:
        while self._source is not None and self._consumed <= index:
            try:
                sample = float(next(self._source))
            except StopIteration:
                self._source = None
                logger.debug("Sampled waveform exhausted after %d samples.", self._consumed)
                break
            if self._first is None:
                self._first = sample
            self._window.append(sample)
            self._consumed += 1

    def _sample(self, index: int) -> float:
        self._fill_to(index)
        if self._first is None:
            raise ValueError("Sampled waveform has no samples.")
        if index == 0:
            return self._first
        index = min(index, self._consumed - 1)
        offset = index - (self._consumed - len(self._window))
        if offset < 0:
            raise ValueError(
                f"Sample {index} has already been discarded; a streamed waveform keeps only its "
                f"first sample and the newest {self.history} samples."
            )
        return self._window[offset]

    def value(self, t: float) -> float:
        position = (t - self.start) / self.interval
        if position <= 0.0:
            return self._sample(0)
        # Tolerate rounding so that t = start + k * interval lands on sample k.
        index = int(math.floor(position + 1e-9))
        if not self.interpolate:
            return self._sample(index)
        frac = min(max(position - index, 0.0), 1.0)
        upper = self._sample(index + 1)
        lower = self._sample(index)
        return lower + frac * (upper - lower)

    @property
    def samples_consumed(self) -> int:
        return self._consumed

    @property
    def buffered_samples(self) -> int:
        return len(self._window)


WaveformLike = Union[Waveform, Callable[[float], float], float, int]


def as_waveform(value: WaveformLike) -> Waveform:
    """Turns a number, a callable or a `Waveform` into a `Waveform`."""
    if isinstance(value, Waveform):
        return value
    if callable(value):
        return FunctionWaveform(value)
    if isinstance(value, (int, float, np.floating, np.integer)) and not isinstance(value, bool):
        return ConstantWaveform(float(value))
    raise TypeError(f"Cannot use {value!r} (type {type(value).__name__}) as a waveform.")


# --- Configuration-driven construction ---

# type name -> (class, {parameter: unit}); the amplitude unit is filled in per source.
WAVEFORM_TYPES: Dict[str, Tuple[Type[Waveform], Dict[str, Optional[str]]]] = {
    'dc': (ConstantWaveform, {'amplitude': None}),
    'step': (StepWaveform, {'amplitude': None, 'delay': 'second', 'rise_time': 'second'}),
    'pulse': (PulseWaveform, {'amplitude': None, 'delay': 'second', 'rise_time': 'second',
                              'width': 'second', 'fall_time': 'second', 'period': 'second'}),
    'sine': (SineWaveform, {'amplitude': None, 'frequency': 'hertz', 'phase': 'radian',
                            'delay': 'second', 'offset': None}),
    'gaussian': (GaussianPulseWaveform, {'amplitude': None, 'center': 'second', 'width': 'second'}),
    'sampled': (SampledWaveform, {'samples': None, 'interval': 'second', 'start': 'second',
                                  'interpolate': None}),
}


def waveform_from_config(config: Dict[str, Any], amplitude_unit: str, owner: str = "<waveform>") -> Waveform:
    """
    Builds a waveform from a configuration mapping such as
    ``{'type': 'step', 'amplitude': '1 V', 'rise_time': '50 ps'}``.

    Raises:
        TerminationError: For unknown types, unknown keys or unusable values.
    """
    wf_type = config.get('type')
    if wf_type not in WAVEFORM_TYPES:
        raise TerminationError(
            termination=owner,
            details=f"Unknown waveform type '{wf_type}'. Known types: {sorted(WAVEFORM_TYPES)}."
        )
    cls, declared = WAVEFORM_TYPES[wf_type]
    kwargs: Dict[str, Any] = {}
    for key, raw in config.items():
        if key == 'type':
            continue
        if key not in declared:
            raise TerminationError(
                termination=owner,
                details=f"Waveform '{wf_type}' has no parameter '{key}'. Allowed: {sorted(declared)}."
            )
        if key == 'interpolate':
            kwargs[key] = bool(raw)
            continue
        unit = declared[key] or amplitude_unit
        try:
            if key == 'samples':
                kwargs[key] = [to_magnitude(s, unit) for s in raw]
            else:
                kwargs[key] = to_magnitude(raw, unit)
        except (pint.errors.PintError, TypeError, ValueError) as e:
            raise TerminationError(
                termination=owner,
                details=f"Waveform parameter '{key}' = {raw!r} cannot be read as '{unit}': {e}"
            ) from e
    try:
        return cls(**kwargs)
    except (TypeError, ValueError) as e:
        raise TerminationError(termination=owner, details=f"Invalid '{wf_type}' waveform: {e}") from e
