# tests/conftest.py
import pytest

from tlsim_core import (
    ConstantParameters,
    MatchedLoad,
    MatchedSource,
    NetworkBuilder,
    TransmissionLine,
    suggest_time_step,
)
from tlsim_core.terminations import StepWaveform

# A 50 ohm line with a phase velocity of 2e8 m/s.
L_PER_M = 250e-9
C_PER_M = 100e-12
Z0 = 50.0


@pytest.fixture
def line_factory():
    """Builds lossless 50 ohm lines; keyword arguments override the defaults."""
    def _make(name="tl1", length=1.0, segments=100, inductance=L_PER_M, capacitance=C_PER_M, **extra):
        return TransmissionLine(name, length, segments, ConstantParameters(inductance, capacitance, **extra))
    return _make


@pytest.fixture
def builder():
    return NetworkBuilder("test_network")


@pytest.fixture
def ramp():
    """Step waveforms rising linearly over `steps` time steps of `dt`."""
    def _make(amplitude, dt, steps=10, delay=0.0):
        return StepWaveform(amplitude=amplitude, delay=delay, rise_time=steps * dt)
    return _make


@pytest.fixture
def matched_network(line_factory):
    """
    One 1 m line driven by a matched 2 V source and closed by a matched load.
    Returns (network, dt) with dt at the stability bound (100 steps per transit).
    """
    line = line_factory()
    dt = line.max_stable_time_step()
    network = (NetworkBuilder("matched")
               .add_line(line)
               .terminate("tl1", "start", MatchedSource("src", StepWaveform(2.0, rise_time=10 * dt)))
               .terminate("tl1", "end", MatchedLoad("load"))
               .build())
    assert suggest_time_step(network) == pytest.approx(dt)
    return network, dt
