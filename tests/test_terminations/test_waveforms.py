# tests/test_terminations/test_waveforms.py
import itertools
import math

import pytest

from tlsim_core.terminations import (
    ConstantWaveform,
    FunctionWaveform,
    GaussianPulseWaveform,
    PulseWaveform,
    SampledWaveform,
    SineWaveform,
    StepWaveform,
    TerminationError,
    as_waveform,
    waveform_from_config,
)


def test_step_ramp():
    wf = StepWaveform(amplitude=2.0, delay=1.0, rise_time=2.0)
    assert wf(0.5) == 0.0
    assert wf(2.0) == pytest.approx(1.0)
    assert wf(3.0) == 2.0
    assert wf(100.0) == 2.0


def test_ideal_step():
    wf = StepWaveform(amplitude=1.0, delay=1.0)
    assert wf(0.999) == 0.0
    assert wf(1.0) == 1.0


def test_pulse_returns_to_exactly_zero():
    wf = PulseWaveform(amplitude=1.0, delay=1.0, rise_time=1.0, width=2.0, fall_time=1.0)
    assert wf(0.0) == 0.0
    assert wf(1.5) == pytest.approx(0.5)
    assert wf(3.0) == 1.0
    assert wf(4.5) == pytest.approx(0.5)
    assert wf(5.0) == 0.0
    assert wf(50.0) == 0.0


def test_periodic_pulse():
    wf = PulseWaveform(amplitude=1.0, rise_time=0.0, width=1.0, fall_time=0.0, period=3.0)
    assert wf(0.5) == 1.0
    assert wf(2.0) == 0.0
    assert wf(3.5) == 1.0


def test_pulse_period_too_short():
    with pytest.raises(ValueError):
        PulseWaveform(width=2.0, period=1.0)


def test_sine_and_gaussian():
    sine = SineWaveform(amplitude=2.0, frequency=1.0, delay=1.0, offset=0.5)
    assert sine(0.0) == 0.5
    assert sine(1.25) == pytest.approx(2.5)
    gauss = GaussianPulseWaveform(amplitude=3.0, center=1.0, width=0.5)
    assert gauss(1.0) == pytest.approx(3.0)
    assert gauss(1.5) == pytest.approx(3.0 * math.exp(-0.5))


def test_sampled_hold_policy():
    wf = SampledWaveform([1.0, 2.0, 3.0], interval=1.0, start=1.0)
    assert wf(-5.0) == 1.0
    assert wf(1.0) == 1.0
    assert wf(2.5) == 2.0
    assert wf(3.0) == 3.0
    assert wf(1000.0) == 3.0


def test_sampled_interpolation():
    wf = SampledWaveform([0.0, 2.0, 4.0], interval=1.0, interpolate=True)
    assert wf(0.5) == pytest.approx(1.0)
    assert wf(1.75) == pytest.approx(3.5)
    assert wf(10.0) == 4.0


def test_sampled_lazy_generator_is_consumed_on_demand():
    wf = SampledWaveform((float(k) for k in itertools.count()), interval=0.5)
    assert wf.samples_consumed == 0
    assert wf(2.0) == 4.0
    assert wf.samples_consumed == 5
    # Repeated and earlier queries are served from the cache.
    assert wf(1.0) == 2.0
    assert wf(2.0) == 4.0
    assert wf.samples_consumed == 5


def test_streamed_samples_keep_a_bounded_window():
    wf = SampledWaveform((float(k) for k in itertools.count()), interval=1e-12, history=16)
    for n in range(200_000):
        assert wf(n * 1e-12) == float(n)
    assert wf.samples_consumed == 200_000
    assert wf.buffered_samples == 16
    # The first sample stays available for times before the start.
    assert wf(-1.0) == 0.0
    # Recent samples can still be read again; older ones are gone.
    assert wf(199_990e-12) == 199_990.0
    with pytest.raises(ValueError):
        wf(1000e-12)


def test_streamed_interpolation_uses_the_window():
    wf = SampledWaveform(iter([0.0, 2.0, 4.0, 6.0]), interval=1.0, interpolate=True, history=2)
    assert wf(0.5) == pytest.approx(1.0)
    assert wf(2.5) == pytest.approx(5.0)
    assert wf(10.0) == 6.0
    assert wf.buffered_samples == 2


def test_sequences_are_kept_whole():
    wf = SampledWaveform(list(range(5000)), interval=1.0, history=2)
    assert wf(4999.0) == 4999.0
    assert wf(3.0) == 3.0
    assert wf.buffered_samples == 5000


def test_history_must_hold_two_samples():
    with pytest.raises(ValueError):
        SampledWaveform(iter([1.0]), interval=1.0, history=1)


def test_sampled_exact_sample_times_survive_rounding():
    dt = 5e-11
    wf = SampledWaveform(range(100), interval=dt)
    assert wf(3 * dt) == 3.0
    assert wf(0.1 + 0.2 - 0.3) == 0.0


def test_sampled_needs_samples():
    with pytest.raises(ValueError):
        SampledWaveform([], interval=1.0)(0.0)
    with pytest.raises(ValueError):
        SampledWaveform([1.0], interval=0.0)


def test_as_waveform():
    assert isinstance(as_waveform(2), ConstantWaveform)
    assert isinstance(as_waveform(lambda t: t), FunctionWaveform)
    wf = StepWaveform()
    assert as_waveform(wf) is wf
    with pytest.raises(TypeError):
        as_waveform("1 V")
    with pytest.raises(TypeError):
        as_waveform(True)


class TestWaveformFromConfig:

    def test_step_with_units(self):
        wf = waveform_from_config({"type": "step", "amplitude": "500 mV", "rise_time": "50 ps"}, "volt")
        assert isinstance(wf, StepWaveform)
        assert wf.amplitude == pytest.approx(0.5)
        assert wf.rise_time == pytest.approx(50e-12)

    def test_current_amplitude(self):
        wf = waveform_from_config({"type": "dc", "amplitude": "20 mA"}, "ampere")
        assert wf(0.0) == pytest.approx(0.02)

    def test_sampled(self):
        wf = waveform_from_config(
            {"type": "sampled", "samples": ["0 V", "1 V", 2], "interval": "1 ns", "interpolate": True}, "volt"
        )
        assert wf(0.5e-9) == pytest.approx(0.5)
        assert wf(5e-9) == 2.0

    def test_unknown_type(self):
        with pytest.raises(TerminationError) as excinfo:
            waveform_from_config({"type": "square"}, "volt", owner="src")
        assert excinfo.value.termination == "src"

    def test_unknown_key(self):
        with pytest.raises(TerminationError) as excinfo:
            waveform_from_config({"type": "step", "amplitude": 1.0, "width": "1 ns"}, "volt")
        assert "width" in excinfo.value.details

    def test_wrong_units(self):
        with pytest.raises(TerminationError):
            waveform_from_config({"type": "step", "amplitude": "1 A"}, "volt")

    def test_invalid_values(self):
        with pytest.raises(TerminationError):
            waveform_from_config({"type": "gaussian", "width": "0 s"}, "volt")
