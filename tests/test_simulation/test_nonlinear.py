# tests/test_simulation/test_nonlinear.py
import numpy as np
import pytest

from tlsim_core import (
    Diode,
    MatchedSource,
    NetworkBuilder,
    NonlinearLoad,
    Resistor,
    Simulation,
    SimulationRunError,
    VoltageSource,
    run_simulation,
)
from tlsim_core.analysis import node_current_residuals
from tlsim_core.terminations import NonConvergenceError

Z0 = 50.0


def _terminated(line, source, load):
    return (NetworkBuilder("nonlinear")
            .add_line(line)
            .terminate(line.name, "start", source)
            .terminate(line.name, "end", load)
            .build())


class TestDiodeClamp:

    @pytest.fixture
    def clamped(self, line_factory, ramp):
        line = line_factory(length=0.2, segments=20)
        dt = line.max_stable_time_step()
        network = _terminated(line, VoltageSource("src", ramp(5.0, dt), series_resistance=Z0), Diode("d1"))
        with Simulation(network, dt) as sim:
            trace = sim.run(steps=400)
        return network, trace

    def test_diode_clamps_the_line_end(self, clamped):
        _, trace = clamped
        v_end = trace.endpoint_voltages("tl1")[:, 1]
        # The step-averaged voltage is the diode operating point.
        v_op = 0.5 * (v_end[-1] + v_end[-2])
        assert 0.65 < v_op < 0.85
        # An open end would have doubled the 2.5 V incident wave.
        assert np.max(v_end) < 2.5

    def test_diode_carries_the_source_current(self, clamped):
        _, trace = clamped
        i_diode = trace.termination_current("d1")
        i_src = trace.termination_current("src")
        diode_avg = 0.5 * (i_diode[-1] + i_diode[-2])
        src_avg = 0.5 * (i_src[-1] + i_src[-2])
        assert diode_avg > 0.07
        assert diode_avg == pytest.approx(-src_avg, rel=0.05)

    def test_nodes_satisfy_kirchhoff(self, clamped):
        network, trace = clamped
        for values in node_current_residuals(trace, network).values():
            assert np.max(np.abs(values)) <= 1e-9

    def test_reverse_bias_blocks(self, line_factory, ramp):
        line = line_factory(length=0.2, segments=20)
        dt = line.max_stable_time_step()
        network = _terminated(line, VoltageSource("src", ramp(-1.0, dt), series_resistance=Z0), Diode("d1"))
        with Simulation(network, dt) as sim:
            trace = sim.run(steps=200)
        # Reverse biased the diode is an open end: the line charges to the full source voltage.
        np.testing.assert_allclose(trace.voltages("tl1")[-1], -1.0, atol=1e-6)
        assert abs(trace.termination_current("d1")[-1]) < 1e-13


class TestCustomRelation:

    def test_linear_relation_behaves_like_a_resistor(self, line_factory, ramp):
        line = line_factory(length=0.2, segments=20)
        dt = line.max_stable_time_step()

        def run(load):
            network = _terminated(line, MatchedSource("src", ramp(2.0, dt)), load)
            with Simulation(network, dt) as sim:
                return sim.run(steps=200)

        reference = run(Resistor("load", 100.0))
        custom = run(NonlinearLoad("load", lambda v, i, t: i - v / 100.0))
        np.testing.assert_allclose(custom.voltages("tl1"), reference.voltages("tl1"), atol=1e-8)
        np.testing.assert_allclose(custom.termination_current("load"),
                                   reference.termination_current("load"), atol=1e-10)

    def test_cubic_load(self, line_factory, ramp):
        line = line_factory(length=0.2, segments=20)
        dt = line.max_stable_time_step()
        load = NonlinearLoad("load", lambda v, i, t: i - 0.01 * v ** 3,
                             jacobian=lambda v, i, t: (-0.03 * v ** 2, 1.0))
        network = _terminated(line, MatchedSource("src", ramp(2.0, dt)), load)
        with Simulation(network, dt) as sim:
            trace = sim.run(steps=600)
        v = trace.endpoint_voltages("tl1")[:, 1]
        v_op = 0.5 * (v[-1] + v[-2])
        # Operating point of (2 - v) / 50 = 0.01 v^3.
        assert (2.0 - v_op) / 50.0 == pytest.approx(0.01 * v_op ** 3, rel=1e-3)


class TestNonConvergence:

    @pytest.fixture
    def failing_network(self, line_factory, ramp):
        line = line_factory()
        dt = line.max_stable_time_step()
        # The relation loses its solution after 0.3 ns.
        load = NonlinearLoad("nl", lambda v, i, t: i - v / 100.0 if t < 3e-10 else i * i + 1.0)
        network = _terminated(line, MatchedSource("src", ramp(2.0, dt)), load)
        return network, dt

    def test_failure_aborts_the_step(self, failing_network):
        network, dt = failing_network
        sim = Simulation(network, dt)
        with pytest.raises(NonConvergenceError):
            sim.run(steps=10)
        # Steps 1..6 have midpoints before 0.3 ns; step 7 fails.
        assert sim.step_count == 6
        assert len(sim.trace) == 7
        assert sim.time == pytest.approx(6 * dt)
        sim.close()

    def test_facade_wraps_the_failure(self, failing_network):
        network, dt = failing_network
        with pytest.raises(SimulationRunError) as excinfo:
            run_simulation(network, time_step=dt, steps=10)
        assert isinstance(excinfo.value.__cause__, NonConvergenceError)
        assert "Non-Linear Solve Did Not Converge" in str(excinfo.value)
