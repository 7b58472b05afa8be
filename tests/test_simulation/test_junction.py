# tests/test_simulation/test_junction.py
import numpy as np
import pytest

from tlsim_core import (
    MatchedLoad,
    NetworkBuilder,
    Resistor,
    Simulation,
    TransmissionLine,
    VoltageSource,
    kinetic_inductance_parameters,
)
from tlsim_core.analysis import node_current_residuals
from tlsim_core.lines import LineEnd

Z0 = 50.0


@pytest.fixture
def tee_network(line_factory, ramp):
    """A 50 ohm feed splitting into 75 ohm and 100 ohm loaded branches."""
    lines = [line_factory(name, length=0.2, segments=20) for name in ("feed", "left", "right")]
    dt = lines[0].max_stable_time_step()
    builder = NetworkBuilder("tee")
    for line in lines:
        builder.add_line(line)
    network = (builder
               .terminate("feed", "start", VoltageSource("src", ramp(1.0, dt), series_resistance=Z0))
               .connect("feed.end", "left.start", "right.start", name="tee")
               .terminate("left", "end", Resistor("r75", 75.0))
               .terminate("right", "end", Resistor("r100", 100.0))
               .build())
    return network, dt


class TestJunction:

    def test_split_settles_at_the_dc_divider(self, tee_network):
        network, dt = tee_network
        with Simulation(network, dt) as sim:
            trace = sim.run(steps=2000)
        parallel = 75.0 * 100.0 / 175.0
        expected = parallel / (Z0 + parallel)
        for name in ("feed", "left", "right"):
            np.testing.assert_allclose(trace.voltages(name)[-1], expected, atol=1e-6)
        assert trace.termination_current("r75")[-1] == pytest.approx(expected / 75.0, rel=1e-5)
        assert trace.termination_current("r100")[-1] == pytest.approx(expected / 100.0, rel=1e-5)

    def test_shared_node_voltage(self, tee_network):
        network, dt = tee_network
        with Simulation(network, dt) as sim:
            trace = sim.run(steps=100)
        feed_end = trace.endpoint_voltages("feed")[:, 1]
        np.testing.assert_array_equal(feed_end, trace.endpoint_voltages("left")[:, 0])
        np.testing.assert_array_equal(feed_end, trace.endpoint_voltages("right")[:, 0])
        assert np.max(np.abs(feed_end)) > 0.1

    def test_first_transmitted_wave(self, tee_network):
        network, dt = tee_network
        with Simulation(network, dt) as sim:
            trace = sim.run(steps=35)
        # Two 50 ohm branches in parallel: 25 ohm, transmission 2 * 25 / 75 = 2/3 of the 0.5 V wave.
        assert trace.endpoint_voltages("feed")[35, 1] == pytest.approx(1.0 / 3.0, abs=1e-6)

    def test_kirchhoff_residuals_vanish(self, tee_network):
        network, dt = tee_network
        with Simulation(network, dt) as sim:
            trace = sim.run(steps=300)
        residuals = node_current_residuals(trace, network)
        assert set(residuals) == {"feed_start", "tee", "left_end", "right_end"}
        for values in residuals.values():
            assert values.shape == (300,)
            assert np.max(np.abs(values)) <= 1e-12

    def test_boundary_currents_balance_at_the_junction(self, tee_network):
        network, dt = tee_network
        with Simulation(network, dt) as sim:
            trace = sim.run(steps=300)
        into_tee = trace.boundary_currents("feed")[:, 1]
        out_of_tee = trace.boundary_currents("left")[:, 0] + trace.boundary_currents("right")[:, 0]
        np.testing.assert_allclose(into_tee, out_of_tee, atol=1e-12)

    def test_parallel_line_updates_match_sequential(self, tee_network):
        network, dt = tee_network
        with Simulation(network, dt) as sequential:
            expected = sequential.run(steps=200)
        with Simulation(network, dt, max_workers=3) as threaded:
            result = threaded.run(steps=200)
        for name in network.lines:
            np.testing.assert_array_equal(result.voltages(name), expected.voltages(name))
            np.testing.assert_array_equal(result.currents(name), expected.currents(name))

    def test_shunt_termination_on_a_junction(self, line_factory, ramp):
        a = line_factory("a", length=0.2, segments=20)
        b = line_factory("b", length=0.2, segments=20)
        dt = a.max_stable_time_step()
        network = (NetworkBuilder("shunted")
                   .add_line(a)
                   .add_line(b)
                   .terminate("a", "start", VoltageSource("src", ramp(1.0, dt), series_resistance=Z0))
                   .connect("a.end", "b.start", terminations=[Resistor("shunt", 50.0)], name="mid")
                   .terminate("b", "end", Resistor("load", 50.0))
                   .build())
        with Simulation(network, dt) as sim:
            trace = sim.run(steps=1500)
        # 50 ohm source into 25 ohm: one third of the source voltage everywhere.
        np.testing.assert_allclose(trace.voltages("b")[-1], 1.0 / 3.0, atol=1e-6)
        assert trace.termination_current("shunt")[-1] == pytest.approx(1.0 / 150.0, rel=1e-5)
        for values in node_current_residuals(trace, network).values():
            assert np.max(np.abs(values)) <= 1e-12


def test_node_lookup(tee_network):
    network, _ = tee_network
    assert network.node_of("left", LineEnd.START).name == "tee"
    assert [node.name for node in network.junctions] == ["tee"]


def test_runs_are_deterministic(ramp):
    params = kinetic_inductance_parameters("200 nH/m", "50 nH/m", "0.05 A", "100 pF/m")
    line = TransmissionLine("ki", 0.5, 50, params)
    dt = 0.9 * line.max_stable_time_step()
    network = (NetworkBuilder("kinetic")
               .add_line(line)
               .terminate("ki", "start", VoltageSource("src", ramp(2.0, dt), series_resistance=Z0))
               .terminate("ki", "end", MatchedLoad("load"))
               .build())

    def run():
        with Simulation(network, dt) as sim:
            return sim.run(steps=200)

    first, second = run(), run()
    np.testing.assert_array_equal(first.voltages("ki"), second.voltages("ki"))
    np.testing.assert_array_equal(first.currents("ki"), second.currents("ki"))
    np.testing.assert_array_equal(first.termination_current("load"), second.termination_current("load"))
