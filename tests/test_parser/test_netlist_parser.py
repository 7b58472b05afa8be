# tests/test_parser/test_netlist_parser.py
from pathlib import Path

import numpy as np
import pytest

from tlsim_core import NetworkBuildError, RecordMode, load_network, simulate_file
from tlsim_core.lines import LineEnd
from tlsim_core.parameters import ConstantParameters, FunctionalParameters, ParameterDefinitionError
from tlsim_core.parser import (
    NetlistParser,
    ParsedNetworkDescription,
    ParsingError,
    SchemaValidationError,
)
from tlsim_core.terminations import MatchedLoad, StepWaveform, TerminationError, VoltageSource
from tlsim_core.validation import TopologyError

SINGLE_LINE_YAML = """
network_name: demo
simulation:
  steps: 200
  record: endpoints
lines:
  - id: tl1
    length: 1 m
    segments: 100
    parameters:
      inductance: 250 nH/m
      capacitance: 100 pF/m
terminations:
  - id: src
    type: VoltageSource
    parameters:
      series_resistance: 50 ohm
    waveform: {type: step, amplitude: 2 V, rise_time: 0.5 ns}
  - id: load
    type: MatchedLoad
nodes:
  - id: n_src
    members: [tl1.start, src]
  - id: n_load
    members: [tl1.end, load]
"""

JUNCTION_YAML = """
lines:
  - {id: a, length: 20 cm, segments: 20, parameters: {inductance: 250 nH/m, capacitance: 100 pF/m}}
  - {id: b, length: 20 cm, segments: 20, parameters: {inductance: 250 nH/m, capacitance: 100 pF/m}}
  - {id: c, length: 20 cm, segments: 20, parameters: {inductance: 250 nH/m, capacitance: 100 pF/m}}
terminations:
  - {id: src, type: MatchedSource, waveform: {type: pulse, amplitude: 1 V, rise_time: 0.1 ns, width: 1 ns, fall_time: 0.1 ns}}
  - {id: rb, type: Resistor, parameters: {resistance: 75 ohm}}
  - {id: rc, type: Resistor, parameters: {resistance: 100 ohm}}
nodes:
  - {id: feed, members: [a.start, src]}
  - {id: tee, members: [a.end, b.start, c.start]}
  - {id: nb, members: [b.end, rb]}
  - {id: nc, members: [c.end, rc]}
"""


@pytest.fixture
def parser():
    return NetlistParser()


@pytest.fixture
def yaml_file(tmp_path):
    def _write(text, name="network.yaml"):
        path = tmp_path / name
        path.write_text(text, encoding="utf-8")
        return path
    return _write


class TestParsing:

    def test_parse_string(self, parser):
        description = parser.parse_string(SINGLE_LINE_YAML)
        assert isinstance(description, ParsedNetworkDescription)
        assert description.network_name == "demo"
        assert [line.line_id for line in description.lines] == ["tl1"]
        assert description.lines[0].segments == 100
        assert description.lines[0].raw_parameters_dict["inductance"] == "250 nH/m"
        src = description.terminations[0]
        assert src.termination_type == "VoltageSource"
        assert src.raw_waveform["type"] == "step"
        assert description.nodes[1].members == ["tl1.end", "load"]
        assert description.raw_simulation_config == {"steps": 200, "record": "endpoints"}

    def test_parse_file_uses_stem_as_default_name(self, parser, yaml_file):
        path = yaml_file(JUNCTION_YAML, name="tee_split.yaml")
        description = parser.parse_file(path)
        assert description.network_name == "tee_split"
        assert description.source_yaml_path == path.resolve()
        assert description.raw_simulation_config is None

    def test_parse_dispatches_on_source(self, parser, yaml_file):
        path = yaml_file(SINGLE_LINE_YAML)
        assert parser.parse(path).network_name == "demo"
        assert parser.parse(str(path)).network_name == "demo"
        assert parser.parse(SINGLE_LINE_YAML).network_name == "demo"

    def test_missing_file(self, parser, tmp_path):
        with pytest.raises(ParsingError) as excinfo:
            parser.parse_file(tmp_path / "nope.yaml")
        assert "not found" in excinfo.value.details

    @pytest.mark.parametrize("text", ["", "- just\n- a list\n", "lines: [unclosed\n"])
    def test_unusable_documents(self, parser, text):
        with pytest.raises(ParsingError):
            parser.parse_string(text)

    def test_report_names_the_file(self, parser, yaml_file):
        path = yaml_file("just text\n", name="broken.yaml")
        with pytest.raises(ParsingError) as excinfo:
            parser.parse_file(path)
        assert "broken.yaml" in excinfo.value.get_diagnostic_report()


class TestSchema:

    def _messages(self, parser, text):
        with pytest.raises(SchemaValidationError) as excinfo:
            parser.parse_string(text)
        return "\n".join(excinfo.value.messages)

    def test_zero_segments(self, parser):
        messages = self._messages(parser, SINGLE_LINE_YAML.replace("segments: 100", "segments: 0"))
        assert "lines.0.segments" in messages

    def test_fractional_segments(self, parser):
        messages = self._messages(parser, SINGLE_LINE_YAML.replace("segments: 100", "segments: 2.5"))
        assert "segments" in messages

    def test_missing_capacitance(self, parser):
        messages = self._messages(parser, SINGLE_LINE_YAML.replace("      capacitance: 100 pF/m\n", ""))
        assert "capacitance" in messages

    def test_bad_identifier(self, parser):
        messages = self._messages(parser, SINGLE_LINE_YAML.replace("id: tl1", "id: tl-1"))
        assert "Forbidden character(s) found: ['-']" in messages

    def test_bad_node_member(self, parser):
        messages = self._messages(parser, SINGLE_LINE_YAML.replace("[tl1.end, load]", "[tl1.middle, load]"))
        assert "tl1.middle" in messages

    def test_duplicate_ids(self, parser):
        text = SINGLE_LINE_YAML.replace("  - id: load\n", "  - id: src\n")
        messages = self._messages(parser, text)
        assert "Duplicate values found for key 'id': ['src']" in messages

    def test_unknown_waveform_type(self, parser):
        messages = self._messages(parser, SINGLE_LINE_YAML.replace("type: step", "type: square"))
        assert "waveform" in messages

    def test_unknown_top_level_key(self, parser):
        messages = self._messages(parser, SINGLE_LINE_YAML + "sweep: {start: 1}\n")
        assert "sweep" in messages

    def test_missing_nodes(self, parser):
        text = SINGLE_LINE_YAML.split("nodes:")[0]
        assert "nodes" in self._messages(parser, text)

    def test_bad_record_mode(self, parser):
        messages = self._messages(parser, SINGLE_LINE_YAML.replace("record: endpoints", "record: everything"))
        assert "simulation.record" in messages

    def test_report_lists_every_issue(self, parser):
        text = SINGLE_LINE_YAML.replace("segments: 100", "segments: 0").replace("id: tl1", "id: tl-1")
        with pytest.raises(SchemaValidationError) as excinfo:
            parser.parse_string(text)
        report = excinfo.value.get_diagnostic_report()
        assert "YAML Schema Validation Error" in report
        assert "2 issue(s)" in report


class TestBuildingFromDescription:

    def test_single_line_network(self):
        network = load_network(SINGLE_LINE_YAML)
        assert network.name == "demo"
        line = network.lines["tl1"]
        assert isinstance(line.parameters, ConstantParameters)
        assert line.max_stable_time_step() == pytest.approx(5e-11)
        src = network.terminations["src"]
        assert isinstance(src, VoltageSource)
        assert src.series_resistance == pytest.approx(50.0)
        assert isinstance(src.waveform, StepWaveform)
        assert src.waveform.rise_time == pytest.approx(0.5e-9)
        load = network.terminations["load"]
        assert isinstance(load, MatchedLoad)
        assert load.impedance == pytest.approx(50.0)
        assert network.node_of("tl1", LineEnd.END).name == "n_load"

    def test_junction_network(self):
        network = load_network(JUNCTION_YAML)
        assert [node.name for node in network.junctions] == ["tee"]
        assert network.terminations["rc"].resistance == pytest.approx(100.0)

    def test_state_dependent_expression_gives_functional_line(self):
        text = SINGLE_LINE_YAML.replace(
            "inductance: 250 nH/m",
            "inductance: {expression: \"Quantity('250 nH/m') * (1 + (i / Quantity('0.1 A'))**2)\", dimension: H/m}",
        )
        network = load_network(text)
        line = network.lines["tl1"]
        assert isinstance(line.parameters, FunctionalParameters)
        assert line.is_state_dependent
        driven = line.parameters_at(np.zeros(101), np.full(100, 0.1), 0.0)
        np.testing.assert_allclose(driven.inductance, 500e-9)

    def test_position_expression_gives_constant_line(self):
        text = SINGLE_LINE_YAML.replace(
            "capacitance: 100 pF/m",
            "capacitance: {expression: \"Quantity('100 pF/m') * (1 + x / Quantity('1 m'))\", dimension: F/m}",
        )
        line = load_network(text).lines["tl1"]
        assert isinstance(line.parameters, ConstantParameters)
        c = line.initial_parameters().capacitance
        assert c[0] == pytest.approx(100e-12 * 1.005)
        assert c[-1] == pytest.approx(100e-12 * 1.995)

    def test_expression_with_wrong_declared_dimension(self):
        text = SINGLE_LINE_YAML.replace(
            "inductance: 250 nH/m",
            "inductance: {expression: \"Quantity('250 nH/m')\", dimension: F/m}",
        )
        with pytest.raises(NetworkBuildError) as excinfo:
            load_network(text)
        assert isinstance(excinfo.value.__cause__, ParameterDefinitionError)

    def test_unknown_termination_type(self):
        text = SINGLE_LINE_YAML.replace("type: MatchedLoad", "type: Capacitor")
        with pytest.raises(NetworkBuildError) as excinfo:
            load_network(text)
        assert isinstance(excinfo.value.__cause__, TerminationError)
        assert "Capacitor" in str(excinfo.value)

    def test_unknown_termination_parameter(self):
        text = SINGLE_LINE_YAML.replace("series_resistance: 50 ohm", "resistance: 50 ohm")
        with pytest.raises(NetworkBuildError) as excinfo:
            load_network(text)
        assert isinstance(excinfo.value.__cause__, TerminationError)

    def test_source_without_waveform(self):
        text = SINGLE_LINE_YAML.replace("    waveform: {type: step, amplitude: 2 V, rise_time: 0.5 ns}\n", "")
        with pytest.raises(NetworkBuildError) as excinfo:
            load_network(text)
        assert "waveform" in str(excinfo.value.__cause__)

    def test_topology_errors_are_wrapped(self):
        text = SINGLE_LINE_YAML.replace("[tl1.end, load]", "[tl9.end, load]")
        with pytest.raises(NetworkBuildError) as excinfo:
            load_network(text)
        cause = excinfo.value.__cause__
        assert isinstance(cause, TopologyError)
        assert "REF_LINE_UNKNOWN" in cause.codes
        assert "ENDPOINT_UNASSIGNED" in cause.codes

    def test_parse_errors_are_wrapped(self):
        with pytest.raises(NetworkBuildError) as excinfo:
            load_network(SINGLE_LINE_YAML.replace("segments: 100", "segments: 0"))
        assert isinstance(excinfo.value.__cause__, SchemaValidationError)
        assert "Actionable Diagnostic Report" in str(excinfo.value)


class TestSimulateFile:

    def test_runs_with_the_simulation_block(self, yaml_file):
        trace = simulate_file(yaml_file(SINGLE_LINE_YAML))
        assert trace.mode is RecordMode.ENDPOINTS
        assert len(trace) == 201
        # Matched at both ends: the line settles at half the source voltage.
        np.testing.assert_allclose(trace.endpoint_voltages("tl1")[-1], [1.0, 1.0], atol=1e-9)

    def test_overrides(self, yaml_file):
        trace = simulate_file(yaml_file(SINGLE_LINE_YAML), steps=10)
        assert len(trace) == 11

    def test_bad_simulation_block(self, yaml_file):
        text = SINGLE_LINE_YAML.replace("  steps: 200\n", "  steps: 200\n  duration: 1 ns\n")
        with pytest.raises(NetworkBuildError) as excinfo:
            simulate_file(yaml_file(text))
        assert "Simulation Configuration Error" in str(excinfo.value)

    def test_missing_file(self, tmp_path):
        with pytest.raises(NetworkBuildError):
            simulate_file(Path(tmp_path) / "missing.yaml")
