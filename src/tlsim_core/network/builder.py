# src/tlsim_core/network/builder.py
"""
Assembles a validated, simulation-ready `Network`.

Two entry points share one validation path:

- the fluent API (`add_line`, `terminate`, `connect`, `build`) used from Python;
- `NetworkBuilder.from_ir`, which turns the parser's Intermediate Representation
  into lines and terminations first and is the build-time error gatekeeper: every
  `DiagnosableError` raised while building from a description is re-raised as a
  single, user-friendly `NetworkBuildError`.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence, Union

import pint

from ..errors import DiagnosableError, NetworkBuildError, format_diagnostic_report
from ..lines import LineEnd, TransmissionLine
from ..parameters import (
    ConstantParameters,
    FunctionalParameters,
    ParameterDefinitionError,
    ParameterExpression,
    ParameterProvider,
)
from ..parser.raw_data import ParsedLineData, ParsedNetworkDescription, ParsedTerminationData
from ..terminations import (
    TERMINATION_REGISTRY,
    ILineBinding,
    TerminationBase,
    TerminationError,
    waveform_from_config,
)
from ..units import PER_UNIT_LENGTH_DIMENSIONALITY, QuantityLike, to_magnitude, ureg
from ..validation import (
    TopologyError,
    TopologyIssueCode,
    TopologyValidator,
    ValidationIssue,
    ValidationIssueLevel,
)
from .data_structures import Endpoint, Network, Node

logger = logging.getLogger(__name__)

EndpointLike = Union[Endpoint, str, tuple]
TerminationRef = Union[TerminationBase, str]


class NetworkBuilder:
    """
    Collects lines, terminations and node definitions, then validates the topology
    and freezes it into a `Network`.

    Example:
        network = (NetworkBuilder("demo")
                   .add_line("tl1", "2 m", 200, ConstantParameters("1 uH/m", "400 pF/m"))
                   .terminate("tl1", "start", VoltageSource("src", step, series_resistance=50))
                   .terminate("tl1", "end", Resistor("load", 50))
                   .build())
    """

    def __init__(self, name: str = "network", source_file_path=None):
        self.name = name
        self.source_file_path = source_file_path
        self._lines: List[TransmissionLine] = []
        self._terminations: List[TerminationBase] = []
        self._nodes: List[Node] = []
        self._junction_count = 0

    # --- Fluent API ---

    def add_line(self, line: Union[TransmissionLine, str], length: QuantityLike = None,
                 segments: int = None, parameters: ParameterProvider = None) -> "NetworkBuilder":
        """Adds a `TransmissionLine`, or builds one from (name, length, segments, parameters)."""
        if not isinstance(line, TransmissionLine):
            line = TransmissionLine(line, length, segments, parameters)
        self._lines.append(line)
        return self

    def add_termination(self, termination: TerminationBase) -> "NetworkBuilder":
        """Registers a termination without attaching it; nodes may then refer to it by name."""
        if not isinstance(termination, TerminationBase):
            raise TypeError(f"Expected a TerminationBase, got {type(termination).__name__}.")
        if not any(existing is termination for existing in self._terminations):
            self._terminations.append(termination)
        return self

    def terminate(self, line: str, end: Union[LineEnd, str], termination: TerminationRef,
                  node: Optional[str] = None) -> "NetworkBuilder":
        """Attaches one termination to one line endpoint, forming a boundary node."""
        endpoint = self._endpoint((line, end))
        node_name = node or f"{endpoint.line}_{endpoint.end.value}"
        self._nodes.append(Node(node_name, (endpoint,), (self._termination_name(termination),)))
        return self

    def connect(self, *endpoints: EndpointLike, terminations: Sequence[TerminationRef] = (),
                name: Optional[str] = None) -> "NetworkBuilder":
        """
        Joins line endpoints (and optionally terminations) into one node sharing a
        single voltage. Endpoints are `Endpoint`s, (line, end) pairs or 'line.end' strings.
        """
        coerced = tuple(self._endpoint(ep) for ep in endpoints)
        if name is None:
            self._junction_count += 1
            name = f"junction_{self._junction_count}"
        term_names = tuple(self._termination_name(t) for t in terminations)
        self._nodes.append(Node(name, coerced, term_names))
        return self

    def _endpoint(self, value: EndpointLike) -> Endpoint:
        try:
            return Endpoint.coerce(value)
        except ValueError as e:
            if isinstance(value, (str, Endpoint)):
                written = str(value)
            else:
                written = ".".join(str(getattr(part, "value", part)) for part in value)
            code = TopologyIssueCode.ENDPOINT_MALFORMED
            issue = ValidationIssue(
                level=ValidationIssueLevel.ERROR, code=code.code,
                message=code.format_message(endpoint=written), element=written, details={"reason": str(e)},
            )
            raise TopologyError([issue], network=self.name) from e

    def _termination_name(self, termination: TerminationRef) -> str:
        if isinstance(termination, TerminationBase):
            self.add_termination(termination)
            return termination.name
        return str(termination)

    # --- Build ---

    def build(self) -> Network:
        """
        Validates the topology and returns the `Network`.

        Raises:
            TopologyError: If validation reports any error-level issue.
        """
        logger.info("Building network '%s'...", self.name)
        validator = TopologyValidator(self.name, self._lines, self._terminations, self._nodes)
        issues = validator.validate()
        for issue in issues:
            if issue.level == ValidationIssueLevel.WARNING:
                logger.warning("%s", issue)
        if any(issue.level == ValidationIssueLevel.ERROR for issue in issues):
            raise TopologyError(issues, network=self.name)

        network = Network(
            name=self.name,
            lines={line.name: line for line in self._lines},
            terminations={term.name: term for term in self._terminations},
            nodes={node.name: node for node in self._nodes},
            source_file_path=self.source_file_path,
        )
        self._bind_terminations(network)
        logger.info("Network build successful: %s", network)
        return network

    @staticmethod
    def _bind_terminations(network: Network):
        for node in network.nodes.values():
            for term in network.node_terminations(node):
                binding = term.get_capability(ILineBinding)
                if binding is None:
                    continue
                # Validation guarantees a single endpoint for line-bound terminations.
                endpoint = node.endpoints[0]
                binding.bind(term, network.lines[endpoint.line], endpoint.end)

    # --- Building from a parsed description ---

    @classmethod
    def from_ir(cls, description: ParsedNetworkDescription) -> Network:
        """
        Builds a `Network` from a parsed description.

        Raises:
            NetworkBuildError: For any failure, with a diagnostic report as message and
                               the original exception chained.
        """
        logger.info("--- Starting network synthesis for '%s' ---", description.network_name)
        try:
            builder = cls(description.network_name, source_file_path=description.source_yaml_path)
            for line_ir in description.lines:
                builder.add_line(_line_from_ir(line_ir))
            for term_ir in description.terminations:
                builder.add_termination(_termination_from_ir(term_ir))
            for node_ir in description.nodes:
                endpoints = [Endpoint.coerce(m) for m in node_ir.members if _is_endpoint(m)]
                term_names = [m for m in node_ir.members if not _is_endpoint(m)]
                builder.connect(*endpoints, terminations=term_names, name=node_ir.node_id)
            return builder.build()

        except DiagnosableError as e:
            diagnostic_report = e.get_diagnostic_report()
            raise NetworkBuildError(diagnostic_report) from e

        except Exception as e:
            report = format_diagnostic_report(
                error_type=f"An Unexpected Error Occurred ({type(e).__name__})",
                details=f"The network builder encountered an unexpected internal error: {e}",
                suggestion="This may indicate a bug in TLSim Core. Please review the traceback.",
                context={'source_file': description.source_yaml_path}
            )
            raise NetworkBuildError(report) from e


def _is_endpoint(member: str) -> bool:
    return member.endswith((".start", ".end"))


def _line_from_ir(line_ir: ParsedLineData) -> TransmissionLine:
    definitions: Dict[str, Any] = {}
    state_dependent = False
    for name, raw in line_ir.raw_parameters_dict.items():
        if isinstance(raw, dict):
            expr = _checked_expression(line_ir.line_id, name, raw['expression'], raw['dimension'])
            state_dependent = state_dependent or expr.is_state_dependent
            definitions[name] = expr
        else:
            definitions[name] = raw

    if state_dependent:
        parameters = FunctionalParameters(**definitions)
    else:
        parameters = ConstantParameters(**{
            name: value.position_function() if isinstance(value, ParameterExpression) else value
            for name, value in definitions.items()
        })
    return TransmissionLine(line_ir.line_id, line_ir.raw_length, line_ir.segments, parameters)


def _checked_expression(owner: str, name: str, expression: str, dimension: str) -> ParameterExpression:
    try:
        declared = ureg.parse_expression(dimension).dimensionality
    except (pint.errors.PintError, AttributeError, SyntaxError, TypeError) as e:
        raise ParameterDefinitionError(
            parameter=name, user_input=dimension, owner=owner,
            details=f"Unknown dimension '{dimension}': {e}"
        ) from e
    if declared != PER_UNIT_LENGTH_DIMENSIONALITY[name]:
        raise ParameterDefinitionError(
            parameter=name, user_input=dimension, owner=owner,
            details=f"Declared dimension '{dimension}' is not a per-unit-length {name}."
        )
    return ParameterExpression(expression, dimension, name=f"{owner}.{name}")


def _termination_from_ir(term_ir: ParsedTerminationData) -> TerminationBase:
    name = term_ir.termination_id
    term_cls = TERMINATION_REGISTRY.get(term_ir.termination_type)
    if term_cls is None:
        raise TerminationError(
            termination=name,
            details=(f"Unknown termination type '{term_ir.termination_type}'. "
                     f"Known types: {sorted(TERMINATION_REGISTRY)}.")
        )

    declared = term_cls.declare_parameters()
    kwargs: Dict[str, Any] = {}
    for param_name, raw in term_ir.raw_parameters_dict.items():
        if param_name not in declared:
            raise TerminationError(
                termination=name,
                details=(f"'{term_ir.termination_type}' has no parameter '{param_name}'. "
                         f"Declared parameters: {sorted(declared)}.")
            )
        try:
            kwargs[param_name] = to_magnitude(raw, declared[param_name])
        except (pint.errors.PintError, TypeError, ValueError) as e:
            raise TerminationError(
                termination=name,
                details=f"Parameter '{param_name}' = {raw!r} cannot be read as '{declared[param_name]}': {e}"
            ) from e

    if term_cls.accepts_waveform:
        if term_ir.raw_waveform is None:
            raise TerminationError(termination=name, details="A source termination needs a 'waveform'.")
        kwargs['waveform'] = waveform_from_config(term_ir.raw_waveform, term_cls.waveform_unit, owner=name)
    elif term_ir.raw_waveform is not None:
        raise TerminationError(
            termination=name, details=f"'{term_ir.termination_type}' does not accept a waveform."
        )

    try:
        return term_cls(name, **kwargs)
    except TypeError as e:
        raise TerminationError(termination=name, details=f"Cannot construct '{term_ir.termination_type}': {e}") from e
