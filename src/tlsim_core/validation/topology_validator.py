# src/tlsim_core/validation/topology_validator.py
import logging
from collections import Counter, defaultdict
from typing import TYPE_CHECKING, Dict, List, Sequence, Tuple

import networkx as nx

from ..lines import LineEnd, TransmissionLine
from ..terminations import ILineBinding, TerminationBase
from .issue_codes import TopologyIssueCode
from .issues import ValidationIssue, ValidationIssueLevel

if TYPE_CHECKING:
    from ..network.data_structures import Node

logger = logging.getLogger(__name__)


class TopologyValidator:
    """
    Checks the connectivity of a network description before it is frozen into a
    `Network`.

    The draft is taken as plain sequences so that duplicate names and dangling
    references can still be reported. Connectivity is analysed on a networkx graph
    whose vertices are lines, nodes and terminations.
    """

    def __init__(self, network_name: str, lines: Sequence[TransmissionLine],
                 terminations: Sequence[TerminationBase], nodes: Sequence["Node"]):
        self.network_name = network_name
        self.lines = list(lines)
        self.terminations = list(terminations)
        self.nodes = list(nodes)
        self.issues: List[ValidationIssue] = []

    def validate(self) -> List[ValidationIssue]:
        """
        Runs every check and returns all issues found (errors and warnings). The caller
        decides whether error-level issues abort the build.
        """
        self.issues = []
        logger.debug("Starting topology validation for '%s'...", self.network_name)

        if not self.lines:
            self._add_issue(ValidationIssueLevel.ERROR, TopologyIssueCode.NET_EMPTY,
                            element=self.network_name, network=self.network_name)
            return self.issues

        self._check_names()
        self._check_references()
        self._check_endpoint_assignment()
        self._check_termination_assignment()
        self._check_node_composition()
        if not any(i.level == ValidationIssueLevel.ERROR for i in self.issues):
            self._check_sources()

        errors = sum(1 for i in self.issues if i.level == ValidationIssueLevel.ERROR)
        warnings = sum(1 for i in self.issues if i.level == ValidationIssueLevel.WARNING)
        logger.debug("Topology validation complete. Found: %d errors, %d warnings.", errors, warnings)
        return self.issues

    def _add_issue(self, level: ValidationIssueLevel, code_enum: TopologyIssueCode, element: str = None, **kwargs):
        message = code_enum.format_message(**kwargs)
        self.issues.append(ValidationIssue(
            level=level, code=code_enum.code, message=message, element=element, details=kwargs
        ))

    # --- Checks ---

    def _check_names(self):
        for kind, names, code in (
            ('line', [line.name for line in self.lines], TopologyIssueCode.NAME_LINE_DUPLICATE),
            ('termination', [term.name for term in self.terminations], TopologyIssueCode.NAME_TERM_DUPLICATE),
            ('node', [node.name for node in self.nodes], TopologyIssueCode.NAME_NODE_DUPLICATE),
        ):
            for name, count in sorted(Counter(names).items()):
                if count > 1:
                    self._add_issue(ValidationIssueLevel.ERROR, code, element=name, **{kind: name, 'count': count})

    def _check_references(self):
        line_names = {line.name for line in self.lines}
        term_names = {term.name for term in self.terminations}
        for node in self.nodes:
            for endpoint in node.endpoints:
                if endpoint.line not in line_names:
                    self._add_issue(ValidationIssueLevel.ERROR, TopologyIssueCode.REF_LINE_UNKNOWN,
                                    element=node.name, node=node.name, line=endpoint.line,
                                    known=sorted(line_names))
            for term_name in node.terminations:
                if term_name not in term_names:
                    self._add_issue(ValidationIssueLevel.ERROR, TopologyIssueCode.REF_TERM_UNKNOWN,
                                    element=node.name, node=node.name, termination=term_name,
                                    known=sorted(term_names))

    def _check_endpoint_assignment(self):
        owners: Dict[Tuple[str, LineEnd], List[str]] = defaultdict(list)
        for node in self.nodes:
            for endpoint in node.endpoints:
                owners[(endpoint.line, endpoint.end)].append(node.name)

        for line in self.lines:
            for end in LineEnd:
                endpoint = f"{line.name}.{end.value}"
                assigned = owners.get((line.name, end), [])
                if not assigned:
                    self._add_issue(ValidationIssueLevel.ERROR, TopologyIssueCode.ENDPOINT_UNASSIGNED,
                                    element=endpoint, endpoint=endpoint)
                elif len(assigned) > 1:
                    self._add_issue(ValidationIssueLevel.ERROR, TopologyIssueCode.ENDPOINT_MULTIPLY_ASSIGNED,
                                    element=endpoint, endpoint=endpoint,
                                    count=len(assigned), nodes=assigned)

    def _check_termination_assignment(self):
        owners: Dict[str, List[str]] = defaultdict(list)
        for node in self.nodes:
            for term_name in node.terminations:
                owners[term_name].append(node.name)

        for term in self.terminations:
            assigned = owners.get(term.name, [])
            if not assigned:
                self._add_issue(ValidationIssueLevel.WARNING, TopologyIssueCode.TERM_UNASSIGNED,
                                element=term.name, termination=term.name)
            elif len(assigned) > 1:
                self._add_issue(ValidationIssueLevel.ERROR, TopologyIssueCode.TERM_MULTIPLY_ASSIGNED,
                                element=term.name, termination=term.name,
                                count=len(assigned), nodes=assigned)

    def _check_node_composition(self):
        terms_by_name = {term.name: term for term in self.terminations}
        for node in self.nodes:
            if node.member_count < 2:
                self._add_issue(ValidationIssueLevel.ERROR, TopologyIssueCode.NODE_TOO_FEW_MEMBERS,
                                element=node.name, node=node.name, count=node.member_count)
            if not node.endpoints:
                self._add_issue(ValidationIssueLevel.ERROR, TopologyIssueCode.NODE_NO_LINE,
                                element=node.name, node=node.name)

            node_terms = [terms_by_name[n] for n in node.terminations if n in terms_by_name]
            bound = [t for t in node_terms if t.get_capability(ILineBinding) is not None]
            for term in bound:
                if len(node.endpoints) != 1:
                    self._add_issue(ValidationIssueLevel.ERROR, TopologyIssueCode.NODE_BINDING_AMBIGUOUS,
                                    element=node.name, node=node.name, termination=term.name,
                                    count=len(node.endpoints))

            # Line-bound terminations always carry a series impedance.
            constraints = [t.name for t in node_terms if t not in bound and t.is_voltage_constraint]
            if len(constraints) > 1:
                self._add_issue(ValidationIssueLevel.ERROR, TopologyIssueCode.NODE_MULTIPLE_VOLTAGE_CONSTRAINTS,
                                element=node.name, node=node.name, count=len(constraints),
                                terminations=constraints)

    def _check_sources(self):
        graph = nx.Graph()
        for line in self.lines:
            graph.add_node(('line', line.name))
        for node in self.nodes:
            graph.add_node(('node', node.name))
            for endpoint in node.endpoints:
                graph.add_edge(('node', node.name), ('line', endpoint.line))
            for term_name in node.terminations:
                graph.add_edge(('node', node.name), ('term', term_name))

        sources = {('term', t.name) for t in self.terminations if t.accepts_waveform}
        for component in nx.connected_components(graph):
            if component & sources:
                continue
            lines = sorted(name for kind, name in component if kind == 'line')
            if lines:
                self._add_issue(ValidationIssueLevel.WARNING, TopologyIssueCode.NET_NO_SOURCE,
                                element=lines[0], lines=lines)
