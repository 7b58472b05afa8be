# src/tlsim_core/parser/parser.py
import logging
import re
import string
from collections import Counter
from pathlib import Path
from typing import Any, Dict, List, Union

import cerberus
import yaml

from ..terminations.waveforms import WAVEFORM_TYPES
from .exceptions import ParsingError, SchemaValidationError
from .raw_data import (
    ParsedLineData,
    ParsedNetworkDescription,
    ParsedNodeData,
    ParsedTerminationData,
)

logger = logging.getLogger(__name__)

ID_REGEX_FRAGMENT = r"[a-zA-Z_][a-zA-Z0-9_]*"
ID_REGEX = f"^{ID_REGEX_FRAGMENT}$"
ALLOWED_ID_CHARS = set(string.ascii_letters + string.digits + "_")

# A node member is a termination id or a line endpoint written '<line>.start' / '<line>.end'.
MEMBER_REGEX = f"^{ID_REGEX_FRAGMENT}(\\.(start|end))?$"


class EnhancedValidator(cerberus.Validator):
    """Cerberus validator with the project's identifier and uniqueness rules."""

    def _validate_id_regex(self, constraint, field, value):
        """{'type': 'boolean'}"""
        if not constraint:
            return
        if not isinstance(value, str):
            self._error(field, "must be a string to be validated by id_regex.")
            return
        if not re.match(ID_REGEX, value):
            invalid_chars = sorted(set(value) - ALLOWED_ID_CHARS)
            self._error(
                field,
                f"Identifier '{value}' is invalid. Identifiers must start with a letter or underscore "
                "and may only contain letters, numbers and underscores. "
                f"Forbidden character(s) found: {invalid_chars}"
            )

    def _validate_member_regex(self, constraint, field, value):
        """{'type': 'boolean'}"""
        if constraint and isinstance(value, str) and not re.match(MEMBER_REGEX, value):
            self._error(
                field,
                f"Node member '{value}' is invalid. Use a termination id or a line endpoint "
                f"written '<line>.start' or '<line>.end'."
            )

    def _validate_unique_elements_by_key(self, key_for_uniqueness, field, value):
        """
        Every mapping in the list must carry a distinct value under the given key.

        The rule's arguments are validated against this schema:
        {'type': 'string'}
        """
        if not isinstance(value, list):
            return
        counts = Counter(
            entry[key_for_uniqueness] for entry in value
            if isinstance(entry, dict) and entry.get(key_for_uniqueness) is not None
        )
        repeated = sorted(key for key, count in counts.items() if count > 1)
        if repeated:
            self._error(field, f"Duplicate values found for key '{key_for_uniqueness}': {repeated}")


class NetlistParser:
    """
    Parses and validates a YAML network description. Its sole responsibility is to
    produce a `ParsedNetworkDescription`; building lines and terminations is left to
    `NetworkBuilder.from_ir`.
    """
    _id_rule = {"type": "string", "required": True, "empty": False, "id_regex": True}
    _quantity_rule = {"type": ["string", "number"]}

    _param_value_schema = {
        "oneof": [
            {"type": ["string", "number"]},
            {"type": "dict", "schema": {"expression": {"type": "string", "required": True},
                                        "dimension": {"type": "string", "required": True}}},
        ]
    }

    _line_schema = {
        "id": _id_rule,
        "length": {**_quantity_rule, "required": True},
        "segments": {"type": "integer", "required": True, "min": 1},
        "parameters": {
            "type": "dict", "required": True, "schema": {
                "resistance": _param_value_schema,
                "inductance": {**_param_value_schema, "required": True},
                "conductance": _param_value_schema,
                "capacitance": {**_param_value_schema, "required": True},
            },
        },
    }

    _termination_schema = {
        "id": _id_rule,
        "type": {"type": "string", "required": True, "id_regex": True},
        "parameters": {"type": "dict", "required": False,
                       "keysrules": {"type": "string", "id_regex": True},
                       "valuesrules": _quantity_rule},
        "waveform": {
            "type": "dict", "required": False, "allow_unknown": True, "schema": {
                "type": {"type": "string", "required": True, "allowed": sorted(WAVEFORM_TYPES)},
            },
        },
    }

    _node_schema = {
        "id": _id_rule,
        "members": {"type": "list", "required": True, "minlength": 1,
                    "schema": {"type": "string", "member_regex": True}},
    }

    _simulation_schema = {
        "time_step": _quantity_rule,
        "duration": _quantity_rule,
        "steps": {"type": "integer", "min": 0},
        "courant_number": {"type": "number", "min": 0, "max": 1},
        "max_workers": {"type": "integer", "min": 1, "nullable": True},
        "record": {"type": "string", "allowed": ["full", "endpoints"]},
        "record_every": {"type": "integer", "min": 1},
    }

    _schema = {
        "network_name": {"type": "string", "required": False, "id_regex": True},
        "simulation": {"type": "dict", "required": False, "schema": _simulation_schema},
        "lines": {"type": "list", "required": True, "minlength": 1, "unique_elements_by_key": "id",
                  "schema": {"type": "dict", "schema": _line_schema}},
        "terminations": {"type": "list", "required": False, "unique_elements_by_key": "id",
                         "schema": {"type": "dict", "schema": _termination_schema}},
        "nodes": {"type": "list", "required": True, "minlength": 1, "unique_elements_by_key": "id",
                  "schema": {"type": "dict", "schema": _node_schema}},
    }

    def __init__(self):
        self._validator = EnhancedValidator(self._schema)
        self._validator.allow_unknown = False
        logger.debug("NetlistParser initialized with strict structural validation rules.")

    def parse(self, source: Union[str, Path]) -> ParsedNetworkDescription:
        """
        Parses a network description from a file path or from YAML text.

        A `Path`, or a single-line string ending in '.yaml' / '.yml', is read as a
        file; any other string is parsed as YAML text.
        """
        if isinstance(source, Path):
            return self.parse_file(source)
        if "\n" not in source and source.strip().lower().endswith((".yaml", ".yml")):
            return self.parse_file(source)
        return self.parse_string(source)

    def parse_file(self, yaml_path: Union[str, Path]) -> ParsedNetworkDescription:
        resolved_path = Path(yaml_path).resolve()
        logger.info("Parsing network description file: %s", resolved_path)
        content = self._load_yaml(resolved_path)
        return self._build_ir(content, resolved_path, default_name=resolved_path.stem)

    def parse_string(self, text: str, source_name: str = "<string>") -> ParsedNetworkDescription:
        source = Path(source_name)
        logger.debug("Parsing network description from text (%d characters).", len(text))
        try:
            content = yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise ParsingError(details=f"The text is not valid YAML: {e}", file_path=source) from e
        self._check_root(content, source)
        return self._build_ir(content, source, default_name="network")

    def _build_ir(self, content: Dict[str, Any], source: Path, default_name: str) -> ParsedNetworkDescription:
        if not self._validator.validate(content):
            raise SchemaValidationError(self._validator.errors, source)
        validated = self._validator.document

        lines: List[ParsedLineData] = [
            ParsedLineData(
                line_id=raw["id"],
                raw_length=raw["length"],
                segments=raw["segments"],
                raw_parameters_dict=dict(raw["parameters"]),
                source_yaml_path=source,
            )
            for raw in validated["lines"]
        ]
        terminations: List[ParsedTerminationData] = [
            ParsedTerminationData(
                termination_id=raw["id"],
                termination_type=raw["type"],
                raw_parameters_dict=dict(raw.get("parameters", {})),
                source_yaml_path=source,
                raw_waveform=raw.get("waveform"),
            )
            for raw in validated.get("terminations", [])
        ]
        nodes: List[ParsedNodeData] = [
            ParsedNodeData(node_id=raw["id"], members=list(raw["members"]), source_yaml_path=source)
            for raw in validated["nodes"]
        ]
        description = ParsedNetworkDescription(
            network_name=validated.get("network_name", default_name),
            source_yaml_path=source,
            lines=lines,
            terminations=terminations,
            nodes=nodes,
            raw_simulation_config=validated.get("simulation"),
        )
        logger.debug(
            "Parsed '%s': %d line(s), %d termination(s), %d node(s).",
            description.network_name, len(lines), len(terminations), len(nodes)
        )
        return description

    @staticmethod
    def _check_root(content: Any, source: Path):
        if content is None:
            raise ParsingError(details="The YAML document is empty or contains no valid content.", file_path=source)
        if not isinstance(content, dict):
            raise ParsingError(details="The root of the YAML document must be a dictionary (mapping).", file_path=source)

    def _load_yaml(self, source: Path) -> Dict[str, Any]:
        if not source.is_file():
            raise ParsingError(details=f"Network description not found at path: {source}", file_path=source)
        try:
            content = yaml.safe_load(source.read_text(encoding="utf-8"))
        except OSError as e:
            raise ParsingError(details=f"Could not read the network description: {e}", file_path=source) from e
        except yaml.YAMLError as e:
            raise ParsingError(details=f"The file is not valid YAML: {e}", file_path=source) from e
        self._check_root(content, source)
        return content
