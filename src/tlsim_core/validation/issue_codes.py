# src/tlsim_core/validation/issue_codes.py
import logging
from enum import Enum

logger = logging.getLogger(__name__)


class TopologyIssueCode(Enum):
    """
    Registry of topology issue codes and their message templates.
    Each member's value is a tuple: (code_str, message_template_str).
    """

    # --- Network-level issues (NET_...) ---
    NET_EMPTY = ("NET_EMPTY", "The network '{network}' contains no lines.")
    NET_NO_SOURCE = ("NET_NO_SOURCE", "The sub-network formed by line(s) {lines} contains no source and will stay at its initial state unless initial conditions excite it.")

    # --- Naming issues (NAME_...) ---
    NAME_LINE_DUPLICATE = ("NAME_LINE_DUPLICATE", "Line name '{line}' is used by {count} lines.")
    NAME_TERM_DUPLICATE = ("NAME_TERM_DUPLICATE", "Termination name '{termination}' is used by {count} terminations.")
    NAME_NODE_DUPLICATE = ("NAME_NODE_DUPLICATE", "Node name '{node}' is used by {count} nodes.")

    # --- Reference issues (REF_...) ---
    REF_LINE_UNKNOWN = ("REF_LINE_UNKNOWN", "Node '{node}' references unknown line '{line}'. Known lines: {known}.")
    REF_TERM_UNKNOWN = ("REF_TERM_UNKNOWN", "Node '{node}' references unknown termination '{termination}'. Known terminations: {known}.")

    # --- Endpoint assignment issues (ENDPOINT_...) ---
    ENDPOINT_UNASSIGNED = ("ENDPOINT_UNASSIGNED", "Endpoint '{endpoint}' is not assigned to any node. Every line end needs a termination or a connection.")
    ENDPOINT_MULTIPLY_ASSIGNED = ("ENDPOINT_MULTIPLY_ASSIGNED", "Endpoint '{endpoint}' is assigned {count} times (nodes: {nodes}).")
    ENDPOINT_MALFORMED = ("ENDPOINT_MALFORMED", "Endpoint '{endpoint}' is not a line end; write it as '<line>.start' or '<line>.end'.")
    TERM_UNASSIGNED = ("TERM_UNASSIGNED", "Termination '{termination}' is not attached to any node and will be ignored.")
    TERM_MULTIPLY_ASSIGNED = ("TERM_MULTIPLY_ASSIGNED", "Termination '{termination}' is attached {count} times (nodes: {nodes}).")

    # --- Node composition issues (NODE_...) ---
    NODE_TOO_FEW_MEMBERS = ("NODE_TOO_FEW_MEMBERS", "Node '{node}' has {count} member(s); a node joins at least two endpoints or terminations.")
    NODE_NO_LINE = ("NODE_NO_LINE", "Node '{node}' contains no line endpoint.")
    NODE_MULTIPLE_VOLTAGE_CONSTRAINTS = ("NODE_MULTIPLE_VOLTAGE_CONSTRAINTS", "Node '{node}' holds {count} terminations that fix its voltage ({terminations}); at most one is allowed.")
    NODE_BINDING_AMBIGUOUS = ("NODE_BINDING_AMBIGUOUS", "Termination '{termination}' takes its impedance from the attached line, but node '{node}' has {count} line endpoints; it must have exactly one.")

    @property
    def code(self) -> str:
        return self.value[0]

    @property
    def template(self) -> str:
        return self.value[1]

    def format_message(self, **kwargs) -> str:
        """Formats the message template with provided keyword arguments."""
        try:
            return self.template.format(**kwargs)
        except KeyError as e:
            logger.error("Missing key %s for message template of %s: '%s'. Provided args: %s",
                         e, self.code, self.template, kwargs)
            return f"Error formatting message for {self.code}: Missing key {e}. Template: '{self.template}' Args: {kwargs}"
