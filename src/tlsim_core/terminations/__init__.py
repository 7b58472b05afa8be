# src/tlsim_core/terminations/__init__.py
from .base import (
    TERMINATION_REGISTRY,
    NonlinearRelationBase,
    TerminalQuantity,
    TerminationBase,
    register_termination,
)
from .capabilities import (
    ILineBinding,
    ILinearRelation,
    INonlinearRelation,
    TerminationCapability,
    provides,
)
from .elements import (
    CurrentSource,
    Diode,
    MatchedLoad,
    MatchedSource,
    NonlinearLoad,
    OpenCircuit,
    Resistor,
    ShortCircuit,
    VoltageSource,
)
from .exceptions import NonConvergenceError, TerminationError
from .solver import NewtonResult, bounded_newton
from .waveforms import (
    ConstantWaveform,
    FunctionWaveform,
    GaussianPulseWaveform,
    PulseWaveform,
    SampledWaveform,
    SineWaveform,
    StepWaveform,
    Waveform,
    as_waveform,
    waveform_from_config,
)

__all__ = [
    # Base & registry
    "TerminationBase",
    "TerminalQuantity",
    "NonlinearRelationBase",
    "TERMINATION_REGISTRY",
    "register_termination",
    # Capabilities
    "TerminationCapability",
    "ILinearRelation",
    "INonlinearRelation",
    "ILineBinding",
    "provides",
    # Elements
    "Resistor",
    "OpenCircuit",
    "ShortCircuit",
    "VoltageSource",
    "CurrentSource",
    "MatchedLoad",
    "MatchedSource",
    "Diode",
    "NonlinearLoad",
    # Solver & errors
    "bounded_newton",
    "NewtonResult",
    "TerminationError",
    "NonConvergenceError",
    # Waveforms
    "Waveform",
    "ConstantWaveform",
    "StepWaveform",
    "PulseWaveform",
    "SineWaveform",
    "GaussianPulseWaveform",
    "FunctionWaveform",
    "SampledWaveform",
    "as_waveform",
    "waveform_from_config",
]
