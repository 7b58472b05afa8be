# --- src/tlsim_core/constants.py ---
import logging

logger = logging.getLogger(__name__)

# --- Numerical Constants for the Solver ---

#: Iteration cap for every bounded Newton solve (non-linear terminations and nodes).
DEFAULT_MAX_ITERATIONS: int = 50

#: Absolute convergence tolerance for Newton updates, in the unit of the unknown
#: (volts for node voltages, amperes for terminal currents).
DEFAULT_ABSOLUTE_TOLERANCE: float = 1.0e-12

#: Relative convergence tolerance for Newton updates.
DEFAULT_RELATIVE_TOLERANCE: float = 1.0e-9

#: Relative step used for finite-difference Jacobians when a termination does not
#: provide an analytic one.
FINITE_DIFFERENCE_STEP: float = 1.0e-7

#: Relative slack accepted when comparing the time step against the stability bound,
#: so a time step computed as exactly the bound is not rejected through rounding.
STABILITY_RELATIVE_SLACK: float = 1.0e-12

#: Number of steps between DEBUG progress messages of the simulation driver.
PROGRESS_LOG_INTERVAL: int = 1000

#: Samples a streamed `SampledWaveform` keeps besides its first one.
DEFAULT_SAMPLE_HISTORY: int = 1024

logger.debug("Defined solver constants.")
