# --- src/tlsim_core/log_config.py ---
import logging
import sys
from typing import Optional, TextIO

LOG_FORMAT = "%(asctime)s [%(levelname)-5.5s] [%(name)s] %(message)s"

# Marks handlers installed here so a second call replaces them instead of stacking.
_HANDLER_TAG = "_tlsim_handler"


def setup_logging(level=logging.INFO, stream: Optional[TextIO] = None):
    """
    Configures console logging for the 'tlsim_core' logger hierarchy.

    Only handlers previously installed by this function are replaced; handlers
    that the host application attached (e.g. pytest's caplog) are left alone.
    """
    package_logger = logging.getLogger("tlsim_core")

    for handler in package_logger.handlers[:]:
        if getattr(handler, _HANDLER_TAG, False):
            package_logger.removeHandler(handler)
            handler.close()

    console_handler = logging.StreamHandler(stream or sys.stdout)
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    setattr(console_handler, _HANDLER_TAG, True)

    package_logger.setLevel(level)
    package_logger.addHandler(console_handler)
    package_logger.debug("Logging configured at level %s.", logging.getLevelName(level))
