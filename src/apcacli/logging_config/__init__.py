"""Logging setup for the command line tools.

Provides colored console logging for interactive use and one JSON object
per line for machine consumption. Log output goes to stderr.
"""

from apcacli.logging_config.config import LogFormat, LoggingConfig, LogLevel
from apcacli.logging_config.setup import configure_logging, level_for_verbosity

__all__ = [
    "LogFormat",
    "LogLevel",
    "LoggingConfig",
    "configure_logging",
    "level_for_verbosity",
]
