"""Logging Configuration.

Settings for log levels and output formats.
"""

from dataclasses import dataclass, field
from enum import Enum


class LogLevel(str, Enum):
    """Log level options."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LogFormat(str, Enum):
    """Log output format."""
    JSON = "json"
    CONSOLE = "console"


@dataclass
class LoggingConfig:
    """Command line logging configuration."""

    level: LogLevel = LogLevel.WARNING
    format: LogFormat = LogFormat.CONSOLE
    include_caller: bool = False
    # Let third party loggers through at the configured level.
    verbose_libraries: bool = False
    noisy_loggers: list[str] = field(
        default_factory=lambda: ["urllib3", "asyncio", "websockets", "alpaca"]
    )
    service_name: str = "apcacli"


DEFAULT_LOGGING_CONFIG = LoggingConfig()
