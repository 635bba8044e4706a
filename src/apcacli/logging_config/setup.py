"""Logging Setup.

One-call configuration for logging in the command line tools. Supports
JSON output for log collection and colored console lines for humans.
"""

from dataclasses import replace
from datetime import datetime, timezone
from typing import Optional, TextIO
import json
import logging
import os
import sys

from apcacli.logging_config.config import DEFAULT_LOGGING_CONFIG, LogFormat, LoggingConfig, LogLevel

ENV_LOG_LEVEL = "APCACLI_LOG_LEVEL"
ENV_LOG_FORMAT = "APCACLI_LOG_FORMAT"


class StructuredFormatter(logging.Formatter):
    """JSON structured log formatter.

    Produces one JSON object per log line with consistent fields:
    timestamp, level, logger, message.
    """

    def __init__(self, service_name: str = "apcacli", include_caller: bool = False):
        super().__init__()
        self.service_name = service_name
        self.include_caller = include_caller

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service": self.service_name,
        }

        if self.include_caller:
            log_entry["module"] = record.module
            log_entry["function"] = record.funcName
            log_entry["line"] = record.lineno

        if record.exc_info and record.exc_info[0] is not None:
            log_entry["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "traceback": self.formatException(record.exc_info),
            }

        for key in ("symbol", "order_id", "extra_data"):
            if hasattr(record, key):
                log_entry[key] = getattr(record, key)

        return json.dumps(log_entry, default=str)


class ConsoleFormatter(logging.Formatter):
    """Console formatter with color-coded levels."""

    COLORS = {
        "DEBUG": "\033[36m",     # Cyan
        "INFO": "\033[32m",      # Green
        "WARNING": "\033[33m",   # Yellow
        "ERROR": "\033[31m",     # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def __init__(self, use_color: bool = True):
        super().__init__()
        self.use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created, timezone.utc).strftime("%H:%M:%S.%f")[:-3]
        level = f"{record.levelname:8s}"
        if self.use_color:
            color = self.COLORS.get(record.levelname, self.RESET)
            level = f"{color}{level}{self.RESET}"

        line = f"{timestamp} {level} {record.name}: {record.getMessage()}"

        if record.exc_info and record.exc_info[0] is not None:
            line += "\n" + self.formatException(record.exc_info)

        return line


def level_for_verbosity(verbosity: int) -> LogLevel:
    """Map the number of ``-v`` flags to a log level."""
    if verbosity <= 0:
        return LogLevel.WARNING
    if verbosity == 1:
        return LogLevel.INFO
    return LogLevel.DEBUG


def configure_logging(
    config: Optional[LoggingConfig] = None,
    stream: Optional[TextIO] = None,
) -> None:
    """Configure logging for a command line invocation.

    Call once at startup. Sets up the root logger with the appropriate
    formatter (JSON or console) and log level.

    Args:
        config: Logging configuration. Uses defaults if not provided.
                Log level can be overridden with APCACLI_LOG_LEVEL env var.
                Log format can be overridden with APCACLI_LOG_FORMAT env var.
        stream: Where log lines go. Defaults to stderr.
    """
    config = config or DEFAULT_LOGGING_CONFIG
    stream = stream or sys.stderr

    env_level = os.environ.get(ENV_LOG_LEVEL, "").upper()
    if env_level and env_level in LogLevel.__members__:
        config = replace(config, level=LogLevel(env_level))

    env_format = os.environ.get(ENV_LOG_FORMAT, "").lower()
    if env_format and env_format in [f.value for f in LogFormat]:
        config = replace(config, format=LogFormat(env_format))

    if config.format == LogFormat.JSON:
        formatter: logging.Formatter = StructuredFormatter(
            service_name=config.service_name,
            include_caller=config.include_caller,
        )
    else:
        isatty = getattr(stream, "isatty", None)
        use_color = bool(isatty and isatty()) and "NO_COLOR" not in os.environ
        formatter = ConsoleFormatter(use_color=use_color)

    handler = logging.StreamHandler(stream)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, config.level.value))

    # Quiet noisy third-party loggers
    library_level = root.level if config.verbose_libraries else logging.WARNING
    for noisy in config.noisy_loggers:
        logging.getLogger(noisy).setLevel(max(library_level, root.level))
