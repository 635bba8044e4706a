"""Tests for logging configuration."""

import io
import json
import logging
import sys

import pytest

from apcacli.logging_config import (
    LogFormat,
    LoggingConfig,
    LogLevel,
    configure_logging,
    level_for_verbosity,
)
from apcacli.logging_config.setup import ConsoleFormatter, StructuredFormatter


def _record(msg="hello", level=logging.INFO, exc_info=None, **extra):
    record = logging.LogRecord("apcacli.test", level, __file__, 10, msg, (), exc_info)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestVerbosity:

    @pytest.mark.parametrize("verbosity, level", [
        (0, LogLevel.WARNING),
        (1, LogLevel.INFO),
        (2, LogLevel.DEBUG),
        (5, LogLevel.DEBUG),
    ])
    def test_level_for_verbosity(self, verbosity, level):
        assert level_for_verbosity(verbosity) is level


class TestFormatters:

    def test_structured(self):
        line = StructuredFormatter().format(_record(symbol="AAPL"))
        entry = json.loads(line)
        assert entry["level"] == "INFO"
        assert entry["logger"] == "apcacli.test"
        assert entry["message"] == "hello"
        assert entry["service"] == "apcacli"
        assert entry["symbol"] == "AAPL"
        assert "module" not in entry

    def test_structured_caller_and_exception(self):
        try:
            raise ValueError("boom")
        except ValueError:
            record = _record(level=logging.ERROR, exc_info=sys.exc_info())
        entry = json.loads(StructuredFormatter(include_caller=True).format(record))
        assert entry["line"] == 10
        assert entry["exception"]["type"] == "ValueError"
        assert entry["exception"]["message"] == "boom"

    def test_console_plain(self):
        line = ConsoleFormatter(use_color=False).format(_record(level=logging.WARNING))
        assert line.endswith("WARNING  apcacli.test: hello")
        assert "\033[" not in line

    def test_console_color(self):
        line = ConsoleFormatter(use_color=True).format(_record(level=logging.ERROR))
        assert "\033[31mERROR   \033[0m" in line


class TestConfigureLogging:

    def test_default_level_hides_info(self):
        stream = io.StringIO()
        configure_logging(stream=stream)
        logger = logging.getLogger("apcacli.test")
        logger.info("quiet")
        logger.warning("loud")
        output = stream.getvalue()
        assert "quiet" not in output
        assert "WARNING  apcacli.test: loud" in output
        assert "\033[" not in output

    def test_single_handler(self):
        stream = io.StringIO()
        configure_logging(stream=stream)
        configure_logging(stream=stream)
        assert len(logging.getLogger().handlers) == 1

    def test_debug_level(self):
        stream = io.StringIO()
        configure_logging(LoggingConfig(level=LogLevel.DEBUG), stream=stream)
        logging.getLogger("apcacli.test").debug("details")
        assert "details" in stream.getvalue()

    def test_json_format(self):
        stream = io.StringIO()
        configure_logging(LoggingConfig(format=LogFormat.JSON), stream=stream)
        logging.getLogger("apcacli.test").error("failed")
        entry = json.loads(stream.getvalue().strip())
        assert entry["message"] == "failed"
        assert entry["level"] == "ERROR"

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("APCACLI_LOG_LEVEL", "info")
        monkeypatch.setenv("APCACLI_LOG_FORMAT", "JSON")
        stream = io.StringIO()
        configure_logging(stream=stream)
        logging.getLogger("apcacli.test").info("via env")
        assert json.loads(stream.getvalue().strip())["message"] == "via env"

    def test_invalid_env_ignored(self, monkeypatch):
        monkeypatch.setenv("APCACLI_LOG_LEVEL", "chatty")
        configure_logging(stream=io.StringIO())
        assert logging.getLogger().level == logging.WARNING

    def test_noisy_loggers_quieted(self):
        configure_logging(LoggingConfig(level=LogLevel.DEBUG), stream=io.StringIO())
        assert logging.getLogger("alpaca").level == logging.WARNING
        assert logging.getLogger("urllib3").level == logging.WARNING

    def test_verbose_libraries(self):
        config = LoggingConfig(level=LogLevel.DEBUG, verbose_libraries=True)
        configure_logging(config, stream=io.StringIO())
        assert logging.getLogger("alpaca").level == logging.DEBUG
        configure_logging(stream=io.StringIO())
        assert logging.getLogger("alpaca").level == logging.WARNING
