# tests/unit/logging/test_unit_logger.py - v1
"""Tests for logging/logger.py - logger factory and formatters."""

from __future__ import annotations

import json
import logging
import sys

from guidelint.logging.context import (
    clear_context,
    set_batch_context,
    set_request_context,
)
from guidelint.logging.logger import (
    ROOT_LOGGER_NAME,
    JsonFormatter,
    TextFormatter,
    get_logger,
    setup_logging,
)


def _record(msg="Hello", level=logging.INFO, **extra):
    record = logging.LogRecord(
        name="guidelint.test", level=level, pathname="", lineno=0,
        msg=msg, args=(), exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJsonFormatter:
    def setup_method(self):
        clear_context()

    def teardown_method(self):
        clear_context()

    def test_format_basic(self):
        parsed = json.loads(JsonFormatter().format(_record()))
        assert parsed["level"] == "INFO"
        assert parsed["message"] == "Hello"
        assert parsed["logger"] == "guidelint.test"
        assert "timestamp" in parsed
        assert "context" not in parsed

    def test_format_with_context(self):
        set_request_context("req123", stage="inference")
        set_batch_context("2/3")
        parsed = json.loads(JsonFormatter().format(_record()))
        assert parsed["context"] == {"request_id": "req123", "batch": "2/3", "stage": "inference"}

    def test_extra_data(self):
        parsed = json.loads(JsonFormatter().format(_record(data={"items": 4})))
        assert parsed["data"] == {"items": 4}

    def test_exception(self):
        try:
            raise ValueError("bad")
        except ValueError:
            record = _record(level=logging.ERROR)
            record.exc_info = sys.exc_info()
        parsed = json.loads(JsonFormatter().format(record))
        assert "ValueError: bad" in parsed["exception"]


class TestTextFormatter:
    def teardown_method(self):
        clear_context()

    def test_format_basic(self):
        output = TextFormatter().format(_record("Hello text"))
        assert "Hello text" in output
        assert "[INFO    ]" in output

    def test_context_markers(self):
        set_request_context("req9", stage="cache_probe")
        set_batch_context("1/1")
        output = TextFormatter().format(_record())
        assert "<req9>" in output
        assert "[1/1]" in output
        assert "(cache_probe)" in output


class TestGetLogger:
    def test_namespaced(self):
        assert get_logger("cache").name == "guidelint.cache"


class TestSetupLogging:
    def teardown_method(self):
        logging.getLogger(ROOT_LOGGER_NAME).handlers.clear()

    def test_console_handler(self):
        setup_logging(level="DEBUG", log_format="text")
        root = logging.getLogger(ROOT_LOGGER_NAME)
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, TextFormatter)

    def test_reinit_does_not_duplicate(self):
        setup_logging()
        setup_logging()
        assert len(logging.getLogger(ROOT_LOGGER_NAME).handlers) == 1

    def test_file_handler(self, tmp_path):
        log_file = tmp_path / "logs" / "guidelint.log"
        setup_logging(log_file=str(log_file))
        logging.getLogger("guidelint.test").info("to file")
        for handler in logging.getLogger(ROOT_LOGGER_NAME).handlers:
            handler.flush()
        assert "to file" in log_file.read_text(encoding="utf-8")
        for handler in logging.getLogger(ROOT_LOGGER_NAME).handlers:
            handler.close()
