"""
Tests for logging_setup module.

Verifies:
- JSON structured logging format
- Component and severity tagging
- User ID correlation
- PII-aware logging helpers
- Log level configuration
"""
import json
import logging
from io import StringIO
from datetime import datetime

import pytest

from logging_setup import (
    setup_logging,
    get_logger,
    Component,
    JSONFormatter,
)


@pytest.fixture
def capture_logs():
    """Capture log output to a string buffer."""
    buffer = StringIO()
    handler = logging.StreamHandler(buffer)
    handler.setFormatter(JSONFormatter())

    logger = logging.getLogger()
    logger.handlers = []
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG)

    yield buffer

    logger.handlers = []


def test_json_formatter_basic(capture_logs):
    logger = get_logger(Component.LIFEPLAN_API)
    logger.info("Test message", extra_field="value")

    log_entry = json.loads(capture_logs.getvalue().strip())

    assert log_entry["severity"] == "info"
    assert log_entry["component"] == "lifeplan_api"
    assert log_entry["message"] == "Test message"
    assert log_entry["extra_field"] == "value"
    assert "timestamp" in log_entry


def test_json_formatter_timestamp_format(capture_logs):
    logger = get_logger(Component.STATE_STORE)
    logger.info("Timestamp test")

    log_entry = json.loads(capture_logs.getvalue().strip())

    dt = datetime.fromisoformat(log_entry["timestamp"].replace("Z", "+00:00"))
    assert dt is not None


def test_user_id_correlation(capture_logs):
    logger = get_logger(Component.EXTRACTION, user_id="u_123")
    logger.info("User test")

    log_entry = json.loads(capture_logs.getvalue().strip())

    assert log_entry["user_id"] == "u_123"


def test_user_id_absent_when_not_provided(capture_logs):
    logger = get_logger(Component.EXTRACTION)
    logger.info("No user")

    log_entry = json.loads(capture_logs.getvalue().strip())

    assert "user_id" not in log_entry


def test_with_user_creates_new_logger(capture_logs):
    base_logger = get_logger(Component.STATE_STORE)
    user_logger = base_logger.with_user("u_456")

    user_logger.info("With user")

    log_entry = json.loads(capture_logs.getvalue().strip())

    assert log_entry["user_id"] == "u_456"
    assert base_logger.user_id is None


def test_debug_pii_goes_to_separate_field(capture_logs):
    logger = get_logger(Component.EXTRACTION, user_id="u_789")
    logger.debug_pii("Fragment received", fragment="I want more clarity.")

    log_entry = json.loads(capture_logs.getvalue().strip())

    assert log_entry["severity"] == "debug"
    assert log_entry["pii"]["fragment"] == "I want more clarity."
    assert log_entry["message"] == "Fragment received"


def test_severity_levels(capture_logs):
    logger = get_logger(Component.LLM)

    logger.debug("Debug message")
    logger.info("Info message")
    logger.warning("Warning message")
    logger.error("Error message")

    lines = [line for line in capture_logs.getvalue().strip().split("\n") if line]
    severities = [json.loads(line)["severity"] for line in lines]
    assert severities == ["debug", "info", "warning", "error"]


def test_component_string_fallback(capture_logs):
    logger = get_logger("custom_component")
    logger.info("Test")

    log_entry = json.loads(capture_logs.getvalue().strip())

    assert log_entry["component"] == "custom_component"


def test_latency_gets_ms_suffix(capture_logs, monkeypatch):
    monkeypatch.setenv("NO_COLOR", "1")
    logger = get_logger(Component.LLM)
    logger.info("Extraction response", latency_ms=412)

    assert '"latency_ms": 412 ms' in capture_logs.getvalue()


def test_exception_logging(capture_logs):
    logger = get_logger(Component.EXTRACTION)

    try:
        raise ValueError("Test exception")
    except ValueError:
        logger.exception("Exception occurred")

    log_entry = json.loads(capture_logs.getvalue().strip())

    assert log_entry["severity"] == "error"
    assert "ValueError: Test exception" in log_entry["exception"]


@pytest.fixture
def restore_root_logger():
    root_logger = logging.getLogger()
    handlers, level = root_logger.handlers[:], root_logger.level
    yield
    root_logger.handlers = handlers
    root_logger.setLevel(level)


def test_setup_logging_json(restore_root_logger):
    setup_logging(level="DEBUG", use_json=True)

    root_logger = logging.getLogger()
    assert root_logger.level == logging.DEBUG
    assert len(root_logger.handlers) == 1
    assert isinstance(root_logger.handlers[0].formatter, JSONFormatter)


def test_setup_logging_text(restore_root_logger):
    setup_logging(level="INFO", use_json=False)

    root_logger = logging.getLogger()
    assert root_logger.level == logging.INFO
    assert len(root_logger.handlers) == 1
    assert not isinstance(root_logger.handlers[0].formatter, JSONFormatter)
