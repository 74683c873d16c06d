"""Tests for structured logging"""

import json
import logging

import pytest

from homedash.core.logging import (
    add_request_id,
    clear_request_id,
    configure_logging,
    get_logger,
    get_request_id,
    set_request_id,
)


def _json_lines(text: str) -> list:
    return [json.loads(line) for line in text.splitlines() if line.startswith("{")]


class TestRequestIDManagement:
    """Test request_id context variable management"""

    def test_set_request_id_explicit(self) -> None:
        result = set_request_id("test-request-123")

        assert result == "test-request-123"
        assert get_request_id() == "test-request-123"
        clear_request_id()

    def test_set_request_id_auto_generate(self) -> None:
        """Test auto-generating request_id"""
        result = set_request_id()

        assert result.startswith("req_")
        assert len(result) == 16  # "req_" (4) + 12 hex chars
        assert get_request_id() == result
        clear_request_id()

    def test_empty_request_id_is_replaced(self) -> None:
        assert set_request_id("").startswith("req_")
        clear_request_id()

    def test_clear_request_id(self) -> None:
        set_request_id("test-123")
        clear_request_id()

        assert get_request_id() is None


class TestAddRequestIDProcessor:
    """Test request_id processor for structlog"""

    def test_add_request_id_when_set(self) -> None:
        set_request_id("test-request-456")

        result = add_request_id(None, "info", {"event": "test"})

        assert result == {"event": "test", "request_id": "test-request-456"}
        clear_request_id()

    def test_add_request_id_when_not_set(self) -> None:
        clear_request_id()

        result = add_request_id(None, "info", {"event": "test"})

        assert "request_id" not in result


class TestLoggingConfiguration:
    """Test logging configuration"""

    def test_json_output_contains_context(self, capsys: pytest.CaptureFixture) -> None:
        configure_logging(log_level="INFO", log_format="json")
        set_request_id("req-json-test")

        get_logger("homedash.test").info("job_started", job_id="abc")
        clear_request_id()

        records = [r for r in _json_lines(capsys.readouterr().out) if r["event"] == "job_started"]
        assert len(records) == 1
        record = records[0]
        assert record["job_id"] == "abc"
        assert record["request_id"] == "req-json-test"
        assert record["level"] == "info"
        assert record["logger"] == "homedash.test"
        assert "timestamp" in record

    def test_stdlib_records_use_same_format(self, capsys: pytest.CaptureFixture) -> None:
        configure_logging(log_level="INFO", log_format="json")

        logging.getLogger("some.library").warning("plain stdlib message")

        records = _json_lines(capsys.readouterr().out)
        assert any(r["event"] == "plain stdlib message" for r in records)

    def test_level_filters_debug(self, capsys: pytest.CaptureFixture) -> None:
        configure_logging(log_level="WARNING", log_format="json")

        get_logger("homedash.test").info("should_not_appear")

        assert "should_not_appear" not in capsys.readouterr().out

    def test_http_client_loggers_are_quiet(self) -> None:
        configure_logging(log_level="DEBUG", log_format="json")

        assert logging.getLogger("httpx").level == logging.WARNING
        assert logging.getLogger("uvicorn.access").level == logging.WARNING

    def test_console_format(self, capsys: pytest.CaptureFixture) -> None:
        configure_logging(log_level="DEBUG", log_format="console")

        get_logger("homedash.test").debug("debug_message")

        assert "debug_message" in capsys.readouterr().out
