"""
Unit tests for structured logging.
"""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path

import pytest

from graphrag_engine.core.logging import (
    CorrelationIdFilter,
    JSONFormatter,
    clear_correlation_id,
    get_correlation_id,
    get_log_level_from_env,
    set_correlation_id,
    setup_structured_logging,
)


def make_record(message: str = "hello %s", args: tuple = ("world",)) -> logging.LogRecord:
    return logging.LogRecord(
        name="graphrag_engine.test",
        level=logging.WARNING,
        pathname=__file__,
        lineno=1,
        msg=message,
        args=args,
        exc_info=None,
    )


@pytest.fixture(autouse=True)
def reset_correlation_id():
    clear_correlation_id()
    yield
    clear_correlation_id()


class TestJSONFormatter:
    """Tests for JSON log lines."""

    def test_standard_fields(self) -> None:
        """Every line carries the standard fields."""
        record = make_record()
        record.correlation_id = "abc"

        data = json.loads(JSONFormatter(service_name="svc").format(record))

        assert data["level"] == "WARNING"
        assert data["service"] == "svc"
        assert data["correlation_id"] == "abc"
        assert data["message"] == "hello world"
        assert data["module"] == "test_logging"
        assert "timestamp" in data
        assert "exception" not in data

    def test_search_fields_from_extra(self) -> None:
        """Search summary attributes are copied into the line."""
        record = make_record()
        record.search_mode = "hybrid"
        record.result_count = 4
        record.degraded_modalities = ["graph_traversal"]

        data = json.loads(JSONFormatter().format(record))

        assert data["search_mode"] == "hybrid"
        assert data["result_count"] == 4
        assert data["degraded_modalities"] == ["graph_traversal"]
        assert "total_time_ms" not in data

    def test_exception_included(self) -> None:
        """exc_info is rendered under 'exception'."""
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            record = make_record()
            record.exc_info = sys.exc_info()

        data = json.loads(JSONFormatter().format(record))
        assert "RuntimeError: boom" in data["exception"]
        assert data["correlation_id"] == "-"


class TestCorrelationId:
    """Tests for correlation ID propagation."""

    def test_filter_uses_context(self) -> None:
        """The filter copies the context correlation ID onto records."""
        set_correlation_id("req-1")
        record = make_record()

        assert CorrelationIdFilter().filter(record) is True
        assert record.correlation_id == "req-1"

    def test_filter_placeholder(self) -> None:
        """Without a correlation ID the placeholder '-' is used."""
        record = make_record()
        CorrelationIdFilter().filter(record)
        assert record.correlation_id == "-"

    def test_set_and_clear(self) -> None:
        """set / get / clear round trip."""
        set_correlation_id("req-2")
        assert get_correlation_id() == "req-2"
        clear_correlation_id()
        assert get_correlation_id() is None


class TestSetup:
    """Tests for logger configuration."""

    def test_log_level_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """GRAPHRAG_LOG_LEVEL selects the level; junk falls back to INFO."""
        monkeypatch.setenv("GRAPHRAG_LOG_LEVEL", "debug")
        assert get_log_level_from_env() == logging.DEBUG
        monkeypatch.setenv("GRAPHRAG_LOG_LEVEL", "nonsense")
        assert get_log_level_from_env() == logging.INFO

    def test_setup_console_and_file(self, tmp_path: Path) -> None:
        """Console and rotating file handlers are attached."""
        log_file = tmp_path / "logs" / "engine.log"
        logger = setup_structured_logging(
            log_file_path=str(log_file),
            log_level=logging.INFO,
            logger_name="graphrag_engine.test_setup",
        )
        try:
            assert len(logger.handlers) == 2
            assert logger.propagate is False

            set_correlation_id("req-3")
            logger.info("written")
            for handler in logger.handlers:
                handler.flush()

            line = log_file.read_text(encoding="utf-8").strip().splitlines()[-1]
            data = json.loads(line)
            assert data["message"] == "written"
            assert data["correlation_id"] == "req-3"
        finally:
            for handler in logger.handlers:
                handler.close()
            logger.handlers.clear()
