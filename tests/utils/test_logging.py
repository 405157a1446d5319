"""Tests for the logging utility module."""

import pytest
import structlog


class TestConfigureLogging:
    """Tests for configure_logging function."""

    def test_configure_logging_default(self):
        """Test configure_logging with defaults."""
        from src.utils.logging import configure_logging

        # Should not raise
        configure_logging()

    def test_configure_logging_json_format(self):
        """Test configure_logging with JSON output and no timestamps."""
        from src.utils.logging import configure_logging

        configure_logging(level="DEBUG", json_format=True, include_timestamp=False)


class TestLogContext:
    """Tests for LogContext."""

    def test_log_context_binds_and_unbinds(self):
        """Test context vars are visible only inside the block."""
        from src.utils.logging import LogContext

        with LogContext(session_id="rec-1"):
            assert structlog.contextvars.get_contextvars()["session_id"] == "rec-1"

        assert "session_id" not in structlog.contextvars.get_contextvars()

    def test_log_context_nested(self):
        from src.utils.logging import LogContext

        with LogContext(session_id="rec-1"):
            with LogContext(batch=2):
                ctx = structlog.contextvars.get_contextvars()
                assert ctx["session_id"] == "rec-1"
                assert ctx["batch"] == 2


class TestLogOperation:
    """Tests for log_operation context manager."""

    def test_log_operation_success(self):
        """Test successful operations are marked as such."""
        from src.utils.logging import configure_logging, log_operation

        configure_logging()
        with log_operation("process_events", session_id="rec-1") as op:
            op["processed"] = 3

        assert op["success"] is True
        assert op["error"] is None

    def test_log_operation_failure(self):
        """Test failures are recorded and re-raised."""
        from src.utils.logging import configure_logging, log_operation

        configure_logging()
        with pytest.raises(ValueError):
            with log_operation("process_events") as op:
                raise ValueError("bad batch")

        assert op["success"] is False
        assert op["error"] == "bad batch"
