"""
Tests for structured logging configuration and performance logging.
"""

import json
import logging

import pytest
import structlog

from app.features.core.structured_logging import configure_logging, log_performance


@pytest.fixture(autouse=True)
def reset_structlog():
    yield
    structlog.reset_defaults()
    logging.getLogger().handlers.clear()


@pytest.mark.unit
class TestStructuredLogging:
    """Test structlog configuration over the standard library."""

    def test_json_output_includes_bound_context(self, capsys):
        configure_logging(level="INFO", format_type="json")
        logger = structlog.get_logger("app.test")

        with structlog.contextvars.bound_contextvars(run_id="abc123"):
            logger.info("Sequence step executed", sequence_id="s1")

        lines = [json.loads(line) for line in capsys.readouterr().out.strip().splitlines()]
        record = lines[-1]
        assert record["event"] == "Sequence step executed"
        assert record["sequence_id"] == "s1"
        assert record["run_id"] == "abc123"
        assert record["level"] == "info"

    def test_log_file_mirrors_output(self, tmp_path):
        log_file = tmp_path / "engine.log"
        configure_logging(level="INFO", format_type="json", log_file=str(log_file))

        structlog.get_logger("app.test").warning("Failed to record outreach event", kind="sequence_created")
        for handler in logging.getLogger().handlers:
            handler.flush()

        assert "Failed to record outreach event" in log_file.read_text()

    def test_log_performance_reports_failure(self, capsys):
        configure_logging(level="INFO", format_type="json")

        with pytest.raises(RuntimeError):
            with log_performance("sequence_execution", sequence_id="s1"):
                raise RuntimeError("boom")

        records = [json.loads(line) for line in capsys.readouterr().out.strip().splitlines()]
        completed = records[-1]
        assert completed["operation"] == "sequence_execution"
        assert completed["success"] is False
        assert records[-2]["error"] == "boom"
