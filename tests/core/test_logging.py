"""Tests for structlog configuration and context helpers."""

import io
import json
import os
import subprocess
import sys

import session_timer
from session_timer.core.logging import (
    LogContext,
    bind_context,
    clear_context,
    configure_logging,
    get_logger,
)


def _json_lines(stream: io.StringIO) -> list[dict]:
    return [json.loads(line) for line in stream.getvalue().splitlines() if line.strip()]


class TestConfigureLogging:
    def test_json_output_has_ecs_fields(self):
        stream = io.StringIO()
        configure_logging(level="INFO", json_format=True, service="test-svc", stream=stream)
        get_logger("session_timer.test").info("segment_activated", index=2)

        (record,) = _json_lines(stream)
        assert record["event"] == "segment_activated"
        assert record["index"] == 2
        assert record["log.level"] == "info"
        assert record["service.name"] == "test-svc"
        assert record["logger"] == "session_timer.test"
        assert "@timestamp" in record

    def test_level_filtering(self):
        stream = io.StringIO()
        configure_logging(level="WARNING", json_format=True, stream=stream)
        logger = get_logger("x")
        logger.info("hidden")
        logger.warning("shown")
        assert [r["event"] for r in _json_lines(stream)] == ["shown"]

    def test_module_logger_created_before_configure(self):
        logger = get_logger("early")
        stream = io.StringIO()
        configure_logging(level="DEBUG", json_format=True, stream=stream)
        logger.debug("late_configured")
        assert _json_lines(stream)[0]["event"] == "late_configured"

    def test_console_renderer_for_non_json(self):
        stream = io.StringIO()
        configure_logging(level="INFO", json_format=False, stream=stream)
        get_logger("x").info("plain_event", value=1)
        assert "plain_event" in stream.getvalue()


class TestContext:
    def test_log_context_binds_and_unbinds(self):
        stream = io.StringIO()
        configure_logging(level="INFO", json_format=True, stream=stream)
        logger = get_logger("ctx")

        with LogContext(segment_index=3):
            logger.info("inside")
        logger.info("outside")

        inside, outside = _json_lines(stream)
        assert inside["segment_index"] == 3
        assert "segment_index" not in outside

    def test_bind_and_clear(self):
        stream = io.StringIO()
        configure_logging(level="INFO", json_format=True, stream=stream)
        bind_context(run="r1")
        get_logger("ctx").info("bound")
        clear_context()
        get_logger("ctx").info("cleared")

        bound, cleared = _json_lines(stream)
        assert bound["run"] == "r1"
        assert "run" not in cleared


class TestGetLogger:
    def test_named_logger_works_under_default_config(self):
        logger = get_logger("session_timer.segments.scheduler")
        logger.bind(index=1).info("segment_activated")

    def test_package_imports_in_fresh_interpreter(self):
        code = "import session_timer, session_timer.cli.app; print(session_timer.__version__)"
        result = subprocess.run(
            [sys.executable, "-c", code],
            capture_output=True,
            text=True,
            env={**os.environ, "PYTHONPATH": os.pathsep.join(sys.path)},
            timeout=60,
        )
        assert result.returncode == 0, result.stderr
        assert result.stdout.strip() == session_timer.__version__

    def test_logger_name_field_only_once(self):
        stream = io.StringIO()
        configure_logging(level="INFO", json_format=True, stream=stream)
        get_logger("session_timer.named").info("named_event")

        (record,) = _json_lines(stream)
        assert record["logger"] == "session_timer.named"
        assert "logger_name" not in record
