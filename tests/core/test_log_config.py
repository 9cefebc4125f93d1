"""Tests for ucd_spine.core.logging."""

import io
import json

import pytest
import structlog

from ucd_spine.core.logging import (
    LogContext,
    bind_context,
    clear_context,
    configure_logging,
    get_logger,
    unbind_context,
)


@pytest.fixture
def stream():
    buffer = io.StringIO()
    yield buffer
    structlog.reset_defaults()


def _records(buffer: io.StringIO) -> list[dict]:
    return [json.loads(line) for line in buffer.getvalue().splitlines() if line.strip()]


class TestConfigureLogging:
    """JSON output and level filtering."""

    def test_json_record_fields(self, stream):
        configure_logging(level="INFO", json_format=True, stream=stream, cache_loggers=False)
        get_logger("ucd_spine.test").info("crawl.complete", version="16.0.0", files=3)

        (record,) = _records(stream)
        assert record["event"] == "crawl.complete"
        assert record["version"] == "16.0.0"
        assert record["files"] == 3
        assert record["logger_name"] == "ucd_spine.test"
        assert record["log.level"] == "info"
        assert record["service.name"] == "ucd-spine"
        assert "@timestamp" in record

    def test_debug_suppressed_at_info(self, stream):
        configure_logging(level="INFO", json_format=True, stream=stream, cache_loggers=False)
        logger = get_logger("x")
        logger.debug("hidden")
        logger.warning("shown")
        assert [r["event"] for r in _records(stream)] == ["shown"]

    def test_custom_service_name(self, stream):
        configure_logging(json_format=True, service="worker", stream=stream, cache_loggers=False)
        get_logger().info("hello")
        assert _records(stream)[0]["service.name"] == "worker"

    def test_console_format_is_not_json(self, stream):
        configure_logging(json_format=False, stream=stream, cache_loggers=False)
        get_logger().info("hello.console")
        output = stream.getvalue()
        assert "hello.console" in output
        with pytest.raises(json.JSONDecodeError):
            json.loads(output.splitlines()[0])


class TestContext:
    """Context binding via contextvars."""

    def test_bind_and_unbind(self, stream):
        configure_logging(json_format=True, stream=stream, cache_loggers=False)
        logger = get_logger()
        bind_context(workflow_id="wf-1", version="16.0.0")
        logger.info("one")
        unbind_context("version")
        logger.info("two")
        clear_context()
        logger.info("three")

        one, two, three = _records(stream)
        assert one["workflow_id"] == "wf-1" and one["version"] == "16.0.0"
        assert two["workflow_id"] == "wf-1" and "version" not in two
        assert "workflow_id" not in three

    def test_log_context_scopes_fields(self, stream):
        configure_logging(json_format=True, stream=stream, cache_loggers=False)
        logger = get_logger()
        with LogContext(step="extract-tar"):
            logger.info("inside")
        logger.info("outside")

        inside, outside = _records(stream)
        assert inside["step"] == "extract-tar"
        assert "step" not in outside

    @pytest.mark.asyncio
    async def test_async_log_context(self, stream):
        configure_logging(json_format=True, stream=stream, cache_loggers=False)
        async with LogContext(workflow_id="wf-2"):
            get_logger().info("inside")
        assert _records(stream)[0]["workflow_id"] == "wf-2"
