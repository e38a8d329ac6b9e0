"""Tests for JSON structured logging and trace propagation."""

import io
import json
from pathlib import Path

from loguru import logger

from eventpipe.core.logging import (
    LogConfig,
    bind,
    configure_logging,
    log_context,
)


def _lines(stream: io.StringIO) -> list[dict]:
    return [json.loads(line) for line in stream.getvalue().splitlines() if line.strip()]


def test_default_config() -> None:
    config = LogConfig()

    assert config.level == "INFO"
    assert config.console_output is True
    assert config.file_output is False


def test_console_sink_emits_json_with_context() -> None:
    stream = io.StringIO()
    configure_logging("INFO", console_stream=stream)

    with log_context(trace_id="trace-123", source="registrations"):
        logger.info("Flushed batch", records=3)

    payload = _lines(stream)[-1]
    assert payload["message"] == "Flushed batch"
    assert payload["level"] == "INFO"
    assert payload["trace_id"] == "trace-123"
    assert payload["source"] == "registrations"
    assert payload["context"]["records"] == 3


def test_level_filters_lower_records() -> None:
    stream = io.StringIO()
    configure_logging("WARNING", console_stream=stream)

    logger.info("hidden")
    logger.warning("shown")

    messages = [entry["message"] for entry in _lines(stream)]
    assert messages == ["shown"]


def test_file_sink_writes_json_lines(tmp_path: Path) -> None:
    log_file = tmp_path / "logs" / "pipeline.log"
    configure_logging("INFO", console_output=False, file_output=True, file_path=str(log_file))

    logger.error("Warehouse write rolled back", table="dim_events")

    entries = [json.loads(line) for line in log_file.read_text(encoding="utf-8").splitlines()]
    assert entries[-1]["message"] == "Warehouse write rolled back"
    assert entries[-1]["context"]["table"] == "dim_events"


def test_log_context_restores_previous_trace() -> None:
    stream = io.StringIO()
    configure_logging("INFO", console_stream=stream)

    with log_context(trace_id="outer"):
        with log_context(trace_id="inner") as inner:
            logger.info("nested")
        logger.info("after")

    nested, after = _lines(stream)[-2:]
    assert inner == "inner"
    assert nested["trace_id"] == "inner"
    assert after["trace_id"] == "outer"


def test_log_context_generates_trace_id() -> None:
    stream = io.StringIO()
    configure_logging("INFO", console_stream=stream)

    with log_context() as trace_id:
        logger.info("traced")

    assert trace_id
    assert _lines(stream)[-1]["trace_id"] == trace_id


def test_bound_logger_carries_its_source() -> None:
    stream = io.StringIO()
    configure_logging("INFO", console_stream=stream)

    bind(source="spreadsheet").info("Synced rows", records=2)

    payload = _lines(stream)[-1]
    assert payload["source"] == "spreadsheet"
    assert payload["context"]["records"] == 2
