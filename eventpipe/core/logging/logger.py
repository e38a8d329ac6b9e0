"""JSON-line logging on loguru with a per-task trace id and context bag."""

from __future__ import annotations

import json
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime
from pathlib import Path
from typing import IO, Any
from uuid import uuid4

from loguru import logger

from eventpipe.core.logging.config import LogConfig

_TRACE_ID_VAR: ContextVar[str | None] = ContextVar("eventpipe_trace_id", default=None)
_CONTEXT_VAR: ContextVar[dict[str, Any]] = ContextVar("eventpipe_log_context", default={})

# Promoted to top-level payload keys; everything else in ``extra`` lands in ``context``.
_TOP_LEVEL_KEYS = ("trace_id", "source", "error_code")


def _ensure_trace_id() -> str:
    trace_id = _TRACE_ID_VAR.get()
    if trace_id is None:
        trace_id = uuid4().hex
        _TRACE_ID_VAR.set(trace_id)
    return trace_id


def _patch_record(record: dict[str, Any]) -> None:
    extra = record.setdefault("extra", {})
    for key, value in _CONTEXT_VAR.get({}).items():
        if extra.get(key) is None:
            extra[key] = value
    if not extra.get("trace_id"):
        extra["trace_id"] = _ensure_trace_id()


def _to_json(record: dict[str, Any]) -> str:
    extra = record.get("extra", {})
    payload: dict[str, Any] = {
        "timestamp": record["time"].isoformat(),
        "level": record["level"].name,
        "message": record["message"],
    }
    for key in _TOP_LEVEL_KEYS:
        payload[key] = extra.get(key)
    context = {k: v for k, v in extra.items() if k not in _TOP_LEVEL_KEYS}
    if context:
        payload["context"] = context
    if record.get("exception"):
        payload["exception"] = str(record["exception"])
    return json.dumps(payload, default=lambda v: v.isoformat() if isinstance(v, datetime) else str(v))


class _JsonLineSink:
    """Write one JSON document per record to a stream or an append-mode file."""

    def __init__(self, *, stream: IO[str] | None = None, path: str | None = None) -> None:
        self._stream = stream
        self._path = Path(path) if path else None
        if self._path is not None:
            self._path.parent.mkdir(parents=True, exist_ok=True)

    def __call__(self, message: Any) -> None:
        line = _to_json(message.record) + "\n"
        if self._path is not None:
            with self._path.open("a", encoding="utf-8") as handle:
                handle.write(line)
            return
        self._stream.write(line)
        self._stream.flush()


def _configure_from_config(config: LogConfig) -> None:
    level = config.level.upper()
    handlers: list[dict[str, Any]] = []
    if config.console_output:
        handlers.append({"sink": _JsonLineSink(stream=config.console_stream or sys.stderr), "level": level})
    if config.file_output and config.file_path:
        handlers.append({"sink": _JsonLineSink(path=config.file_path), "level": level})
    logger.configure(handlers=handlers, patcher=_patch_record, extra=dict(config.extra))


def configure_logging(level: str = "INFO", **kwargs: Any) -> None:
    """Configure structured logging with the provided level and options."""

    _configure_from_config(LogConfig(level=level, **kwargs))


def bind(**kwargs: Any) -> Any:
    """Bind structured context to the global logger instance."""

    return logger.bind(**kwargs)


@contextmanager
def log_context(*, trace_id: str | None = None, **extra: Any) -> Iterator[str]:
    """Context manager that propagates trace ids and additional metadata."""

    previous_context = _CONTEXT_VAR.get({})
    context_token = _CONTEXT_VAR.set({**previous_context, **extra})

    active_trace = trace_id or uuid4().hex
    trace_token = _TRACE_ID_VAR.set(active_trace)

    try:
        yield active_trace
    finally:
        _TRACE_ID_VAR.reset(trace_token)
        _CONTEXT_VAR.reset(context_token)


__all__ = [
    "bind",
    "configure_logging",
    "log_context",
    "logger",
]
