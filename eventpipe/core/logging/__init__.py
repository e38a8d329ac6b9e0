"""Logging utilities for monitoring and debugging."""

from eventpipe.core.logging.config import LogConfig
from eventpipe.core.logging.logger import (
    bind,
    configure_logging,
    log_context,
    logger,
)

__all__ = [
    "LogConfig",
    "bind",
    "configure_logging",
    "log_context",
    "logger",
]
