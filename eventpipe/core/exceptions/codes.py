"""Error codes shared by the pipeline exception hierarchy."""

from __future__ import annotations

from enum import Enum


class ErrorCode(str, Enum):
    """Stable machine-readable error identifiers."""

    GENERAL_ERROR = "GENERAL_ERROR"
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    SOURCE_ERROR = "SOURCE_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    TRANSFORMATION_ERROR = "TRANSFORMATION_ERROR"
    STORAGE_ERROR = "STORAGE_ERROR"
    STORAGE_INIT_ERROR = "STORAGE_INIT_ERROR"
    STARTUP_ERROR = "STARTUP_ERROR"
    QUERY_REJECTED = "QUERY_REJECTED"
    PIPELINE_STATE_ERROR = "PIPELINE_STATE_ERROR"
    NOT_FOUND = "NOT_FOUND"


__all__ = ["ErrorCode"]
