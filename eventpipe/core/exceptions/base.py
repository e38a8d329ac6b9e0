"""Core exception classes for the event pipeline."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from eventpipe.core.exceptions.codes import ErrorCode


class PipelineError(Exception):
    """Base exception for every pipeline failure."""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode | str = ErrorCode.GENERAL_ERROR,
        details: dict[str, Any] | None = None,
    ):
        """Initialise the exception.

        Args:
            message: Human readable message.
            error_code: Machine readable error code.
            details: Extra structured context.
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code.value if isinstance(error_code, ErrorCode) else error_code
        self.details = details or {}

    def to_payload(self) -> dict[str, Any]:
        """Return a serializable payload representing the error."""

        return {
            "error_code": self.error_code,
            "message": self.message,
            "details": dict(self.details),
        }


class ConfigurationError(PipelineError):
    """Raised when pipeline configuration is invalid."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, ErrorCode.CONFIGURATION_ERROR, details)


class SourceError(PipelineError):
    """A single external source is unreachable or delivered malformed data."""

    def __init__(
        self,
        message: str,
        source_name: str,
        details: dict[str, Any] | None = None,
    ):
        super_details = details or {}
        super_details["source"] = source_name
        super().__init__(message, ErrorCode.SOURCE_ERROR, super_details)
        self.source_name = source_name


class ValidationError(PipelineError):
    """Field-level violations detected on one record."""

    def __init__(
        self,
        message: str,
        violations: Sequence[str] = (),
        record_id: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super_details = details or {}
        super_details["violations"] = list(violations)
        if record_id is not None:
            super_details["record_id"] = record_id
        super().__init__(message, ErrorCode.VALIDATION_ERROR, super_details)
        self.violations = list(violations)
        self.record_id = record_id


class TransformationError(PipelineError):
    """A single record could not be transformed into its processed shape."""

    def __init__(
        self,
        message: str,
        record_id: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super_details = details or {}
        if record_id is not None:
            super_details["record_id"] = record_id
        super().__init__(message, ErrorCode.TRANSFORMATION_ERROR, super_details)
        self.record_id = record_id


class StorageError(PipelineError):
    """A warehouse write or read failed."""

    def __init__(
        self,
        message: str,
        table: str | None = None,
        details: dict[str, Any] | None = None,
        error_code: ErrorCode = ErrorCode.STORAGE_ERROR,
    ):
        super_details = details or {}
        if table is not None:
            super_details["table"] = table
        super().__init__(message, error_code, super_details)
        self.table = table


class StorageInitError(StorageError):
    """The warehouse directory or database file could not be created or opened."""

    def __init__(self, message: str, path: str | None = None, details: dict[str, Any] | None = None):
        super_details = details or {}
        if path is not None:
            super_details["path"] = path
        super().__init__(message, details=super_details, error_code=ErrorCode.STORAGE_INIT_ERROR)
        self.path = path


class StartupError(PipelineError):
    """The pipeline or one of its components could not start."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, ErrorCode.STARTUP_ERROR, details)


class QueryRejectedError(PipelineError):
    """An ad-hoc query was refused before reaching the warehouse."""

    def __init__(self, message: str, sql: str | None = None):
        details = {"sql": sql} if sql is not None else {}
        super().__init__(message, ErrorCode.QUERY_REJECTED, details)


class PipelineStateError(PipelineError):
    """A lifecycle operation was requested in a state that does not allow it."""

    def __init__(self, message: str, state: str):
        super().__init__(message, ErrorCode.PIPELINE_STATE_ERROR, {"state": state})
        self.state = state
