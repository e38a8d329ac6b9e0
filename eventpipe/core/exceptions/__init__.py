"""Exception handling module."""

from eventpipe.core.exceptions.base import (
    ConfigurationError,
    PipelineError,
    PipelineStateError,
    QueryRejectedError,
    SourceError,
    StartupError,
    StorageError,
    StorageInitError,
    TransformationError,
    ValidationError,
)
from eventpipe.core.exceptions.codes import ErrorCode

__all__ = [
    "ErrorCode",
    "PipelineError",
    "ConfigurationError",
    "SourceError",
    "ValidationError",
    "TransformationError",
    "StorageError",
    "StorageInitError",
    "StartupError",
    "QueryRejectedError",
    "PipelineStateError",
]
