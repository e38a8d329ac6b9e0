"""Request and response models of the management API."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field


def _now() -> datetime:
    return datetime.now(UTC)


class APIResponse(BaseModel):
    """Standard response envelope."""

    success: bool = Field(..., description="Whether the request succeeded")
    data: Any | None = Field(None, description="Response payload")
    message: str | None = Field(None, description="Human readable message")
    timestamp: datetime = Field(default_factory=_now, description="Response timestamp")
    request_id: str | None = Field(None, description="Request id used for tracing")


class ErrorResponse(BaseModel):
    success: bool = Field(False, description="Always false")
    error: str = Field(..., description="Error type")
    message: str = Field(..., description="Error message")
    details: dict[str, Any] | None = Field(None, description="Structured error details")
    timestamp: datetime = Field(default_factory=_now, description="Error timestamp")
    request_id: str | None = Field(None, description="Request id used for tracing")


class TriggerRequest(BaseModel):
    source: str = Field("manual", description="Who or what requested the run")


class QueryRequest(BaseModel):
    sql: str = Field(..., min_length=1, description="Read-only SQL query")
    params: list[Any] = Field(default_factory=list, description="Positional query parameters")


__all__ = ["APIResponse", "ErrorResponse", "QueryRequest", "TriggerRequest"]
