"""Notifications published by the pipeline."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from eventpipe.core.models.records import utcnow


class PipelineEventType(str, Enum):
    STARTED = "started"
    STOPPED = "stopped"
    RECORD = "record"
    REAL_TIME_RECORD = "real_time_record"
    HIGH_VALUE_REGISTRATION = "high_value_registration"
    REGISTRATION_CREATED = "registration_created"
    BATCH_PROCESSED = "batch_processed"
    BATCH_STORED = "batch_stored"
    MANUAL_RUN_COMPLETED = "manual_run_completed"
    ERROR = "error"
    SHEETS_SYNCED = "sheets_synced"
    EMAIL_LOGS_SYNCED = "email_logs_synced"


class PipelineEvent(BaseModel):
    type: PipelineEventType
    payload: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=utcnow)


__all__ = ["PipelineEvent", "PipelineEventType"]
