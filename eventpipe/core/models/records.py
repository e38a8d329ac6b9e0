"""Record models flowing through the pipeline."""

from __future__ import annotations

import secrets
import string
from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

PROCESSOR_VERSION = "1.0.0"

_BASE36 = string.digits + string.ascii_lowercase


def utcnow() -> datetime:
    return datetime.now(UTC)


def generate_pipeline_id(source: str, now: datetime | None = None) -> str:
    """Return ``<source>_<epoch-ms>_<9 random base36 chars>``."""

    moment = now or utcnow()
    suffix = "".join(secrets.choice(_BASE36) for _ in range(9))
    return f"{source}_{int(moment.timestamp() * 1000)}_{suffix}"


class RecordEnvelope(BaseModel):
    """Provenance shared by raw and processed records."""

    source: str
    collection: str
    ingested_at: datetime = Field(default_factory=utcnow)
    pipeline_id: str = ""


class RawRecord(RecordEnvelope):
    """A key/value record exactly as a source delivered it."""

    model_config = ConfigDict(frozen=True)

    id: str
    data: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def create(cls, source: str, collection: str, record_id: str, data: dict[str, Any]) -> RawRecord:
        now = utcnow()
        return cls(
            source=source,
            collection=collection,
            ingested_at=now,
            pipeline_id=generate_pipeline_id(source, now),
            id=str(record_id),
            data=dict(data),
        )

    def get(self, field: str, default: Any = None) -> Any:
        return self.data.get(field, default)


class Batch(BaseModel):
    """Records flushed together from one buffer."""

    model_config = ConfigDict(frozen=True)

    source: str
    records: tuple[RawRecord, ...] = ()
    created_at: datetime = Field(default_factory=utcnow)

    def __len__(self) -> int:
        return len(self.records)


class RecordFeatures(BaseModel):
    """Engineered features attached to a processed record."""

    registration_hour: int | None = None
    registration_day_of_week: int | None = None
    registration_month: int | None = None
    event_hour: int | None = None
    event_day_of_week: int | None = None
    event_month: int | None = None
    days_until_event: int | None = None
    email_domain: str | None = None
    email_length: int | None = None
    name_length: int | None = None
    name_word_count: int | None = None
    title_length: int | None = None
    title_word_count: int | None = None
    is_team_participation: bool | None = None
    requires_payment: bool | None = None
    team_size: int | None = None
    payment_amount_numeric: float | None = None
    engagement_score: float | None = None


class ProcessedRecord(RecordEnvelope):
    """A validated and transformed record."""

    kind: str = "generic"
    id: str
    processed_at: datetime = Field(default_factory=utcnow)
    processor_version: str = PROCESSOR_VERSION
    validation_errors: list[str] = Field(default_factory=list)
    features: RecordFeatures = Field(default_factory=RecordFeatures)
    extra: dict[str, Any] = Field(default_factory=dict)

    @property
    def is_valid(self) -> bool:
        return not self.validation_errors


class EventRecord(ProcessedRecord):
    kind: Literal["event"] = "event"
    title: str | None = None
    description: str | None = None
    club_id: str | None = None
    club_name: str | None = None
    category_id: str | None = None
    category_name: str | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    location: str | None = None
    max_participants: int | None = None
    participation_type: str | None = None
    requires_payment: bool | None = None
    payment_amount: float | None = None
    status: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class RegistrationRecord(ProcessedRecord):
    """A registration, optionally carrying an attendance mark."""

    kind: Literal["registration"] = "registration"
    event_id: str | None = None
    participant_name: str | None = None
    participant_email: str | None = None
    participant_phone: str | None = None
    participation_type: str | None = None
    team_name: str | None = None
    team_size: int | None = None
    payment_status: str | None = None
    payment_amount: float | None = None
    custom_field_responses: Any = None
    created_at: datetime | None = None
    attendance_status: str | None = None
    attendance_marked_at: datetime | None = None
    qr_scan_method: str | None = None

    @property
    def has_attendance_mark(self) -> bool:
        return bool(self.attendance_status) and self.attendance_marked_at is not None


class AttendanceRecord(ProcessedRecord):
    kind: Literal["attendance"] = "attendance"
    registration_id: str | None = None
    event_id: str | None = None
    participant_email: str | None = None
    attendance_status: str | None = None
    marked_at: datetime | None = None
    qr_scan_method: str | None = None
    created_at: datetime | None = None


class GenericRecord(ProcessedRecord):
    """Collections that are processed but never stored (clubs, categories, email logs)."""

    kind: Literal["generic"] = "generic"


class ProcessedBatch(BaseModel):
    source: str
    records: list[ProcessedRecord] = Field(default_factory=list)
    original_count: int = 0
    processed_count: int = 0
    created_at: datetime = Field(default_factory=utcnow)


__all__ = [
    "PROCESSOR_VERSION",
    "AttendanceRecord",
    "Batch",
    "EventRecord",
    "GenericRecord",
    "ProcessedBatch",
    "ProcessedRecord",
    "RawRecord",
    "RecordEnvelope",
    "RecordFeatures",
    "RegistrationRecord",
    "generate_pipeline_id",
    "utcnow",
]
