"""Per-table mapping of processed records to warehouse rows."""

from __future__ import annotations

import json
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

from eventpipe.core.models import AttendanceRecord, EventRecord, ProcessedRecord, RegistrationRecord
from eventpipe.core.processing.features import day_of_week
from eventpipe.core.storage.schema import DIM_EVENTS, DIM_USERS, FACT_ATTENDANCE, FACT_REGISTRATIONS

Row = dict[str, Any]
RowMapper = Callable[[ProcessedRecord], Row | None]

DEFAULT_ENGAGEMENT_SCORE = 0.5


def to_naive_utc(value: datetime | None) -> datetime | None:
    """Warehouse timestamps are naive UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value
    return value.astimezone(UTC).replace(tzinfo=None)


def _email_domain(record: RegistrationRecord) -> str | None:
    if record.features.email_domain:
        return record.features.email_domain
    email = record.participant_email or ""
    return email.split("@", 1)[1] if "@" in email else None


def map_event_row(record: ProcessedRecord) -> Row | None:
    if not isinstance(record, EventRecord) or not record.title:
        return None
    return {
        "event_id": record.id,
        "title": record.title,
        "description": record.description,
        "club_id": record.club_id,
        "club_name": record.club_name,
        "category_id": record.category_id,
        "category_name": record.category_name,
        "start_date": to_naive_utc(record.start_date),
        "end_date": to_naive_utc(record.end_date),
        "location": record.location,
        "max_participants": record.max_participants,
        "participation_type": record.participation_type,
        "requires_payment": record.requires_payment,
        "payment_amount": record.payment_amount,
        "status": record.status,
        "created_at": to_naive_utc(record.created_at or record.processed_at),
        "updated_at": to_naive_utc(record.updated_at or record.processed_at),
        "_processed_at": to_naive_utc(record.processed_at),
    }


def map_user_row(record: ProcessedRecord) -> Row | None:
    """One user per registration, keyed by the normalized contact address."""
    if not isinstance(record, RegistrationRecord) or not record.participant_email:
        return None
    score = record.features.engagement_score
    return {
        "user_id": record.participant_email,
        "participant_name": record.participant_name,
        "participant_phone": record.participant_phone,
        "email_domain": _email_domain(record),
        "first_registration_date": to_naive_utc(record.created_at),
        "total_registrations": 0,
        "total_attendance": 0,
        "engagement_score": DEFAULT_ENGAGEMENT_SCORE if score is None else score,
        "created_at": to_naive_utc(record.created_at or record.processed_at),
        "updated_at": to_naive_utc(record.processed_at),
    }


def map_registration_row(record: ProcessedRecord) -> Row | None:
    if not isinstance(record, RegistrationRecord) or not record.event_id:
        return None
    custom = record.custom_field_responses
    features = record.features
    return {
        "registration_id": record.id,
        "event_id": record.event_id,
        "user_id": record.participant_email,
        "participation_type": record.participation_type,
        "team_name": record.team_name,
        "team_size": record.team_size if record.team_size is not None else features.team_size,
        "payment_status": record.payment_status,
        "payment_amount": record.payment_amount,
        "registration_hour": features.registration_hour,
        "registration_day_of_week": features.registration_day_of_week,
        "days_until_event": features.days_until_event,
        "custom_fields_json": None if custom is None else json.dumps(custom, default=str),
        "created_at": to_naive_utc(record.created_at or record.processed_at),
        "_processed_at": to_naive_utc(record.processed_at),
    }


def _attendance_row(
    attendance_id: str,
    registration_id: str | None,
    event_id: str | None,
    user_id: str | None,
    status: str | None,
    marked_at: datetime | None,
    scan_method: str | None,
    created_at: datetime,
) -> Row:
    marked_utc = marked_at.astimezone(UTC) if marked_at is not None else None
    return {
        "attendance_id": attendance_id,
        "registration_id": registration_id,
        "event_id": event_id,
        "user_id": user_id,
        "attendance_status": status,
        "marked_at": to_naive_utc(marked_utc),
        "qr_scan_method": scan_method,
        "attendance_hour": marked_utc.hour if marked_utc else None,
        "attendance_day_of_week": day_of_week(marked_utc) if marked_utc else None,
        "created_at": to_naive_utc(created_at),
    }


def map_attendance_row(record: ProcessedRecord) -> Row | None:
    if isinstance(record, AttendanceRecord):
        if not record.registration_id:
            return None
        return _attendance_row(
            record.id,
            record.registration_id,
            record.event_id,
            record.participant_email,
            record.attendance_status,
            record.marked_at,
            record.qr_scan_method,
            record.created_at or record.processed_at,
        )
    if isinstance(record, RegistrationRecord) and record.has_attendance_mark:
        return _attendance_row(
            record.id,
            record.id,
            record.event_id,
            record.participant_email,
            record.attendance_status,
            record.attendance_marked_at,
            record.qr_scan_method,
            record.processed_at,
        )
    return None


TABLE_MAPPERS: dict[str, RowMapper] = {
    DIM_EVENTS.name: map_event_row,
    DIM_USERS.name: map_user_row,
    FACT_REGISTRATIONS.name: map_registration_row,
    FACT_ATTENDANCE.name: map_attendance_row,
}


__all__ = [
    "TABLE_MAPPERS",
    "map_attendance_row",
    "map_event_row",
    "map_registration_row",
    "map_user_row",
    "to_naive_utc",
]
