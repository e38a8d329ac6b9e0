"""Tests for table definitions and record-to-row mapping."""

from datetime import UTC, datetime

from eventpipe.core.models import EventRecord, RegistrationRecord
from eventpipe.core.storage.mappers import (
    map_attendance_row,
    map_event_row,
    map_registration_row,
    map_user_row,
    to_naive_utc,
)
from eventpipe.core.storage.schema import DIM_EVENTS, DIM_USERS, FACT_REGISTRATIONS, indexed_columns


def test_upsert_never_rewrites_keys_or_indexed_columns() -> None:
    updates = set(FACT_REGISTRATIONS.update_columns(indexed_columns("fact_registrations")))

    assert "registration_id" not in updates
    assert "event_id" not in updates
    assert "user_id" not in updates
    assert "created_at" not in updates
    assert "payment_status" in updates


def test_upsert_sql_shape() -> None:
    sql = DIM_USERS.upsert_sql(indexed_columns("dim_users"))

    assert sql.startswith("INSERT INTO dim_users (user_id, participant_name")
    assert "ON CONFLICT (user_id) DO UPDATE SET" in sql
    assert "total_registrations = excluded.total_registrations" not in sql
    assert "engagement_score = excluded.engagement_score" in sql


def test_event_create_ddl_has_primary_key() -> None:
    ddl = DIM_EVENTS.create_ddl()

    assert ddl.startswith("CREATE TABLE IF NOT EXISTS dim_events")
    assert "PRIMARY KEY (event_id)" in ddl


def test_to_naive_utc() -> None:
    aware = datetime(2024, 1, 1, 9, 0, tzinfo=UTC)

    assert to_naive_utc(aware) == datetime(2024, 1, 1, 9, 0)
    assert to_naive_utc(None) is None


def test_event_mapper_requires_title() -> None:
    untitled = EventRecord(source="events", collection="events", id="e1")
    titled = EventRecord(source="events", collection="events", id="e1", title="Hack Night")

    assert map_event_row(untitled) is None
    assert map_event_row(titled)["event_id"] == "e1"


def test_mappers_reject_other_record_kinds() -> None:
    event = EventRecord(source="events", collection="events", id="e1", title="Hack Night")

    assert map_user_row(event) is None
    assert map_registration_row(event) is None
    assert map_attendance_row(event) is None


def test_registration_rows() -> None:
    record = RegistrationRecord(
        source="registrations",
        collection="registrations",
        id="r1",
        event_id="e1",
        participant_email="ada@example.com",
        custom_field_responses={"shirt": "M"},
        attendance_status="present",
        attendance_marked_at=datetime(2024, 1, 6, 14, 0, tzinfo=UTC),
    )

    user = map_user_row(record)
    registration = map_registration_row(record)
    attendance = map_attendance_row(record)

    assert user["user_id"] == "ada@example.com"
    assert user["email_domain"] == "example.com"
    assert user["engagement_score"] == 0.5
    assert registration["user_id"] == "ada@example.com"
    assert registration["custom_fields_json"] == '{"shirt": "M"}'
    assert attendance["attendance_id"] == "r1"
    assert attendance["registration_id"] == "r1"
    assert attendance["attendance_hour"] == 14
    assert attendance["attendance_day_of_week"] == 6


def test_registration_without_mark_has_no_attendance_row() -> None:
    record = RegistrationRecord(
        source="registrations",
        collection="registrations",
        id="r1",
        event_id="e1",
        attendance_status="present",
    )

    assert map_attendance_row(record) is None
