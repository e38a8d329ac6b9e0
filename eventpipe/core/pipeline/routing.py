"""Routing of processed records to their warehouse tables."""

from __future__ import annotations

from collections.abc import Iterable

from eventpipe.core.models import AttendanceRecord, EventRecord, ProcessedRecord, RegistrationRecord

EVENTS_TABLE = "dim_events"
USERS_TABLE = "dim_users"
REGISTRATIONS_TABLE = "fact_registrations"
ATTENDANCE_TABLE = "fact_attendance"

# Dimensions before facts so foreign keys resolve within one batch.
TABLE_ORDER = (EVENTS_TABLE, USERS_TABLE, REGISTRATIONS_TABLE, ATTENDANCE_TABLE)


def destinations(record: ProcessedRecord) -> tuple[str, ...]:
    """Tables a record is written to."""

    if isinstance(record, EventRecord):
        return (EVENTS_TABLE,)
    if isinstance(record, RegistrationRecord):
        if record.has_attendance_mark:
            return (USERS_TABLE, REGISTRATIONS_TABLE, ATTENDANCE_TABLE)
        return (USERS_TABLE, REGISTRATIONS_TABLE)
    if isinstance(record, AttendanceRecord):
        return (ATTENDANCE_TABLE,)
    return ()


def route_records(records: Iterable[ProcessedRecord]) -> dict[str, list[ProcessedRecord]]:
    """Group records by destination table; only non-empty groups, in ``TABLE_ORDER``."""

    groups: dict[str, list[ProcessedRecord]] = {table: [] for table in TABLE_ORDER}
    for record in records:
        for table in destinations(record):
            groups[table].append(record)
    return {table: group for table, group in groups.items() if group}


__all__ = [
    "ATTENDANCE_TABLE",
    "EVENTS_TABLE",
    "REGISTRATIONS_TABLE",
    "TABLE_ORDER",
    "USERS_TABLE",
    "destinations",
    "route_records",
]
