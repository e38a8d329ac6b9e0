"""Field normalization and conversion of raw records into typed processed records."""

from __future__ import annotations

import json
import re
from collections.abc import Iterable
from datetime import UTC, date, datetime
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from loguru import logger
from pydantic import ValidationError as PydanticValidationError

from eventpipe.core.config.settings import TransformationConfig
from eventpipe.core.exceptions import ConfigurationError, TransformationError
from eventpipe.core.models import (
    AttendanceRecord,
    EventRecord,
    GenericRecord,
    ProcessedRecord,
    RawRecord,
    RegistrationRecord,
)

_WHITESPACE = re.compile(r"\s+")

TEXT_FIELDS = ("participant_name", "title")
EXTRA_DATE_FIELDS = ("updated_at", "attendance_marked_at", "marked_at")

RECORD_TYPES: dict[str, type[ProcessedRecord]] = {
    "events": EventRecord,
    "registrations": RegistrationRecord,
    "attendance": AttendanceRecord,
}

_ENVELOPE_FIELDS = {
    "id",
    "kind",
    "source",
    "collection",
    "ingested_at",
    "pipeline_id",
    "processed_at",
    "processor_version",
    "validation_errors",
    "features",
    "extra",
}


def normalize_text(text: Any) -> Any:
    """Trim, collapse whitespace and title-case every word."""

    if not isinstance(text, str) or not text:
        return text
    words = _WHITESPACE.sub(" ", text.strip()).split(" ")
    return " ".join(word[:1].upper() + word[1:].lower() for word in words)


def resolve_timezone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ConfigurationError(f"Unknown timezone: {name}", {"timezone": name}) from exc


def parse_timestamp(value: Any, tz: ZoneInfo | None = None) -> datetime:
    """Return ``value`` as an aware UTC datetime.

    Accepts datetimes, dates, ISO-8601 strings and epoch milliseconds. Naive
    values are interpreted in ``tz`` (UTC when omitted).

    Raises:
        ValueError: if ``value`` cannot be interpreted as a timestamp.
    """

    local_tz = tz or UTC
    if isinstance(value, bool):
        raise ValueError(f"Not a timestamp: {value!r}")
    if isinstance(value, datetime):
        moment = value
    elif isinstance(value, date):
        moment = datetime(value.year, value.month, value.day)
    elif isinstance(value, int | float):
        return datetime.fromtimestamp(value / 1000, tz=UTC)
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            raise ValueError("Empty timestamp")
        moment = datetime.fromisoformat(text)
    else:
        raise ValueError(f"Not a timestamp: {value!r}")

    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=local_tz)
    return moment.astimezone(UTC)


def transform_record(
    record: RawRecord,
    config: TransformationConfig,
    date_fields: Iterable[str],
) -> dict[str, Any]:
    """Return a normalized copy of ``record.data``; the record itself is untouched."""

    data = dict(record.data)

    if config.normalize_text:
        for field in TEXT_FIELDS:
            if data.get(field):
                data[field] = normalize_text(data[field])

    if config.canonicalize_dates:
        tz = resolve_timezone(config.timezone)
        for field in (*date_fields, *EXTRA_DATE_FIELDS):
            value = data.get(field)
            if value in (None, ""):
                continue
            try:
                data[field] = parse_timestamp(value, tz)
            except ValueError:
                logger.debug("Unparseable timestamp discarded", record_id=record.id, field=field)
                data[field] = None

    email = data.get("participant_email")
    if isinstance(email, str):
        data["participant_email"] = email.strip().lower()

    custom = data.get("custom_field_responses")
    if isinstance(custom, str) and custom:
        try:
            data["custom_field_responses"] = json.loads(custom)
        except json.JSONDecodeError as exc:
            logger.warning("Failed to parse custom_field_responses", record_id=record.id, error=str(exc))

    members = data.get("team_members")
    if isinstance(members, list) and data.get("team_size") in (None, ""):
        data["team_size"] = len(members)

    return data


def build_processed_record(
    record: RawRecord,
    data: dict[str, Any],
    validation_errors: list[str] | None = None,
) -> ProcessedRecord:
    """Select the record variant for the collection and populate it from ``data``.

    Raises:
        TransformationError: if a known field cannot be converted to its type.
    """

    record_type = RECORD_TYPES.get(record.collection, GenericRecord)
    known = set(record_type.model_fields) - _ENVELOPE_FIELDS

    fields: dict[str, Any] = {}
    extra: dict[str, Any] = {}
    for key, value in data.items():
        if key in known:
            fields[key] = None if value == "" else value
        elif key != "id":
            extra[key] = value

    try:
        return record_type(
            source=record.source,
            collection=record.collection,
            ingested_at=record.ingested_at,
            pipeline_id=record.pipeline_id,
            id=record.id,
            validation_errors=list(validation_errors or []),
            extra=extra,
            **fields,
        )
    except PydanticValidationError as exc:
        problems = [f"{'.'.join(map(str, err['loc']))}: {err['msg']}" for err in exc.errors()]
        raise TransformationError(
            f"Record {record.id} could not be converted", record.id, {"errors": problems}
        ) from exc


__all__ = [
    "RECORD_TYPES",
    "build_processed_record",
    "normalize_text",
    "parse_timestamp",
    "resolve_timezone",
    "transform_record",
]
