"""Feature engineering for processed records."""

from __future__ import annotations

import math
from datetime import UTC, datetime
from typing import Any

from loguru import logger

from eventpipe.core.models import ProcessedRecord, RecordFeatures

_SECONDS_PER_DAY = 24 * 60 * 60
EARLY_REGISTRATION_DAYS = 7


def day_of_week(moment: datetime) -> int:
    """Sunday=0 ... Saturday=6."""
    return (moment.weekday() + 1) % 7


def days_between(start: datetime, end: datetime) -> int:
    return math.ceil((end - start).total_seconds() / _SECONDS_PER_DAY)


def calculate_engagement_score(
    participation_type: str | None,
    days_until_event: Any,
    payment_status: str | None,
) -> float:
    """Placeholder heuristic until a trained model replaces it."""

    score = 0.5
    if participation_type == "team":
        score += 0.1
    if isinstance(days_until_event, int | float) and days_until_event > EARLY_REGISTRATION_DAYS:
        score += 0.2
    if payment_status == "verified":
        score += 0.2
    return round(min(score, 1.0), 4)


def _field(record: ProcessedRecord, name: str) -> Any:
    if name in type(record).model_fields:
        return getattr(record, name)
    return record.extra.get(name)


def _as_utc(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        return value.astimezone(UTC)
    return None


def _word_count(text: str) -> int:
    return len(text.split(" "))


def _build_features(record: ProcessedRecord) -> RecordFeatures:
    features: dict[str, Any] = {}

    created = _as_utc(_field(record, "created_at"))
    start = _as_utc(_field(record, "start_date"))
    if created is not None:
        features["registration_hour"] = created.hour
        features["registration_day_of_week"] = day_of_week(created)
        features["registration_month"] = created.month
    if start is not None:
        features["event_hour"] = start.hour
        features["event_day_of_week"] = day_of_week(start)
        features["event_month"] = start.month
        if created is not None:
            features["days_until_event"] = days_between(created, start)

    email = _field(record, "participant_email")
    if isinstance(email, str) and email:
        features["email_domain"] = email.split("@")[1] if "@" in email else None
        features["email_length"] = len(email)

    name = _field(record, "participant_name")
    if isinstance(name, str) and name:
        features["name_length"] = len(name)
        features["name_word_count"] = _word_count(name)

    title = _field(record, "title")
    if isinstance(title, str) and title:
        features["title_length"] = len(title)
        features["title_word_count"] = _word_count(title)

    participation_type = _field(record, "participation_type")
    features["is_team_participation"] = participation_type == "team"
    features["requires_payment"] = bool(_field(record, "requires_payment"))

    team_size = _field(record, "team_size")
    if team_size is not None:
        features["team_size"] = int(team_size)

    amount = _field(record, "payment_amount")
    if amount not in (None, ""):
        features["payment_amount_numeric"] = float(amount)

    days_until_event = features.get("days_until_event", _field(record, "days_until_event"))
    features["engagement_score"] = calculate_engagement_score(
        participation_type, days_until_event, _field(record, "payment_status")
    )
    return RecordFeatures(**features)


def engineer_features(record: ProcessedRecord) -> ProcessedRecord:
    """Return a copy of ``record`` carrying its engineered features.

    A derivation failure is logged and ``record`` itself is returned unmodified.
    """

    try:
        features = _build_features(record)
    except (TypeError, ValueError, AttributeError) as exc:
        logger.warning("Feature engineering failed", record_id=record.id, error=str(exc))
        return record
    return record.model_copy(update={"features": features})


__all__ = ["calculate_engagement_score", "day_of_week", "days_between", "engineer_features"]
