"""Field-level validation of raw records."""

from __future__ import annotations

import re
from functools import lru_cache
from typing import Any

from eventpipe.core.config.settings import ValidationConfig
from eventpipe.core.models import RawRecord
from eventpipe.core.processing.transformer import parse_timestamp

_TRUE_STRINGS = {"true", "1", "yes", "on"}


@lru_cache(maxsize=16)
def _compile(pattern: str) -> re.Pattern[str]:
    return re.compile(pattern)


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _is_truthy(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_STRINGS
    return bool(value)


def validate_record(record: RawRecord, rules: ValidationConfig) -> list[str]:
    """Return every violation found on ``record``; an empty list means valid."""

    errors: list[str] = []

    for field in rules.required_fields.get(record.collection, []):
        if _is_blank(record.get(field)):
            errors.append(f"Missing required field: {field}")

    email = record.get("participant_email")
    if not _is_blank(email) and not _compile(rules.email_pattern).match(str(email).strip()):
        errors.append("Invalid email format")

    phone = record.get("participant_phone")
    if not _is_blank(phone) and not _compile(rules.phone_pattern).match(str(phone)):
        errors.append("Invalid phone format")

    for field in rules.date_fields:
        value = record.get(field)
        if _is_blank(value):
            continue
        try:
            parse_timestamp(value)
        except ValueError:
            errors.append(f"Invalid {field} format")

    if record.get("participation_type") == "team" and _is_blank(record.get("team_name")):
        errors.append("Team name required for team participation")

    if _is_truthy(record.get("requires_payment")) and _is_blank(record.get("payment_amount")):
        errors.append("Payment amount required when payment is required")

    return errors


__all__ = ["validate_record"]
