"""Tests for engineered features and the engagement heuristic."""

from datetime import UTC, datetime

from eventpipe.core.models import GenericRecord, RawRecord, RegistrationRecord
from eventpipe.core.processing import calculate_engagement_score, engineer_features
from eventpipe.core.processing.features import day_of_week, days_between


def _registration(**fields) -> RegistrationRecord:
    return RegistrationRecord(source="registrations", collection="registrations", id="r1", **fields)


def test_day_of_week_starts_on_sunday() -> None:
    assert day_of_week(datetime(2024, 1, 7)) == 0
    assert day_of_week(datetime(2024, 1, 1)) == 1
    assert day_of_week(datetime(2024, 1, 6)) == 6


def test_days_between_rounds_up() -> None:
    start = datetime(2024, 1, 1, 8, tzinfo=UTC)

    assert days_between(start, datetime(2024, 1, 11, 8, tzinfo=UTC)) == 10
    assert days_between(start, datetime(2024, 1, 11, 9, tzinfo=UTC)) == 11


def test_registration_time_features() -> None:
    record = _registration(
        created_at=datetime(2024, 1, 1, 8, 0, tzinfo=UTC),
        extra={"start_date": datetime(2024, 1, 11, 8, 0, tzinfo=UTC)},
    )

    features = engineer_features(record).features

    assert features.registration_hour == 8
    assert features.registration_day_of_week == 1
    assert features.registration_month == 1
    assert features.days_until_event == 10
    assert features.event_day_of_week == 4


def test_engagement_score_maximum() -> None:
    assert calculate_engagement_score("team", 10, "verified") == 1.0


def test_engagement_score_components() -> None:
    assert calculate_engagement_score(None, None, None) == 0.5
    assert calculate_engagement_score("team", 3, "pending") == 0.6
    assert calculate_engagement_score("individual", 8, None) == 0.7


def test_contact_and_payment_features() -> None:
    record = _registration(
        participant_email="ada@example.com",
        participant_name="Ada Lovelace",
        participation_type="team",
        team_size=3,
        payment_amount=25.0,
        payment_status="verified",
        extra={"requires_payment": True, "days_until_event": 10},
    )

    features = engineer_features(record).features

    assert features.email_domain == "example.com"
    assert features.email_length == 15
    assert features.name_length == 12
    assert features.name_word_count == 2
    assert features.is_team_participation is True
    assert features.requires_payment is True
    assert features.team_size == 3
    assert features.payment_amount_numeric == 25.0
    assert features.engagement_score == 1.0


def test_engineer_features_returns_copy() -> None:
    record = _registration(participant_email="ada@example.com")

    enriched = engineer_features(record)

    assert enriched is not record
    assert record.features.email_domain is None


def test_failed_derivation_returns_record_unchanged() -> None:
    record = GenericRecord(source="clubs", collection="clubs", id="c1", extra={"team_size": "several"})

    assert engineer_features(record) is record


def test_generic_records_get_base_features() -> None:
    raw = RawRecord.create("clubs", "clubs", "c1", {"name": "Robotics"})
    record = GenericRecord(source=raw.source, collection=raw.collection, id=raw.id)

    features = engineer_features(record).features

    assert features.is_team_participation is False
    assert features.engagement_score == 0.5
