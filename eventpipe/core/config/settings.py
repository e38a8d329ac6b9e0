"""Configuration management for the event pipeline."""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from loguru import logger
from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from eventpipe.core.exceptions import ConfigurationError

DEFAULT_COLLECTIONS = ("events", "registrations", "clubs", "categories")
ENVIRONMENTS = ("development", "staging", "production")


class ChangeFeedConfig(BaseModel):
    """Push source settings."""

    enabled: bool = True
    collections: list[str] = Field(default_factory=lambda: list(DEFAULT_COLLECTIONS))
    base_url: str | None = None
    auth_token: str | None = None


class SpreadsheetConfig(BaseModel):
    """Spreadsheet pull source settings."""

    enabled: bool = True
    url: str | None = None
    sync_interval_seconds: float = 15 * 60
    collection: str = "registrations"
    id_column: str | None = None


class EmailLogConfig(BaseModel):
    """Email delivery log pull source settings."""

    enabled: bool = True
    url: str | None = None
    sync_interval_seconds: float = 5 * 60


class SourcesConfig(BaseModel):
    change_feed: ChangeFeedConfig = Field(default_factory=ChangeFeedConfig)
    spreadsheet: SpreadsheetConfig = Field(default_factory=SpreadsheetConfig)
    email_logs: EmailLogConfig = Field(default_factory=EmailLogConfig)


class IngestionConfig(BaseModel):
    """Buffering settings."""

    batch_size: int = 1000
    flush_interval_seconds: float | None = 5.0
    channel_capacity: int = 100


def _default_required_fields() -> dict[str, list[str]]:
    return {
        "registrations": ["participant_name", "participant_email", "event_id"],
        "events": ["title"],
    }


class ValidationConfig(BaseModel):
    skip_invalid_records: bool = False
    email_pattern: str = r"^[^\s@]+@[^\s@]+\.[^\s@]+$"
    phone_pattern: str = r"^\+?[\d\s\-()]+$"
    required_fields: dict[str, list[str]] = Field(default_factory=_default_required_fields)
    date_fields: list[str] = Field(default_factory=lambda: ["start_date", "end_date", "created_at"])


class TransformationConfig(BaseModel):
    normalize_text: bool = True
    timezone: str = "UTC"
    canonicalize_dates: bool = True


class FeatureEngineeringConfig(BaseModel):
    enabled: bool = True


class ProcessingConfig(BaseModel):
    validation: ValidationConfig = Field(default_factory=ValidationConfig)
    transformation: TransformationConfig = Field(default_factory=TransformationConfig)
    feature_engineering: FeatureEngineeringConfig = Field(default_factory=FeatureEngineeringConfig)


class StorageConfig(BaseModel):
    warehouse_path: str = "data/warehouse.duckdb"
    threads: int | None = None


class AlertsConfig(BaseModel):
    high_value_threshold: float = 1000.0


class EventsConfig(BaseModel):
    subscriber_capacity: int = 1000


class LoggingSettings(BaseModel):
    level: str = "INFO"
    file: str | None = None
    console: bool = True


class APIConfig(BaseModel):
    host: str = "127.0.0.1"
    port: int = 8000
    auto_start: bool = False


class PipelineConfig(BaseModel):
    """Top level pipeline configuration."""

    environment: str = "production"
    sources: SourcesConfig = Field(default_factory=SourcesConfig)
    ingestion: IngestionConfig = Field(default_factory=IngestionConfig)
    processing: ProcessingConfig = Field(default_factory=ProcessingConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    alerts: AlertsConfig = Field(default_factory=AlertsConfig)
    events: EventsConfig = Field(default_factory=EventsConfig)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    api: APIConfig = Field(default_factory=APIConfig)

    @classmethod
    def from_dict(cls, config_dict: dict[str, Any]) -> PipelineConfig:
        """Build a configuration from a nested mapping."""
        try:
            return cls.model_validate(config_dict)
        except PydanticValidationError as exc:
            errors = [f"{'.'.join(map(str, e['loc']))}: {e['msg']}" for e in exc.errors()]
            raise ConfigurationError("Invalid pipeline configuration", {"errors": errors}) from exc

    @classmethod
    def for_environment(cls, environment: str, overrides: dict[str, Any] | None = None) -> PipelineConfig:
        """Return the defaults adjusted for ``environment``.

        ``development`` uses smaller batches, ``staging`` drops invalid records
        instead of forwarding them, ``production`` keeps the defaults.
        """
        if environment not in ENVIRONMENTS:
            raise ConfigurationError(f"Unknown environment: {environment}", {"environment": environment})

        profile: dict[str, Any] = {"environment": environment}
        if environment == "development":
            profile["ingestion"] = {"batch_size": 100}
        elif environment == "staging":
            profile["processing"] = {"validation": {"skip_invalid_records": True}}

        return cls.from_dict(deep_update(profile, overrides or {}))

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump()


def deep_update(base: dict[str, Any], updates: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge ``updates`` into ``base`` and return ``base``."""
    for key, value in updates.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            base[key] = deep_update(base[key], value)
        else:
            base[key] = value
    return base


def validate_config(config: PipelineConfig) -> PipelineConfig:
    """Reject configurations the pipeline cannot run with."""
    problems: list[str] = []
    if config.ingestion.batch_size <= 0:
        problems.append("ingestion.batch_size must be positive")
    if config.ingestion.channel_capacity <= 0:
        problems.append("ingestion.channel_capacity must be positive")
    if config.ingestion.flush_interval_seconds is not None and config.ingestion.flush_interval_seconds <= 0:
        problems.append("ingestion.flush_interval_seconds must be positive")
    if config.sources.spreadsheet.sync_interval_seconds <= 0:
        problems.append("sources.spreadsheet.sync_interval_seconds must be positive")
    if config.sources.email_logs.sync_interval_seconds <= 0:
        problems.append("sources.email_logs.sync_interval_seconds must be positive")
    if config.events.subscriber_capacity <= 0:
        problems.append("events.subscriber_capacity must be positive")
    if not config.storage.warehouse_path:
        problems.append("storage.warehouse_path must not be empty")
    if config.environment not in ENVIRONMENTS:
        problems.append(f"environment must be one of {', '.join(ENVIRONMENTS)}")
    timezone = config.processing.transformation.timezone
    try:
        ZoneInfo(timezone)
    except (ZoneInfoNotFoundError, ValueError):
        problems.append(f"processing.transformation.timezone is not a known zone: {timezone}")

    if problems:
        raise ConfigurationError("Invalid pipeline configuration", {"errors": problems})
    return config


def _env_bool(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes", "on"}


_ENV_OVERRIDES: tuple[tuple[str, tuple[str, ...], Any], ...] = (
    ("EVENTPIPE_BATCH_SIZE", ("ingestion", "batch_size"), int),
    ("EVENTPIPE_WAREHOUSE_PATH", ("storage", "warehouse_path"), str),
    ("EVENTPIPE_SKIP_INVALID_RECORDS", ("processing", "validation", "skip_invalid_records"), _env_bool),
    ("EVENTPIPE_LOG_LEVEL", ("logging", "level"), str),
    ("EVENTPIPE_CHANGE_FEED_URL", ("sources", "change_feed", "base_url"), str),
    ("EVENTPIPE_CHANGE_FEED_TOKEN", ("sources", "change_feed", "auth_token"), str),
    ("EVENTPIPE_SPREADSHEET_URL", ("sources", "spreadsheet", "url"), str),
    ("EVENTPIPE_EMAIL_LOG_URL", ("sources", "email_logs", "url"), str),
    ("EVENTPIPE_HOST", ("api", "host"), str),
    ("EVENTPIPE_PORT", ("api", "port"), int),
)


def load_config_from_env() -> dict[str, Any]:
    """Read ``EVENTPIPE_*`` environment overrides into a nested mapping."""
    config: dict[str, Any] = {}
    for name, path, convert in _ENV_OVERRIDES:
        raw = os.getenv(name)
        if raw is None:
            continue
        try:
            value = convert(raw)
        except ValueError as exc:
            raise ConfigurationError(f"Invalid value for {name}", {"variable": name, "value": raw}) from exc

        node = config
        for key in path[:-1]:
            node = node.setdefault(key, {})
        node[path[-1]] = value

    return config


class ConfigManager:
    """Loads the pipeline configuration from TOML and the environment."""

    def __init__(self, config_path: Path | None = None, environment: str | None = None):
        """Create a manager.

        Args:
            config_path: TOML file to read; missing files fall back to defaults.
            environment: Profile name; defaults to ``EVENTPIPE_ENV`` or ``production``.
        """
        self.config_path = config_path or Path("eventpipe.toml")
        self.environment = environment or os.getenv("EVENTPIPE_ENV", "production")
        self.config = self._load_config()

    def _read_file(self) -> dict[str, Any]:
        if not self.config_path.exists():
            return {}
        try:
            with open(self.config_path, "rb") as f:
                return tomllib.load(f)
        except (OSError, tomllib.TOMLDecodeError) as e:
            logger.warning("Failed to load config file, using defaults", path=str(self.config_path), error=str(e))
            return {}

    def _load_config(self) -> PipelineConfig:
        overrides = deep_update(self._read_file(), load_config_from_env())
        environment = overrides.pop("environment", None) or self.environment
        return validate_config(PipelineConfig.for_environment(environment, overrides))

    def get_config(self) -> PipelineConfig:
        return self.config

    def update_config(self, **updates: Any) -> None:
        """Apply nested updates and re-validate."""
        config_dict = deep_update(self.config.to_dict(), updates)
        self.config = validate_config(PipelineConfig.from_dict(config_dict))


def get_default_config() -> PipelineConfig:
    return PipelineConfig()


__all__ = [
    "APIConfig",
    "AlertsConfig",
    "ChangeFeedConfig",
    "ConfigManager",
    "EmailLogConfig",
    "EventsConfig",
    "FeatureEngineeringConfig",
    "IngestionConfig",
    "LoggingSettings",
    "PipelineConfig",
    "ProcessingConfig",
    "SourcesConfig",
    "SpreadsheetConfig",
    "StorageConfig",
    "TransformationConfig",
    "ValidationConfig",
    "deep_update",
    "get_default_config",
    "load_config_from_env",
    "validate_config",
]
