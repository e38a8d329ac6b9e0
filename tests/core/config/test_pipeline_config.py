"""Tests for pipeline configuration loading."""

from pathlib import Path

import pytest

from eventpipe.core.config import ConfigManager, PipelineConfig, load_config_from_env, validate_config
from eventpipe.core.exceptions import ConfigurationError


def test_defaults() -> None:
    config = PipelineConfig()

    assert config.environment == "production"
    assert config.ingestion.batch_size == 1000
    assert config.ingestion.flush_interval_seconds == 5.0
    assert config.sources.spreadsheet.sync_interval_seconds == 900
    assert config.sources.email_logs.sync_interval_seconds == 300
    assert config.alerts.high_value_threshold == 1000.0
    assert config.processing.validation.skip_invalid_records is False
    assert config.sources.change_feed.collections == ["events", "registrations", "clubs", "categories"]


def test_environment_profiles() -> None:
    assert PipelineConfig.for_environment("development").ingestion.batch_size == 100
    assert PipelineConfig.for_environment("staging").processing.validation.skip_invalid_records is True
    assert PipelineConfig.for_environment("production").ingestion.batch_size == 1000


def test_overrides_win_over_profile() -> None:
    config = PipelineConfig.for_environment("development", {"ingestion": {"batch_size": 7}})

    assert config.ingestion.batch_size == 7
    assert config.environment == "development"


def test_unknown_environment_rejected() -> None:
    with pytest.raises(ConfigurationError) as exc_info:
        PipelineConfig.for_environment("qa")

    assert exc_info.value.details["environment"] == "qa"


def test_invalid_types_raise_configuration_error() -> None:
    with pytest.raises(ConfigurationError) as exc_info:
        PipelineConfig.from_dict({"ingestion": {"batch_size": "many"}})

    assert any("batch_size" in error for error in exc_info.value.details["errors"])


def test_validate_config_collects_problems() -> None:
    config = PipelineConfig.from_dict({"ingestion": {"batch_size": 0, "channel_capacity": -1}})

    with pytest.raises(ConfigurationError) as exc_info:
        validate_config(config)

    errors = exc_info.value.details["errors"]
    assert "ingestion.batch_size must be positive" in errors
    assert "ingestion.channel_capacity must be positive" in errors


def test_env_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EVENTPIPE_BATCH_SIZE", "25")
    monkeypatch.setenv("EVENTPIPE_SKIP_INVALID_RECORDS", "yes")
    monkeypatch.setenv("EVENTPIPE_WAREHOUSE_PATH", "/tmp/wh.duckdb")

    overrides = load_config_from_env()

    assert overrides["ingestion"]["batch_size"] == 25
    assert overrides["processing"]["validation"]["skip_invalid_records"] is True
    assert overrides["storage"]["warehouse_path"] == "/tmp/wh.duckdb"


def test_invalid_env_value(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EVENTPIPE_BATCH_SIZE", "lots")

    with pytest.raises(ConfigurationError) as exc_info:
        load_config_from_env()

    assert exc_info.value.details["variable"] == "EVENTPIPE_BATCH_SIZE"


def test_config_manager_reads_toml_then_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    path = tmp_path / "eventpipe.toml"
    path.write_text(
        'environment = "development"\n'
        "[ingestion]\n"
        "batch_size = 50\n"
        "[alerts]\n"
        "high_value_threshold = 250.0\n",
        encoding="utf-8",
    )
    monkeypatch.setenv("EVENTPIPE_BATCH_SIZE", "60")

    config = ConfigManager(path).get_config()

    assert config.environment == "development"
    assert config.ingestion.batch_size == 60
    assert config.alerts.high_value_threshold == 250.0


def test_config_manager_falls_back_on_broken_toml(tmp_path: Path) -> None:
    path = tmp_path / "eventpipe.toml"
    path.write_text("[ingestion\nbatch_size = ", encoding="utf-8")

    config = ConfigManager(path, environment="production").get_config()

    assert config.ingestion.batch_size == 1000


def test_config_manager_missing_file_uses_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EVENTPIPE_ENV", "staging")

    config = ConfigManager(tmp_path / "missing.toml").get_config()

    assert config.environment == "staging"
    assert config.processing.validation.skip_invalid_records is True


def test_update_config_revalidates(tmp_path: Path) -> None:
    manager = ConfigManager(tmp_path / "missing.toml", environment="production")

    manager.update_config(ingestion={"batch_size": 10})
    assert manager.get_config().ingestion.batch_size == 10

    with pytest.raises(ConfigurationError):
        manager.update_config(ingestion={"batch_size": 0})


def test_validate_config_rejects_unknown_timezone() -> None:
    config = PipelineConfig.from_dict({"processing": {"transformation": {"timezone": "Mars/Olympus"}}})

    with pytest.raises(ConfigurationError) as exc_info:
        validate_config(config)

    assert exc_info.value.details["errors"] == ["processing.transformation.timezone is not a known zone: Mars/Olympus"]


def test_config_manager_fails_fast_on_unknown_timezone(tmp_path: Path) -> None:
    config_file = tmp_path / "eventpipe.toml"
    config_file.write_text('[processing.transformation]\ntimezone = "Mars/Olympus"\n', encoding="utf-8")

    with pytest.raises(ConfigurationError):
        ConfigManager(config_file)
