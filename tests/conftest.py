"""Pytest configuration for the eventpipe test suite."""

from __future__ import annotations

import pytest

from eventpipe.core.config import PipelineConfig


def pytest_addoption(parser: pytest.Parser) -> None:
    """Register command-line options for controlling integration tests."""

    parser.addoption(
        "--eventpipe-run-integration",
        action="store_true",
        default=False,
        help="Run eventpipe integration tests that require external services.",
    )


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line(
        "markers",
        "integration: marks eventpipe tests requiring network or external services",
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Skip integration tests unless explicitly requested."""

    if config.getoption("--eventpipe-run-integration"):
        return

    skip_integration = pytest.mark.skip(reason="integration tests require --eventpipe-run-integration")
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_integration)


@pytest.fixture
def config() -> PipelineConfig:
    """A configuration with no periodic flush so tests control every batch."""

    return PipelineConfig.from_dict(
        {
            "ingestion": {"batch_size": 3, "flush_interval_seconds": None},
            "sources": {"change_feed": {"collections": ["events", "registrations"]}},
        }
    )


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "EVENTPIPE_ENV",
        "EVENTPIPE_BATCH_SIZE",
        "EVENTPIPE_WAREHOUSE_PATH",
        "EVENTPIPE_SKIP_INVALID_RECORDS",
        "EVENTPIPE_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
