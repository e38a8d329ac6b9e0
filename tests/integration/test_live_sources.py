"""Checks against live sources; run with --eventpipe-run-integration."""

import os

import pytest

from eventpipe.core.sources import EmailLogSource, FirebaseChangeFeed, SpreadsheetSource

pytestmark = pytest.mark.integration


def _require(name: str) -> str:
    value = os.getenv(name)
    if not value:
        pytest.skip(f"{name} is not set")
    return value


@pytest.mark.asyncio
async def test_change_feed_snapshot() -> None:
    feed = FirebaseChangeFeed(_require("EVENTPIPE_CHANGE_FEED_URL"), os.getenv("EVENTPIPE_CHANGE_FEED_TOKEN"))
    try:
        snapshot = await feed.fetch_snapshot("events")
    finally:
        await feed.close()

    assert snapshot is None or isinstance(snapshot, dict)


@pytest.mark.asyncio
async def test_spreadsheet_export() -> None:
    source = SpreadsheetSource(_require("EVENTPIPE_SPREADSHEET_URL"))
    try:
        rows = await source.fetch()
    finally:
        await source.close()

    assert all("id" in row for row in rows)


@pytest.mark.asyncio
async def test_email_logs() -> None:
    source = EmailLogSource(_require("EVENTPIPE_EMAIL_LOG_URL"))
    try:
        rows = await source.fetch()
    finally:
        await source.close()

    assert isinstance(rows, list)
