"""Tests for the pipeline orchestrator lifecycle and stage wiring."""

import asyncio
from pathlib import Path

import pytest
from prometheus_client import CollectorRegistry

from eventpipe.core.config import PipelineConfig
from eventpipe.core.exceptions import PipelineStateError, QueryRejectedError, StartupError
from eventpipe.core.models import EventRecord, PipelineEvent, PipelineEventType, ProcessedBatch, RegistrationRecord
from eventpipe.core.monitoring import MetricsCollector
from eventpipe.core.pipeline import PipelineOrchestrator, PipelineState
from eventpipe.core.sources import InMemoryChangeFeed
from eventpipe.core.storage import DataWarehouse

EVENTS = {
    "e1": {"title": "hack night", "start_date": "2030-01-11T18:00:00Z", "created_at": "2029-12-01T00:00:00Z"},
}
REGISTRATIONS = {
    "r1": {
        "event_id": "e1",
        "participant_name": "ada lovelace",
        "participant_email": "ada@example.com",
        "created_at": "2030-01-01T08:00:00Z",
        "attendance_status": "present",
        "attendance_marked_at": "2030-01-11T18:05:00Z",
    },
    "r2": {
        "event_id": "e1",
        "participant_name": "grace hopper",
        "participant_email": "grace@example.com",
        "created_at": "2030-01-02T08:00:00Z",
        "payment_amount": 1500,
    },
}


def _pipeline(config: PipelineConfig, feed: InMemoryChangeFeed | None = None) -> PipelineOrchestrator:
    return PipelineOrchestrator(
        config,
        warehouse=DataWarehouse(),
        change_feed=feed or InMemoryChangeFeed(),
        metrics=MetricsCollector(registry=CollectorRegistry()),
    )


def _drain_events(queue: asyncio.Queue[PipelineEvent]) -> list[PipelineEvent]:
    events = []
    while not queue.empty():
        events.append(queue.get_nowait())
    return events


def _of_type(events: list[PipelineEvent], event_type: PipelineEventType) -> list[PipelineEvent]:
    return [event for event in events if event.type is event_type]


@pytest.mark.asyncio
async def test_end_to_end_flow(config: PipelineConfig) -> None:
    feed = InMemoryChangeFeed()
    pipeline = _pipeline(config, feed)
    events = pipeline.subscribe()
    await pipeline.start()

    await feed.publish("events", EVENTS)
    await feed.publish("registrations", REGISTRATIONS)
    result = await pipeline.trigger_manual_run("test")
    await pipeline.drain()

    counts = await pipeline.warehouse.get_table_counts()
    assert result["batches_flushed"] == 2
    assert result["records_flushed"] == 3
    assert counts["dim_events"] == 1
    assert counts["dim_users"] == 2
    assert counts["fact_registrations"] == 2
    assert counts["fact_attendance"] == 1

    analytics = await pipeline.get_event_analytics("e1")
    assert analytics["title"] == "Hack Night"
    assert analytics["attendance_rate"] == 50.0

    published = _drain_events(events)
    stored = _of_type(published, PipelineEventType.BATCH_STORED)
    assert [event.payload["tables"] for event in stored] == [
        {"dim_events": 1},
        {"dim_users": 2, "fact_registrations": 2, "fact_attendance": 1},
    ]
    assert pipeline.total_batches_processed == 2
    assert pipeline.total_records_processed == 3
    await pipeline.stop()


@pytest.mark.asyncio
async def test_realtime_notifications(config: PipelineConfig) -> None:
    feed = InMemoryChangeFeed()
    pipeline = _pipeline(config, feed)
    events = pipeline.subscribe()
    await pipeline.start()

    await feed.publish("registrations", REGISTRATIONS)
    await pipeline.drain()

    published = _drain_events(events)
    assert len(_of_type(published, PipelineEventType.REAL_TIME_RECORD)) == 2
    assert len(_of_type(published, PipelineEventType.REGISTRATION_CREATED)) == 2
    high_value = _of_type(published, PipelineEventType.HIGH_VALUE_REGISTRATION)
    assert [event.payload["id"] for event in high_value] == ["r2"]
    assert high_value[0].payload["payment_amount"] == 1500.0
    await pipeline.stop()


@pytest.mark.asyncio
async def test_failing_table_group_does_not_affect_others(config: PipelineConfig) -> None:
    pipeline = _pipeline(config)
    events = pipeline.subscribe()
    await pipeline.warehouse.initialize()
    batch = ProcessedBatch(
        source="mixed",
        records=[
            EventRecord(source="events", collection="events", id="e1", title="Hack Night"),
            RegistrationRecord(
                source="registrations",
                collection="registrations",
                id="r1",
                event_id="missing",
                participant_email="ada@example.com",
            ),
        ],
        processed_count=2,
    )

    stored = await pipeline.store_batch(batch)

    counts = await pipeline.warehouse.get_table_counts()
    assert stored == {"dim_events": 1, "dim_users": 1}
    assert counts["dim_events"] == 1
    assert counts["dim_users"] == 1
    assert counts["fact_registrations"] == 0
    published = _drain_events(events)
    errors = _of_type(published, PipelineEventType.ERROR)
    assert [event.payload["table"] for event in errors] == ["fact_registrations"]
    assert _of_type(published, PipelineEventType.BATCH_STORED)[0].payload["failed_tables"] == ["fact_registrations"]
    assert pipeline.errors == 1
    await pipeline.warehouse.close()


@pytest.mark.asyncio
async def test_start_and_stop_are_idempotent(config: PipelineConfig) -> None:
    pipeline = _pipeline(config)
    events = pipeline.subscribe()

    await pipeline.start()
    await pipeline.start()
    assert pipeline.state is PipelineState.RUNNING

    await pipeline.stop()
    await pipeline.stop()
    assert pipeline.state is PipelineState.STOPPED

    types = [event.type for event in _drain_events(events)]
    assert types.count(PipelineEventType.STARTED) == 1
    assert types.count(PipelineEventType.STOPPED) == 1


@pytest.mark.asyncio
async def test_stop_flushes_buffered_records(config: PipelineConfig, tmp_path: Path) -> None:
    feed = InMemoryChangeFeed()
    warehouse_path = tmp_path / "warehouse.duckdb"
    pipeline = PipelineOrchestrator(
        config,
        warehouse=DataWarehouse(warehouse_path),
        change_feed=feed,
        metrics=MetricsCollector(registry=CollectorRegistry()),
    )
    await pipeline.start()
    await feed.publish("events", EVENTS)

    await pipeline.stop()

    reopened = DataWarehouse(warehouse_path)
    await reopened.initialize()
    assert (await reopened.get_table_counts())["dim_events"] == 1
    await reopened.close()


@pytest.mark.asyncio
async def test_start_fails_when_warehouse_cannot_initialize(config: PipelineConfig, tmp_path: Path) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("file", encoding="utf-8")
    pipeline = PipelineOrchestrator(
        config,
        warehouse=DataWarehouse(blocker / "warehouse.duckdb"),
        change_feed=InMemoryChangeFeed(),
        metrics=MetricsCollector(registry=CollectorRegistry()),
    )

    with pytest.raises(StartupError):
        await pipeline.start()

    assert pipeline.state is PipelineState.STOPPED


@pytest.mark.asyncio
async def test_start_fails_when_no_source_subscribes(config: PipelineConfig) -> None:
    feed = InMemoryChangeFeed(unavailable_collections=["events", "registrations"])
    pipeline = _pipeline(config, feed)

    with pytest.raises(StartupError):
        await pipeline.start()

    assert pipeline.state is PipelineState.STOPPED
    assert pipeline.warehouse.is_initialized is False


@pytest.mark.asyncio
async def test_query_guard_runs_before_warehouse(config: PipelineConfig) -> None:
    pipeline = _pipeline(config)

    with pytest.raises(QueryRejectedError):
        await pipeline.run_query("DROP TABLE dim_events")

    assert pipeline.warehouse.is_initialized is False


@pytest.mark.asyncio
async def test_status_health_and_metrics(config: PipelineConfig) -> None:
    pipeline = _pipeline(config)

    assert (await pipeline.health_check())["status"] == "healthy"
    await pipeline.start()

    health = await pipeline.health_check()
    status = await pipeline.get_status()
    metrics = await pipeline.get_metrics()

    assert health["status"] == "healthy"
    assert health["is_running"] is True
    assert set(status["components"]) == {"ingestion", "processing", "warehouse"}
    assert {"uptime_seconds", "error_rate", "records_per_second", "batches_per_hour"} <= set(metrics)
    await pipeline.stop()
    assert (await pipeline.health_check())["status"] == "degraded"


@pytest.mark.asyncio
async def test_reset_stats_keeps_start_time(config: PipelineConfig) -> None:
    feed = InMemoryChangeFeed()
    pipeline = _pipeline(config, feed)
    await pipeline.start()
    await feed.publish("events", EVENTS)
    await pipeline.trigger_manual_run()
    await pipeline.drain()
    started = pipeline.start_time

    pipeline.reset_stats()

    stats = pipeline.pipeline_stats()
    assert stats["total_records_processed"] == 0
    assert pipeline.processor.records_processed == 0
    assert pipeline.start_time == started
    await pipeline.stop()


@pytest.mark.asyncio
async def test_every_registration_is_announced_past_channel_capacity() -> None:
    config = PipelineConfig.from_dict(
        {
            "ingestion": {"batch_size": 50, "flush_interval_seconds": None, "channel_capacity": 5},
            "sources": {"change_feed": {"collections": ["registrations"]}},
        }
    )
    feed = InMemoryChangeFeed()
    pipeline = _pipeline(config, feed)
    events = pipeline.subscribe()
    await pipeline.start()

    registrations = {
        f"r{index}": {
            "event_id": "e1",
            "participant_name": f"guest {index}",
            "participant_email": f"guest{index}@example.com",
            "payment_amount": 2000 if index % 10 == 0 else 10,
        }
        for index in range(40)
    }
    await feed.publish("registrations", registrations)
    await pipeline.drain()

    received = _drain_events(events)
    assert len(_of_type(received, PipelineEventType.REGISTRATION_CREATED)) == 40
    assert len(_of_type(received, PipelineEventType.HIGH_VALUE_REGISTRATION)) == 4
    await pipeline.stop()


@pytest.mark.asyncio
async def test_manual_run_requires_running_pipeline(config: PipelineConfig) -> None:
    pipeline = _pipeline(config)

    with pytest.raises(PipelineStateError):
        await pipeline.trigger_manual_run()
