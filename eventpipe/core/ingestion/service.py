"""Ingestion service normalizing source deliveries into buffered batches."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Mapping
from datetime import datetime
from typing import TYPE_CHECKING, Any

from loguru import logger

from eventpipe.core.config import PipelineConfig
from eventpipe.core.exceptions import SourceError, StartupError
from eventpipe.core.models import Batch, PipelineEventType, RawRecord, utcnow

if TYPE_CHECKING:
    from eventpipe.core.monitoring import MetricsCollector
    from eventpipe.core.pipeline.events import EventHub
    from eventpipe.core.sources import ChangeFeedSource, PullSource, Subscription


def normalize_snapshot(collection: str, snapshot: Any, *, source: str | None = None) -> list[RawRecord]:
    """Turn a keyed collection snapshot into one raw record per child key."""

    if not isinstance(snapshot, Mapping):
        return []

    records: list[RawRecord] = []
    for key, value in snapshot.items():
        data = dict(value) if isinstance(value, Mapping) else {"value": value}
        records.append(RawRecord.create(source or collection, collection, str(key), data))
    return records


class DataIngestionService:
    """Owns source connections and the per-source batch buffers.

    Every ingested record is pushed individually onto ``records`` for
    low-latency consumers and appended to its buffer. Full buffers, and every
    buffer on a manual or periodic flush, are emitted as one :class:`Batch`
    on ``batches``.
    """

    def __init__(
        self,
        config: PipelineConfig,
        change_feed: ChangeFeedSource | None = None,
        spreadsheet: PullSource | None = None,
        email_logs: PullSource | None = None,
        batches: asyncio.Queue[Batch] | None = None,
        records: asyncio.Queue[RawRecord] | None = None,
        events: EventHub | None = None,
        metrics: MetricsCollector | None = None,
    ) -> None:
        self.config = config
        self.change_feed = change_feed
        self.spreadsheet = spreadsheet
        self.email_logs = email_logs
        capacity = config.ingestion.channel_capacity
        self.batches: asyncio.Queue[Batch] = batches if batches is not None else asyncio.Queue(maxsize=capacity)
        self.records: asyncio.Queue[RawRecord] = records if records is not None else asyncio.Queue(maxsize=capacity)
        self.events = events
        self.metrics = metrics

        self._buffers: dict[str, list[RawRecord]] = {}
        self._subscriptions: list[Subscription] = []
        self._tasks: list[asyncio.Task[None]] = []
        self._running = False
        self._initialized = False

        self.records_ingested = 0
        self.errors = 0
        self.batches_flushed = 0
        self.last_sync: dict[str, datetime] = {}

    @property
    def batch_size(self) -> int:
        return self.config.ingestion.batch_size

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        if self._running:
            return

        await self._open_subscriptions()
        self._start_periodic_jobs()
        self._running = True
        self._initialized = True
        logger.info(
            "Ingestion service started",
            listeners=len(self._subscriptions),
            jobs=len(self._tasks),
        )

    async def _open_subscriptions(self) -> None:
        feed_config = self.config.sources.change_feed
        if self.change_feed is None or not feed_config.enabled:
            return

        failures: dict[str, str] = {}
        for collection in feed_config.collections:
            try:
                subscription = await self.change_feed.subscribe(
                    collection, self._on_snapshot, self._on_source_error
                )
            except SourceError as exc:
                failures[collection] = exc.message
                self._record_error(self.change_feed.name)
                logger.warning(
                    "Subscription failed",
                    source=self.change_feed.name,
                    collection=collection,
                    error_code=exc.error_code,
                    error=exc.message,
                )
                continue
            self._subscriptions.append(subscription)
            logger.debug("Subscribed to collection", source=self.change_feed.name, collection=collection)

        if feed_config.collections and not self._subscriptions:
            raise StartupError("No change-feed subscription could be established", {"failures": failures})

    def _start_periodic_jobs(self) -> None:
        sources = self.config.sources
        if self.spreadsheet is not None and sources.spreadsheet.enabled:
            self._spawn("spreadsheet-sync", sources.spreadsheet.sync_interval_seconds, self.sync_spreadsheet)
        if self.email_logs is not None and sources.email_logs.enabled:
            self._spawn("email-log-sync", sources.email_logs.sync_interval_seconds, self.sync_email_logs)
        interval = self.config.ingestion.flush_interval_seconds
        if interval is not None:
            self._spawn("buffer-flush", interval, self.flush_all_batches)

    def _spawn(self, name: str, interval: float, job: Callable[[], Awaitable[Any]]) -> None:
        self._tasks.append(asyncio.create_task(self._run_periodic(name, interval, job), name=name))

    async def _run_periodic(self, name: str, interval: float, job: Callable[[], Awaitable[Any]]) -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                await job()
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                self._record_error(name)
                logger.opt(exception=exc).error("Periodic job failed", job=name, error=str(exc))

    async def stop(self) -> None:
        """Cancel subscriptions and periodic jobs, then flush every buffer."""

        if not self._running:
            return
        self._running = False

        subscriptions, self._subscriptions = self._subscriptions, []
        for subscription in subscriptions:
            await subscription.cancel()

        tasks, self._tasks = self._tasks, []
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

        await self.flush_all_batches()
        logger.info("Ingestion service stopped", records_ingested=self.records_ingested)

    async def close(self) -> None:
        """Stop and release source connections."""

        await self.stop()
        for source in (self.change_feed, self.spreadsheet, self.email_logs):
            if source is not None:
                await source.close()

    async def _on_snapshot(self, collection: str, snapshot: Any) -> None:
        records = normalize_snapshot(collection, snapshot)
        logger.debug("Snapshot received", source=collection, records=len(records))
        for record in records:
            await self.ingest_record(collection, record)

    async def _on_source_error(self, collection: str, error: Exception) -> None:
        self._record_error(collection)
        error_code = error.error_code if isinstance(error, SourceError) else None
        logger.error("Change-feed delivery failed", source=collection, error_code=error_code, error=str(error))

    async def ingest_record(self, source_key: str, record: RawRecord) -> None:
        """Emit ``record`` individually and append it to the ``source_key`` buffer."""

        self.records_ingested += 1
        if self.metrics is not None:
            self.metrics.record_ingested(source_key)

        await self.records.put(record)

        buffer = self._buffers.setdefault(source_key, [])
        buffer.append(record)
        if self.metrics is not None:
            self.metrics.set_buffer_depth(source_key, len(buffer))
        if len(buffer) >= self.batch_size:
            await self.flush_batch(source_key)

    async def flush_batch(self, source_key: str) -> Batch | None:
        """Swap the buffer for an empty one and emit its contents as one batch."""

        pending = self._buffers.get(source_key)
        if not pending:
            return None
        self._buffers[source_key] = []

        batch = Batch(source=source_key, records=tuple(pending))
        self.batches_flushed += 1
        if self.metrics is not None:
            self.metrics.record_flush(source_key, 0)
        logger.info("Flushed batch", source=source_key, records=len(batch))
        await self.batches.put(batch)
        return batch

    async def flush_all_batches(self) -> list[Batch]:
        flushed: list[Batch] = []
        for source_key in list(self._buffers):
            batch = await self.flush_batch(source_key)
            if batch is not None:
                flushed.append(batch)
        return flushed

    async def sync_pull_source(self, source: PullSource) -> int:
        """Fetch ``source`` once and ingest every row under its name."""

        rows = await source.fetch()
        for index, row in enumerate(rows):
            record_id = row.get("id") or f"{source.name}_{index + 1}"
            record = RawRecord.create(source.name, source.collection, str(record_id), row)
            await self.ingest_record(source.name, record)
        self.last_sync[source.name] = utcnow()
        logger.info("Pull source synced", source=source.name, records=len(rows))
        return len(rows)

    async def sync_spreadsheet(self) -> int:
        if self.spreadsheet is None:
            return 0
        count = await self.sync_pull_source(self.spreadsheet)
        self._publish(PipelineEventType.SHEETS_SYNCED, {"records": count})
        return count

    async def sync_email_logs(self) -> int:
        if self.email_logs is None:
            return 0
        count = await self.sync_pull_source(self.email_logs)
        self._publish(PipelineEventType.EMAIL_LOGS_SYNCED, {"records": count})
        return count

    def _publish(self, event_type: PipelineEventType, payload: dict[str, Any]) -> None:
        if self.events is not None:
            self.events.publish(event_type, payload)

    def _record_error(self, source: str) -> None:
        self.errors += 1
        if self.metrics is not None:
            self.metrics.record_ingestion_error(source)

    def buffer_sizes(self) -> dict[str, int]:
        return {source: len(buffer) for source, buffer in self._buffers.items()}

    def get_stats(self) -> dict[str, Any]:
        return {
            "records_ingested": self.records_ingested,
            "errors": self.errors,
            "batches_flushed": self.batches_flushed,
            "active_listeners": len(self._subscriptions),
            "buffer_sizes": self.buffer_sizes(),
            "is_running": self._running,
            "last_sync": {name: moment.isoformat() for name, moment in self.last_sync.items()},
        }

    def health_check(self) -> dict[str, Any]:
        if not self._initialized:
            status = "not_initialized"
        elif self._running:
            status = "healthy"
        else:
            status = "stopped"
        error_rate = self.errors / self.records_ingested if self.records_ingested else 0.0
        return {
            "status": status,
            "active_listeners": len(self._subscriptions),
            "buffered_records": sum(self.buffer_sizes().values()),
            "error_rate": error_rate,
        }


__all__ = ["DataIngestionService", "normalize_snapshot"]
