"""Pipeline orchestrator wiring ingestion, processing and storage."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from datetime import datetime
from enum import Enum
from typing import Any

from loguru import logger

from eventpipe.core.config import PipelineConfig
from eventpipe.core.exceptions import PipelineStateError, StartupError, StorageError, StorageInitError
from eventpipe.core.ingestion import DataIngestionService
from eventpipe.core.models import Batch, PipelineEvent, PipelineEventType, ProcessedBatch, RawRecord, utcnow
from eventpipe.core.monitoring import MetricsCollector
from eventpipe.core.pipeline.events import EventHub
from eventpipe.core.pipeline.routing import route_records
from eventpipe.core.pipeline.sql_guard import ensure_read_only
from eventpipe.core.processing import DataProcessor
from eventpipe.core.sources import ChangeFeedSource, PullSource
from eventpipe.core.storage import DataWarehouse

TREND_WINDOW_DAYS = 30
_HEALTHY_STATES = {"healthy", "not_initialized"}


class PipelineState(str, Enum):
    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"


def _as_float(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


class PipelineOrchestrator:
    """Runs the ingestion -> processing -> storage flow.

    Three worker tasks move messages between stages: ``processing`` consumes
    ingested batches, ``storage`` consumes processed batches and ``realtime``
    consumes individual records for low-latency notifications.
    """

    def __init__(
        self,
        config: PipelineConfig | None = None,
        *,
        warehouse: DataWarehouse | None = None,
        ingestion: DataIngestionService | None = None,
        processor: DataProcessor | None = None,
        change_feed: ChangeFeedSource | None = None,
        spreadsheet: PullSource | None = None,
        email_logs: PullSource | None = None,
        events: EventHub | None = None,
        metrics: MetricsCollector | None = None,
    ) -> None:
        self.config = config or PipelineConfig()
        self.metrics = metrics or MetricsCollector()
        self.events = events or EventHub(self.config.events.subscriber_capacity)
        self.processed_batches: asyncio.Queue[ProcessedBatch] = asyncio.Queue(
            maxsize=self.config.ingestion.channel_capacity
        )
        self.warehouse = warehouse or DataWarehouse.from_config(self.config, self.metrics)
        self.ingestion = ingestion or DataIngestionService(
            self.config,
            change_feed,
            spreadsheet,
            email_logs,
            events=self.events,
            metrics=self.metrics,
        )
        self.processor = processor or DataProcessor(self.config, events=self.events, metrics=self.metrics)

        self.state = PipelineState.STOPPED
        self._workers: list[asyncio.Task[None]] = []
        self.start_time: datetime | None = None
        self._reset_counters()

    def _reset_counters(self) -> None:
        self.total_records_processed = 0
        self.total_batches_processed = 0
        self.errors = 0
        self.last_processed_at: datetime | None = None

    @property
    def is_running(self) -> bool:
        return self.state is PipelineState.RUNNING

    async def start(self) -> None:
        """Initialize the warehouse, start the workers, then start ingestion."""

        if self.state is not PipelineState.STOPPED:
            logger.debug("Start ignored", state=self.state.value)
            return

        self.state = PipelineState.STARTING
        logger.info("Starting pipeline")
        try:
            await self.warehouse.initialize()
            self._start_workers()
            await self.ingestion.start()
        except StorageInitError as exc:
            await self._abort_start()
            raise StartupError(f"Warehouse could not be initialized: {exc.message}", exc.details) from exc
        except StartupError:
            await self._abort_start()
            raise

        self.state = PipelineState.RUNNING
        self.start_time = utcnow()
        self.events.publish(PipelineEventType.STARTED, {"start_time": self.start_time.isoformat()})
        logger.info("Pipeline started")

    async def _abort_start(self) -> None:
        await self._stop_workers()
        await self.warehouse.close()
        self.state = PipelineState.STOPPED
        logger.error("Pipeline failed to start")

    async def stop(self) -> None:
        """Stop ingestion, drain queued work, then close the warehouse."""

        if self.state is not PipelineState.RUNNING:
            logger.debug("Stop ignored", state=self.state.value)
            return

        self.state = PipelineState.STOPPING
        logger.info("Stopping pipeline")
        await self.ingestion.stop()
        await self.drain()
        await self._stop_workers()
        await self.warehouse.close()
        self.state = PipelineState.STOPPED
        self.events.publish(PipelineEventType.STOPPED, {})
        logger.info("Pipeline stopped")

    async def close(self) -> None:
        """Stop the pipeline and release source connections."""

        await self.stop()
        await self.ingestion.close()

    def _start_workers(self) -> None:
        self._workers = [
            asyncio.create_task(self._worker("processing", self.ingestion.batches, self._process), name="processing"),
            asyncio.create_task(self._worker("storage", self.processed_batches, self.store_batch), name="storage"),
            asyncio.create_task(self._worker("realtime", self.ingestion.records, self._realtime), name="realtime"),
        ]

    async def _stop_workers(self) -> None:
        workers, self._workers = self._workers, []
        for worker in workers:
            worker.cancel()
        await asyncio.gather(*workers, return_exceptions=True)

    async def drain(self) -> None:
        """Wait until every queued batch and record has been handled."""

        if not self._workers:
            return
        await self.ingestion.batches.join()
        await self.processed_batches.join()
        await self.ingestion.records.join()

    async def _worker(self, stage: str, inbound: asyncio.Queue[Any], handler: Callable[[Any], Awaitable[None]]) -> None:
        while True:
            message = await inbound.get()
            try:
                await handler(message)
            except Exception as exc:
                self.errors += 1
                logger.opt(exception=exc).error("Pipeline stage failed", stage=stage, error=str(exc))
                self.events.publish(PipelineEventType.ERROR, {"stage": stage, "message": str(exc)})
            finally:
                inbound.task_done()

    async def _process(self, batch: Batch) -> None:
        result = await self.processor.process_batch(batch)
        self.total_batches_processed += 1
        self.total_records_processed += result.processed_count
        self.last_processed_at = utcnow()
        await self.processed_batches.put(result)

    async def store_batch(self, batch: ProcessedBatch) -> dict[str, int]:
        """Write each table group of ``batch``; a failing group does not affect the others."""

        stored: dict[str, int] = {}
        failed: dict[str, str] = {}
        for table, records in route_records(batch.records).items():
            try:
                stored[table] = await self.warehouse.store_records(records, table)
            except StorageError as exc:
                self.errors += 1
                failed[table] = exc.message
                logger.error("Table group not stored", source=batch.source, table=table, error_code=exc.error_code)
                self.events.publish(
                    PipelineEventType.ERROR,
                    {"stage": "storage", "table": table, "source": batch.source, "message": exc.message},
                )

        self.events.publish(
            PipelineEventType.BATCH_STORED,
            {
                "source": batch.source,
                "record_count": batch.processed_count,
                "tables": stored,
                "failed_tables": sorted(failed),
            },
        )
        return stored

    async def _realtime(self, record: RawRecord) -> None:
        payload = {
            "id": record.id,
            "source": record.source,
            "collection": record.collection,
            "pipeline_id": record.pipeline_id,
            "data": record.data,
        }
        self.events.publish(PipelineEventType.REAL_TIME_RECORD, payload)

        amount = _as_float(record.get("payment_amount"))
        if amount is not None and amount > self.config.alerts.high_value_threshold:
            self.events.publish(PipelineEventType.HIGH_VALUE_REGISTRATION, {**payload, "payment_amount": amount})

        if record.collection == "registrations":
            self.events.publish(PipelineEventType.REGISTRATION_CREATED, payload)

    async def trigger_manual_run(self, source: str = "manual") -> dict[str, Any]:
        """Flush every pending buffer immediately."""

        if not self.is_running:
            raise PipelineStateError("Pipeline is not running", self.state.value)
        logger.info("Manual pipeline run", source=source)
        flushed = await self.ingestion.flush_all_batches()
        result = {
            "source": source,
            "batches_flushed": len(flushed),
            "records_flushed": sum(len(batch) for batch in flushed),
            "timestamp": utcnow().isoformat(),
        }
        self.events.publish(PipelineEventType.MANUAL_RUN_COMPLETED, result)
        return result

    def pipeline_stats(self) -> dict[str, Any]:
        return {
            "is_running": self.is_running,
            "state": self.state.value,
            "start_time": self.start_time.isoformat() if self.start_time else None,
            "total_records_processed": self.total_records_processed,
            "total_batches_processed": self.total_batches_processed,
            "errors": self.errors,
            "last_processed_at": self.last_processed_at.isoformat() if self.last_processed_at else None,
        }

    async def _component_health(self) -> dict[str, dict[str, Any]]:
        return {
            "ingestion": self.ingestion.health_check(),
            "processing": self.processor.health_check(),
            "warehouse": await self.warehouse.health_check(),
        }

    async def get_status(self) -> dict[str, Any]:
        return {**self.pipeline_stats(), "components": await self._component_health()}

    def uptime_seconds(self) -> float:
        if self.start_time is None or not self.is_running:
            return 0.0
        return (utcnow() - self.start_time).total_seconds()

    async def health_check(self) -> dict[str, Any]:
        try:
            components = await self._component_health()
        except Exception as exc:
            return {"status": "unhealthy", "error": str(exc)}

        healthy = all(component["status"] in _HEALTHY_STATES for component in components.values())
        return {
            "status": "healthy" if healthy else "degraded",
            "is_running": self.is_running,
            "components": components,
            "uptime_seconds": self.uptime_seconds(),
        }

    async def get_metrics(self) -> dict[str, Any]:
        status = await self.get_status()
        uptime = self.uptime_seconds()
        processed = self.total_records_processed
        return {
            **status,
            "uptime_seconds": uptime,
            "error_rate": self.errors / processed if processed else 0.0,
            "records_per_second": processed / uptime if uptime > 0 else 0.0,
            "batches_per_hour": self.total_batches_processed / (uptime / 3600) if uptime > 0 else 0.0,
        }

    async def get_analytics(self) -> dict[str, Any]:
        if self.warehouse.is_initialized:
            trends, warehouse_health = await asyncio.gather(
                self.warehouse.get_registration_trends(TREND_WINDOW_DAYS),
                self.warehouse.health_check(),
            )
        else:
            trends, warehouse_health = [], await self.warehouse.health_check()
        return {
            "pipeline": self.pipeline_stats(),
            "ingestion": self.ingestion.get_stats(),
            "processing": self.processor.get_stats(),
            "warehouse": warehouse_health,
            "trends": trends,
        }

    def reset_stats(self) -> None:
        """Zero orchestrator and processor counters; the start time is kept."""

        self._reset_counters()
        self.processor.reset_stats()

    async def run_query(self, sql: str, params: Sequence[Any] | None = None) -> list[dict[str, Any]]:
        statement = ensure_read_only(sql)
        return await self.warehouse.query(statement, params)

    async def get_event_analytics(self, event_id: str) -> dict[str, Any] | None:
        return await self.warehouse.get_event_analytics(event_id)

    async def refresh_aggregates(self) -> dict[str, int]:
        return await self.warehouse.refresh_aggregates()

    def subscribe(self, capacity: int | None = None) -> asyncio.Queue[PipelineEvent]:
        return self.events.subscribe(capacity)

    def unsubscribe(self, queue: asyncio.Queue[PipelineEvent]) -> None:
        self.events.unsubscribe(queue)


__all__ = ["PipelineOrchestrator", "PipelineState"]
