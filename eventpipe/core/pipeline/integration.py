"""Background consumer that logs pipeline notifications."""

from __future__ import annotations

import asyncio

from loguru import logger

from eventpipe.core.models import PipelineEvent, PipelineEventType

_QUIET = {PipelineEventType.RECORD, PipelineEventType.REAL_TIME_RECORD}


def log_pipeline_event(event: PipelineEvent) -> None:
    payload = event.payload
    if event.type is PipelineEventType.ERROR:
        logger.error(
            "Pipeline error",
            stage=payload.get("stage"),
            table=payload.get("table"),
            error=payload.get("message"),
        )
    elif event.type is PipelineEventType.HIGH_VALUE_REGISTRATION:
        logger.warning(
            "High-value registration detected",
            record_id=payload.get("id"),
            payment_amount=payload.get("payment_amount"),
        )
    elif event.type is PipelineEventType.REGISTRATION_CREATED:
        logger.info("New registration", record_id=payload.get("id"), event_id=payload.get("data", {}).get("event_id"))
    elif event.type is PipelineEventType.BATCH_STORED:
        logger.info(
            "Batch stored",
            source=payload.get("source"),
            records=payload.get("record_count"),
            failed_tables=payload.get("failed_tables"),
        )
    elif event.type in _QUIET:
        logger.trace("Pipeline event", event_type=event.type.value, record_id=payload.get("id"))
    else:
        logger.info("Pipeline event", event_type=event.type.value)


async def consume_pipeline_events(queue: asyncio.Queue[PipelineEvent]) -> None:
    """Log every event arriving on ``queue`` until cancelled."""

    while True:
        event = await queue.get()
        try:
            log_pipeline_event(event)
        finally:
            queue.task_done()


__all__ = ["consume_pipeline_events", "log_pipeline_event"]
