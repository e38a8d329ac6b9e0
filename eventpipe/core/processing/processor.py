"""Batch processor: validation, transformation and feature engineering."""

from __future__ import annotations

import asyncio
from time import perf_counter
from typing import TYPE_CHECKING, Any

from loguru import logger

from eventpipe.core.config import PipelineConfig
from eventpipe.core.exceptions import TransformationError
from eventpipe.core.logging import log_context
from eventpipe.core.models import Batch, PipelineEventType, ProcessedBatch, ProcessedRecord, RawRecord
from eventpipe.core.processing.features import engineer_features
from eventpipe.core.processing.transformer import build_processed_record, transform_record
from eventpipe.core.processing.validator import validate_record

if TYPE_CHECKING:
    from eventpipe.core.monitoring import MetricsCollector
    from eventpipe.core.pipeline.events import EventHub

DEGRADED_VALIDATION_ERROR_RATE = 0.1


class DataProcessor:
    """Turns raw batches into processed batches and keeps running statistics."""

    def __init__(
        self,
        config: PipelineConfig,
        outbound: asyncio.Queue[ProcessedBatch] | None = None,
        events: EventHub | None = None,
        metrics: MetricsCollector | None = None,
    ) -> None:
        self.config = config
        self.outbound = outbound
        self.events = events
        self.metrics = metrics
        self.reset_stats()

    def reset_stats(self) -> None:
        self.records_processed = 0
        self.validation_errors = 0
        self.transformation_errors = 0
        self.features_generated = 0

    async def process_batch(self, batch: Batch) -> ProcessedBatch:
        """Process every record of ``batch``; per-record failures never abort the batch."""

        start = perf_counter()
        validation_before = self.validation_errors
        transformation_before = self.transformation_errors

        processed: list[ProcessedRecord] = []
        with log_context(source=batch.source) as trace_id:
            for raw in batch.records:
                record = self._process_record(raw)
                if record is not None:
                    processed.append(record)
            logger.info(
                "Processed batch",
                original_count=len(batch),
                processed_count=len(processed),
                duration_ms=round((perf_counter() - start) * 1000, 3),
            )

        result = ProcessedBatch(
            source=batch.source,
            records=processed,
            original_count=len(batch),
            processed_count=len(processed),
        )
        if self.metrics is not None:
            self.metrics.record_processed(
                len(processed),
                self.validation_errors - validation_before,
                self.transformation_errors - transformation_before,
            )
        if self.outbound is not None:
            await self.outbound.put(result)
        if self.events is not None:
            self.events.publish(
                PipelineEventType.BATCH_PROCESSED,
                {
                    "source": batch.source,
                    "original_count": result.original_count,
                    "processed_count": result.processed_count,
                    "trace_id": trace_id,
                },
            )
        return result

    def _process_record(self, raw: RawRecord) -> ProcessedRecord | None:
        processing = self.config.processing

        violations = validate_record(raw, processing.validation)
        if violations:
            self.validation_errors += 1
            logger.warning("Record validation failed", record_id=raw.id, violations=violations)
            if processing.validation.skip_invalid_records:
                return None

        try:
            data = transform_record(raw, processing.transformation, processing.validation.date_fields)
            record = build_processed_record(raw, data, violations)
        except TransformationError as exc:
            self.transformation_errors += 1
            logger.error(
                "Record transformation failed",
                record_id=raw.id,
                error_code=exc.error_code,
                details=exc.details,
            )
            return None

        if processing.feature_engineering.enabled:
            enriched = engineer_features(record)
            if enriched is not record:
                self.features_generated += 1
            record = enriched

        self.records_processed += 1
        return record

    def get_stats(self) -> dict[str, Any]:
        return {
            "records_processed": self.records_processed,
            "validation_errors": self.validation_errors,
            "transformation_errors": self.transformation_errors,
            "features_generated": self.features_generated,
        }

    def health_check(self) -> dict[str, Any]:
        error_rate = self.validation_errors / max(self.records_processed, 1)
        return {
            "status": "healthy" if error_rate <= DEGRADED_VALIDATION_ERROR_RATE else "degraded",
            "error_rate": error_rate,
            "total_processed": self.records_processed,
            "features_generated": self.features_generated,
        }


__all__ = ["DataProcessor"]
