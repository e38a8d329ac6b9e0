"""Prometheus metrics for the event pipeline."""

from __future__ import annotations

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, generate_latest


class MetricsCollector:
    """Collects pipeline counters and exposes them in Prometheus format."""

    def __init__(self, *, registry: CollectorRegistry | None = None) -> None:
        self.registry = registry or CollectorRegistry()
        self.records_ingested_total = Counter(
            "eventpipe_records_ingested_total",
            "Records normalized from external sources.",
            ("source",),
            registry=self.registry,
        )
        self.ingestion_errors_total = Counter(
            "eventpipe_ingestion_errors_total",
            "Source deliveries or pull jobs that failed.",
            ("source",),
            registry=self.registry,
        )
        self.batches_flushed_total = Counter(
            "eventpipe_batches_flushed_total",
            "Batches emitted by the ingestion buffers.",
            ("source",),
            registry=self.registry,
        )
        self.buffer_depth = Gauge(
            "eventpipe_buffer_depth",
            "Records currently waiting in an ingestion buffer.",
            ("source",),
            registry=self.registry,
        )
        self.records_processed_total = Counter(
            "eventpipe_records_processed_total",
            "Records that left the processor.",
            registry=self.registry,
        )
        self.validation_errors_total = Counter(
            "eventpipe_validation_errors_total",
            "Records with at least one validation violation.",
            registry=self.registry,
        )
        self.transformation_errors_total = Counter(
            "eventpipe_transformation_errors_total",
            "Records dropped because they could not be transformed.",
            registry=self.registry,
        )
        self.rows_stored_total = Counter(
            "eventpipe_rows_stored_total",
            "Rows upserted into warehouse tables.",
            ("table",),
            registry=self.registry,
        )
        self.storage_failures_total = Counter(
            "eventpipe_storage_failures_total",
            "Table-group writes rolled back.",
            ("table",),
            registry=self.registry,
        )
        self.store_latency_seconds = Histogram(
            "eventpipe_store_latency_seconds",
            "Latency of one table-group warehouse write.",
            ("table",),
            buckets=(0.005, 0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, float("inf")),
            registry=self.registry,
        )

    def record_ingested(self, source: str, count: int = 1) -> None:
        self.records_ingested_total.labels(source=source).inc(count)

    def record_ingestion_error(self, source: str) -> None:
        self.ingestion_errors_total.labels(source=source).inc()

    def record_flush(self, source: str, depth_after: int = 0) -> None:
        self.batches_flushed_total.labels(source=source).inc()
        self.buffer_depth.labels(source=source).set(depth_after)

    def set_buffer_depth(self, source: str, depth: int) -> None:
        self.buffer_depth.labels(source=source).set(depth)

    def record_processed(self, processed: int, validation_errors: int, transformation_errors: int) -> None:
        """Record the outcome of one processed batch."""

        if processed:
            self.records_processed_total.inc(processed)
        if validation_errors:
            self.validation_errors_total.inc(validation_errors)
        if transformation_errors:
            self.transformation_errors_total.inc(transformation_errors)

    def observe_store(self, table: str, rows: int, latency_seconds: float, *, success: bool = True) -> None:
        """Record a table-group write."""

        self.store_latency_seconds.labels(table=table).observe(latency_seconds)
        if success:
            self.rows_stored_total.labels(table=table).inc(rows)
        else:
            self.storage_failures_total.labels(table=table).inc()

    def render(self) -> bytes:
        """Render metrics in Prometheus exposition format."""

        return generate_latest(self.registry)


__all__ = ["MetricsCollector"]
