"""Tests for the Prometheus metrics collector."""

from prometheus_client import CollectorRegistry

from eventpipe.core.monitoring import MetricsCollector


def test_ingestion_counters() -> None:
    registry = CollectorRegistry()
    collector = MetricsCollector(registry=registry)

    collector.record_ingested("registrations")
    collector.record_ingested("registrations", 2)
    collector.record_ingestion_error("spreadsheet")
    collector.set_buffer_depth("registrations", 3)

    assert registry.get_sample_value("eventpipe_records_ingested_total", {"source": "registrations"}) == 3.0
    assert registry.get_sample_value("eventpipe_ingestion_errors_total", {"source": "spreadsheet"}) == 1.0
    assert registry.get_sample_value("eventpipe_buffer_depth", {"source": "registrations"}) == 3.0

    collector.record_flush("registrations")

    assert registry.get_sample_value("eventpipe_batches_flushed_total", {"source": "registrations"}) == 1.0
    assert registry.get_sample_value("eventpipe_buffer_depth", {"source": "registrations"}) == 0.0


def test_processing_counters() -> None:
    registry = CollectorRegistry()
    collector = MetricsCollector(registry=registry)

    collector.record_processed(4, 1, 0)
    collector.record_processed(2, 0, 1)

    assert registry.get_sample_value("eventpipe_records_processed_total") == 6.0
    assert registry.get_sample_value("eventpipe_validation_errors_total") == 1.0
    assert registry.get_sample_value("eventpipe_transformation_errors_total") == 1.0


def test_observe_store_success_and_failure() -> None:
    registry = CollectorRegistry()
    collector = MetricsCollector(registry=registry)

    collector.observe_store("dim_events", 5, 0.02, success=True)
    collector.observe_store("dim_events", 3, 0.04, success=False)

    assert registry.get_sample_value("eventpipe_rows_stored_total", {"table": "dim_events"}) == 5.0
    assert registry.get_sample_value("eventpipe_storage_failures_total", {"table": "dim_events"}) == 1.0
    assert registry.get_sample_value("eventpipe_store_latency_seconds_count", {"table": "dim_events"}) == 2.0


def test_render_exposition_format() -> None:
    collector = MetricsCollector(registry=CollectorRegistry())
    collector.record_ingested("events")

    rendered = collector.render().decode("utf-8")

    assert "eventpipe_records_ingested_total" in rendered
    assert 'source="events"' in rendered
