"""Tests for the management HTTP API."""

import pytest
from fastapi.testclient import TestClient
from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry

from eventpipe.core.config import PipelineConfig
from eventpipe.core.monitoring import MetricsCollector
from eventpipe.core.pipeline import PipelineOrchestrator
from eventpipe.core.sources import InMemoryChangeFeed
from eventpipe.core.storage import DataWarehouse
from eventpipe.web import create_app


@pytest.fixture
def pipeline(config: PipelineConfig) -> PipelineOrchestrator:
    return PipelineOrchestrator(
        config,
        warehouse=DataWarehouse(),
        change_feed=InMemoryChangeFeed(),
        metrics=MetricsCollector(registry=CollectorRegistry()),
    )


@pytest.fixture
def client(pipeline: PipelineOrchestrator):
    app = create_app(pipeline=pipeline)
    with TestClient(app) as test_client:
        yield test_client
        if pipeline.is_running:
            test_client.post("/api/pipeline/stop")


def test_status_before_start(client: TestClient) -> None:
    response = client.get("/api/pipeline/status")

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["data"]["state"] == "stopped"
    assert body["data"]["components"]["warehouse"]["status"] == "not_initialized"


def test_start_stop_lifecycle(client: TestClient) -> None:
    started = client.post("/api/pipeline/start")
    again = client.post("/api/pipeline/start")

    assert started.status_code == 200
    assert started.json()["data"]["is_running"] is True
    assert again.status_code == 400
    assert again.json()["error"] == "PipelineStateError"
    assert again.json()["details"]["error_code"] == "PIPELINE_STATE_ERROR"

    stopped = client.post("/api/pipeline/stop")
    stopped_again = client.post("/api/pipeline/stop")

    assert stopped.status_code == 200
    assert stopped_again.status_code == 400


def test_health_reports_degraded_with_503(client: TestClient) -> None:
    assert client.get("/api/pipeline/health").status_code == 200

    client.post("/api/pipeline/start")
    client.post("/api/pipeline/stop")
    response = client.get("/api/pipeline/health")

    assert response.status_code == 503
    assert response.json()["data"]["status"] == "degraded"


def test_query_rejects_destructive_sql(client: TestClient) -> None:
    response = client.post("/api/pipeline/query", json={"sql": "DROP TABLE dim_events"})

    assert response.status_code == 400
    assert response.json()["error"] == "QueryRejectedError"


def test_query_runs_read_only_sql(client: TestClient) -> None:
    client.post("/api/pipeline/start")

    response = client.post(
        "/api/pipeline/query",
        json={"sql": "SELECT COUNT(*) AS events FROM dim_events WHERE event_id <> ?", "params": ["none"]},
    )

    assert response.status_code == 200
    assert response.json()["data"] == {"rows": [{"events": 0}], "count": 1}


def test_query_against_missing_table_is_client_error(client: TestClient) -> None:
    client.post("/api/pipeline/start")

    response = client.post("/api/pipeline/query", json={"sql": "SELECT * FROM nowhere"})

    assert response.status_code == 400
    assert response.json()["error"] == "StorageError"


def test_query_requires_sql(client: TestClient) -> None:
    assert client.post("/api/pipeline/query", json={"sql": ""}).status_code == 422


def test_unknown_event_analytics_is_404(client: TestClient) -> None:
    client.post("/api/pipeline/start")

    response = client.get("/api/pipeline/events/unknown/analytics")

    assert response.status_code == 404
    assert response.json()["success"] is False


def test_trigger_reset_and_analytics(client: TestClient) -> None:
    client.post("/api/pipeline/start")

    triggered = client.post("/api/pipeline/trigger", json={"source": "dashboard"})
    reset = client.post("/api/pipeline/reset-stats")
    analytics = client.get("/api/pipeline/analytics")
    metrics = client.get("/api/pipeline/metrics")
    refreshed = client.post("/api/pipeline/aggregates/refresh")

    assert triggered.json()["data"]["source"] == "dashboard"
    assert triggered.json()["data"]["batches_flushed"] == 0
    assert reset.json()["data"]["total_records_processed"] == 0
    assert set(analytics.json()["data"]) == {"pipeline", "ingestion", "processing", "warehouse", "trends"}
    assert "records_per_second" in metrics.json()["data"]
    assert refreshed.json()["data"]["agg_event_metrics"] == 0


def test_trigger_without_body(client: TestClient) -> None:
    client.post("/api/pipeline/start")

    response = client.post("/api/pipeline/trigger")

    assert response.status_code == 200
    assert response.json()["data"]["source"] == "manual"


def test_trigger_when_stopped_is_rejected(client: TestClient) -> None:
    response = client.post("/api/pipeline/trigger")

    assert response.status_code == 400
    assert response.json()["error"] == "PipelineStateError"


def test_request_id_is_echoed(client: TestClient) -> None:
    response = client.get("/api/pipeline/status", headers={"x-request-id": "req-42"})

    assert response.headers["x-request-id"] == "req-42"
    assert response.json()["request_id"] == "req-42"


def test_prometheus_endpoint(client: TestClient, pipeline: PipelineOrchestrator) -> None:
    pipeline.metrics.record_ingested("events")

    response = client.get("/metrics")

    assert response.status_code == 200
    assert response.headers["content-type"] == CONTENT_TYPE_LATEST
    assert "eventpipe_records_ingested_total" in response.text


def test_owned_pipeline_auto_starts_and_closes(tmp_path) -> None:
    config = PipelineConfig.from_dict(
        {
            "storage": {"warehouse_path": str(tmp_path / "warehouse.duckdb")},
            "ingestion": {"flush_interval_seconds": None},
            "api": {"auto_start": True},
        }
    )
    app = create_app(config=config)

    with TestClient(app) as client:
        assert client.get("/api/pipeline/status").json()["data"]["state"] == "running"

    assert app.state.pipeline.is_running is False
