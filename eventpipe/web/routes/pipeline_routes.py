"""Management endpoints for the running pipeline."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from loguru import logger

from eventpipe.core.exceptions import PipelineStateError, StorageError
from eventpipe.core.pipeline import PipelineOrchestrator
from eventpipe.web.models import APIResponse, ErrorResponse, QueryRequest, TriggerRequest

router = APIRouter()


def _pipeline(request: Request) -> PipelineOrchestrator:
    return request.app.state.pipeline


def _request_id(request: Request) -> str | None:
    return getattr(request.state, "request_id", None)


@router.get("/status", response_model=APIResponse)
async def get_status(request: Request) -> APIResponse:
    status = await _pipeline(request).get_status()
    return APIResponse(success=True, data=status, request_id=_request_id(request))


@router.get("/health", response_model=APIResponse)
async def get_health(request: Request) -> APIResponse | JSONResponse:
    """Pipeline health; anything but ``healthy`` answers 503."""

    health = await _pipeline(request).health_check()
    response = APIResponse(
        success=health["status"] == "healthy",
        data=health,
        message=f"Pipeline is {health['status']}",
        request_id=_request_id(request),
    )
    if health["status"] != "healthy":
        logger.warning("Health check failed", status=health["status"])
        return JSONResponse(status_code=503, content=jsonable_encoder(response))
    return response


@router.post("/start", response_model=APIResponse)
async def start_pipeline(request: Request) -> APIResponse:
    pipeline = _pipeline(request)
    if pipeline.is_running:
        raise PipelineStateError("Pipeline is already running", pipeline.state.value)
    await pipeline.start()
    return APIResponse(success=True, data=pipeline.pipeline_stats(), message="Pipeline started")


@router.post("/stop", response_model=APIResponse)
async def stop_pipeline(request: Request) -> APIResponse:
    pipeline = _pipeline(request)
    if not pipeline.is_running:
        raise PipelineStateError("Pipeline is not running", pipeline.state.value)
    await pipeline.stop()
    return APIResponse(success=True, data=pipeline.pipeline_stats(), message="Pipeline stopped")


@router.post("/trigger", response_model=APIResponse)
async def trigger_run(request: Request, body: TriggerRequest | None = None) -> APIResponse:
    source = body.source if body is not None else "manual"
    result = await _pipeline(request).trigger_manual_run(source)
    return APIResponse(success=True, data=result, message="Manual run completed")


@router.get("/analytics", response_model=APIResponse)
async def get_analytics(request: Request) -> APIResponse:
    analytics = await _pipeline(request).get_analytics()
    return APIResponse(success=True, data=analytics, request_id=_request_id(request))


@router.get("/metrics", response_model=APIResponse)
async def get_metrics(request: Request) -> APIResponse:
    metrics = await _pipeline(request).get_metrics()
    return APIResponse(success=True, data=metrics, request_id=_request_id(request))


@router.post("/reset-stats", response_model=APIResponse)
async def reset_stats(request: Request) -> APIResponse:
    pipeline = _pipeline(request)
    pipeline.reset_stats()
    return APIResponse(success=True, data=pipeline.pipeline_stats(), message="Statistics reset")


@router.post("/query", response_model=APIResponse)
async def run_query(request: Request, body: QueryRequest) -> APIResponse | JSONResponse:
    """Run a read-only query; rejected or failing queries answer 400."""

    try:
        rows = await _pipeline(request).run_query(body.sql, body.params)
    except StorageError as exc:
        error = ErrorResponse(
            error=type(exc).__name__,
            message=exc.message,
            details=exc.to_payload(),
            request_id=_request_id(request),
        )
        return JSONResponse(status_code=400, content=jsonable_encoder(error))
    return APIResponse(success=True, data={"rows": rows, "count": len(rows)}, request_id=_request_id(request))


@router.get("/events/{event_id}/analytics", response_model=APIResponse)
async def get_event_analytics(request: Request, event_id: str) -> APIResponse:
    analytics = await _pipeline(request).get_event_analytics(event_id)
    if analytics is None:
        raise HTTPException(status_code=404, detail=f"Event {event_id} not found")
    return APIResponse(success=True, data=analytics, request_id=_request_id(request))


@router.post("/aggregates/refresh", response_model=APIResponse)
async def refresh_aggregates(request: Request) -> APIResponse:
    counts = await _pipeline(request).refresh_aggregates()
    return APIResponse(success=True, data=counts, message="Aggregates refreshed")


__all__ = ["router"]
