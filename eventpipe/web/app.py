"""FastAPI application factory for the pipeline management API."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncGenerator, Awaitable, Callable
from contextlib import asynccontextmanager, suppress
from uuid import uuid4

from fastapi import FastAPI, HTTPException, Request, Response
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from eventpipe import __version__
from eventpipe.core.config import ConfigManager, PipelineConfig
from eventpipe.core.exceptions import (
    ConfigurationError,
    PipelineError,
    PipelineStateError,
    QueryRejectedError,
    SourceError,
    StartupError,
    ValidationError,
)
from eventpipe.core.logging import configure_logging, log_context
from eventpipe.core.pipeline import PipelineOrchestrator, build_pipeline, consume_pipeline_events
from eventpipe.web.metrics import router as metrics_router
from eventpipe.web.models import ErrorResponse
from eventpipe.web.routes import pipeline_router

_STATUS_BY_ERROR: tuple[tuple[type[PipelineError], int], ...] = (
    (PipelineStateError, 400),
    (QueryRejectedError, 400),
    (ValidationError, 422),
    (SourceError, 502),
    (StartupError, 503),
    (ConfigurationError, 500),
)


def _status_for(exc: PipelineError) -> int:
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status_code
    return 500


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Run the event-logging consumer and optionally start the pipeline."""

    pipeline: PipelineOrchestrator = app.state.pipeline
    config: PipelineConfig = app.state.config

    events = pipeline.subscribe()
    consumer = asyncio.create_task(consume_pipeline_events(events), name="pipeline-event-log")
    if config.api.auto_start:
        await pipeline.start()

    try:
        yield
    finally:
        if app.state.owns_pipeline:
            await pipeline.close()
        consumer.cancel()
        with suppress(asyncio.CancelledError):
            await consumer
        pipeline.unsubscribe(events)


def create_app(pipeline: PipelineOrchestrator | None = None, config: PipelineConfig | None = None) -> FastAPI:
    """Create the management application.

    A pipeline passed in is used as-is and left running on shutdown; otherwise
    one is built from ``config`` (or the loaded configuration) and closed on
    shutdown.
    """

    if config is None:
        config = pipeline.config if pipeline is not None else ConfigManager().get_config()
    configure_logging(config.logging.level, file_output=bool(config.logging.file), file_path=config.logging.file)

    app = FastAPI(
        title="eventpipe",
        description="Management API of the event analytics pipeline",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.owns_pipeline = pipeline is None
    app.state.pipeline = pipeline or build_pipeline(config)

    _setup_middleware(app)
    _setup_routes(app)
    _setup_exception_handlers(app)
    return app


def _setup_middleware(app: FastAPI) -> None:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=1000)

    @app.middleware("http")
    async def request_context(request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
        request_id = request.headers.get("x-request-id") or uuid4().hex
        request.state.request_id = request_id
        with log_context(trace_id=request_id, path=request.url.path):
            response = await call_next(request)
        response.headers["x-request-id"] = request_id
        return response


def _setup_routes(app: FastAPI) -> None:
    app.include_router(pipeline_router, prefix="/api/pipeline", tags=["pipeline"])
    app.include_router(metrics_router)


def _error_response(request: Request, status_code: int, error: str, message: str, details: dict | None) -> JSONResponse:
    payload = ErrorResponse(
        error=error,
        message=message,
        details=details,
        request_id=getattr(request.state, "request_id", None),
    )
    return JSONResponse(status_code=status_code, content=jsonable_encoder(payload))


def _setup_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(PipelineError)
    async def pipeline_exception_handler(request: Request, exc: PipelineError) -> JSONResponse:
        status_code = _status_for(exc)
        logger.warning("Request failed", error_code=exc.error_code, status_code=status_code, error=exc.message)
        return _error_response(request, status_code, type(exc).__name__, exc.message, exc.to_payload())

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
        details = {"status_code": exc.status_code}
        return _error_response(request, exc.status_code, "HTTPException", str(exc.detail), details)

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.opt(exception=exc).error("Unhandled error", error=str(exc))
        details = {"type": type(exc).__name__}
        return _error_response(request, 500, "InternalServerError", "Internal server error", details)


__all__ = ["create_app", "lifespan"]
