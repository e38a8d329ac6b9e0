"""Pipeline orchestration."""

from eventpipe.core.pipeline.events import EventHub
from eventpipe.core.pipeline.factory import build_pipeline, build_sources
from eventpipe.core.pipeline.integration import consume_pipeline_events, log_pipeline_event
from eventpipe.core.pipeline.orchestrator import PipelineOrchestrator, PipelineState
from eventpipe.core.pipeline.routing import TABLE_ORDER, route_records
from eventpipe.core.pipeline.sql_guard import ensure_read_only

__all__ = [
    "TABLE_ORDER",
    "EventHub",
    "PipelineOrchestrator",
    "PipelineState",
    "build_pipeline",
    "build_sources",
    "consume_pipeline_events",
    "ensure_read_only",
    "log_pipeline_event",
    "route_records",
]
