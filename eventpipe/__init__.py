"""eventpipe - event registration analytics pipeline.

Ingests events, registrations and attendance from live change feeds and
periodic pulls, validates and enriches them, and loads them into a DuckDB
warehouse with an HTTP management API on top.
"""

__version__ = "0.1.0"

from eventpipe.core.config import ConfigManager, PipelineConfig
from eventpipe.core.pipeline import PipelineOrchestrator, PipelineState, build_pipeline

__all__ = [
    "ConfigManager",
    "PipelineConfig",
    "PipelineOrchestrator",
    "PipelineState",
    "__version__",
    "build_pipeline",
]
