"""Core pipeline components."""

from eventpipe.core.config import ConfigManager, PipelineConfig
from eventpipe.core.exceptions import PipelineError
from eventpipe.core.pipeline import PipelineOrchestrator, build_pipeline

__all__ = [
    "ConfigManager",
    "PipelineConfig",
    "PipelineError",
    "PipelineOrchestrator",
    "build_pipeline",
]
