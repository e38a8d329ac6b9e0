"""Configuration module."""

from eventpipe.core.config.settings import (
    ConfigManager,
    PipelineConfig,
    get_default_config,
    load_config_from_env,
    validate_config,
)

__all__ = [
    "ConfigManager",
    "PipelineConfig",
    "get_default_config",
    "load_config_from_env",
    "validate_config",
]
