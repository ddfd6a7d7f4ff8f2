"""Configuration loading and management for Aither."""

from aither.core.config.loader import (
    ConfigLoader,
    clear_config_cache,
    get_default_config,
    load_config,
)
from aither.core.config.models import (
    AitherConfig,
    LoggingConfig,
    OrchestrationConfig,
    UnitEntry,
)

__all__ = [
    "AitherConfig",
    "ConfigLoader",
    "LoggingConfig",
    "OrchestrationConfig",
    "UnitEntry",
    "clear_config_cache",
    "get_default_config",
    "load_config",
]
