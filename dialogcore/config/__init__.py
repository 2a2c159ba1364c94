"""Config subsystem public API.

Provides:
    get_config() -> AggregatedConfig (dialog, logging, metrics sections)
    build_config(raw) -> AggregatedConfig from an in-memory mapping
    validate_dialog_config(cfg) -> cross-field checks
    as_dict()    -> dict representation
    ConfigError  -> raised on validation / unknown key
"""

from .loader import (  # noqa: F401
    AggregatedConfig,
    get_config,
    build_config,
    validate_dialog_config,
    as_dict,
    ConfigError,
    clear_config_cache,
)
from .schemas import DialogConfig, LoggingConfig, MetricsConfig  # noqa: F401


__all__ = [
    "AggregatedConfig",
    "get_config",
    "build_config",
    "validate_dialog_config",
    "as_dict",
    "ConfigError",
    "clear_config_cache",
    "DialogConfig",
    "LoggingConfig",
    "MetricsConfig",
]
