"""Per-module config schemas."""
from __future__ import annotations

from .dialog import DialogConfig  # noqa: F401
from .observability import LoggingConfig, MetricsConfig  # noqa: F401

__all__ = ["DialogConfig", "LoggingConfig", "MetricsConfig"]
