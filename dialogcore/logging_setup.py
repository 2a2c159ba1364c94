"""Structured logging for the dialog subsystem.

All modules log through named children of the ``dialog`` logger
(``dialog.store``, ``dialog.orchestrator`` ...). ``configure_logging`` installs
a single stream handler on the root ``dialog`` logger using the ``logging``
config section (level + json|text format). Calling it again replaces the
handler instead of stacking a second one.
"""
from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any

from dialogcore.config.schemas.observability import LoggingConfig

ROOT_LOGGER = "dialog"

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}

# LogRecord attributes that are not user supplied ``extra`` fields.
_RESERVED = set(
    logging.LogRecord("", 0, "", 0, "", None, None).__dict__
) | {"message", "asctime"}


class JsonFormatter(logging.Formatter):
    """Emit logs as JSON objects with a stable schema."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(
                record.created, timezone.utc
            ).isoformat(),
            "level": record.levelname,
            "module": record.name,
            "message": record.getMessage(),
        }
        for key, value in record.__dict__.items():
            if key not in _RESERVED and not key.startswith("_"):
                payload[key] = value
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def configure_logging(cfg: LoggingConfig | None = None) -> logging.Logger:
    """Configure and return the root dialog logger."""
    cfg = cfg or LoggingConfig()
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(_LEVELS.get(cfg.level, logging.INFO))
    for h in list(logger.handlers):
        if getattr(h, "_dialog_handler", False):
            logger.removeHandler(h)
    handler = logging.StreamHandler()
    if cfg.format == "json":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s")
        )
    handler._dialog_handler = True  # type: ignore[attr-defined]
    logger.addHandler(handler)
    return logger


__all__ = ["JsonFormatter", "configure_logging", "ROOT_LOGGER"]
