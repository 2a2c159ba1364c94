import json
import logging

from dialogcore.config import LoggingConfig
from dialogcore.logging_setup import ROOT_LOGGER, JsonFormatter, configure_logging


def _dialog_handlers(logger):
    return [h for h in logger.handlers if getattr(h, "_dialog_handler", False)]


def test_configure_twice_keeps_single_handler():
    logger = configure_logging(LoggingConfig(level="debug", format="text"))
    configure_logging(LoggingConfig(level="warn", format="json"))
    try:
        assert logger.name == ROOT_LOGGER
        handlers = _dialog_handlers(logger)
        assert len(handlers) == 1
        assert isinstance(handlers[0].formatter, JsonFormatter)
        assert logger.level == logging.WARNING
    finally:
        for h in _dialog_handlers(logger):
            logger.removeHandler(h)


def test_json_formatter_includes_extra_fields():
    record = logging.LogRecord(
        "dialog.store", logging.INFO, __file__, 1, "evicted %s", ("s1",), None
    )
    record.session_id = "s1"
    data = json.loads(JsonFormatter().format(record))
    assert data["message"] == "evicted s1"
    assert data["module"] == "dialog.store"
    assert data["level"] == "INFO"
    assert data["session_id"] == "s1"
    assert "timestamp" in data
