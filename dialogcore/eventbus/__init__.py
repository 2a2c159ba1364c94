"""In-process event bus for dialog events.

The store and orchestrator publish by event name (``SessionEvicted``,
``ResponseGenerated`` ...) through `dialogcore.events.emit`; hosts such as a
desktop shell subscribe per name to react, e.g. dropping pet state for an
evicted session.

Dispatch is synchronous on the emitting thread, after the emitter has
released its own locks. A failing handler never reaches the emitter: it is
logged and counted in ``handler_exceptions_total{event}``. Per event the bus
also keeps ``events_emitted_total``, ``dispatch_count`` and
``dispatch_latency_accum_ms``.
"""
from __future__ import annotations

import logging
from threading import RLock
from time import time
from typing import Any, Callable, Dict, List

from dialogcore import metrics

Handler = Callable[[Dict[str, Any]], None]

_log = logging.getLogger("dialog.eventbus")


class EventBus:
    """Name -> handlers registry; one module-level instance backs the API."""

    def __init__(self) -> None:
        self._handlers: Dict[str, List[Handler]] = {}
        self._lock = RLock()

    def subscribe(self, event: str, handler: Handler) -> Callable[[], None]:
        """Register ``handler`` for ``event``; returns an unsubscribe callable."""
        with self._lock:
            self._handlers.setdefault(event, []).append(handler)

        def unsubscribe() -> None:
            with self._lock:
                registered = self._handlers.get(event, [])
                if handler in registered:
                    registered.remove(handler)

        return unsubscribe

    def emit(self, event: str, payload: Dict[str, Any]) -> None:
        started = time()
        payload.setdefault("ts", started)
        with self._lock:
            handlers = tuple(self._handlers.get(event, ()))
        metrics.inc("events_emitted_total", {"event": event})
        for handler in handlers:
            # each handler gets its own copy of the payload
            try:
                handler(dict(payload))
            except Exception:  # noqa: BLE001
                metrics.inc("handler_exceptions_total", {"event": event})
                _log.exception("dialog event handler failed event=%s", event)
        labels = {"event": event}
        metrics.inc(
            "dispatch_latency_accum_ms", labels, int((time() - started) * 1000)
        )
        metrics.inc("dispatch_count", labels)

    def reset_for_tests(self) -> None:  # pragma: no cover
        with self._lock:
            self._handlers.clear()


_BUS = EventBus()


def subscribe(event: str, handler: Handler) -> Callable[[], None]:
    return _BUS.subscribe(event, handler)


def emit(event: str, payload: Dict[str, Any]) -> None:
    _BUS.emit(event, payload)


def reset_for_tests() -> None:  # pragma: no cover
    _BUS.reset_for_tests()


__all__ = ["EventBus", "emit", "subscribe", "reset_for_tests"]
