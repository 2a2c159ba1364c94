"""Dialog event dataclasses + any-subscriber bridge.

Per-event subscriptions go through `dialogcore.eventbus`; `on(handler)`
registers a handler(name, payload) receiving every event. A built-in
collector mirrors selected events into `dialogcore.metrics`.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, asdict
from time import time
from typing import Any, Callable, Dict, List, Protocol

from dialogcore import metrics as _metrics
from dialogcore.eventbus import emit as _emit_bus

EventHandler = Callable[[str, Dict[str, Any]], None]

_log = logging.getLogger("dialog.events")


class SupportsEvent(Protocol):  # pragma: no cover
    def to_event(self) -> Dict[str, Any]:  # noqa: D401
        ...


@dataclass(slots=True)
class BaseEvent:
    def to_event(self) -> Dict[str, Any]:  # noqa: D401
        data = asdict(self)
        data["ts"] = data.get("ts") or time()
        return data


@dataclass(slots=True)
class ExchangeRecorded(BaseEvent):
    session_id: str
    trigger: str
    exchange_count: int


@dataclass(slots=True)
class SessionEvicted(BaseEvent):
    """Session removed from the conversation store.

    reason: capacity (LRU on insert) | ttl (sweep) | explicit (clear)
    """
    session_id: str
    reason: str
    idle_seconds: int | None = None


@dataclass(slots=True)
class SweepCompleted(BaseEvent):
    removed: int
    remaining: int
    duration_ms: int


@dataclass(slots=True)
class BackendAttemptFailed(BaseEvent):
    """One backend invocation did not produce an accepted response.

    stage: default | fallback
    error_type: taxonomy code
      (timeout|generation-failed|low-confidence|backend-busy)
    """
    backend: str
    stage: str
    error_type: str
    session_id: str | None = None
    message: str | None = None


@dataclass(slots=True)
class ResponseGenerated(BaseEvent):
    """Final response resolved by the orchestrator.

    stage: default | fallback | static
    """
    session_id: str
    backend: str | None
    stage: str
    confidence: float
    latency_ms: int
    response_type: str | None = None


@dataclass(slots=True)
class BackendRegistered(BaseEvent):
    name: str
    replaced: bool = False


_ANY_SUBS: List[EventHandler] = []


def _metrics_collector(
    name: str, payload: Dict[str, Any]
) -> None:  # noqa: D401
    if name == "SessionEvicted":
        _metrics.inc_session_evicted(payload.get("reason", "unknown"))
    elif name == "ExchangeRecorded":
        _metrics.inc("dialog_exchanges_total")
    elif name == "SweepCompleted":
        _metrics.inc("dialog_sweep_runs_total")
        _metrics.observe("dialog_sweep_ms", payload.get("duration_ms", 0))
    elif name == "ResponseGenerated":
        stage = payload.get("stage", "unknown")
        _metrics.observe(
            "dialog_generate_latency_ms",
            payload.get("latency_ms", 0),
            {"stage": stage},
        )
        if stage == "static":
            _metrics.inc("dialog_static_fallback_total")


_ANY_SUBS.append(_metrics_collector)


def emit(ev: BaseEvent | SupportsEvent) -> None:
    name = ev.__class__.__name__
    payload = ev.to_event()
    _emit_bus(name, payload)
    for h in list(_ANY_SUBS):  # copy for isolation
        try:
            h(name, dict(payload))
        except Exception:  # noqa: BLE001
            _metrics.inc("handler_exceptions_total", {"event": name})
            _log.exception("any-subscriber failed for %s", name)


def on(handler: EventHandler) -> Callable[[], None]:
    _ANY_SUBS.append(handler)

    def _unsub() -> None:  # noqa: D401
        try:
            _ANY_SUBS.remove(handler)
        except ValueError:
            pass
    return _unsub


def reset_listeners_for_tests() -> None:  # pragma: no cover
    _ANY_SUBS.clear()
    _ANY_SUBS.append(_metrics_collector)


__all__ = [
    "emit",
    "on",
    "BaseEvent",
    "ExchangeRecorded",
    "SessionEvicted",
    "SweepCompleted",
    "BackendAttemptFailed",
    "ResponseGenerated",
    "BackendRegistered",
    "reset_listeners_for_tests",
]
