"""Minimal in-memory metrics collector.

Purpose:
    - Counters and simple latency samples for early degradation detection.
    - Zero external deps; can be swapped by a Prometheus exporter later.

Core API (intentionally tiny):
    inc(name, labels=None, value=1)
    observe(name, value, labels=None)
    snapshot() -> dict (copy for safe reading)

Thread-safety: coarse RLock; overhead negligible for low event volume.

Dialog related metric names (documented for discoverability):
    - dialog_exchanges_total
    - dialog_sessions_evicted_total{reason}           # capacity|ttl|explicit
    - dialog_sweep_runs_total
    - dialog_attempts_total{backend,stage,outcome}    # ok|rejected|error|timeout|busy
    - dialog_generate_latency_ms{stage}
    - dialog_static_fallback_total
    - prompt_truncations_total{strategy}              # sentence|word|hard
    - config_validation_errors_total{path,code}
    - env_override_total{path}
"""
from __future__ import annotations

from threading import RLock
from time import time
from typing import Dict, Tuple, Any

_COUNTERS: Dict[Tuple[str, Tuple[Tuple[str, str], ...]], float] = {}
_HIST: Dict[Tuple[str, Tuple[Tuple[str, str], ...]], list] = {}
_LOCK = RLock()


def _norm_labels(labels: dict[str, Any] | None) -> Tuple[Tuple[str, str], ...]:
    if not labels:
        return tuple()
    return tuple(sorted((str(k), str(v)) for k, v in labels.items()))


def _label_str(labels: Tuple[Tuple[str, str], ...]) -> str:
    if not labels:
        return ""
    return "{" + ",".join(f"{k}={v}" for k, v in labels) + "}"


def inc(
    name: str,
    labels: dict[str, Any] | None = None,
    value: float = 1.0,
) -> None:
    key = (name, _norm_labels(labels))
    with _LOCK:
        _COUNTERS[key] = _COUNTERS.get(key, 0.0) + value


def observe(
    name: str,
    value: float,
    labels: dict[str, Any] | None = None,
) -> None:
    key = (name, _norm_labels(labels))
    with _LOCK:
        _HIST.setdefault(key, []).append(value)


def snapshot() -> dict[str, Any]:
    with _LOCK:
        counters: dict[str, float] = {}
        for (name, labels), v in _COUNTERS.items():
            counters[name + _label_str(labels)] = v
        hist = {}
        for (name, labels), vals in _HIST.items():
            if not vals:
                continue
            ordered = sorted(vals)
            hist[name + _label_str(labels)] = {
                "count": len(vals),
                "min": ordered[0],
                "max": ordered[-1],
                "p50": ordered[len(ordered) // 2],
                "last": vals[-1],
            }
        return {
            "ts": time(),
            "counters": counters,
            "histograms": hist,
        }


def counter_value(name: str, labels: dict[str, Any] | None = None) -> float:
    """Return current value of a single counter (0.0 if never incremented)."""
    with _LOCK:
        return _COUNTERS.get((name, _norm_labels(labels)), 0.0)


def reset_for_tests() -> None:  # pragma: no cover
    with _LOCK:
        _COUNTERS.clear()
        _HIST.clear()


__all__ = [
    "inc",
    "observe",
    "snapshot",
    "counter_value",
    "reset_for_tests",
]


# ------------------- Helper wrappers -------------------

def inc_session_evicted(reason: str, count: int = 1) -> None:
    """Increment evicted sessions counter.

    reason: capacity | ttl | explicit
    """
    if count:
        inc("dialog_sessions_evicted_total", {"reason": reason}, value=count)


def inc_attempt(backend: str, stage: str, outcome: str) -> None:
    """Record one backend invocation attempt.

    stage: default | fallback
    outcome: ok | rejected | error | timeout | busy
    """
    inc(
        "dialog_attempts_total",
        {"backend": backend, "stage": stage, "outcome": outcome},
    )


def inc_prompt_truncation(strategy: str) -> None:
    """Increment prompt truncation counter (sentence|word|hard)."""
    if strategy:
        inc("prompt_truncations_total", {"strategy": strategy})


__all__ += [
    "inc_session_evicted",
    "inc_attempt",
    "inc_prompt_truncation",
]
