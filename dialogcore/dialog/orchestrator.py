"""Response orchestration across registered dialog backends.

Resolution for one `generate(ctx)` call:

    TryDefault   -> Done when the default backend succeeds with
                    confidence > threshold, else TryFallback[0]
    TryFallback  -> Done on the first backend that succeeds (any confidence),
                    else the next chain entry
    StaticFallback -> rotate through ctx.fallback_responses (confidence 0.1)

Each attempt runs on its own daemon thread and is awaited for at most its
attempt timeout; a timed-out or failed attempt only moves resolution forward.
A backend with `max_inflight` attempts still running (hung past their
timeout) is treated as busy and skipped. The registry lock is never held
across a backend call.

When a store is attached, the accepted backend response (and only that one)
is recorded as the turn's exchange; static fallbacks are not recorded.
"""
from __future__ import annotations

import logging
import threading
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeout
from itertools import count
from time import perf_counter
from typing import Dict, Iterable, List, Optional, Tuple

from dialogcore import metrics
from dialogcore.errors import (
    NoFallbackError,
    NotRegisteredError,
    map_exception,
    validate_error_type,
)
from dialogcore.events import (
    BackendAttemptFailed,
    BackendRegistered,
    ResponseGenerated,
    emit,
)

from .store import ConversationStore
from .types import (
    BackendInfo,
    DialogBackend,
    DialogContext,
    GeneratedResponse,
    UserFeedback,
)

DEFAULT_CONFIDENCE_THRESHOLD = 0.5
DEFAULT_ATTEMPT_TIMEOUT_S = 2.0
STATIC_FALLBACK_CONFIDENCE = 0.1
STATIC_FALLBACK_ANIMATION = "talking"
DEFAULT_MAX_INFLIGHT = 8

_log = logging.getLogger("dialog.orchestrator")

Handle = Tuple[str, Optional[DialogBackend]]


class Orchestrator:
    def __init__(
        self,
        *,
        confidence_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD,
        attempt_timeout_s: float = DEFAULT_ATTEMPT_TIMEOUT_S,
        max_inflight: int = DEFAULT_MAX_INFLIGHT,
        store: Optional[ConversationStore] = None,
    ) -> None:
        self.confidence_threshold = confidence_threshold
        # <= 0 waits for the backend without a deadline
        self.attempt_timeout_s = attempt_timeout_s
        # per backend cap on attempts still running
        self.max_inflight = max(1, max_inflight)
        self.store = store
        self._lock = threading.RLock()
        self._backends: Dict[str, Optional[DialogBackend]] = {}
        self._timeouts: Dict[str, float] = {}
        self._default: Optional[str] = None
        self._chain: List[Handle] = []
        self._rotation = count()
        self._inflight: Dict[str, int] = {}
        self._closed = False

    @classmethod
    def from_config(cls, cfg, **kwargs) -> "Orchestrator":
        """Build from a ``DialogConfig`` section (gates + timeout)."""
        return cls(
            confidence_threshold=cfg.confidence_threshold,
            attempt_timeout_s=cfg.attempt_timeout_s,
            **kwargs,
        )

    # registry -------------------------------------------------------------
    def register_backend(self, name: str, backend: DialogBackend) -> None:
        """Store ``backend`` under ``name``, silently replacing an existing one."""
        with self._lock:
            replaced = name in self._backends
            self._backends[name] = backend
            self._resolve_chain_locked()
        _log.info("backend registered name=%s replaced=%s", name, replaced)
        emit(BackendRegistered(name=name, replaced=replaced))

    def unregister_backend(self, name: str) -> bool:
        with self._lock:
            if name not in self._backends:
                return False
            del self._backends[name]
            self._timeouts.pop(name, None)
            if self._default == name:
                self._default = None
            self._resolve_chain_locked()
        _log.info("backend unregistered name=%s", name)
        return True

    def set_default(self, name: str | None) -> None:
        with self._lock:
            if name is not None and name not in self._backends:
                raise NotRegisteredError(name)
            self._default = name

    def set_fallback_chain(self, names: Iterable[str]) -> None:
        """Replace the fallback chain; unknown names reject the whole list."""
        names = list(names)
        with self._lock:
            for name in names:
                if name not in self._backends:
                    raise NotRegisteredError(name)
            self._chain = [(n, self._backends[n]) for n in names]

    def set_timeout(self, name: str, seconds: float | None) -> None:
        """Per-backend attempt timeout override (None restores the global)."""
        with self._lock:
            if name not in self._backends:
                raise NotRegisteredError(name)
            if seconds is None:
                self._timeouts.pop(name, None)
            else:
                self._timeouts[name] = seconds

    def get_backend(self, name: str) -> Optional[DialogBackend]:
        with self._lock:
            if name not in self._backends:
                raise NotRegisteredError(name)
            return self._backends[name]

    def registered(self) -> List[str]:
        with self._lock:
            return list(self._backends)

    def backend_info(self, name: str) -> BackendInfo:
        backend = self.get_backend(name)
        if backend is None:
            return BackendInfo(name=name, description="unavailable")
        return backend.info()

    @property
    def default_name(self) -> Optional[str]:
        return self._default

    @property
    def fallback_names(self) -> List[str]:
        with self._lock:
            return [n for n, _ in self._chain]

    def _resolve_chain_locked(self) -> None:
        self._chain = [(n, self._backends.get(n)) for n, _ in self._chain]

    # generation -----------------------------------------------------------
    def generate(self, ctx: DialogContext) -> GeneratedResponse:
        """Resolve a response for ``ctx``.

        Raises NoFallbackError only when no backend produced an accepted
        response and ``ctx`` carries no static fallback text.
        """
        started = perf_counter()
        with self._lock:
            default_name = self._default
            default = (
                self._backends.get(default_name) if default_name else None
            )
            chain = list(self._chain)
            threshold = self.confidence_threshold
        session_id = ctx.session_id if ctx is not None else ""

        if ctx is not None and default_name and default is not None:
            if self._eligible(default_name, default, ctx):
                resp = self._attempt(default_name, default, ctx, "default")
                if resp is not None:
                    if resp.confidence > threshold:
                        metrics.inc_attempt(default_name, "default", "ok")
                        self._record(ctx, resp)
                        return self._done(resp, "default", session_id, started)
                    metrics.inc_attempt(default_name, "default", "rejected")
                    self._attempt_failed(
                        default_name,
                        "default",
                        "low-confidence",
                        session_id,
                        f"confidence {resp.confidence:.2f} <= {threshold:.2f}",
                    )

        if ctx is not None:
            for name, backend in chain:
                if backend is None:
                    _log.debug("fallback entry %s has no backend; skipped", name)
                    continue
                if not self._eligible(name, backend, ctx):
                    continue
                resp = self._attempt(name, backend, ctx, "fallback")
                if resp is not None:
                    metrics.inc_attempt(name, "fallback", "ok")
                    self._record(ctx, resp)
                    return self._done(resp, "fallback", session_id, started)

        return self._done(
            self._static_fallback(ctx), "static", session_id, started
        )

    def _eligible(
        self, name: str, backend: DialogBackend, ctx: DialogContext
    ) -> bool:
        try:
            return bool(backend.can_handle(ctx))
        except Exception:  # noqa: BLE001
            _log.exception("can_handle failed backend=%s", name)
            return False

    def _attempt(
        self,
        name: str,
        backend: DialogBackend,
        ctx: DialogContext,
        stage: str,
    ) -> Optional[GeneratedResponse]:
        with self._lock:
            timeout = self._timeouts.get(name, self.attempt_timeout_s)
        future = self._spawn(name, backend, ctx)
        if future is None:
            metrics.inc_attempt(name, stage, "busy")
            self._attempt_failed(
                name,
                stage,
                "backend-busy",
                ctx.session_id,
                f"{self.max_inflight} attempts still running",
            )
            return None
        try:
            resp = future.result(timeout=timeout if timeout > 0 else None)
        except FutureTimeout:
            metrics.inc_attempt(name, stage, "timeout")
            self._attempt_failed(
                name,
                stage,
                "timeout",
                ctx.session_id,
                f"no response within {timeout:.3f}s",
            )
            return None
        except Exception as e:  # noqa: BLE001
            metrics.inc_attempt(name, stage, "error")
            self._attempt_failed(
                name, stage, map_exception(e), ctx.session_id, str(e)
            )
            return None
        if not isinstance(resp, GeneratedResponse):
            metrics.inc_attempt(name, stage, "error")
            self._attempt_failed(
                name,
                stage,
                "generation-failed",
                ctx.session_id,
                f"unexpected result type {type(resp).__name__}",
            )
            return None
        if not resp.backend:
            resp.backend = name
        return resp

    def _spawn(
        self, name: str, backend: DialogBackend, ctx: DialogContext
    ) -> Optional[Future]:
        """Start ``backend.generate(ctx)`` on a fresh daemon thread.

        Returns None when ``name`` already has ``max_inflight`` attempts
        running. An abandoned attempt holds only its own thread.
        """
        with self._lock:
            running = self._inflight.get(name, 0)
            if running >= self.max_inflight:
                return None
            self._inflight[name] = running + 1
        future: Future = Future()

        def run() -> None:
            try:
                future.set_running_or_notify_cancel()
                try:
                    future.set_result(backend.generate(ctx))
                except Exception as e:  # noqa: BLE001
                    future.set_exception(e)
            finally:
                with self._lock:
                    left = self._inflight.get(name, 1) - 1
                    if left > 0:
                        self._inflight[name] = left
                    else:
                        self._inflight.pop(name, None)

        threading.Thread(
            target=run, name=f"dialog-attempt-{name}", daemon=True
        ).start()
        return future

    def inflight(self, name: str) -> int:
        """Attempts of ``name`` still running (including abandoned ones)."""
        with self._lock:
            return self._inflight.get(name, 0)

    def _record(self, ctx: DialogContext, resp: GeneratedResponse) -> None:
        if self.store is None:
            return
        self.store.add_exchange(
            ctx.session_id, ctx.trigger, resp.text, resp.topics
        )

    def _attempt_failed(
        self,
        name: str,
        stage: str,
        error_type: str,
        session_id: str,
        message: str | None,
    ) -> None:
        _log.warning(
            "backend attempt failed backend=%s stage=%s error_type=%s msg=%s",
            name,
            stage,
            error_type,
            message,
        )
        emit(
            BackendAttemptFailed(
                backend=name,
                stage=stage,
                error_type=validate_error_type(error_type),
                session_id=session_id,
                message=message,
            )
        )

    def _static_fallback(self, ctx: DialogContext | None) -> GeneratedResponse:
        options = list(ctx.fallback_responses) if ctx is not None else []
        if not options:
            metrics.inc("dialog_no_fallback_total")
            raise NoFallbackError(
                "no backend produced a response and no fallback text was given"
            )
        with self._lock:
            idx = next(self._rotation)
        return GeneratedResponse(
            text=options[idx % len(options)],
            animation=ctx.fallback_animation or STATIC_FALLBACK_ANIMATION,
            confidence=STATIC_FALLBACK_CONFIDENCE,
            response_type="fallback",
            emotional_tone="neutral",
        )

    def _done(
        self,
        resp: GeneratedResponse,
        stage: str,
        session_id: str,
        started: float,
    ) -> GeneratedResponse:
        latency_ms = int((perf_counter() - started) * 1000)
        emit(
            ResponseGenerated(
                session_id=session_id,
                backend=resp.backend,
                stage=stage,
                confidence=resp.confidence,
                latency_ms=latency_ms,
                response_type=resp.response_type,
            )
        )
        return resp

    # memory ---------------------------------------------------------------
    def update_memory(
        self,
        ctx: DialogContext,
        response: GeneratedResponse,
        feedback: UserFeedback,
    ) -> Optional[str]:
        """Forward feedback to the first registered backend that can handle
        ``ctx``. Best effort: failures are logged. Returns the backend name.
        """
        with self._lock:
            handles = list(self._backends.items())
        for name, backend in handles:
            if backend is None or not self._eligible(name, backend, ctx):
                continue
            try:
                backend.update_memory(ctx, response, feedback)
            except Exception:  # noqa: BLE001
                _log.exception("update_memory failed backend=%s", name)
            return name
        return None

    # lifecycle ------------------------------------------------------------
    def close(self) -> None:
        """Close every backend (idempotent).

        Attempts still running are abandoned; their threads are daemons.
        """
        with self._lock:
            if self._closed:
                return
            self._closed = True
            backends = [b for b in self._backends.values() if b is not None]
            self._backends = {}
            self._default = None
            self._resolve_chain_locked()
        for backend in backends:
            try:
                backend.close()
            except Exception:  # noqa: BLE001
                _log.exception("backend close failed")


__all__ = [
    "Orchestrator",
    "STATIC_FALLBACK_CONFIDENCE",
    "DEFAULT_CONFIDENCE_THRESHOLD",
]
