"""Bounded per-session conversation history.

Eviction happens three ways:
    - window: each session keeps at most ``max_exchanges_per_session``
      exchanges; appending to a full session drops the single oldest one
    - capacity: with ``max_sessions > 0`` the least-recently-updated session
      is evicted before a *new* session is inserted (O(n) linear scan)
    - ttl: a background sweeper removes sessions idle longer than
      ``retention_s`` every ``sweep_interval_s``

All state sits behind one readers/writer lock. Reads never hand out internal
objects; exchanges are copied on the way out. Events are emitted after the
lock is released so handlers may call back into the store.
"""
from __future__ import annotations

import logging
import threading
from collections import Counter, deque
from dataclasses import dataclass
from time import time
from typing import Callable, Deque, Dict, Iterable, List, Optional, Tuple

from dialogcore.events import (
    ExchangeRecorded,
    SessionEvicted,
    SweepCompleted,
    emit,
)

from .types import Exchange, SessionSummary

DEFAULT_WINDOW = 10
DEFAULT_SWEEP_INTERVAL_S = 3600.0
DEFAULT_RETENTION_S = 86400.0

_log = logging.getLogger("dialog.store")


class _RWLock:
    """Readers/writer lock with writer preference.

    Readers share the lock; a writer waits for active readers to drain and
    blocks new readers while it is queued.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._waiting_writers = 0

    def acquire_read(self) -> None:
        with self._cond:
            while self._writer or self._waiting_writers:
                self._cond.wait()
            self._readers += 1

    def release_read(self) -> None:
        with self._cond:
            self._readers -= 1
            if self._readers == 0:
                self._cond.notify_all()

    def acquire_write(self) -> None:
        with self._cond:
            self._waiting_writers += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._waiting_writers -= 1
            self._writer = True

    def release_write(self) -> None:
        with self._cond:
            self._writer = False
            self._cond.notify_all()

    def read(self) -> "_Guard":
        return _Guard(self.acquire_read, self.release_read)

    def write(self) -> "_Guard":
        return _Guard(self.acquire_write, self.release_write)


class _Guard:
    __slots__ = ("_enter", "_exit")

    def __init__(self, enter: Callable[[], None], exit_: Callable[[], None]):
        self._enter = enter
        self._exit = exit_

    def __enter__(self) -> None:
        self._enter()

    def __exit__(self, *exc) -> None:
        self._exit()


@dataclass(slots=True)
class _SessionHistory:
    session_id: str
    exchanges: Deque[Exchange]
    last_updated: float
    touch_seq: int = 0


class ConversationStore:
    """Thread-safe conversation cache shared by all dialog backends.

    Construct explicitly and call ``close()`` when done; there is no module
    level instance. ``clock`` returns epoch seconds and is injectable for
    tests; ``start_sweeper=False`` leaves TTL eviction to explicit ``sweep()``
    calls.
    """

    def __init__(
        self,
        max_exchanges_per_session: int = DEFAULT_WINDOW,
        max_sessions: int = 0,
        sweep_interval_s: float = DEFAULT_SWEEP_INTERVAL_S,
        retention_s: float = DEFAULT_RETENTION_S,
        *,
        clock: Callable[[], float] = time,
        start_sweeper: bool = True,
    ) -> None:
        self.window = (
            max_exchanges_per_session
            if max_exchanges_per_session > 0
            else DEFAULT_WINDOW
        )
        self.max_sessions = max(0, max_sessions)
        self.sweep_interval_s = (
            sweep_interval_s if sweep_interval_s > 0 else DEFAULT_SWEEP_INTERVAL_S
        )
        self.retention_s = (
            retention_s if retention_s > 0 else DEFAULT_RETENTION_S
        )
        self._clock = clock
        self._lock = _RWLock()
        self._sessions: Dict[str, _SessionHistory] = {}
        self._seq = 0
        self._closed = False
        self._stop = threading.Event()
        self._sweeper: Optional[threading.Thread] = None
        if start_sweeper:
            self._sweeper = threading.Thread(
                target=self._sweep_loop,
                name="dialog-store-sweeper",
                daemon=True,
            )
            self._sweeper.start()

    @classmethod
    def from_config(cls, cfg, **kwargs) -> "ConversationStore":
        """Build from a ``DialogConfig`` section."""
        return cls(
            max_exchanges_per_session=cfg.history_window,
            max_sessions=cfg.max_sessions,
            sweep_interval_s=cfg.sweep_interval_s,
            retention_s=cfg.retention_s,
            **kwargs,
        )

    # writes ---------------------------------------------------------------
    def add_exchange(
        self,
        session_id: str,
        trigger: str,
        text: str,
        topics: Iterable[str] = (),
    ) -> Optional[Exchange]:
        """Append one exchange; returns a copy of it (None after close)."""
        evicted: Optional[Tuple[str, float]] = None
        with self._lock.write():
            if self._closed:
                _log.debug("add_exchange ignored on closed store sid=%s", session_id)
                return None
            now = self._clock()
            hist = self._sessions.get(session_id)
            if hist is None:
                if self.max_sessions and len(self._sessions) >= self.max_sessions:
                    evicted = self._evict_oldest_locked(now)
                hist = _SessionHistory(
                    session_id=session_id,
                    exchanges=deque(maxlen=self.window),
                    last_updated=now,
                )
                self._sessions[session_id] = hist
            ts = now
            if hist.exchanges and hist.exchanges[-1].timestamp > ts:
                ts = hist.exchanges[-1].timestamp
            ex = Exchange(
                timestamp=ts,
                trigger=trigger,
                response_text=text,
                topics=tuple(topics),
            )
            hist.exchanges.append(ex)
            self._touch_locked(hist, ts)
            count = len(hist.exchanges)
            out = ex.copy()
        if evicted is not None:
            sid, idle = evicted
            _log.debug("session evicted sid=%s reason=capacity", sid)
            emit(
                SessionEvicted(
                    session_id=sid, reason="capacity", idle_seconds=int(idle)
                )
            )
        emit(
            ExchangeRecorded(
                session_id=session_id, trigger=trigger, exchange_count=count
            )
        )
        return out

    def record_feedback(
        self, session_id: str, positive: bool, engagement: float
    ) -> bool:
        """Set feedback on the latest exchange; returns False when no-op."""
        with self._lock.write():
            if self._closed:
                return False
            hist = self._sessions.get(session_id)
            if hist is None or not hist.exchanges:
                return False
            latest = hist.exchanges[-1]
            if latest.has_feedback:
                _log.debug("feedback already recorded sid=%s", session_id)
                return False
            latest.set_feedback(positive, engagement)
            self._touch_locked(hist, max(self._clock(), hist.last_updated))
            return True

    def clear(self, session_id: str) -> bool:
        with self._lock.write():
            if self._closed:
                return False
            removed = self._sessions.pop(session_id, None)
        if removed is None:
            return False
        emit(SessionEvicted(session_id=session_id, reason="explicit"))
        return True

    def sweep(self, now: float | None = None) -> List[str]:
        """Remove sessions idle longer than the retention period.

        Phase 1 collects expired ids, phase 2 deletes them; the mapping is
        never mutated while being iterated. Returns the removed ids.
        """
        started = time()
        expired: List[Tuple[str, float]] = []
        with self._lock.write():
            if self._closed:
                return []
            now = self._clock() if now is None else now
            cutoff = now - self.retention_s
            for sid, hist in self._sessions.items():
                if hist.last_updated < cutoff:
                    expired.append((sid, now - hist.last_updated))
            for sid, _ in expired:
                del self._sessions[sid]
            remaining = len(self._sessions)
        for sid, idle in expired:
            emit(SessionEvicted(session_id=sid, reason="ttl", idle_seconds=int(idle)))
        emit(
            SweepCompleted(
                removed=len(expired),
                remaining=remaining,
                duration_ms=int((time() - started) * 1000),
            )
        )
        if expired:
            _log.info("sweep removed=%d remaining=%d", len(expired), remaining)
        return [sid for sid, _ in expired]

    # reads ----------------------------------------------------------------
    def history(self, session_id: str, limit: int = 0) -> List[Exchange]:
        with self._lock.read():
            hist = self._sessions.get(session_id)
            if hist is None:
                return []
            items = list(hist.exchanges)
        if limit > 0:
            items = items[-limit:]
        return [ex.copy() for ex in items]

    def summary(self, session_id: str) -> SessionSummary:
        with self._lock.read():
            hist = self._sessions.get(session_id)
            if hist is None or not hist.exchanges:
                return SessionSummary()
            exchanges = [ex.copy() for ex in hist.exchanges]
            last = hist.last_updated
        counts = Counter(ex.trigger for ex in exchanges)
        first_seen: Dict[str, int] = {}
        for idx, ex in enumerate(exchanges):
            first_seen.setdefault(ex.trigger, idx)
        dominant = sorted(
            (t for t, c in counts.items() if c >= 2),
            key=lambda t: (-counts[t], first_seen[t]),
        )
        topics: List[str] = []
        for ex in reversed(exchanges):
            for topic in ex.topics:
                if topic not in topics:
                    topics.append(topic)
        return SessionSummary(
            exchange_count=len(exchanges),
            average_engagement=sum(ex.engagement_score for ex in exchanges)
            / len(exchanges),
            positive_feedback_count=sum(
                1 for ex in exchanges if ex.feedback_positive
            ),
            last_interaction=last,
            dominant_triggers=dominant,
            recent_topics=topics,
        )

    def get_active_count(self) -> int:
        with self._lock.read():
            return len(self._sessions)

    def session_ids(self) -> List[str]:
        with self._lock.read():
            return list(self._sessions)

    @property
    def closed(self) -> bool:
        return self._closed

    # lifecycle ------------------------------------------------------------
    def close(self) -> None:
        """Stop the sweeper and drop all sessions (idempotent)."""
        self._stop.set()
        sweeper, self._sweeper = self._sweeper, None
        if sweeper is not None and sweeper is not threading.current_thread():
            sweeper.join(timeout=1.0)
        with self._lock.write():
            if self._closed:
                return
            self._closed = True
            self._sessions = {}
        _log.debug("conversation store closed")

    def __enter__(self) -> "ConversationStore":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    # internals ------------------------------------------------------------
    def _touch_locked(self, hist: _SessionHistory, ts: float) -> None:
        self._seq += 1
        hist.last_updated = ts
        hist.touch_seq = self._seq

    def _evict_oldest_locked(self, now: float) -> Optional[Tuple[str, float]]:
        if not self._sessions:
            return None
        oldest = min(
            self._sessions.values(),
            key=lambda h: (h.last_updated, h.touch_seq),
        )
        del self._sessions[oldest.session_id]
        return oldest.session_id, max(0.0, now - oldest.last_updated)

    def _sweep_loop(self) -> None:
        while not self._stop.wait(self.sweep_interval_s):
            try:
                self.sweep()
            except Exception:  # noqa: BLE001
                _log.exception("conversation sweep failed")


__all__ = ["ConversationStore", "DEFAULT_WINDOW"]
