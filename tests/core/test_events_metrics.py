from dialogcore import metrics
from dialogcore.eventbus import subscribe
from dialogcore.events import (
    ResponseGenerated,
    SessionEvicted,
    SweepCompleted,
    emit,
    on,
)


def test_any_subscriber_receives_all_events():
    seen = []
    unsub = on(lambda name, payload: seen.append((name, payload)))
    emit(SessionEvicted(session_id="s1", reason="ttl", idle_seconds=90000))
    emit(SweepCompleted(removed=1, remaining=0, duration_ms=3))
    unsub()
    emit(SweepCompleted(removed=0, remaining=0, duration_ms=1))
    assert [n for n, _ in seen] == ["SessionEvicted", "SweepCompleted"]
    assert seen[0][1]["idle_seconds"] == 90000
    assert "ts" in seen[0][1]


def test_events_reach_named_bus_subscribers():
    got = []
    subscribe("SessionEvicted", got.append)
    emit(SessionEvicted(session_id="s2", reason="explicit"))
    assert got[0]["session_id"] == "s2"


def test_collector_maps_events_to_metrics():
    emit(SessionEvicted(session_id="a", reason="capacity"))
    emit(SessionEvicted(session_id="b", reason="capacity"))
    emit(
        ResponseGenerated(
            session_id="a",
            backend=None,
            stage="static",
            confidence=0.1,
            latency_ms=4,
            response_type="fallback",
        )
    )
    emit(SweepCompleted(removed=0, remaining=2, duration_ms=7))
    assert metrics.counter_value(
        "dialog_sessions_evicted_total", {"reason": "capacity"}
    ) == 2
    assert metrics.counter_value("dialog_static_fallback_total") == 1
    assert metrics.counter_value("dialog_sweep_runs_total") == 1
    snap = metrics.snapshot()
    assert "dialog_generate_latency_ms{stage=static}" in snap["histograms"]


def test_failing_any_subscriber_is_counted():
    def bad(name, payload):  # noqa: D401
        raise ValueError("nope")

    unsub = on(bad)
    try:
        emit(SweepCompleted(removed=0, remaining=0, duration_ms=0))
    finally:
        unsub()
    assert metrics.counter_value(
        "handler_exceptions_total", {"event": "SweepCompleted"}
    ) == 1
