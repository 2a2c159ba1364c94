import pytest
from fastapi.testclient import TestClient

from dialogcore.config import DialogConfig
from dialogcore.runtime import DialogRuntime
from petdialog.api.app import create_app


def _client(cfg):
    return TestClient(create_app(DialogRuntime(cfg, start_sweeper=False)))


@pytest.fixture
def client():
    cfg = DialogConfig(
        model="keyword-stub", default_backend="llm", fallback_chain=["rules"]
    )
    with _client(cfg) as c:
        yield c


def test_generate_returns_llm_response(client):
    r = client.post(
        "/generate",
        json={"session_id": "pet-1", "trigger": "feed", "current_mood": 80},
    )
    assert r.status_code == 200
    data = r.json()
    assert data["backend"] == "llm"
    assert data["confidence"] == pytest.approx(0.8)
    assert data["text"]
    h = client.get("/sessions/pet-1/history").json()
    assert len(h["exchanges"]) == 1
    assert h["exchanges"][0]["trigger"] == "feed"


def test_generate_validates_payload(client):
    r = client.post("/generate", json={"session_id": "", "trigger": "click"})
    assert r.status_code == 422
    r = client.post(
        "/generate",
        json={"session_id": "s", "trigger": "click", "current_mood": 150},
    )
    assert r.status_code == 422


def test_disabled_dialog_uses_static_fallback():
    with _client(DialogConfig(enabled=False)) as c:
        r = c.post(
            "/generate",
            json={
                "session_id": "s",
                "trigger": "click",
                "fallback_responses": ["Zzz..."],
                "fallback_animation": "sleeping",
            },
        )
    assert r.status_code == 200
    data = r.json()
    assert data["text"] == "Zzz..."
    assert data["animation"] == "sleeping"
    assert data["response_type"] == "fallback"
    assert data["confidence"] == pytest.approx(0.1)


def test_no_fallback_maps_to_422():
    with _client(DialogConfig(enabled=False)) as c:
        r = c.post("/generate", json={"session_id": "s", "trigger": "click"})
    assert r.status_code == 422
    assert r.json()["detail"]["error_type"] == "no-fallback"
