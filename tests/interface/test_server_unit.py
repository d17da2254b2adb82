from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from cadence import server
from cadence.application.config import AppConfig
from cadence.consts import VERSION
from cadence.domain.errors import StoreError
from cadence.infrastructure.adapters.memory_store import InMemoryCardStore
from cadence.server import app, get_config, get_store

client = TestClient(app)


@pytest.fixture(autouse=True)
def store():
    store = InMemoryCardStore()
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_config] = lambda: AppConfig(backend="memory")
    server._sessions.clear()
    yield store
    app.dependency_overrides.clear()
    server._sessions.clear()


def add_cards(*fronts):
    ids = []
    for front in fronts:
        response = client.post("/users/u1/cards", json={"front": front, "back": f"A {front}"})
        assert response.status_code == 201
        ids.append(response.json()["id"])
    return ids


def test_health_check():
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["version"] == VERSION


def test_get_version():
    response = client.get("/version")
    assert response.status_code == 200
    assert response.json() == {"version": VERSION}


def test_add_card_validates_body():
    response = client.post("/users/u1/cards", json={"front": "", "back": "A"})
    assert response.status_code == 422


def test_start_session():
    (card_id,) = add_cards("Q1")

    response = client.post("/sessions/u1")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "active"
    assert data["current_card"]["id"] == card_id
    assert data["current_card"]["is_new"] is True
    assert data["previews"] == {"again": "10m", "hard": "15m", "good": "1h", "easy": "6h"}
    assert data["progress"]["new_count"] == 1


def test_start_session_with_cap():
    add_cards("Q1", "Q2", "Q3")

    data = client.post("/sessions/u1", json={"new_cards_per_day": 2}).json()

    assert data["total_cards"] == 2
    assert data["total_new_cards"] == 1
    assert data["new_cards_per_day"] == 2


def test_start_session_empty():
    data = client.post("/sessions/u1").json()
    assert data["status"] == "empty"
    assert data["current_card"] is None
    assert data["previews"] is None


def test_start_session_store_down(store):
    store.fetch_due_cards = AsyncMock(side_effect=StoreError("offline"))
    response = client.post("/sessions/u1")
    assert response.status_code == 503
    assert "offline" in response.json()["detail"]


def test_unknown_session():
    assert client.get("/sessions/nobody").status_code == 404
    assert client.post("/sessions/nobody/review", json={"rating": "good"}).status_code == 404


def test_review_flow(store):
    first, second = add_cards("Q1", "Q2")
    client.post("/sessions/u1")

    response = client.post("/sessions/u1/review", json={"rating": "again"})

    assert response.status_code == 200
    data = response.json()
    assert data["reviewed_count"] == 1
    assert data["current_card"]["id"] == second
    assert data["total_cards"] == 3
    assert data["progress"]["again_count"] == 1
    assert store.get(first).stage.value == "learning"

    data = client.post("/sessions/u1/review", json={"rating": "good"}).json()
    assert data["current_card"]["id"] == first
    assert data["current_card"]["is_again_requeue"] is True

    data = client.post("/sessions/u1/review", json={"rating": "good"}).json()
    assert data["status"] == "complete"
    assert data["reviewed_count"] == 2

    response = client.post("/sessions/u1/review", json={"rating": "good"})
    assert response.status_code == 409


def test_review_invalid_rating():
    add_cards("Q1")
    client.post("/sessions/u1")
    response = client.post("/sessions/u1/review", json={"rating": "meh"})
    assert response.status_code == 422


def test_review_store_failure_keeps_card(store):
    (card_id,) = add_cards("Q1")
    client.post("/sessions/u1")
    store.patch_card = AsyncMock(side_effect=StoreError("disk full"))

    response = client.post("/sessions/u1/review", json={"rating": "good"})

    assert response.status_code == 503
    state = client.get("/sessions/u1").json()
    assert state["current_card"]["id"] == card_id
    assert state["reviewed_count"] == 0


def test_skip():
    first, second = add_cards("Q1", "Q2")
    client.post("/sessions/u1")

    data = client.post("/sessions/u1/skip").json()

    assert data["current_card"]["id"] == second
    assert data["reviewed_count"] == 0


def test_delete_card(store):
    first, second = add_cards("Q1", "Q2")
    client.post("/sessions/u1")

    response = client.delete(f"/sessions/u1/cards/{first}")

    assert response.status_code == 200
    data = response.json()
    assert data["current_card"]["id"] == second
    assert data["total_cards"] == 1
    assert store.get(first) is None


def test_new_cards_sub_session():
    add_cards("Q1", "Q2", "Q3")
    client.post("/sessions/u1", json={"new_cards_per_day": 1})
    client.post("/sessions/u1/review", json={"rating": "good"})

    data = client.post("/sessions/u1/new", json={"ignore_limit": True}).json()

    assert data["total_cards"] == 1
    assert data["total_new_cards"] == 1
    assert data["cumulative_reviewed_count"] == 1
    assert data["status"] == "active"


def test_progress_endpoint():
    add_cards("Q1", "Q2")
    client.post("/sessions/u1")
    client.post("/sessions/u1/review", json={"rating": "easy"})

    data = client.get("/sessions/u1/progress").json()

    assert data["total"] == 2
    assert data["completed_count"] == 1
    assert data["completed_pct"] == 50.0


def test_end_session():
    client.post("/sessions/u1")
    assert client.delete("/sessions/u1").status_code == 204
    assert client.get("/sessions/u1").status_code == 404
    assert client.delete("/sessions/u1").status_code == 404
