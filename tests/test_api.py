import pytest
from fastapi.testclient import TestClient

from trait_xp.api import server
from trait_xp.core.config import Config
from trait_xp.core.events import EventBus
from trait_xp.core.system import TraitXpSystem


@pytest.fixture
def client(tmp_path):
    config = Config(storage={"database": str(tmp_path / "api.db")})
    system = TraitXpSystem(config, event_bus=EventBus())
    with TestClient(server.create_app(system)) as c:
        yield c
    server.set_system_ref(None)


def _ingest(client, session_id: str, minutes: float = 25, **extra) -> None:
    resp = client.post("/api/sessions", json={
        "session_id": session_id,
        "task_id": "task-1",
        "user_id": "user-1",
        "duration_minutes": minutes,
        **extra,
    })
    assert resp.status_code == 200


def test_status(client) -> None:
    data = client.get("/api/status").json()
    assert data["system"]["running"] is True
    assert data["exp_stats"]["xp_per_token"] == 10


def test_score_task_twice(client) -> None:
    _ingest(client, "s1")
    first = client.post("/api/tasks/task-1/score", json={"user_id": "user-1"}).json()
    assert first["total_xp"] == 60
    assert first["tokens"] == 6

    second = client.post("/api/tasks/task-1/score", json={"user_id": "user-1"}).json()
    assert second["total_xp"] == 0
    assert second["tokens"] == 0

    wallet = client.get("/api/wallets/user-1").json()
    assert wallet["balance"] == 6
    assert wallet["mints"][0]["per_trait_totals"]["Endurance"] == 10


def test_score_task_with_inline_sessions(client) -> None:
    resp = client.put("/api/tasks/task-9/classification", json={"stakes": "high"})
    assert resp.json()["classification"]["stakes"] == "high"

    data = client.post("/api/tasks/task-9/score", json={
        "user_id": "user-1",
        "sessions": [{"session_id": "inline-1", "duration_minutes": -10}],
    }).json()
    # Initiative 12 + Proactiveness 6 + Courage (12 + 12) * 1.2
    assert data["total_xp"] == 47
    assert data["tokens"] == 4


def test_score_single_session_and_ledger(client) -> None:
    _ingest(
        client, "s2", minutes=30,
        events=[{"type": "urge_overcome", "timestamp": "2026-03-02T09:05:00"}],
        self_report={"startTiming": "early"},
    )
    data = client.post("/api/sessions/s2/score", json={"task_id": "task-1", "user_id": "user-1"}).json()
    totals = data["per_trait_totals"]
    assert totals["Initiative"] == 20
    assert totals["Discipline"] == 9

    ledger = client.get("/api/sessions/s2/ledger").json()
    assert ledger["scored"] is True
    assert {e["trait"] for e in ledger["entries"]} == set(totals)


def test_score_unknown_session_is_404(client) -> None:
    resp = client.post("/api/sessions/missing/score", json={"task_id": "t", "user_id": "u"})
    assert resp.status_code == 404


def test_sweep_endpoint(client) -> None:
    _ingest(client, "s1")
    data = client.post("/api/sweep", json={"user_id": "user-1", "task_ids": ["task-1", "empty"]}).json()
    outcomes = {o["task_id"]: o for o in data["outcomes"]}
    assert outcomes["task-1"]["result"]["tokens"] == 6
    assert outcomes["empty"]["result"]["total_xp"] == 0


def test_open_session_is_not_scored_until_completed(client) -> None:
    _ingest(client, "open", minutes=10, completed=False)
    resp = client.post("/api/sessions/open/score", json={"task_id": "task-1", "user_id": "user-1"})
    assert resp.status_code == 409
    assert client.get("/api/sessions/open/ledger").json()["scored"] is False

    _ingest(client, "open", minutes=60)
    data = client.post("/api/tasks/task-1/score", json={"user_id": "user-1"}).json()
    assert data["session_ids"] == ["open"]
    assert data["per_trait_totals"]["Endurance"] == 20
