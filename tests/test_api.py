import pytest
from fastapi.testclient import TestClient

from conftest import T0, at

from workflow_observer.app import app
from workflow_observer.config import Settings
from workflow_observer.models import ConfusionSignal, ConfusionType
from workflow_observer.services.session import SessionManager, set_session_manager


BASE = "/api/v1"


@pytest.fixture
def manager(store):
    manager = SessionManager(Settings(), store=store, reasoning_factory=lambda settings: None)
    set_session_manager(manager)
    yield manager
    set_session_manager(None)


@pytest.fixture
def client(manager):
    with TestClient(app) as test_client:
        yield test_client


def start(client, session_id="s-1"):
    return client.post(
        f"{BASE}/sessions",
        json={"profile_id": "alex", "session_id": session_id, "started_at": T0.isoformat()},
    )


def observe(client, seconds, app_name, session_id="s-1"):
    return client.post(
        f"{BASE}/sessions/{session_id}/observations",
        json={"id": f"obs-{seconds}", "timestamp": at(seconds).isoformat(), "active_app": app_name},
    )


def test_health_reports_active_session(client):
    body = client.get(f"{BASE}/health").json()
    assert body["ok"] is True
    assert body["active_session"] is None

    start(client)
    assert client.get(f"{BASE}/health").json()["active_session"] == "s-1"


def test_only_one_session_at_a_time(client):
    response = start(client)
    assert response.status_code == 201
    assert response.json()["session"]["status"] == "active"

    conflict = start(client, "s-2")
    assert conflict.status_code == 409
    assert conflict.json()["ok"] is False


def test_observations_drive_task_detection(client):
    start(client)
    for seconds in range(0, 60, 10):
        assert observe(client, seconds, "Excel").status_code == 200
    responses = [observe(client, seconds, "SAP") for seconds in range(60, 100, 10)]

    assert responses[-1].json()["boundary_events"] == ["switched"]
    assert responses[-1].json()["current_task"]["applications"][0]["app"] == "SAP"

    tasks = client.get(f"{BASE}/sessions/s-1/tasks").json()
    assert [task["name"] for task in tasks] == ["Work in Excel", "Unnamed task"]

    events = client.get(f"{BASE}/sessions/s-1/events").json()["events"]
    kinds = [event["kind"] for event in events]
    assert kinds[:2] == ["session.started", "task.started"]
    assert "task.switched" in kinds and "task.named" in kinds
    assert client.get(f"{BASE}/sessions/s-1/events").json()["events"] == []


def test_unknown_session_is_404(client):
    response = client.get(f"{BASE}/sessions/nope")
    assert response.status_code == 404
    assert response.json() == {"ok": False, "error": "Unknown session: nope"}


def test_blank_app_is_rejected(client):
    start(client)
    response = observe(client, 0, "   ")
    assert response.status_code == 422
    assert response.json()["ok"] is False


def test_question_lifecycle(client, manager):
    start(client)
    observe(client, 0, "Excel")
    question = manager.get("s-1").throttler.accept(
        ConfusionSignal(
            type=ConfusionType.MULTI_SYSTEM,
            confidence=0.9,
            trigger_context="copying between Excel and SAP",
            suggested_question="Why copy values from Excel into SAP?",
        ),
        now=at(0),
    )

    listed = client.get(f"{BASE}/sessions/s-1/questions").json()
    assert [item["id"] for item in listed] == [question.id]

    deferred = client.post(f"{BASE}/sessions/s-1/questions/{question.id}/defer")
    assert deferred.json()["status"] == "deferred"
    assert client.get(f"{BASE}/sessions/s-1/questions", params={"status": "deferred"}).json()[0]["id"] == question.id

    client.post(f"{BASE}/sessions/s-1/questions/{question.id}/resurface")
    answered = client.post(
        f"{BASE}/sessions/s-1/questions/{question.id}/answer", json={"answer": "SAP has no import"}
    )
    assert answered.status_code == 200
    assert answered.json()["status"] == "answered"

    assert client.post(f"{BASE}/sessions/s-1/questions/{question.id}/dismiss").status_code == 409
    assert client.post(f"{BASE}/sessions/s-1/questions/q-missing/dismiss").status_code == 404


def test_pause_resume_and_end(client, store):
    start(client)
    for seconds in range(0, 60, 10):
        observe(client, seconds, "Excel")

    assert client.post(f"{BASE}/sessions/s-1/pause").json()["session"]["status"] == "paused"
    assert client.post(f"{BASE}/sessions/s-1/pause").status_code == 409
    assert client.post(f"{BASE}/sessions/s-1/resume").json()["session"]["status"] == "active"

    summary = client.post(f"{BASE}/sessions/s-1/end", json={}).json()
    assert summary["final"] is True
    assert summary["tasks_completed"] == ["Work in Excel"]
    assert len(store.summaries["alex"]) == 1

    assert observe(client, 60, "Excel").status_code == 409
    assert client.get(f"{BASE}/health").json()["active_session"] is None


def test_idle_check_interrupts_task(client):
    start(client)
    observe(client, 0, "Excel")

    response = client.post(f"{BASE}/sessions/s-1/idle-check", json={"now": at(400).isoformat()})

    assert response.status_code == 200
    assert response.json()["session"]["current_task"] is None
    assert response.json()["session"]["tasks"][0]["status"] == "interrupted"


def test_compact_iso_timestamps_are_accepted(client):
    start(client)
    response = client.post(
        f"{BASE}/sessions/s-1/observations",
        json={"id": "obs-compact", "timestamp": "20240304T090010Z", "active_app": "Excel"},
    )

    assert response.status_code == 200
    assert response.json()["current_task"]["start_time"] == "2024-03-04T09:00:10Z"

    summary = client.post(f"{BASE}/sessions/s-1/end").json()
    assert summary["final"] is True
