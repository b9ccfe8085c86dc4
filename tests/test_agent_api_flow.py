from __future__ import annotations

import json

from fastapi.testclient import TestClient

from whut.apps.api import deps
from whut.apps.api.main import app

PLAN = [
    {"description": "Check the inbox", "toolName": "fetch_emails"},
    {"description": "Email Sam", "toolName": "send_email", "toolParams": {"to": "sam@example.com", "subject": "Update"}},
]


def _setup(monkeypatch, response: str = json.dumps(PLAN)) -> list[dict]:
    deps.reset_dependencies()

    def fake_complete(self, system: str, user: str, model: str | None = None) -> str:
        return response

    monkeypatch.setattr("whut.core.models.llm_provider.WhutLLM.complete", fake_complete)
    sent: list[dict] = []
    registry = deps.get_tool_registry()
    registry.register("fetch_emails", lambda params: [])
    registry.register("send_email", lambda params: sent.append(params) or {"id": "sent"})
    return sent


def test_task_approval_flow_over_http(monkeypatch) -> None:
    sent = _setup(monkeypatch)

    with TestClient(app) as client:
        created = client.post("/agent/tasks", json={"intent": "email sam an update", "user_id": "u1"})
        assert created.status_code == 200
        body = created.json()
        assert body["mode"] == "task"
        task_id = body["task"]["id"]
        assert body["task"]["status"] == "waiting_approval"
        assert body["task"]["current_step_index"] == 1
        assert created.headers["X-Correlation-ID"]

        fetched = client.get(f"/agent/tasks/{task_id}")
        assert fetched.status_code == 200
        assert fetched.json()["steps"][1]["approval_preview"] == "Send an email to sam@example.com with subject 'Update'."

        active = client.get("/agent/tasks", params={"user_id": "u1", "active": True}).json()["tasks"]
        assert [task["id"] for task in active] == [task_id]

        wrong_step = client.post(f"/agent/tasks/{task_id}/steps/0/approve")
        assert wrong_step.status_code == 409

        approved = client.post(f"/agent/tasks/{task_id}/steps/1/approve")
        assert approved.status_code == 200
        assert approved.json()["task"]["status"] == "completed"
        assert sent == [{"to": "sam@example.com", "subject": "Update"}]

        again = client.post(f"/agent/tasks/{task_id}/steps/1/reject")
        assert again.status_code == 409

        history = client.get("/agent/history", params={"user_id": "u1"}).json()
        assert [record["task_id"] for record in history] == [task_id]


def test_task_controls_and_errors(monkeypatch) -> None:
    _setup(monkeypatch)

    with TestClient(app) as client:
        assert client.get("/agent/tasks/missing").status_code == 404
        assert client.post("/agent/tasks/missing/cancel").status_code == 404

        task_id = client.post("/agent/tasks", json={"intent": "email sam", "user_id": "u2"}).json()["task"]["id"]
        assert client.post(f"/agent/tasks/{task_id}/steps/9/approve").status_code == 404

        paused = client.post(f"/agent/tasks/{task_id}/pause")
        assert paused.status_code == 200
        assert paused.json()["status"] == "paused"

        resumed = client.post(f"/agent/tasks/{task_id}/resume")
        assert resumed.status_code == 200
        assert resumed.json()["task"]["status"] == "waiting_approval"

        cancelled = client.post(f"/agent/tasks/{task_id}/cancel")
        assert cancelled.json()["status"] == "cancelled"
        assert client.post(f"/agent/tasks/{task_id}/resume").status_code == 409


def test_planning_failure_and_concurrency_limit(monkeypatch) -> None:
    _setup(monkeypatch, response="no idea")

    with TestClient(app) as client:
        failed = client.post("/agent/tasks", json={"intent": "something", "user_id": "u3"})
        assert failed.status_code == 400

        plan = client.post("/agent/plan", json={"intent": "something"})
        assert plan.status_code == 400

    _setup(monkeypatch)
    with TestClient(app) as client:
        patched = client.patch("/agent/config", json={"max_concurrent_tasks": 1})
        assert patched.status_code == 200
        assert patched.json()["max_concurrent_tasks"] == 1

        assert client.post("/agent/tasks", json={"intent": "email sam", "user_id": "u4"}).status_code == 200
        limited = client.post("/agent/tasks", json={"intent": "email sam again", "user_id": "u4"})
        assert limited.status_code == 429


def test_plan_endpoint_returns_steps(monkeypatch) -> None:
    _setup(monkeypatch)

    with TestClient(app) as client:
        response = client.post("/agent/plan", json={"intent": "email sam", "connected_integrations": ["google"]})
        assert response.status_code == 200
        steps = response.json()
        assert [step["toolName"] for step in steps] == ["fetch_emails", "send_email"]

        config = client.get("/agent/config").json()
        assert config["max_steps"] == 20
        assert "send_email" in config["always_approve"]
        assert client.get("/health").json() == {"status": "ok"}
