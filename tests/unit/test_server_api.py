from __future__ import annotations

import time
from typing import Any

import pytest
from fastapi.testclient import TestClient

from kit_engine.kits.builtin import GENERAL_MATTER_KIT_ID, build_default_registry
from kit_engine.kits.orchestrator import KitOrchestrator
from kit_engine.server.app import create_app


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch, tmp_path) -> None:
    # Keep a developer's local .env out of the app settings.
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("KIT_CORS_ORIGINS", raising=False)
    monkeypatch.delenv("KIT_SESSION_TIMEOUT_SECONDS", raising=False)
    monkeypatch.delenv("KIT_MAX_CONCURRENT_KITS", raising=False)


@pytest.fixture
def client() -> TestClient:
    return TestClient(create_app())


def _start_run(client: TestClient, session_id: str, description: str) -> dict[str, Any]:
    resp = client.post(
        f"/api/sessions/{session_id}/runs",
        json={
            "kit_id": GENERAL_MATTER_KIT_ID,
            "intake": {"description": description, "jurisdiction": "Ontario"},
            "user_id": "user-1",
        },
    )
    assert resp.status_code == 202
    return resp.json()


def _wait_for_run(client: TestClient, run_id: str, timeout: float = 5.0) -> dict[str, Any]:
    deadline = time.monotonic() + timeout
    while True:
        run = client.get(f"/api/runs/{run_id}").json()
        if run["status"] in ("succeeded", "failed"):
            return run
        if time.monotonic() > deadline:
            raise AssertionError(f"run {run_id} still {run['status']}")
        time.sleep(0.01)


def test_health(client: TestClient) -> None:
    health = client.get("/api/health").json()

    assert health["status"] == "ok"
    assert "version" in health
    assert health["activeSessions"] == 0


def test_kit_catalog(client: TestClient) -> None:
    catalog = client.get("/api/kits").json()
    assert catalog["total_kits"] == 1
    assert catalog["kits"][0]["kit_id"] == GENERAL_MATTER_KIT_ID

    kit = client.get(f"/api/kits/{GENERAL_MATTER_KIT_ID}").json()
    assert kit["complexity"] == "simple"
    assert kit["domains"] == ["general"]

    assert client.get("/api/kits/no-such-kit").status_code == 404


def test_run_lifecycle(client: TestClient) -> None:
    started = _start_run(client, "s-1", "Landlord kept my deposit")
    assert started["session_id"] == "s-1"
    assert started["kit_id"] == GENERAL_MATTER_KIT_ID
    assert started["status"] in ("queued", "running", "succeeded")

    run = _wait_for_run(client, started["run_id"])
    assert run["status"] == "succeeded"
    assert run["progress"] == 100
    assert run["current_stage"] == "complete"
    assert run["completed_stages"] == ["intake", "analysis", "document", "guidance"]
    assert run["result"]["session_id"] == "s-1"
    assert len(run["result"]["next_steps"]) == 3

    log = client.get("/api/sessions/s-1/log").json()
    assert [e["type"] for e in log] == ["started"] + ["stage-completed"] * 4 + ["completed"]

    state = client.get("/api/sessions/s-1/state").json()
    assert state["sessionId"] == "s-1"
    assert state["userId"] == "user-1"
    assert state["kits"][GENERAL_MATTER_KIT_ID]["progress"] == 100

    runs = client.get("/api/sessions/s-1/runs").json()
    assert [r["run_id"] for r in runs] == [started["run_id"]]
    assert client.get("/api/sessions").json() == ["s-1"]


def test_run_with_invalid_intake_fails(client: TestClient) -> None:
    started = _start_run(client, "s-1", "   ")

    run = _wait_for_run(client, started["run_id"])

    assert run["status"] == "failed"
    assert "Description is required" in run["error"]
    assert run["progress"] == 0
    log = client.get("/api/sessions/s-1/log").json()
    assert log[-1]["type"] == "error"


def test_start_run_rejects_unknown_and_inactive_kits() -> None:
    registry = build_default_registry()
    client = TestClient(create_app(registry=registry))

    resp = client.post(
        "/api/sessions/s-1/runs", json={"kit_id": "nope", "intake": {"description": "x"}}
    )
    assert resp.status_code == 404

    registry.set_kit_active(GENERAL_MATTER_KIT_ID, False)
    resp = client.post(
        "/api/sessions/s-1/runs",
        json={"kit_id": GENERAL_MATTER_KIT_ID, "intake": {"description": "x"}},
    )
    assert resp.status_code == 409
    assert client.get(f"/api/kits/{GENERAL_MATTER_KIT_ID}").status_code == 404


def test_start_run_validates_body(client: TestClient) -> None:
    resp = client.post(
        "/api/sessions/s-1/runs", json={"kit_id": GENERAL_MATTER_KIT_ID, "intake": {}}
    )
    assert resp.status_code == 422


def test_shared_state(client: TestClient) -> None:
    assert (
        client.put(
            "/api/sessions/missing/shared-state",
            json={"kit_id": "k", "key": "jurisdiction", "value": "Ontario"},
        ).status_code
        == 404
    )

    _wait_for_run(client, _start_run(client, "s-1", "Unpaid invoice")["run_id"])
    resp = client.put(
        "/api/sessions/s-1/shared-state",
        json={"kit_id": GENERAL_MATTER_KIT_ID, "key": "amount", "value": 1200},
    )

    assert resp.status_code == 200
    assert resp.json() == {"amount": 1200}
    assert client.get("/api/sessions/s-1/state").json()["sharedState"] == {"amount": 1200}


def test_delete_session(client: TestClient) -> None:
    _wait_for_run(client, _start_run(client, "s-1", "Unpaid invoice")["run_id"])

    resp = client.delete("/api/sessions/s-1")

    assert resp.json() == {"sessionId": "s-1", "removedRuns": 1}
    assert client.get("/api/sessions/s-1/state").status_code == 404
    assert client.get("/api/sessions/s-1/log").json() == []
    assert client.get("/api/sessions/s-1/runs").json() == []


def test_cleanup_expired_sessions() -> None:
    orchestrator = KitOrchestrator(session_timeout_seconds=0.05)
    client = TestClient(create_app(orchestrator=orchestrator))
    orchestrator.create_context("old")
    time.sleep(0.1)
    orchestrator.create_context("fresh")

    resp = client.post("/api/sessions/cleanup-expired")

    assert resp.json() == {"removedSessions": ["old"]}
    assert client.get("/api/sessions").json() == ["fresh"]
