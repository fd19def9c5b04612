from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from conftest import DEMO_YAML, THREE_JOBS_YAML, FakeExecutor
from shipyard.api import create_app
from shipyard.errors import PersistenceError
from shipyard.orchestrator import Orchestrator
from shipyard.storage import MemoryStorage


@pytest.fixture
def client(orchestrator):
    with TestClient(create_app(orchestrator)) as c:
        yield c


def _upload(client, text=DEMO_YAML):
    return client.post("/api/workflows", content=text, headers={"Content-Type": "application/x-yaml"})


def test_health(client):
    assert client.get("/health").json() == {"ok": True}


def test_upload_and_list_workflows(client):
    resp = _upload(client)
    assert resp.status_code == 200
    assert resp.json() == {"message": "Workflow uploaded successfully", "name": "demo"}

    listed = client.get("/api/workflows").json()
    assert len(listed) == 1
    assert listed[0]["name"] == "demo"
    assert listed[0]["job_order"] == ["lint", "test"]
    assert listed[0]["on"] == {"push": {"branches": ["main"]}}
    assert listed[0]["jobs"]["lint"]["runs_on"] == "alpine"


def test_upload_invalid_yaml(client):
    resp = _upload(client, "name: Invalid\ninvalid yaml syntax {\n")
    assert resp.status_code == 400
    assert resp.json()["detail"].startswith("Invalid workflow: failed to parse workflow")


def test_upload_incomplete_workflow(client):
    resp = _upload(client, "name: x\njobs:\n  build:\n    steps: []\n")
    assert resp.status_code == 400
    assert "must have at least one step" in resp.json()["detail"]
    assert client.get("/api/workflows").json() == []


def test_trigger_and_poll_run(client, orchestrator):
    _upload(client, THREE_JOBS_YAML)
    resp = client.post("/api/workflows/pipeline/trigger")
    assert resp.status_code == 200
    started = resp.json()
    assert started["status"] == "running"
    assert started["workflow_name"] == "pipeline"
    assert started["completed_at"] is None

    orchestrator.wait(started["id"], timeout=10)
    run = client.get(f"/api/runs/{started['id']}").json()
    assert run["status"] == "success"
    assert run["job_order"] == ["build", "test", "deploy"]
    assert run["jobs"]["deploy"]["output"] == "deploy ok\n"
    assert run["completed_at"] is not None


def test_trigger_unknown_workflow(client):
    assert client.post("/api/workflows/ghost/trigger").status_code == 404


def test_get_unknown_run(client):
    resp = client.get("/api/runs/run-0-deadbeef")
    assert resp.status_code == 404
    assert resp.json()["detail"] == "Run not found"


def test_list_runs_and_workflow_runs(client, orchestrator):
    _upload(client)
    _upload(client, THREE_JOBS_YAML)
    ids = [client.post(f"/api/workflows/{n}/trigger").json()["id"] for n in ("demo", "pipeline", "demo")]
    for run_id in ids:
        orchestrator.wait(run_id, timeout=10)

    assert {r["id"] for r in client.get("/api/runs").json()} == set(ids)
    demo_runs = client.get("/api/workflows/demo/runs").json()
    assert {r["id"] for r in demo_runs} == {ids[0], ids[2]}
    assert client.get("/api/workflows/ghost/runs").json() == []


def test_workflow_stats(client, orchestrator):
    _upload(client)
    run_id = client.post("/api/workflows/demo/trigger").json()["id"]
    orchestrator.wait(run_id, timeout=10)

    stats = client.get("/api/workflows/demo/stats").json()
    assert stats["total_runs"] == 1
    assert stats["successful_runs"] == 1
    assert stats["failed_runs"] == 0
    assert stats["success_rate"] == 100.0


def test_delete_workflow(client, orchestrator):
    _upload(client)
    run_id = client.post("/api/workflows/demo/trigger").json()["id"]
    orchestrator.wait(run_id, timeout=10)

    resp = client.delete("/api/workflows/demo")
    assert resp.status_code == 200
    assert resp.json() == {"message": "Workflow deleted successfully", "name": "demo"}
    assert client.get(f"/api/runs/{run_id}").status_code == 404
    assert client.delete("/api/workflows/demo").status_code == 404


class BrokenStorage(MemoryStorage):
    def list_workflows(self):
        raise PersistenceError("failed to list workflows: connection refused")


def test_storage_failure_is_a_500():
    orch = Orchestrator(BrokenStorage(), FakeExecutor())
    try:
        with TestClient(create_app(orch)) as c:
            resp = c.get("/api/workflows")
    finally:
        orch.shutdown(timeout=5)

    assert resp.status_code == 500
    assert "connection refused" in resp.json()["detail"]


def test_upload_non_utf8_body(client):
    resp = client.post("/api/workflows", content=b"name: \xff\njobs: {}\n")
    assert resp.status_code == 400
    assert "not valid UTF-8" in resp.json()["detail"]
