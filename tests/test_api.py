"""Tests for the HTTP API."""

import pytest
from fastapi.testclient import TestClient

from automation_engine.core.dependencies import get_run_store, get_workflow_store
from automation_engine.main import app
from automation_engine.schemas.workflow import parse_workflow_definition
from automation_engine.storage import RunRecordStore, WorkflowStore


GREETING = {
    "id": "greeting",
    "name": "Greeting",
    "nodes": [
        {"id": "start", "type": "manual_trigger"},
        {"id": "shape", "type": "transform", "params": {"fields": {"message": "Hello {{ $input.name }}"}}},
        {"id": "done", "type": "output", "params": {"data": "{{ shape }}"}},
    ],
    "edges": [{"from": "start", "to": "shape"}, {"from": "shape", "to": "done"}],
}


@pytest.fixture
def client():
    workflows = WorkflowStore()
    workflows.add(parse_workflow_definition(GREETING))
    runs = RunRecordStore()

    app.dependency_overrides[get_workflow_store] = lambda: workflows
    app.dependency_overrides[get_run_store] = lambda: runs
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


class TestMetaRoutes:
    """Tests for root, health and node listing."""

    def test_root(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["status"] == "running"

    def test_health(self, client):
        assert client.get("/health").json()["status"] == "healthy"

    def test_list_nodes(self, client):
        nodes = {n["type"]: n for n in client.get("/api/nodes").json()}

        assert {"manual_trigger", "condition", "delay", "http.request", "transform", "output"} <= set(nodes)
        assert nodes["condition"]["emits_branches"] is True


class TestWorkflowRoutes:
    """Tests for listing and running workflows."""

    def test_list_workflows(self, client):
        assert client.get("/api/workflows").json() == [
            {"id": "greeting", "name": "Greeting", "node_count": 3, "edge_count": 2}
        ]

    def test_run_stored_workflow(self, client):
        response = client.post("/api/workflows/greeting/run", json={"input": {"name": "Ada"}})

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "succeeded"
        assert body["workflowId"] == "greeting"
        assert [s["nodeId"] for s in body["stepResults"]] == ["start", "shape", "done"]
        assert body["stepResults"][-1]["output"]["data"] == {"message": "Hello Ada"}

    def test_run_without_body(self, client):
        """Test that a missing input field fails the node that references it."""
        response = client.post("/api/workflows/greeting/run")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "failed"
        assert body["stepResults"][1]["errorType"] == "ResolutionError"
        assert body["stepResults"][2]["status"] == "skipped"

    def test_run_unknown_workflow(self, client):
        assert client.post("/api/workflows/missing/run", json={}).status_code == 404

    def test_run_adhoc_workflow(self, client):
        workflow = dict(GREETING, id="adhoc")
        response = client.post("/api/workflows/run", json={"workflow": workflow, "input": {"name": "Bob"}})

        assert response.status_code == 200
        assert response.json()["workflowId"] == "adhoc"

    def test_run_invalid_adhoc_workflow(self, client):
        workflow = {
            "id": "loop",
            "nodes": [{"id": "a", "type": "output"}, {"id": "b", "type": "output"}],
            "edges": [{"from": "a", "to": "b"}, {"from": "b", "to": "a"}],
        }
        response = client.post("/api/workflows/run", json={"workflow": workflow})

        assert response.status_code == 422
        assert any("cycle" in p for p in response.json()["detail"]["problems"])


class TestExecutionRoutes:
    """Tests for run history."""

    def test_runs_are_recorded(self, client):
        run_id = client.post("/api/workflows/greeting/run", json={"input": {"name": "Ada"}}).json()["runId"]

        listing = client.get("/api/executions").json()
        assert [r["runId"] for r in listing] == [run_id]
        assert listing[0]["stepCount"] == 3
        assert listing[0]["errorCount"] == 0

        detail = client.get(f"/api/executions/{run_id}")
        assert detail.status_code == 200
        assert detail.json()["status"] == "succeeded"

    def test_filter_by_workflow(self, client):
        client.post("/api/workflows/greeting/run", json={})
        assert client.get("/api/executions", params={"workflowId": "other"}).json() == []

    def test_unknown_run(self, client):
        assert client.get("/api/executions/run_missing").status_code == 404

    def test_clear(self, client):
        client.post("/api/workflows/greeting/run", json={})
        assert client.delete("/api/executions").json() == {"cleared": 1}
        assert client.get("/api/executions").json() == []
