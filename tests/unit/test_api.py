"""
API route tests with an in-memory store and a mocked broker.
"""

import pytest
from unittest.mock import Mock
from fastapi.testclient import TestClient
from services.api import dependencies as deps
from services.api.infra.redis_store import WorkflowRepository
from services.api.main import app
from services.orchestrator.engine.approvals import ApprovalService
from services.orchestrator.engine.breakpoints import BreakpointService
from services.orchestrator.infra.memory_store import InMemoryRecordStore
from shared.constants import EXECUTIONS
from shared.types import ExecutionStatus, Node, Workflow, WorkflowExecution

WORKFLOW = {
    "user_id": "user-1",
    "name": "Greeting",
    "nodes": [
        {"id": "greet", "type": "log", "config": {"message": "hi"}},
        {"id": "review", "type": "human-approval", "config": {"approvalType": "manual_review"}},
    ],
}


@pytest.fixture
def broker(monkeypatch):
    store = InMemoryRecordStore()
    broker = Mock()
    broker.run_workflow.return_value = "task-1"
    broker.cancel_execution.return_value = "task-2"
    broker.resume_on_approval.return_value = "task-3"
    broker.set_breakpoint.return_value = "task-4"
    broker.resume_from_breakpoint.return_value = "task-6"
    broker.sweep_expired_approvals.return_value = "task-5"
    monkeypatch.setattr(deps, "repository", WorkflowRepository(store))
    monkeypatch.setattr(deps, "approval_service", ApprovalService(store))
    monkeypatch.setattr(deps, "breakpoint_service", BreakpointService(store))
    monkeypatch.setattr(deps, "broker", broker)
    return broker


@pytest.fixture
def client(broker):
    return TestClient(app)


def save_execution(status=ExecutionStatus.RUNNING):
    execution = WorkflowExecution(id="exec-1", workflow_id="wf-1", user_id="user-1", status=status)
    deps.repository.store.save(EXECUTIONS, execution.id, execution.model_dump(mode="json"))
    return execution


def save_workflow():
    workflow = Workflow(id="wf-1", user_id="user-1", nodes=[Node(id="greet", type="log"),
                                                            Node(id="review", type="human-approval")])
    deps.repository.save_workflow(workflow)
    return workflow


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


def test_correlation_id_is_echoed(client):
    response = client.get("/health", headers={"X-Correlation-ID": "corr-123"})

    assert response.headers["X-Correlation-ID"] == "corr-123"


def test_create_workflow(client):
    response = client.post("/workflows", json=WORKFLOW)

    assert response.status_code == 201
    workflow_id = response.json()["workflow_id"]
    assert deps.repository.get_workflow(workflow_id).name == "Greeting"


def test_create_invalid_workflow(client):
    response = client.post("/workflows", json={"user_id": "user-1", "nodes": [{"id": "a", "type": "teleport"}]})

    assert response.status_code == 400
    assert response.json()["detail"]["errors"] == ["Node a has unknown type: teleport"]


def test_validate_endpoint(client):
    response = client.post("/workflows/validate", json={"nodes": [{"id": "a", "type": "http-request"}]})

    assert response.status_code == 200
    assert response.json() == {"valid": False, "errors": ["Node a: url is required"], "warnings": []}


def test_run_workflow_queues_task(client, broker):
    workflow_id = client.post("/workflows", json=WORKFLOW).json()["workflow_id"]

    response = client.post(f"/workflows/{workflow_id}/run", json={"user_id": "user-1", "input": {"a": 1}})

    assert response.status_code == 202
    assert response.json()["task_id"] == "task-1"
    kwargs = broker.run_workflow.call_args[1]
    assert kwargs["workflow_id"] == workflow_id
    assert kwargs["input"] == {"a": 1}
    assert kwargs["triggered_by"] == "manual"


def test_run_requires_owner(client, broker):
    workflow_id = client.post("/workflows", json=WORKFLOW).json()["workflow_id"]

    response = client.post(f"/workflows/{workflow_id}/run", json={"user_id": "intruder"})

    assert response.status_code == 403
    broker.run_workflow.assert_not_called()


def test_run_refuses_execution_of_another_workflow(client, broker):
    workflow_id = client.post("/workflows", json=WORKFLOW).json()["workflow_id"]
    save_execution()

    response = client.post(f"/workflows/{workflow_id}/run", json={"user_id": "user-1", "execution_id": "exec-1"})

    assert response.status_code == 403
    broker.run_workflow.assert_not_called()


def test_run_unknown_workflow(client):
    assert client.post("/workflows/nope/run", json={"user_id": "user-1"}).status_code == 404


def test_get_execution(client):
    save_execution()

    response = client.get("/executions/exec-1")

    assert response.status_code == 200
    assert response.json()["status"] == "running"
    assert client.get("/executions/missing").status_code == 404


def test_list_executions(client):
    save_execution()

    response = client.get("/executions", params={"user_id": "user-1", "status": "running"})

    body = response.json()
    assert body["total"] == 1
    assert body["items"][0]["id"] == "exec-1"
    assert client.get("/executions", params={"user_id": "user-2"}).json()["total"] == 0


def test_cancel_execution(client, broker):
    save_execution()

    response = client.post("/executions/exec-1/cancel")

    assert response.status_code == 202
    broker.cancel_execution.assert_called_once_with("exec-1")


def test_cancel_finished_execution_conflicts(client, broker):
    save_execution(ExecutionStatus.COMPLETED)

    assert client.post("/executions/exec-1/cancel").status_code == 409
    broker.cancel_execution.assert_not_called()


def request_approval():
    workflow = save_workflow()
    execution = save_execution(ExecutionStatus.WAITING_APPROVAL)
    return deps.approval_service.request_approval(workflow, execution, workflow.nodes[1], {})


def test_pending_approvals(client):
    approval = request_approval()

    response = client.get("/approvals/pending", params={"execution_id": "exec-1"})

    assert response.json()["total"] == 1
    assert response.json()["items"][0]["approval_id"] == approval.approval_id


def test_submit_decision_queues_resume(client, broker):
    approval = request_approval()

    response = client.post(f"/approvals/{approval.approval_id}/decision", json={
        "node_id": "review",
        "decision": "approved",
        "decided_by": "reviewer",
        "approval_data": {"note": "ok"},
    })

    assert response.status_code == 202
    kwargs = broker.resume_on_approval.call_args[1]
    assert kwargs["approval_id"] == approval.approval_id
    assert kwargs["decision"] == "approved"
    assert kwargs["approval_data"] == {"note": "ok"}


def test_self_approval_forbidden(client, broker):
    approval = request_approval()

    response = client.post(f"/approvals/{approval.approval_id}/decision", json={
        "node_id": "review",
        "decision": "approved",
        "decided_by": "user-1",
    })

    assert response.status_code == 403
    broker.resume_on_approval.assert_not_called()


def test_decision_for_unknown_approval(client):
    response = client.post("/approvals/nope/decision", json={"node_id": "review", "decision": "approved"})

    assert response.status_code == 404


def test_set_breakpoint_checks_node(client, broker):
    save_workflow()
    save_execution()

    assert client.post("/executions/exec-1/breakpoints", json={"node_id": "ghost"}).status_code == 400
    response = client.post("/executions/exec-1/breakpoints", json={"node_id": "review", "timeout_minutes": 5})

    assert response.status_code == 202
    assert broker.set_breakpoint.call_args[1]["timeout_minutes"] == 5


def test_breakpoint_token_from_listing_resumes(client, broker):
    save_workflow()
    save_execution()
    assert client.post("/executions/exec-1/breakpoints", json={"node_id": "review"}).status_code == 202
    # the queued task creates the breakpoint
    deps.breakpoint_service.set_breakpoint("exec-1", "review")

    items = client.get("/executions/exec-1/breakpoints").json()["items"]
    assert len(items) == 1
    token = items[0]["resume_token"]

    response = client.post(f"/breakpoints/{items[0]['breakpoint_id']}/resume", json={"resume_token": token})

    assert response.status_code == 202
    assert response.json()["task_id"] == "task-6"
    broker.resume_from_breakpoint.assert_called_once_with(items[0]["breakpoint_id"], token)


def test_manual_sweep(client, broker):
    response = client.post("/sweeps/approvals")

    assert response.status_code == 202
    assert response.json()["task_id"] == "task-5"
