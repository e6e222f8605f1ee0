"""
Unit tests for executor registry and node dispatch.
"""

import pytest
from unittest.mock import Mock
from services.orchestrator.engine.context import ExecutionContext
from services.orchestrator.engine.dispatcher import ExecutorRegistry, NodeDispatcher, build_executor_registry
from services.orchestrator.executors.base import NodeExecutor
from shared.constants import ALLOWED_NODE_TYPES
from shared.exceptions import NodeExecutionError, UnknownNodeTypeError
from shared.types import Node, NodeExecutionResult, UsageDelta, Workflow, WorkflowExecution


class StubExecutor(NodeExecutor):
    node_types = ("log",)

    def __init__(self, outcome):
        self.outcome = outcome

    def execute(self, node, context):
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return self.outcome


def make_context():
    workflow = Workflow(id="wf-1", user_id="user-1", nodes=[Node(id="n1", type="log")])
    execution = WorkflowExecution(id="exec-1", workflow_id="wf-1", user_id="user-1")
    return ExecutionContext(workflow=workflow, execution=execution)


def dispatcher_for(outcome):
    registry = ExecutorRegistry()
    registry.register(StubExecutor(outcome))
    return NodeDispatcher(registry)


def test_registry_covers_every_node_type():
    """The startup registry has an executor for each allowed type"""
    registry = build_executor_registry(Mock(), Mock(), Mock(), Mock(node_types=("human-approval",)))

    assert set(registry.node_types()) == ALLOWED_NODE_TYPES


def test_unknown_node_type_raises():
    with pytest.raises(UnknownNodeTypeError, match="Unknown node type: teleport"):
        ExecutorRegistry().get("teleport")


def test_unknown_node_type_becomes_failed_result():
    result = NodeDispatcher(ExecutorRegistry()).dispatch(Node(id="n1", type="teleport"), make_context())

    assert not result.success
    assert result.error == "Unknown node type: teleport"
    assert result.node_type == "teleport"


def test_success_is_stamped():
    result = dispatcher_for(NodeExecutionResult.ok({"a": 1})).dispatch(Node(id="n1", type="log"), make_context())

    assert result.success
    assert result.output == {"a": 1}
    assert result.node_type == "log"
    assert result.started_at is not None
    assert result.completed_at >= result.started_at
    assert result.duration_ms >= 0


def test_node_error_keeps_usage():
    """Usage attached to a node error survives normalization"""
    error = NodeExecutionError("HTTP request failed: refused", usage=UsageDelta(api_calls=1))

    result = dispatcher_for(error).dispatch(Node(id="n1", type="log"), make_context())

    assert not result.success
    assert result.error == "HTTP request failed: refused"
    assert result.usage.api_calls == 1


def test_unexpected_exception_becomes_failed_result():
    result = dispatcher_for(KeyError("config")).dispatch(Node(id="n1", type="log"), make_context())

    assert not result.success
    assert "config" in result.error


def test_raised_error_keeps_traceback_tail():
    result = dispatcher_for(NodeExecutionError("boom")).dispatch(Node(id="n1", type="log"), make_context())

    assert result.stack.splitlines()[-1] == "shared.exceptions.NodeExecutionError: boom"
    assert "test_dispatcher.py" in result.stack


def test_returned_failure_has_no_stack():
    result = dispatcher_for(NodeExecutionResult.failed("nope")).dispatch(Node(id="n1", type="log"), make_context())

    assert not result.success
    assert result.stack is None
