"""
Unit tests for workflow definition validation.
"""

import pytest
from services.api.domain.validation import ensure_valid_workflow, validate_workflow
from shared.constants import MAX_DELAY_MS
from shared.exceptions import ConfigValidationError


def test_valid_workflow():
    """A well-formed definition passes"""
    result = validate_workflow([
        {"id": "start", "type": "trigger", "config": {"type": "manual"}},
        {"id": "ask", "type": "ai-chat", "config": {"prompt": "Summarize {{input.text}}"}},
        {"id": "check", "type": "conditional", "config": {"condition": "x > 1", "falseNext": "done"}},
        {"id": "done", "type": "log", "config": {"message": "ok"}},
    ])

    assert result == {"valid": True, "errors": [], "warnings": []}


def test_empty_workflow():
    result = validate_workflow([])

    assert not result["valid"]
    assert "Workflow must contain at least one node" in result["errors"]


def test_duplicate_node_ids():
    result = validate_workflow([
        {"id": "A", "type": "log"},
        {"id": "A", "type": "log"},
    ])

    assert "Duplicate node ID: A" in result["errors"]


def test_unknown_node_type():
    result = validate_workflow([{"id": "A", "type": "teleport"}])

    assert result["errors"] == ["Node A has unknown type: teleport"]


def test_missing_id_and_type():
    result = validate_workflow([{"type": "log"}, {"id": "B"}])

    assert "Node at position 0 is missing an id" in result["errors"]
    assert "Node B is missing a type" in result["errors"]


def test_required_fields():
    result = validate_workflow([
        {"id": "c", "type": "conditional", "config": {}},
        {"id": "h", "type": "http-request", "config": {}},
        {"id": "w", "type": "webhook", "config": {}},
        {"id": "e", "type": "email", "config": {"to": "a@b"}},
    ])

    assert result["errors"] == [
        "Node c: condition is required",
        "Node h: url is required",
        "Node w: url is required",
        "Node e: subject is required",
        "Node e: body is required",
    ]


def test_human_approval_config_checked():
    result = validate_workflow([
        {"id": "r", "type": "human-approval", "config": {"approvalType": "manual_review", "timeoutHours": 0}},
    ])

    assert result["errors"] == ["Node r: timeoutHours must be a positive number"]


def test_config_must_be_object():
    result = validate_workflow([{"id": "A", "type": "log", "config": ["x"]}])

    assert result["errors"] == ["Node A config must be an object"]


def test_warnings_do_not_invalidate():
    result = validate_workflow([
        {"id": "wait", "type": "delay", "config": {"duration": MAX_DELAY_MS + 1}},
        {"id": "ask", "type": "ai-generate", "config": {}},
        {"id": "t", "type": "trigger", "config": {"trigger": {"type": "ai-condition"}}},
    ])

    assert result["valid"]
    assert result["warnings"] == [
        f"Node wait: delay will be capped at {MAX_DELAY_MS} ms",
        "Node ask: no prompt configured",
        "Node t: ai-condition trigger without a condition never fires",
    ]


def test_branch_target_must_be_later_node():
    result = validate_workflow([
        {"id": "first", "type": "log"},
        {"id": "check", "type": "conditional", "config": {"condition": "1 == 1", "trueNext": "first"}},
    ])

    assert result["errors"] == ["Node check: trueNext must reference a later node, got first"]


def test_set_variable_needs_name():
    result = validate_workflow([{"id": "s", "type": "set-variable", "config": {"value": 1}}])

    assert result["errors"] == ["Node s: name or variables is required"]


def test_ensure_valid_workflow_raises():
    with pytest.raises(ConfigValidationError) as exc_info:
        ensure_valid_workflow([{"id": "A", "type": "teleport"}])

    assert exc_info.value.errors == ["Node A has unknown type: teleport"]


def test_non_numeric_delay_is_reported():
    result = validate_workflow([{"id": "d", "type": "delay", "config": {"seconds": "soon"}}])

    assert not result["valid"]
    assert result["errors"] == ["Node d: duration must be a number"]


def test_trigger_must_be_object():
    result = validate_workflow([{"id": "t", "type": "trigger", "config": {"trigger": "webhook"}}])

    assert not result["valid"]
    assert result["errors"] == ["Node t: trigger must be an object"]


def test_malformed_values_are_reported_not_raised():
    result = validate_workflow([
        {"id": ["x"], "type": "log"},
        {"id": "c", "type": "conditional", "config": {"condition": "true", "trueNext": ["x"]}},
        {"id": "d", "type": "delay", "config": {"duration": {"ms": 5}}},
    ])

    assert not result["valid"]
    assert len(result["errors"]) == 3
