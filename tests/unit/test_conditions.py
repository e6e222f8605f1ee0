"""
Unit tests for condition evaluation.
"""

from unittest.mock import Mock
from services.orchestrator.engine.conditions import ConditionEvaluator, parse_boolean_reply
from services.orchestrator.engine.context import ExecutionContext
from services.orchestrator.infra.llm_client import LLMResponse
from shared.exceptions import NodeExecutionError
from shared.types import Node, Workflow, WorkflowExecution


def make_context(variables=None):
    workflow = Workflow(id="wf-1", user_id="user-1", nodes=[Node(id="n1", type="conditional")])
    execution = WorkflowExecution(id="exec-1", workflow_id="wf-1", user_id="user-1")
    return ExecutionContext(workflow=workflow, execution=execution, variables=dict(variables or {}))


def test_numeric_comparison():
    """Plain literal comparisons evaluate"""
    evaluator = ConditionEvaluator()

    assert evaluator.evaluate_expression("5 > 3", make_context()) is True
    assert evaluator.evaluate_expression("5 < 3", make_context()) is False


def test_variables_are_substituted():
    """Variable names resolve to their values before evaluation"""
    evaluator = ConditionEvaluator()
    context = make_context({"x": 1, "status": "ok", "user": {"age": 30}})

    assert evaluator.evaluate_expression("x == 1", context) is True
    assert evaluator.evaluate_expression("status == 'ok'", context) is True
    assert evaluator.evaluate_expression("user.age >= 18", context) is True


def test_javascript_style_operators():
    """===, !==, && and || are accepted"""
    evaluator = ConditionEvaluator()
    context = make_context({"a": 2, "b": "yes"})

    assert evaluator.evaluate_expression("a === 2 && b !== 'no'", context) is True
    assert evaluator.evaluate_expression("a === 3 || b === 'no'", context) is False
    assert evaluator.evaluate_expression("!(a === 3)", context) is True


def test_boolean_and_null_values():
    evaluator = ConditionEvaluator()
    context = make_context({"flag": True, "missing": None})

    assert evaluator.evaluate_expression("flag == true", context) is True
    assert evaluator.evaluate_expression("missing == null", context) is True


def test_semicolon_rejected():
    """Characters outside the allowlist resolve to false"""
    evaluator = ConditionEvaluator()

    assert evaluator.evaluate_expression("1 == 1; import os", make_context()) is False


def test_function_call_rejected():
    """Calls are never evaluated even when the characters are allowed"""
    evaluator = ConditionEvaluator()

    assert evaluator.evaluate_expression("len('abc') == 3", make_context()) is False


def test_dunder_access_rejected():
    evaluator = ConditionEvaluator()

    assert evaluator.evaluate_expression("x.__class__ == 1", make_context({"x": 1})) is False


def test_filter_pipe_rejected():
    """A single pipe would be a template filter and is refused"""
    evaluator = ConditionEvaluator()

    assert evaluator.evaluate_expression("'abc' | length == 3", make_context()) is False


def test_undefined_name_is_false():
    """Unknown names fail evaluation and resolve to false"""
    evaluator = ConditionEvaluator()

    assert evaluator.evaluate_expression("unknown_name == 1", make_context()) is False


def test_empty_condition_is_false():
    assert ConditionEvaluator().evaluate_expression("   ", make_context()) is False


def test_ai_evaluation_uses_model_reply():
    """AI mode asks the model and records its token usage"""
    llm = Mock()
    llm.generate_text.return_value = LLMResponse(text="True.", tokens_used=12, model="m")
    evaluator = ConditionEvaluator(llm)

    outcome = evaluator.evaluate("the order looks valid", make_context(), use_ai=True)

    assert outcome.result is True
    assert outcome.method == "ai"
    assert outcome.usage.tokens_used == 12
    prompt, options = llm.generate_text.call_args[0]
    assert prompt.startswith('Evaluate the following condition and respond with only "true" or "false"')
    assert options["temperature"] == 0.1
    assert options["maxTokens"] == 10


def test_inconclusive_ai_reply_falls_back():
    """A reply that is neither true nor false falls back to expression evaluation"""
    llm = Mock()
    llm.generate_text.return_value = LLMResponse(text="maybe", tokens_used=4)
    evaluator = ConditionEvaluator(llm)

    outcome = evaluator.evaluate("x > 0", make_context({"x": 5}), use_ai=True)

    assert outcome.result is True
    assert outcome.method == "fallback"
    assert outcome.usage.tokens_used == 4


def test_ai_failure_falls_back():
    llm = Mock()
    llm.generate_text.side_effect = NodeExecutionError("LLM request failed: boom")
    evaluator = ConditionEvaluator(llm)

    outcome = evaluator.evaluate("x > 10", make_context({"x": 5}), use_ai=True)

    assert outcome.result is False
    assert outcome.method == "fallback"


def test_parse_boolean_reply():
    assert parse_boolean_reply(" TRUE ") is True
    assert parse_boolean_reply("false.") is False
    assert parse_boolean_reply("I think so") is None
