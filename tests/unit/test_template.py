"""
Unit tests for placeholder resolution.
"""

from services.orchestrator.engine.context import ExecutionContext
from services.orchestrator.engine.template import VariableResolver, resolve, to_text
from shared.types import Node, NodeExecutionResult, Workflow, WorkflowExecution


def make_context(variables=None, input=None, steps=None):
    workflow = Workflow(id="wf-1", user_id="user-1", nodes=[Node(id="n1", type="log")])
    execution = WorkflowExecution(id="exec-1", workflow_id="wf-1", user_id="user-1", input=input or {})
    context = ExecutionContext(workflow=workflow, execution=execution, input=input or {},
                               variables=dict(variables or {}))
    for node_id, output in (steps or {}).items():
        context.record(node_id, NodeExecutionResult.ok(output))
    return context


def test_resolve_simple_variable():
    """{{name}} is replaced by the variable value"""
    resolver = VariableResolver(make_context({"name": "Ada"}))

    assert resolver.resolve_text("Hello {{name}}") == "Hello Ada"


def test_dollar_brace_syntax():
    """${key} resolves the same way as {{key}}"""
    resolver = VariableResolver(make_context({"city": "Paris"}))

    assert resolver.resolve_text("Trip to ${city}") == "Trip to Paris"


def test_missing_placeholder_left_verbatim():
    """Unresolvable placeholders are kept as written"""
    resolver = VariableResolver(make_context({"name": "Ada"}))

    assert resolver.resolve_text("Hi {{missing}} and ${other}") == "Hi {{missing}} and ${other}"


def test_dotted_path_into_variable():
    """Dotted keys walk into nested variable values"""
    resolver = VariableResolver(make_context({"user": {"profile": {"email": "ada@example.com"}}}))

    assert resolver.resolve_text("{{user.profile.email}}") == "ada@example.com"


def test_exact_variable_key_wins_over_path():
    """A variable literally named with a dot is preferred over path walking"""
    resolver = VariableResolver(make_context({"a.b": "flat", "a": {"b": "nested"}}))

    assert resolver.resolve_text("{{a.b}}") == "flat"


def test_step_result_lookup():
    """Node ids resolve to their recorded outputs"""
    context = make_context(steps={"fetch": {"status": 200, "data": {"items": [1, 2]}}})
    resolver = VariableResolver(context)

    assert resolver.resolve_text("status={{fetch.status}}") == "status=200"
    assert resolver.resolve_text("{{fetch.data.items.1}}") == "2"


def test_input_lookup():
    """input.* reads the execution input"""
    resolver = VariableResolver(make_context(input={"order": {"id": "A-7"}}))

    assert resolver.resolve_text("Order {{input.order.id}}") == "Order A-7"


def test_structured_values_render_as_json():
    """Objects, lists and booleans are spliced as JSON"""
    resolver = VariableResolver(make_context({"tags": ["a", "b"], "flag": True, "none": None}))

    assert resolver.resolve_text("{{tags}}") == '["a", "b"]'
    assert resolver.resolve_text("{{flag}}") == "true"
    assert resolver.resolve_text("{{none}}") == "null"


def test_resolve_walks_nested_config():
    """resolve() substitutes inside dicts and lists and leaves other values alone"""
    context = make_context({"token": "abc", "id": 5})
    config = {
        "url": "https://api.example.com/items/{{id}}",
        "headers": {"Authorization": "Bearer {{token}}"},
        "tags": ["{{id}}", "static"],
        "timeout": 1000,
    }

    resolved = resolve(context, config)

    assert resolved == {
        "url": "https://api.example.com/items/5",
        "headers": {"Authorization": "Bearer abc"},
        "tags": ["5", "static"],
        "timeout": 1000,
    }


def test_empty_text():
    """None and empty strings resolve to an empty string"""
    resolver = VariableResolver(make_context())

    assert resolver.resolve_text(None) == ""
    assert resolver.resolve_text("") == ""


def test_to_text_numbers():
    assert to_text(3.5) == "3.5"
    assert to_text("x") == "x"
