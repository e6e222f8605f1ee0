"""Conditional node executor."""

from typing import Optional
from services.orchestrator.engine.conditions import ConditionEvaluator
from services.orchestrator.engine.context import ExecutionContext
from services.orchestrator.engine.template import VariableResolver
from services.orchestrator.executors.base import NodeExecutor, model_options
from services.orchestrator.infra.llm_client import LLMClient
from shared.constants import AI_ACTION_PREFIXES
from shared.exceptions import NodeExecutionError
from shared.types import Node, NodeExecutionResult, UsageDelta


def strip_prompt_prefix(action: str) -> Optional[str]:
    """Returns the prompt for ai:/prompt: actions, None for literal actions"""
    lowered = action.lower()
    for prefix in AI_ACTION_PREFIXES:
        if lowered.startswith(prefix):
            return action[len(prefix):].strip()
    return None


class ConditionalExecutor(NodeExecutor):
    """
    Evaluates the node condition and runs trueAction/falseAction.

    Output always carries the boolean result and its branch label. When the
    config names trueNext/falseNext, the output carries nextNodeId and the
    driver jumps forward to that node.
    """

    node_types = ("conditional",)

    def __init__(self, evaluator: ConditionEvaluator, llm_client: LLMClient):
        self.evaluator = evaluator
        self.llm = llm_client

    def execute(self, node: Node, context: ExecutionContext) -> NodeExecutionResult:
        config = node.config
        condition = config.get("condition")
        if not condition:
            raise NodeExecutionError("Condition is required for conditional node", context.execution_id)

        resolver = VariableResolver(context)
        resolved = resolver.resolve_text(str(condition))
        outcome = self.evaluator.evaluate(
            resolved, context, use_ai=bool(config.get("useAI")), model_options=model_options(config)
        )

        branch = "true" if outcome.result else "false"
        output = {
            "condition": resolved,
            "result": outcome.result,
            "branch": branch,
            "evaluationMethod": outcome.method,
        }
        usage = outcome.usage

        action = config.get(f"{branch}Action")
        if action:
            resolved_action = resolver.resolve_text(str(action))
            prompt = strip_prompt_prefix(resolved_action)
            if prompt is not None:
                try:
                    response = self.llm.generate_text(prompt, model_options(config))
                except NodeExecutionError as e:
                    raise NodeExecutionError(e.message, context.execution_id, usage=usage)
                usage = usage + UsageDelta(tokens_used=response.tokens_used)
                output.update({"action": resolved_action, "response": response.text, "model": response.model})
            else:
                output["action"] = resolved_action

        next_node = config.get(f"{branch}Next")
        if next_node:
            output["nextNodeId"] = next_node

        return NodeExecutionResult.ok(output, usage)
