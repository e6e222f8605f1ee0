"""Trigger node executor: stateless check of whether the run should proceed."""

import logging
from typing import Dict, Any, Tuple
from services.orchestrator.engine.conditions import ConditionEvaluator
from services.orchestrator.engine.context import ExecutionContext
from services.orchestrator.engine.template import VariableResolver
from services.orchestrator.executors.base import NodeExecutor, model_options
from shared.types import Node, NodeExecutionResult, UsageDelta, TriggeredBy


class TriggerExecutor(NodeExecutor):

    node_types = ("trigger",)

    def __init__(self, evaluator: ConditionEvaluator):
        self.evaluator = evaluator

    def execute(self, node: Node, context: ExecutionContext) -> NodeExecutionResult:
        trigger = node.config.get("trigger") or {}
        trigger_type = trigger.get("type") or node.config.get("type") or "manual"

        fired, usage = self.should_fire(trigger_type, {**node.config, **trigger}, context)
        logging.info("Trigger checked", extra={
            "execution_id": context.execution_id,
            "node_id": node.id,
            "trigger_type": trigger_type,
            "fired": fired
        })
        return NodeExecutionResult.ok({"triggerType": trigger_type, "fired": fired}, usage)

    def should_fire(self, trigger_type: str, config: Dict[str, Any],
                    context: ExecutionContext) -> Tuple[bool, UsageDelta]:
        execution = context.execution

        if trigger_type == "manual":
            return True, UsageDelta()
        if trigger_type == "form-submit":
            return bool(context.input), UsageDelta()
        if trigger_type == "webhook":
            return bool(execution.trigger_data), UsageDelta()
        if trigger_type == "scheduled":
            return execution.triggered_by == TriggeredBy.SCHEDULED, UsageDelta()
        if trigger_type == "ai-condition":
            condition = VariableResolver(context).resolve_text(config.get("condition") or "")
            if not condition.strip():
                return False, UsageDelta()
            outcome = self.evaluator.evaluate(condition, context, use_ai=True, model_options=model_options(config))
            return outcome.result, outcome.usage

        logging.warning("Unknown trigger type, not firing", extra={
            "execution_id": context.execution_id,
            "trigger_type": trigger_type
        })
        return False, UsageDelta()
