"""Node dispatch: type-keyed executor registry and uniform result normalization."""

import logging
import time
from typing import Callable, Dict, List, Optional
from services.orchestrator.engine.conditions import ConditionEvaluator
from services.orchestrator.engine.context import ExecutionContext
from services.orchestrator.executors.ai import AIExecutor
from services.orchestrator.executors.base import NodeExecutor
from services.orchestrator.executors.conditional import ConditionalExecutor
from services.orchestrator.executors.human_approval import HumanApprovalExecutor
from services.orchestrator.executors.integration import IntegrationExecutor
from services.orchestrator.executors.trigger import TriggerExecutor
from services.orchestrator.executors.utility import UtilityExecutor
from shared.exceptions import NodeExecutionError, UnknownNodeTypeError, format_stack
from shared.types import Node, NodeExecutionResult
from shared.utils import utcnow


class ExecutorRegistry:

    def __init__(self):
        self._executors: Dict[str, NodeExecutor] = {}

    def register(self, executor: NodeExecutor, node_types: Optional[List[str]] = None) -> None:
        for node_type in node_types or executor.node_types:
            self._executors[node_type] = executor

    def get(self, node_type: str) -> NodeExecutor:
        if node_type not in self._executors:
            raise UnknownNodeTypeError(f"Unknown node type: {node_type}")
        return self._executors[node_type]

    def node_types(self) -> List[str]:
        return sorted(self._executors)


def build_executor_registry(llm_client, http_client, email_sender, approval_executor: HumanApprovalExecutor,
                            sleep: Callable[[float], None] = time.sleep) -> ExecutorRegistry:
    """Builds the registry for the closed set of node types"""
    evaluator = ConditionEvaluator(llm_client)

    registry = ExecutorRegistry()
    registry.register(AIExecutor(llm_client))
    registry.register(IntegrationExecutor(http_client, email_sender))
    registry.register(ConditionalExecutor(evaluator, llm_client))
    registry.register(TriggerExecutor(evaluator))
    registry.register(UtilityExecutor(sleep))
    registry.register(approval_executor)
    return registry


class NodeDispatcher:
    """Routes nodes to executors; executor failures never propagate past dispatch()"""

    def __init__(self, registry: ExecutorRegistry):
        self.registry = registry

    def dispatch(self, node: Node, context: ExecutionContext) -> NodeExecutionResult:
        started_at = utcnow()
        start = time.monotonic()

        logging.info("Dispatching node", extra={
            "execution_id": context.execution_id,
            "node_id": node.id,
            "node_type": node.type
        })

        try:
            result = self.registry.get(node.type).execute(node, context)
        except NodeExecutionError as e:
            logging.error("Node failed", extra={
                "execution_id": context.execution_id,
                "node_id": node.id,
                "node_type": node.type,
                "error": e.message
            })
            result = NodeExecutionResult.failed(e.message, usage=e.usage, stack=format_stack(e))
        except Exception as e:
            logging.exception("Node raised an unexpected error", extra={
                "execution_id": context.execution_id,
                "node_id": node.id,
                "node_type": node.type
            })
            result = NodeExecutionResult.failed(str(e) or type(e).__name__, stack=format_stack(e))

        duration_ms = round((time.monotonic() - start) * 1000, 3)
        return result.model_copy(update={
            "duration_ms": duration_ms,
            "node_type": node.type,
            "started_at": started_at,
            "completed_at": utcnow(),
        })
