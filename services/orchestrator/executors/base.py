"""Executor interface shared by all node categories."""

from abc import ABC, abstractmethod
from typing import Dict, Any, Tuple
from services.orchestrator.engine.context import ExecutionContext
from shared.types import Node, NodeExecutionResult


class NodeExecutor(ABC):
    """Executes the node types listed in node_types"""

    node_types: Tuple[str, ...] = ()

    @abstractmethod
    def execute(self, node: Node, context: ExecutionContext) -> NodeExecutionResult:
        ...


def model_options(config: Dict[str, Any]) -> Dict[str, Any]:
    """Extracts language-model options from a node config"""
    options = {
        "model": config.get("model") or config.get("remoteModel"),
        "temperature": config.get("temperature"),
        "maxTokens": config.get("maxTokens"),
    }
    return {k: v for k, v in options.items() if v is not None}
