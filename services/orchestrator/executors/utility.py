"""Utility node executor: delay, log and set-variable."""

import logging
import time
from typing import Callable
from services.orchestrator.engine.context import ExecutionContext
from services.orchestrator.engine.template import VariableResolver
from services.orchestrator.executors.base import NodeExecutor
from shared.constants import MAX_DELAY_MS
from shared.exceptions import NodeExecutionError
from shared.types import Node, NodeExecutionResult

LOG_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


class UtilityExecutor(NodeExecutor):

    node_types = ("delay", "log", "set-variable")

    def __init__(self, sleep: Callable[[float], None] = time.sleep):
        self.sleep = sleep
        self._handlers = {
            "delay": self.delay,
            "log": self.log,
            "set-variable": self.set_variable,
        }

    def execute(self, node: Node, context: ExecutionContext) -> NodeExecutionResult:
        handler = self._handlers.get(node.type)
        if handler is None:
            raise NodeExecutionError(f"Unsupported utility type: {node.type}", context.execution_id)
        return handler(node, context)

    def delay(self, node: Node, context: ExecutionContext) -> NodeExecutionResult:
        config = node.config
        if config.get("seconds") is not None:
            requested_ms = float(config["seconds"]) * 1000
        else:
            requested_ms = float(config.get("duration") or config.get("durationMs") or 0)

        if requested_ms < 0:
            raise NodeExecutionError("Delay duration must not be negative", context.execution_id)

        delay_ms = min(requested_ms, MAX_DELAY_MS)
        if delay_ms < requested_ms:
            logging.warning("Delay capped", extra={
                "execution_id": context.execution_id,
                "node_id": node.id,
                "requested_ms": requested_ms,
                "max_ms": MAX_DELAY_MS
            })

        self.sleep(delay_ms / 1000)
        return NodeExecutionResult.ok({"delayed": delay_ms})

    def log(self, node: Node, context: ExecutionContext) -> NodeExecutionResult:
        message = VariableResolver(context).resolve_text(node.config.get("message", ""))
        level = str(node.config.get("level", "info")).lower()

        logging.log(LOG_LEVELS.get(level, logging.INFO), message, extra={
            "execution_id": context.execution_id,
            "node_id": node.id,
            "workflow_log": True
        })
        return NodeExecutionResult.ok({"logged": True, "message": message, "level": level})

    def set_variable(self, node: Node, context: ExecutionContext) -> NodeExecutionResult:
        """Returns the assignments; the driver merges them into the execution variables"""
        resolver = VariableResolver(context)
        config = node.config

        if isinstance(config.get("variables"), dict):
            assignments = {name: resolver.resolve(value) for name, value in config["variables"].items()}
        elif config.get("name"):
            assignments = {config["name"]: resolver.resolve(config.get("value"))}
        else:
            raise NodeExecutionError("set-variable requires a name or a variables map", context.execution_id)

        return NodeExecutionResult.ok({"variables": assignments})
