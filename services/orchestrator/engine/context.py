"""Execution context for one dispatch pass."""

from dataclasses import dataclass, field
from typing import Dict, Any
from shared.types import Workflow, WorkflowExecution, NodeExecutionResult


@dataclass
class ExecutionContext:
    workflow: Workflow
    execution: WorkflowExecution
    input: Dict[str, Any] = field(default_factory=dict)
    variables: Dict[str, Any] = field(default_factory=dict)
    step_results: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_execution(cls, workflow: Workflow, execution: WorkflowExecution) -> "ExecutionContext":
        """Rebuilds the context from the persisted execution record"""
        return cls(
            workflow=workflow,
            execution=execution,
            input=dict(execution.input),
            variables=dict(execution.variables),
            step_results={node_id: result.output for node_id, result in execution.step_results.items()},
        )

    @property
    def execution_id(self) -> str:
        return self.execution.id

    def record(self, node_id: str, result: NodeExecutionResult) -> None:
        self.step_results[node_id] = result.output
        self.execution.step_results[node_id] = result
        self.execution.variables = dict(self.variables)

    def snapshot(self) -> Dict[str, Any]:
        return {"variables": self.variables, "input": self.input, "steps": self.step_results}
