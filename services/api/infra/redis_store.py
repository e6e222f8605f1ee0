"""
Read/write access to workflow records for API service.
"""

from typing import Dict, List, Any, Optional
from services.orchestrator.infra.redis_store import RecordStore, RedisRecordStore
from shared.constants import EXECUTIONS, WORKFLOWS
from shared.types import Workflow, WorkflowExecution


class WorkflowRepository:
    """Workflow definitions are written here; executions are only read"""

    def __init__(self, store: Optional[RecordStore] = None):
        self.store = store or RedisRecordStore()

    def save_workflow(self, workflow: Workflow) -> None:
        self.store.save(WORKFLOWS, workflow.id, workflow.model_dump(mode="json"))

    def get_workflow(self, workflow_id: str) -> Optional[Workflow]:
        data = self.store.find_by_id(WORKFLOWS, workflow_id)
        if data:
            return Workflow.model_validate(data)
        return None

    def get_execution(self, execution_id: str) -> Optional[WorkflowExecution]:
        data = self.store.find_by_id(EXECUTIONS, execution_id)
        if data:
            return WorkflowExecution.model_validate(data)
        return None

    def list_executions(self, query: Dict[str, Any]) -> List[WorkflowExecution]:
        executions = [WorkflowExecution.model_validate(doc) for doc in self.store.find(EXECUTIONS, query)]
        return sorted(executions, key=lambda e: e.created_at, reverse=True)
