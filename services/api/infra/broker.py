"""
Message broker client for API service.
"""

from typing import Dict, Any, Optional
from celery import Celery
import os
from shared.logging_config import get_correlation_id


class BrokerClient:
    """Celery client for API service; every command goes to the orchestrator queue"""

    def __init__(self, broker_url: str = None):
        url = broker_url or os.getenv("REDIS_URL", "redis://localhost:6379/0")

        self.app = Celery(
            "api",
            broker=url,
            backend=url
        )

        self.app.conf.update(
            task_serializer="json",
            accept_content=["json"],
            result_serializer="json",
            timezone="UTC",
            enable_utc=True,
        )

    def _send(self, task_name: str, **kwargs) -> str:
        kwargs["correlation_id"] = get_correlation_id()
        result = self.app.send_task(f"orchestrator.{task_name}", kwargs=kwargs, queue="orchestrator")
        return result.id

    def run_workflow(self, workflow_id: str, user_id: str, input: Dict[str, Any],
                     execution_id: Optional[str], triggered_by: str, trigger_data: Dict[str, Any]) -> str:
        return self._send(
            "run_workflow",
            workflow_id=workflow_id,
            user_id=user_id,
            input=input,
            execution_id=execution_id,
            triggered_by=triggered_by,
            trigger_data=trigger_data,
        )

    def resume_on_approval(self, node_id: str, approval_id: str, decision: str, approval_data: Dict[str, Any],
                           decided_by: Optional[str], comments: Optional[str]) -> str:
        return self._send(
            "resume_on_approval",
            node_id=node_id,
            approval_id=approval_id,
            decision=decision,
            approval_data=approval_data,
            decided_by=decided_by,
            comments=comments,
        )

    def cancel_execution(self, execution_id: str) -> str:
        return self._send("cancel_execution", execution_id=execution_id)

    def set_breakpoint(self, execution_id: str, node_id: str, created_by: Optional[str],
                       timeout_minutes: Optional[float]) -> str:
        return self._send(
            "set_breakpoint",
            execution_id=execution_id,
            node_id=node_id,
            created_by=created_by,
            timeout_minutes=timeout_minutes,
        )

    def resume_from_breakpoint(self, breakpoint_id: str, resume_token: str) -> str:
        return self._send("resume_from_breakpoint", breakpoint_id=breakpoint_id, resume_token=resume_token)

    def sweep_expired_approvals(self) -> str:
        return self._send("sweep_expired_approvals_manual")

    def sweep_expired_breakpoints(self) -> str:
        return self._send("sweep_expired_breakpoints_manual")
