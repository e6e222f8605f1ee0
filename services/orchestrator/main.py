"""Orchestrator service for workflow execution."""

import logging
import os
from services.orchestrator.engine.approvals import ApprovalService
from services.orchestrator.engine.breakpoints import BreakpointService
from services.orchestrator.engine.dispatcher import NodeDispatcher, build_executor_registry
from services.orchestrator.engine.orchestrator import OrchestratorEngine
from services.orchestrator.engine.sweepers import ExpirySweeper
from services.orchestrator.executors.human_approval import HumanApprovalExecutor
from services.orchestrator.infra.broker import create_celery_app
from services.orchestrator.infra.email_client import LogEmailSender
from services.orchestrator.infra.http_client import HttpClient
from services.orchestrator.infra.llm_client import HttpLLMClient
from services.orchestrator.infra.memory_store import InMemoryRecordStore
from services.orchestrator.infra.notifier import FailureNotifier
from services.orchestrator.infra.redis_store import RedisRecordStore
from shared.logging_config import setup_logging, set_correlation_id
from shared.types import ApprovalDecision, ResumeRequest, RunRequest

setup_logging("orchestrator")

celery_app = create_celery_app()


def create_record_store():
    if os.getenv("RECORD_STORE", "redis") == "memory":
        return InMemoryRecordStore()
    return RedisRecordStore()


record_store = create_record_store()
approval_service = ApprovalService(record_store)
breakpoint_service = BreakpointService(record_store)
approval_executor = HumanApprovalExecutor(approval_service)
registry = build_executor_registry(HttpLLMClient(), HttpClient(), LogEmailSender(), approval_executor)
orchestrator = OrchestratorEngine(
    record_store, NodeDispatcher(registry), approval_service, breakpoint_service, approval_executor
)
sweeper = ExpirySweeper(
    record_store, approval_service, FailureNotifier(), on_approval_expired=orchestrator.apply_approval_timeout
)


@celery_app.task(name="orchestrator.run_workflow", bind=True)
def run_workflow(self, workflow_id: str, user_id: str, input: dict = None, execution_id: str = None,
                 triggered_by: str = "manual", trigger_data: dict = None, correlation_id: str = ""):
    if correlation_id:
        set_correlation_id(correlation_id)

    logging.info("Running workflow", extra={"workflow_id": workflow_id, "execution_id": execution_id or ""})
    response = orchestrator.run(RunRequest(
        workflow_id=workflow_id,
        user_id=user_id,
        input=input or {},
        execution_id=execution_id,
        triggered_by=triggered_by,
        trigger_data=trigger_data or {},
    ))
    return response.model_dump(mode="json")


@celery_app.task(name="orchestrator.resume_on_approval", bind=True)
def resume_on_approval(self, node_id: str, approval_id: str, decision: str, approval_data: dict = None,
                       decided_by: str = None, comments: str = None, correlation_id: str = ""):
    if correlation_id:
        set_correlation_id(correlation_id)

    logging.info("Resuming on approval decision", extra={"approval_id": approval_id, "decision": decision})
    response = orchestrator.resume_on_approval(ResumeRequest(
        node_id=node_id,
        approval_id=approval_id,
        decision=ApprovalDecision(decision),
        approval_data=approval_data or {},
        decided_by=decided_by,
        comments=comments,
    ))
    return response.model_dump(mode="json")


@celery_app.task(name="orchestrator.resume_from_breakpoint", bind=True)
def resume_from_breakpoint(self, breakpoint_id: str, resume_token: str, correlation_id: str = ""):
    if correlation_id:
        set_correlation_id(correlation_id)

    logging.info("Resuming from breakpoint", extra={"breakpoint_id": breakpoint_id})
    return orchestrator.resume_from_breakpoint(breakpoint_id, resume_token).model_dump(mode="json")


@celery_app.task(name="orchestrator.cancel_execution", bind=True)
def cancel_execution(self, execution_id: str, correlation_id: str = ""):
    if correlation_id:
        set_correlation_id(correlation_id)

    execution = orchestrator.cancel(execution_id)
    return {"execution_id": execution.id, "status": execution.status.value}


@celery_app.task(name="orchestrator.set_breakpoint", bind=True)
def set_breakpoint(self, execution_id: str, node_id: str, created_by: str = None,
                   timeout_minutes: float = None, correlation_id: str = ""):
    if correlation_id:
        set_correlation_id(correlation_id)

    kwargs = {"timeout_minutes": timeout_minutes} if timeout_minutes else {}
    bp = breakpoint_service.set_breakpoint(execution_id, node_id, created_by, **kwargs)
    return bp.model_dump(mode="json")


@celery_app.task(name="orchestrator.sweep_expired_approvals", bind=True)
def sweep_expired_approvals(self, correlation_id: str = ""):
    if correlation_id:
        set_correlation_id(correlation_id)
    return sweeper.sweep_expired_approvals()


@celery_app.task(name="orchestrator.sweep_expired_approvals_manual", bind=True)
def sweep_expired_approvals_manual(self, correlation_id: str = ""):
    if correlation_id:
        set_correlation_id(correlation_id)

    logging.info("Manual approval sweep requested")
    return sweeper.sweep_expired_approvals()


@celery_app.task(name="orchestrator.sweep_expired_breakpoints", bind=True)
def sweep_expired_breakpoints(self, correlation_id: str = ""):
    if correlation_id:
        set_correlation_id(correlation_id)
    return sweeper.sweep_expired_breakpoints()


@celery_app.task(name="orchestrator.sweep_expired_breakpoints_manual", bind=True)
def sweep_expired_breakpoints_manual(self, correlation_id: str = ""):
    if correlation_id:
        set_correlation_id(correlation_id)

    logging.info("Manual breakpoint sweep requested")
    return sweeper.sweep_expired_breakpoints()


if __name__ == "__main__":
    celery_app.worker_main([
        "worker",
        "--beat",
        "--loglevel=info",
        "-Q", "orchestrator",
        "--concurrency=4"
    ])
