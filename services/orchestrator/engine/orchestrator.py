"""Orchestrator engine: drives a workflow execution to a terminal or suspended state."""

import logging
from typing import Dict, List, Any, Optional, Tuple
from services.orchestrator.engine.approvals import ApprovalService
from services.orchestrator.engine.breakpoints import BreakpointService
from services.orchestrator.engine.context import ExecutionContext
from services.orchestrator.engine.dispatcher import NodeDispatcher
from services.orchestrator.executors.human_approval import HumanApprovalExecutor
from shared.constants import (
    DEFAULT_LIST_LIMIT,
    EXECUTIONS,
    HUMAN_APPROVAL_NODE_TYPE,
    MAX_LIST_LIMIT,
    WORKFLOWS,
)
from shared.exceptions import (
    ApprovalNotFoundError,
    ExecutionErrorInfo,
    ExecutionNotFoundError,
    UnauthorizedError,
    WorkflowNotFoundError,
)
from shared.logging_config import set_execution_id
from shared.types import (
    ApprovalRequest,
    ExecutionStatus,
    Node,
    NodeExecutionResult,
    ResumeRequest,
    RunRequest,
    RunResponse,
    Workflow,
    WorkflowExecution,
)
from shared.utils import generate_execution_id, utcnow

# Statuses from which each entry point may continue the dispatch loop
RUNNABLE_ON_RUN = (ExecutionStatus.PENDING, ExecutionStatus.RUNNING, ExecutionStatus.PAUSED)
RUNNABLE_ON_APPROVAL = (ExecutionStatus.WAITING_APPROVAL,)

PROGRESS_FIELDS = ("step_results", "variables", "ai_tokens_used", "api_calls_made", "steps_executed")


class OrchestratorEngine:

    def __init__(self, store, dispatcher: NodeDispatcher, approval_service: ApprovalService,
                 breakpoint_service: BreakpointService, approval_executor: HumanApprovalExecutor):
        self.store = store
        self.dispatcher = dispatcher
        self.approvals = approval_service
        self.breakpoints = breakpoint_service
        self.approval_executor = approval_executor

    # ------------------------------------------------------------------
    # Entry points

    def run(self, request: RunRequest) -> RunResponse:
        workflow = self.get_workflow(request.workflow_id)
        if workflow.user_id != request.user_id:
            raise UnauthorizedError("Unauthorized: You do not own this workflow", request.execution_id or "")

        if request.execution_id:
            execution = self.get_execution(request.execution_id)
            if execution.workflow_id != workflow.id or execution.user_id != request.user_id:
                raise UnauthorizedError("Unauthorized: Execution does not belong to this workflow", execution.id)
            logging.info("Resuming workflow execution", extra={"execution_id": execution.id})
        else:
            execution = self._create_execution(workflow, request)

        return self._drive(workflow, execution, RUNNABLE_ON_RUN)

    def resume_on_approval(self, request: ResumeRequest) -> RunResponse:
        approval = self.approvals.get_approval(request.approval_id)
        if approval.node_id != request.node_id:
            raise ApprovalNotFoundError(
                f"Approval {request.approval_id} does not belong to node {request.node_id}",
                approval.execution_id,
            )

        execution = self.get_execution(approval.execution_id)
        workflow = self.get_workflow(execution.workflow_id)
        set_execution_id(execution.id)

        approval = self.approvals.submit_decision(
            request.approval_id,
            request.decision,
            decided_by=request.decided_by,
            decision_data=request.approval_data,
            comments=request.comments,
            workflow=workflow,
        )

        if execution.status != ExecutionStatus.WAITING_APPROVAL:
            logging.info("Execution no longer waiting for approval, skipping resume", extra={
                "execution_id": execution.id,
                "status": execution.status.value
            })
            return self._response(execution)

        result = self._stamp(self.approval_executor.resume(approval, request.decision), HUMAN_APPROVAL_NODE_TYPE)
        execution.step_results[approval.node_id] = result
        execution.pending_approval = None

        if not result.success:
            self._mark_failed(execution, approval.node_id, result)
            self._persist(execution, ExecutionStatus.WAITING_APPROVAL)
            return self._response(execution)

        return self._drive(workflow, execution, RUNNABLE_ON_APPROVAL)

    def resume_from_breakpoint(self, breakpoint_id: str, resume_token: str) -> RunResponse:
        bp = self.breakpoints.verify_resume(breakpoint_id, resume_token)
        execution = self.get_execution(bp.execution_id)
        self.breakpoints.remove(bp.breakpoint_id)
        execution.metadata.pop("breakpoint", None)

        if execution.status != ExecutionStatus.PAUSED:
            logging.info("Execution is not paused, breakpoint removed only", extra={"execution_id": execution.id})
            return self._response(execution)

        return self._drive(self.get_workflow(execution.workflow_id), execution, (ExecutionStatus.PAUSED,))

    def cancel(self, execution_id: str) -> WorkflowExecution:
        execution = self.get_execution(execution_id)
        if execution.status.is_terminal:
            return execution

        now = utcnow()
        updated = self.store.update_if(EXECUTIONS, execution_id, {"status": execution.status.value}, {
            "status": ExecutionStatus.CANCELLED.value,
            "completed_at": now.isoformat(),
            "updated_at": now.isoformat(),
        })
        if updated is None:
            # Status moved under us; report whatever is stored now
            return self.get_execution(execution_id)

        logging.info("Execution cancelled", extra={"execution_id": execution_id})
        return WorkflowExecution.model_validate(updated)

    def apply_approval_timeout(self, approval: ApprovalRequest) -> bool:
        """Timeout path for an expired approval; fails the suspended execution"""
        document = self.store.find_by_id(EXECUTIONS, approval.execution_id)
        if not document:
            logging.warning("Expired approval references a missing execution", extra={
                "execution_id": approval.execution_id,
                "approval_id": approval.approval_id
            })
            return False

        execution = WorkflowExecution.model_validate(document)
        if execution.status != ExecutionStatus.WAITING_APPROVAL:
            return False

        result = self._stamp(self.approval_executor.timeout_result(approval), HUMAN_APPROVAL_NODE_TYPE)
        execution.step_results[approval.node_id] = result
        execution.pending_approval = None
        self._mark_failed(execution, approval.node_id, result)
        return self._persist(execution, ExecutionStatus.WAITING_APPROVAL)

    # ------------------------------------------------------------------
    # Queries

    def get_workflow(self, workflow_id: str) -> Workflow:
        document = self.store.find_by_id(WORKFLOWS, workflow_id)
        if not document:
            raise WorkflowNotFoundError(f"Workflow {workflow_id} not found")
        return Workflow.model_validate(document)

    def get_execution(self, execution_id: str) -> WorkflowExecution:
        document = self.store.find_by_id(EXECUTIONS, execution_id)
        if not document:
            raise ExecutionNotFoundError(f"Execution {execution_id} not found", execution_id)
        return WorkflowExecution.model_validate(document)

    def list_executions(self, user_id: str, workflow_id: Optional[str] = None,
                        status: Optional[ExecutionStatus] = None, limit: int = DEFAULT_LIST_LIMIT,
                        offset: int = 0) -> Tuple[List[WorkflowExecution], int]:
        query: Dict[str, Any] = {"user_id": user_id}
        if workflow_id:
            query["workflow_id"] = workflow_id
        if status:
            query["status"] = status.value

        executions = [WorkflowExecution.model_validate(doc) for doc in self.store.find(EXECUTIONS, query)]
        executions.sort(key=lambda e: e.created_at, reverse=True)
        limit = max(1, min(limit, MAX_LIST_LIMIT))
        return executions[offset:offset + limit], len(executions)

    # ------------------------------------------------------------------
    # Dispatch loop

    def _create_execution(self, workflow: Workflow, request: RunRequest) -> WorkflowExecution:
        execution = WorkflowExecution(
            id=generate_execution_id(),
            workflow_id=workflow.id,
            user_id=request.user_id,
            status=ExecutionStatus.PENDING,
            input=request.input,
            triggered_by=request.triggered_by,
            trigger_data=request.trigger_data,
            variables=dict(request.input),
            total_steps=len(workflow.nodes),
        )
        self.store.save(EXECUTIONS, execution.id, execution.model_dump(mode="json"))

        logging.info("Workflow execution created", extra={
            "execution_id": execution.id,
            "workflow_id": workflow.id,
            "triggered_by": execution.triggered_by.value
        })
        return execution

    def _drive(self, workflow: Workflow, execution: WorkflowExecution,
               runnable: Tuple[ExecutionStatus, ...]) -> RunResponse:
        set_execution_id(execution.id)

        if execution.status not in runnable:
            logging.info("Execution not runnable from its current status", extra={
                "execution_id": execution.id,
                "status": execution.status.value
            })
            return self._response(execution)

        previous = execution.status
        execution.status = ExecutionStatus.RUNNING
        execution.started_at = execution.started_at or utcnow()
        if not self._persist(execution, previous):
            return self._response(self.get_execution(execution.id))

        context = ExecutionContext.from_execution(workflow, execution)
        nodes = workflow.nodes
        index = 0

        while index < len(nodes):
            node = nodes[index]
            if node.id in execution.step_results:
                index += 1
                continue

            if self._is_cancelled(execution.id):
                logging.info("Execution cancelled, stopping before node", extra={
                    "execution_id": execution.id,
                    "node_id": node.id
                })
                return self._response(self.get_execution(execution.id))

            bp = self.breakpoints.check(execution.id, node.id)
            if bp is not None:
                self.breakpoints.mark_triggered(bp)
                execution.status = ExecutionStatus.PAUSED
                execution.metadata["breakpoint"] = {"breakpointId": bp.breakpoint_id, "nodeId": node.id}
                self._persist(execution, ExecutionStatus.RUNNING)
                logging.info("Execution paused at breakpoint", extra={
                    "execution_id": execution.id,
                    "node_id": node.id,
                    "breakpoint_id": bp.breakpoint_id
                })
                return self._response(execution)

            result = self.dispatcher.dispatch(node, context)
            execution.apply_usage(result.usage)
            if node.type == "set-variable" and result.success:
                context.variables.update((result.output or {}).get("variables", {}))
            context.record(node.id, result)
            execution.steps_executed += 1

            if result.is_pending_approval:
                execution.status = ExecutionStatus.WAITING_APPROVAL
                execution.pending_approval = {
                    "approvalId": result.output["approvalId"],
                    "message": result.output.get("approvalData", {}).get("approvalMessage"),
                    "nodeId": node.id,
                }
                self._persist_or_record_progress(execution)
                logging.info("Execution suspended waiting for approval", extra={
                    "execution_id": execution.id,
                    "node_id": node.id,
                    "approval_id": result.output["approvalId"]
                })
                return self._response(execution)

            if not result.success:
                self._mark_failed(execution, node.id, result)
                self._persist_or_record_progress(execution)
                return self._response(execution)

            next_index = self._next_index(workflow, node, result, index, context)
            if not self._persist_or_record_progress(execution):
                return self._response(self.get_execution(execution.id))
            index = next_index

        execution.status = ExecutionStatus.COMPLETED
        execution.completed_at = utcnow()
        self._persist_or_record_progress(execution)
        self.breakpoints.clear_for_execution(execution.id)

        logging.info("Workflow execution completed", extra={
            "execution_id": execution.id,
            "steps": len(execution.step_results),
            "ai_tokens_used": execution.ai_tokens_used,
            "api_calls_made": execution.api_calls_made
        })
        return self._response(execution)

    def _next_index(self, workflow: Workflow, node: Node, result: NodeExecutionResult, index: int,
                    context: ExecutionContext) -> int:
        output = result.output if isinstance(result.output, dict) else {}

        if node.type == "trigger" and output.get("fired") is False:
            self._skip(context, workflow.nodes[index + 1:], f"trigger {node.id} did not fire")
            return len(workflow.nodes)

        target_id = output.get("nextNodeId") if node.type == "conditional" else None
        if target_id:
            target = workflow.node_index(target_id)
            if target is None or target <= index:
                logging.warning("Ignoring conditional redirect that does not move forward", extra={
                    "execution_id": context.execution_id,
                    "node_id": node.id,
                    "target": target_id
                })
                return index + 1
            self._skip(context, workflow.nodes[index + 1:target], f"branch {output.get('branch')} of {node.id}")
            return target

        return index + 1

    def _skip(self, context: ExecutionContext, nodes: List[Node], reason: str) -> None:
        for skipped in nodes:
            if skipped.id not in context.step_results:
                result = self._stamp(NodeExecutionResult.ok({"skipped": True, "reason": reason}), skipped.type)
                context.record(skipped.id, result)

    # ------------------------------------------------------------------
    # Persistence helpers

    def _persist(self, execution: WorkflowExecution, expected: ExecutionStatus) -> bool:
        """Writes the whole record only if the stored status is still the expected one"""
        execution.updated_at = utcnow()
        updated = self.store.update_if(
            EXECUTIONS, execution.id, {"status": expected.value}, execution.model_dump(mode="json")
        )
        if updated is None:
            logging.warning("Execution status changed concurrently, write skipped", extra={
                "execution_id": execution.id,
                "expected_status": expected.value
            })
            return False
        return True

    def _persist_or_record_progress(self, execution: WorkflowExecution) -> bool:
        """Persists a node outcome; if the run was cancelled meanwhile, keeps results and usage only"""
        if self._persist(execution, ExecutionStatus.RUNNING):
            return True

        document = execution.model_dump(mode="json")
        self.store.update(EXECUTIONS, execution.id, {field: document[field] for field in PROGRESS_FIELDS})
        return False

    def _is_cancelled(self, execution_id: str) -> bool:
        document = self.store.find_by_id(EXECUTIONS, execution_id)
        return bool(document) and document.get("status") == ExecutionStatus.CANCELLED.value

    def _mark_failed(self, execution: WorkflowExecution, node_id: str, result: NodeExecutionResult) -> None:
        execution.status = ExecutionStatus.FAILED
        execution.completed_at = utcnow()
        execution.error = ExecutionErrorInfo(
            message=f"Node {node_id} failed: {result.error}",
            # Failures returned rather than raised have no traceback
            stack=result.stack or f"at node {node_id} ({result.node_type or 'unknown'})",
            node_id=node_id,
        )
        logging.error("Workflow execution failed", extra={
            "execution_id": execution.id,
            "node_id": node_id,
            "error": result.error
        })

    @staticmethod
    def _stamp(result: NodeExecutionResult, node_type: Optional[str] = None) -> NodeExecutionResult:
        now = utcnow()
        return result.model_copy(update={
            "started_at": result.started_at or now,
            "completed_at": now,
            "node_type": result.node_type or node_type,
        })

    @staticmethod
    def _response(execution: WorkflowExecution) -> RunResponse:
        return RunResponse(
            execution_id=execution.id,
            status=execution.status,
            success=execution.status not in (ExecutionStatus.FAILED, ExecutionStatus.CANCELLED),
            pending_approval=execution.pending_approval,
            error=execution.error.message if execution.error else None,
        )
