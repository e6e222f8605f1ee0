"""Human approval request lifecycle: pending -> approved | rejected | expired."""

import logging
from datetime import datetime, timedelta
from typing import Dict, List, Any, Optional
from shared.constants import APPROVALS, DEFAULT_APPROVAL_MESSAGE, DEFAULT_APPROVAL_TIMEOUT_HOURS
from shared.exceptions import (
    ApprovalAlreadyResolvedError,
    ApprovalExpiredError,
    ApprovalNotFoundError,
    ApprovalPermissionError,
)
from shared.types import (
    ApprovalDecision,
    ApprovalRequest,
    ApprovalStatus,
    Node,
    Workflow,
    WorkflowExecution,
)
from shared.utils import generate_approval_id, isoformat, utcnow

PENDING = {"status": ApprovalStatus.PENDING.value}


class ApprovalService:

    def __init__(self, store):
        self.store = store

    def request_approval(self, workflow: Workflow, execution: WorkflowExecution, node: Node,
                         approval_data: Dict[str, Any], now: Optional[datetime] = None) -> ApprovalRequest:
        config = node.config
        now = now or utcnow()
        timeout_hours = float(
            config.get("timeoutHours")
            or workflow.approval_settings.approval_timeout_hours
            or DEFAULT_APPROVAL_TIMEOUT_HOURS
        )

        request = ApprovalRequest(
            approval_id=generate_approval_id(),
            execution_id=execution.id,
            workflow_id=workflow.id,
            node_id=node.id,
            approval_type=config.get("approvalType", "manual_review"),
            requested_by=execution.user_id,
            message=config.get("approvalMessage") or DEFAULT_APPROVAL_MESSAGE,
            instructions=config.get("approvalInstructions"),
            fields=config.get("approvalFields") or [],
            approval_data=approval_data,
            created_at=now,
            timeout_at=now + timedelta(hours=timeout_hours),
        )
        self.store.save(APPROVALS, request.approval_id, request.model_dump(mode="json"), deadline=request.timeout_at)

        logging.info("Approval requested", extra={
            "execution_id": execution.id,
            "node_id": node.id,
            "approval_id": request.approval_id,
            "timeout_at": isoformat(request.timeout_at)
        })
        return request

    def get_approval(self, approval_id: str) -> ApprovalRequest:
        document = self.store.find_by_id(APPROVALS, approval_id)
        if not document:
            raise ApprovalNotFoundError(f"Approval request {approval_id} not found")
        return ApprovalRequest.model_validate(document)

    def authorize(self, approval: ApprovalRequest, workflow: Workflow, user_id: Optional[str]) -> None:
        if user_id is None:
            return

        settings = workflow.approval_settings
        if not settings.allow_self_approval and user_id == approval.requested_by:
            raise ApprovalPermissionError("User is not authorized to approve this request", approval.execution_id)
        if settings.required_approvers and user_id not in settings.required_approvers:
            raise ApprovalPermissionError("User is not authorized to approve this request", approval.execution_id)

    def submit_decision(self, approval_id: str, decision: ApprovalDecision, decided_by: Optional[str] = None,
                        decision_data: Optional[Dict[str, Any]] = None, comments: Optional[str] = None,
                        workflow: Optional[Workflow] = None, now: Optional[datetime] = None) -> ApprovalRequest:
        """
        Resolves a pending approval exactly once.

        Redelivery of the same decision returns the already-resolved request so
        the caller can finish its continuation; a conflicting decision or an
        expired request raises.
        """
        now = now or utcnow()
        approval = self.get_approval(approval_id)

        if approval.status != ApprovalStatus.PENDING:
            return self._already_resolved(approval, decision)
        if approval.is_expired(now):
            raise ApprovalExpiredError("Approval request has expired", approval.execution_id, approval_id=approval_id)
        if workflow is not None:
            self.authorize(approval, workflow, decided_by)

        updated = self.store.update_if(APPROVALS, approval_id, PENDING, {
            "status": decision.value,
            "decided_by": decided_by,
            "decided_at": isoformat(now),
            "decision_data": decision_data or {},
            "comments": comments,
        })
        if updated is None:
            return self._already_resolved(self.get_approval(approval_id), decision)

        self.store.clear_deadline(APPROVALS, approval_id)
        logging.info("Approval decided", extra={
            "execution_id": approval.execution_id,
            "approval_id": approval_id,
            "decision": decision.value
        })
        return ApprovalRequest.model_validate(updated)

    def _already_resolved(self, approval: ApprovalRequest, decision: ApprovalDecision) -> ApprovalRequest:
        if approval.status.value == decision.value:
            return approval
        raise ApprovalAlreadyResolvedError(
            f"Approval request already {approval.status.value}",
            approval.execution_id,
            approval_id=approval.approval_id,
        )

    def expire(self, approval_id: str, now: Optional[datetime] = None) -> Optional[ApprovalRequest]:
        """
        Moves a pending approval to expired; None if it was no longer pending.

        The deadline entry is left in place; the sweep clears it once the
        timeout path has run.
        """
        updated = self.store.update_if(APPROVALS, approval_id, PENDING, {
            "status": ApprovalStatus.EXPIRED.value,
            "decided_at": isoformat(now),
        })
        if updated is None:
            return None
        return ApprovalRequest.model_validate(updated)

    def list_pending(self, execution_id: Optional[str] = None, approver_id: Optional[str] = None) -> List[ApprovalRequest]:
        query = dict(PENDING)
        if execution_id:
            query["execution_id"] = execution_id

        approvals = [ApprovalRequest.model_validate(doc) for doc in self.store.find(APPROVALS, query)]
        if approver_id:
            # Requesters never see their own requests here; self-approval is checked on decision
            approvals = [a for a in approvals if a.requested_by != approver_id]
        return sorted(approvals, key=lambda a: a.created_at)

    def get_stats(self, execution_id: Optional[str] = None) -> Dict[str, Any]:
        query = {"execution_id": execution_id} if execution_id else None
        approvals = [ApprovalRequest.model_validate(doc) for doc in self.store.find(APPROVALS, query)]

        counts = {status.value: 0 for status in ApprovalStatus}
        response_minutes = []
        for approval in approvals:
            counts[approval.status.value] += 1
            if approval.status in (ApprovalStatus.APPROVED, ApprovalStatus.REJECTED) and approval.decided_at:
                response_minutes.append((approval.decided_at - approval.created_at).total_seconds() / 60)

        return {
            "totalPending": counts["pending"],
            "totalApproved": counts["approved"],
            "totalRejected": counts["rejected"],
            "totalExpired": counts["expired"],
            "averageResponseMinutes": round(sum(response_minutes) / len(response_minutes), 2) if response_minutes else 0,
        }
