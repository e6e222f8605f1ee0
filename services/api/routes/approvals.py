"""Human approval API routes."""

from typing import Optional
from fastapi import APIRouter, HTTPException, status
from services.api import dependencies as deps
from services.api.domain.models import ApprovalDecisionRequest, QueuedResponse
from shared.exceptions import ApprovalNotFoundError, ApprovalPermissionError
from shared.types import ApprovalStatus


router = APIRouter()


@router.get("/approvals/pending")
async def list_pending_approvals(execution_id: Optional[str] = None, approver_id: Optional[str] = None):
    approvals = deps.approval_service.list_pending(execution_id=execution_id, approver_id=approver_id)
    return {"items": [a.model_dump(mode="json", by_alias=True) for a in approvals], "total": len(approvals)}


@router.get("/approvals/stats")
async def approval_stats(execution_id: Optional[str] = None):
    return deps.approval_service.get_stats(execution_id)


@router.get("/approvals/{approval_id}")
async def get_approval(approval_id: str):
    try:
        approval = deps.approval_service.get_approval(approval_id)
    except ApprovalNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    return approval.model_dump(mode="json", by_alias=True)


@router.post("/approvals/{approval_id}/decision", response_model=QueuedResponse,
             status_code=status.HTTP_202_ACCEPTED)
async def submit_decision(approval_id: str, request: ApprovalDecisionRequest):
    try:
        approval = deps.approval_service.get_approval(approval_id)
    except ApprovalNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

    if approval.node_id != request.node_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST,
                            detail="Approval request does not belong to this node")

    if approval.status != ApprovalStatus.PENDING:
        if approval.status.value != request.decision.value:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT,
                                detail=f"Approval request already {approval.status.value}")
    elif approval.is_expired():
        raise HTTPException(status_code=status.HTTP_410_GONE, detail="Approval request has expired")

    workflow = deps.repository.get_workflow(approval.workflow_id)
    if workflow:
        try:
            deps.approval_service.authorize(approval, workflow, request.decided_by)
        except ApprovalPermissionError as e:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))

    task_id = deps.broker.resume_on_approval(
        node_id=request.node_id,
        approval_id=approval_id,
        decision=request.decision.value,
        approval_data=request.approval_data,
        decided_by=request.decided_by,
        comments=request.comments,
    )
    return QueuedResponse(task_id=task_id, message="Approval decision queued")
