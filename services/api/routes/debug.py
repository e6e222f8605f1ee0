"""Breakpoint and expiry sweep API routes."""

from fastapi import APIRouter, HTTPException, status
from services.api import dependencies as deps
from services.api.domain.models import QueuedResponse, ResumeBreakpointRequest, SetBreakpointRequest


router = APIRouter()


@router.post("/executions/{execution_id}/breakpoints", response_model=QueuedResponse,
             status_code=status.HTTP_202_ACCEPTED)
async def set_breakpoint(execution_id: str, request: SetBreakpointRequest):
    execution = deps.repository.get_execution(execution_id)
    if not execution:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND,
                            detail=f"Execution {execution_id} not found")

    workflow = deps.repository.get_workflow(execution.workflow_id)
    if workflow and workflow.node_index(request.node_id) is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST,
                            detail=f"Node {request.node_id} not found in workflow")

    task_id = deps.broker.set_breakpoint(
        execution_id=execution_id,
        node_id=request.node_id,
        created_by=request.created_by,
        timeout_minutes=request.timeout_minutes,
    )
    return QueuedResponse(task_id=task_id, message="Breakpoint queued")


@router.get("/executions/{execution_id}/breakpoints")
async def list_breakpoints(execution_id: str):
    breakpoints = deps.breakpoint_service.list_active(execution_id)
    return {"items": [bp.model_dump(mode="json") for bp in breakpoints]}


@router.post("/breakpoints/{breakpoint_id}/resume", response_model=QueuedResponse,
             status_code=status.HTTP_202_ACCEPTED)
async def resume_from_breakpoint(breakpoint_id: str, request: ResumeBreakpointRequest):
    task_id = deps.broker.resume_from_breakpoint(breakpoint_id, request.resume_token)
    return QueuedResponse(task_id=task_id, message="Resume queued")


@router.post("/sweeps/approvals", response_model=QueuedResponse, status_code=status.HTTP_202_ACCEPTED)
async def sweep_approvals():
    return QueuedResponse(task_id=deps.broker.sweep_expired_approvals(), message="Approval sweep queued")


@router.post("/sweeps/breakpoints", response_model=QueuedResponse, status_code=status.HTTP_202_ACCEPTED)
async def sweep_breakpoints():
    return QueuedResponse(task_id=deps.broker.sweep_expired_breakpoints(), message="Breakpoint sweep queued")
