"""Workflow and execution API routes."""

from typing import Optional
from fastapi import APIRouter, HTTPException, Query, status
from services.api import dependencies as deps
from services.api.domain.models import (
    CreateWorkflowRequest,
    CreateWorkflowResponse,
    ExecutionListResponse,
    QueuedResponse,
    RunWorkflowRequest,
    ValidateWorkflowRequest,
    ValidateWorkflowResponse,
)
from services.api.domain.validation import ensure_valid_workflow, validate_workflow
from shared.constants import DEFAULT_LIST_LIMIT, MAX_LIST_LIMIT
from shared.exceptions import ConfigValidationError
from shared.types import ExecutionStatus, Workflow
import uuid


router = APIRouter()


@router.post("/workflows", response_model=CreateWorkflowResponse, status_code=status.HTTP_201_CREATED)
async def create_workflow(request: CreateWorkflowRequest):
    try:
        result = ensure_valid_workflow(request.nodes)
        workflow = Workflow(
            id=str(uuid.uuid4()),
            user_id=request.user_id,
            name=request.name,
            nodes=request.nodes,
            approval_settings=request.approval_settings,
        )
    except ConfigValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST,
                            detail={"message": str(e), "errors": e.errors})
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    deps.repository.save_workflow(workflow)
    return CreateWorkflowResponse(workflow_id=workflow.id, name=workflow.name, warnings=result["warnings"])


@router.post("/workflows/validate", response_model=ValidateWorkflowResponse)
async def validate_workflow_definition(request: ValidateWorkflowRequest):
    return ValidateWorkflowResponse(**validate_workflow(request.nodes))


@router.post("/workflows/{workflow_id}/run", response_model=QueuedResponse, status_code=status.HTTP_202_ACCEPTED)
async def run_workflow(workflow_id: str, request: RunWorkflowRequest):
    workflow = deps.repository.get_workflow(workflow_id)
    if not workflow:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND,
                            detail=f"Workflow {workflow_id} not found")
    if workflow.user_id != request.user_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN,
                            detail="Unauthorized: You do not own this workflow")

    if request.execution_id:
        execution = deps.repository.get_execution(request.execution_id)
        if not execution:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND,
                                detail=f"Execution {request.execution_id} not found")
        if execution.workflow_id != workflow_id or execution.user_id != request.user_id:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN,
                                detail="Unauthorized: Execution does not belong to this workflow")
        if execution.status.is_terminal:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT,
                                detail=f"Execution is already {execution.status.value}")

    task_id = deps.broker.run_workflow(
        workflow_id=workflow_id,
        user_id=request.user_id,
        input=request.input,
        execution_id=request.execution_id,
        triggered_by=request.triggered_by.value,
        trigger_data=request.trigger_data,
    )
    return QueuedResponse(task_id=task_id, message="Workflow execution queued")


@router.get("/executions/{execution_id}")
async def get_execution(execution_id: str):
    execution = deps.repository.get_execution(execution_id)
    if not execution:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND,
                            detail=f"Execution {execution_id} not found")
    return execution.model_dump(mode="json")


@router.get("/executions", response_model=ExecutionListResponse)
async def list_executions(
    user_id: str,
    workflow_id: Optional[str] = None,
    execution_status: Optional[ExecutionStatus] = Query(default=None, alias="status"),
    limit: int = Query(default=DEFAULT_LIST_LIMIT, ge=1, le=MAX_LIST_LIMIT),
    offset: int = Query(default=0, ge=0),
):
    query = {"user_id": user_id}
    if workflow_id:
        query["workflow_id"] = workflow_id
    if execution_status:
        query["status"] = execution_status.value

    executions = deps.repository.list_executions(query)
    return ExecutionListResponse(
        items=[e.model_dump(mode="json") for e in executions[offset:offset + limit]],
        total=len(executions),
        limit=limit,
        offset=offset,
    )


@router.post("/executions/{execution_id}/cancel", response_model=QueuedResponse,
             status_code=status.HTTP_202_ACCEPTED)
async def cancel_execution(execution_id: str):
    execution = deps.repository.get_execution(execution_id)
    if not execution:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND,
                            detail=f"Execution {execution_id} not found")
    if execution.status.is_terminal:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT,
                            detail=f"Execution is already {execution.status.value}")

    task_id = deps.broker.cancel_execution(execution_id)
    return QueuedResponse(task_id=task_id, message="Cancellation queued")
