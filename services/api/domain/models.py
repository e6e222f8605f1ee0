"""API request/response models."""

from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from shared.types import ApprovalDecision, ApprovalSettings, TriggeredBy


class CreateWorkflowRequest(BaseModel):
    """Workflow definition submitted by its owner"""
    user_id: str
    name: Optional[str] = None
    nodes: List[Dict[str, Any]]
    approval_settings: ApprovalSettings = Field(default_factory=ApprovalSettings)


class CreateWorkflowResponse(BaseModel):
    workflow_id: str
    name: Optional[str] = None
    warnings: List[str] = Field(default_factory=list)


class ValidateWorkflowRequest(BaseModel):
    nodes: List[Dict[str, Any]]


class ValidateWorkflowResponse(BaseModel):
    valid: bool
    errors: List[str]
    warnings: List[str]


class RunWorkflowRequest(BaseModel):
    user_id: str
    input: Dict[str, Any] = Field(default_factory=dict)
    execution_id: Optional[str] = None
    triggered_by: TriggeredBy = TriggeredBy.MANUAL
    trigger_data: Dict[str, Any] = Field(default_factory=dict)


class QueuedResponse(BaseModel):
    task_id: str
    status: str = "QUEUED"
    message: str


class ApprovalDecisionRequest(BaseModel):
    node_id: str
    decision: ApprovalDecision
    decided_by: Optional[str] = None
    approval_data: Dict[str, Any] = Field(default_factory=dict)
    comments: Optional[str] = None


class SetBreakpointRequest(BaseModel):
    node_id: str
    created_by: Optional[str] = None
    timeout_minutes: Optional[float] = Field(default=None, gt=0)


class ResumeBreakpointRequest(BaseModel):
    resume_token: str


class ExecutionListResponse(BaseModel):
    items: List[Dict[str, Any]]
    total: int
    limit: int
    offset: int
