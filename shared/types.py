"""Shared types for the API and Orchestrator services."""

from datetime import datetime
from enum import Enum
from typing import Dict, List, Any, Optional
from pydantic import BaseModel, Field, field_validator, model_validator
from shared.constants import (
    DEFAULT_APPROVAL_MESSAGE,
    DEFAULT_APPROVAL_TIMEOUT_HOURS,
    MAX_NODES_PER_WORKFLOW,
)
from shared.exceptions import ExecutionErrorInfo
from shared.utils import utcnow


class ExecutionStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    WAITING_APPROVAL = "waiting-approval"
    PAUSED = "paused"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (ExecutionStatus.COMPLETED, ExecutionStatus.FAILED, ExecutionStatus.CANCELLED)


class ApprovalStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    EXPIRED = "expired"


class ApprovalDecision(str, Enum):
    APPROVED = "approved"
    REJECTED = "rejected"


class TriggeredBy(str, Enum):
    MANUAL = "manual"
    WEBHOOK = "webhook"
    SCHEDULED = "scheduled"
    EVENT = "event"


class UsageDelta(BaseModel):
    """Usage spent by a single node dispatch"""
    tokens_used: int = 0
    api_calls: int = 0

    def __add__(self, other: "UsageDelta") -> "UsageDelta":
        return UsageDelta(
            tokens_used=self.tokens_used + other.tokens_used,
            api_calls=self.api_calls + other.api_calls,
        )

    @property
    def is_empty(self) -> bool:
        return not self.tokens_used and not self.api_calls


class Node(BaseModel):
    id: str
    type: str
    name: Optional[str] = None
    config: Dict[str, Any] = Field(default_factory=dict)


class ApprovalSettings(BaseModel):
    allow_self_approval: bool = False
    approval_timeout_hours: float = DEFAULT_APPROVAL_TIMEOUT_HOURS
    required_approvers: List[str] = Field(default_factory=list)


class Workflow(BaseModel):
    id: str
    user_id: str
    name: Optional[str] = None
    nodes: List[Node]
    approval_settings: ApprovalSettings = Field(default_factory=ApprovalSettings)

    @field_validator('nodes')
    @classmethod
    def validate_node_count(cls, v: List[Node]) -> List[Node]:
        if len(v) > MAX_NODES_PER_WORKFLOW:
            raise ValueError(f"Workflow exceeds maximum node limit: {len(v)} > {MAX_NODES_PER_WORKFLOW}")
        return v

    def node_index(self, node_id: str) -> Optional[int]:
        for index, node in enumerate(self.nodes):
            if node.id == node_id:
                return index
        return None


class NodeExecutionResult(BaseModel):
    success: bool
    output: Any = None
    error: Optional[str] = None
    duration_ms: float = 0
    node_type: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    usage: UsageDelta = Field(default_factory=UsageDelta)
    stack: Optional[str] = None

    @model_validator(mode='after')
    def require_error_on_failure(self) -> "NodeExecutionResult":
        if not self.success and not self.error:
            raise ValueError("failed node results must carry an error")
        return self

    @classmethod
    def ok(cls, output: Any = None, usage: Optional[UsageDelta] = None) -> "NodeExecutionResult":
        return cls(success=True, output=output, usage=usage or UsageDelta())

    @classmethod
    def failed(cls, error: str, output: Any = None, usage: Optional[UsageDelta] = None,
               stack: Optional[str] = None) -> "NodeExecutionResult":
        return cls(success=False, error=error, output=output, usage=usage or UsageDelta(), stack=stack)

    @property
    def is_pending_approval(self) -> bool:
        return self.success and isinstance(self.output, dict) and self.output.get("approvalRequested") is True


class WorkflowExecution(BaseModel):
    id: str
    workflow_id: str
    user_id: str
    status: ExecutionStatus = ExecutionStatus.PENDING
    input: Dict[str, Any] = Field(default_factory=dict)
    triggered_by: TriggeredBy = TriggeredBy.MANUAL
    trigger_data: Dict[str, Any] = Field(default_factory=dict)
    variables: Dict[str, Any] = Field(default_factory=dict)
    step_results: Dict[str, NodeExecutionResult] = Field(default_factory=dict)
    ai_tokens_used: int = 0
    api_calls_made: int = 0
    total_steps: int = 0
    steps_executed: int = 0
    pending_approval: Optional[Dict[str, Any]] = None
    error: Optional[ExecutionErrorInfo] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    def apply_usage(self, usage: UsageDelta) -> None:
        self.ai_tokens_used += usage.tokens_used
        self.api_calls_made += usage.api_calls


class ApprovalField(BaseModel):
    field_name: str = Field(alias="fieldName")
    field_type: str = Field(default="text", alias="fieldType")
    label: Optional[str] = None
    required: bool = False

    model_config = {"populate_by_name": True}


class ApprovalRequest(BaseModel):
    approval_id: str
    execution_id: str
    workflow_id: str
    node_id: str
    approval_type: str
    status: ApprovalStatus = ApprovalStatus.PENDING
    requested_by: str
    message: str = DEFAULT_APPROVAL_MESSAGE
    instructions: Optional[str] = None
    fields: List[ApprovalField] = Field(default_factory=list)
    approval_data: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utcnow)
    timeout_at: datetime
    decided_by: Optional[str] = None
    decided_at: Optional[datetime] = None
    decision_data: Dict[str, Any] = Field(default_factory=dict)
    comments: Optional[str] = None

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return (now or utcnow()) >= self.timeout_at


class Breakpoint(BaseModel):
    breakpoint_id: str
    execution_id: str
    node_id: str
    resume_token: str
    created_by: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    expires_at: datetime
    triggered_at: Optional[datetime] = None


class RunRequest(BaseModel):
    workflow_id: str
    user_id: str
    input: Dict[str, Any] = Field(default_factory=dict)
    execution_id: Optional[str] = None
    triggered_by: TriggeredBy = TriggeredBy.MANUAL
    trigger_data: Dict[str, Any] = Field(default_factory=dict)


class RunResponse(BaseModel):
    execution_id: str
    status: ExecutionStatus
    success: bool
    pending_approval: Optional[Dict[str, Any]] = None
    error: Optional[str] = None


class ResumeRequest(BaseModel):
    node_id: str
    approval_id: str
    decision: ApprovalDecision
    approval_data: Dict[str, Any] = Field(default_factory=dict)
    decided_by: Optional[str] = None
    comments: Optional[str] = None
