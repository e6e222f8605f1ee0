"""Human-approval node executor."""

from typing import Dict, List, Any
from services.orchestrator.engine.approvals import ApprovalService
from services.orchestrator.engine.context import ExecutionContext
from services.orchestrator.executors.base import NodeExecutor
from shared.constants import (
    APPROVAL_FIELD_TYPES,
    APPROVAL_TYPES,
    DEFAULT_APPROVAL_MESSAGE,
    DEFAULT_APPROVAL_TIMEOUT_HOURS,
    HUMAN_APPROVAL_NODE_TYPE,
)
from shared.types import ApprovalDecision, ApprovalRequest, Node, NodeExecutionResult
from shared.utils import isoformat, utcnow


class HumanApprovalExecutor(NodeExecutor):
    """
    Requests a human decision and suspends the run.

    The request path returns a successful result flagged approvalRequested;
    the driver treats it as a suspension. The final result for the node is
    produced later by resume() or timeout_result().
    """

    node_types = (HUMAN_APPROVAL_NODE_TYPE,)

    def __init__(self, approval_service: ApprovalService):
        self.approvals = approval_service

    def execute(self, node: Node, context: ExecutionContext) -> NodeExecutionResult:
        config = node.config
        approval_data = {
            "approvalType": config.get("approvalType", "manual_review"),
            "approvalMessage": config.get("approvalMessage") or DEFAULT_APPROVAL_MESSAGE,
            "approvalFields": config.get("approvalFields") or [],
            "approvalInstructions": config.get("approvalInstructions"),
            "inputData": context.input,
            "currentStepResults": dict(context.step_results),
            "nodeConfig": config,
            "timestamp": isoformat(),
        }

        request = self.approvals.request_approval(context.workflow, context.execution, node, approval_data)
        return NodeExecutionResult.ok({
            "approvalRequested": True,
            "approvalId": request.approval_id,
            "approvalType": request.approval_type,
            "timeout": isoformat(request.timeout_at),
            "message": "Waiting for human approval",
            "approvalData": approval_data,
        })

    def resume(self, approval: ApprovalRequest, decision: ApprovalDecision) -> NodeExecutionResult:
        now = isoformat(approval.decided_at or utcnow())

        if decision == ApprovalDecision.REJECTED:
            return NodeExecutionResult.failed(
                "Workflow step was rejected during human approval",
                output={
                    "approvalDecision": ApprovalDecision.REJECTED.value,
                    "approvalId": approval.approval_id,
                    "approvalData": approval.decision_data,
                    "comments": approval.comments,
                    "rejectedAt": now,
                },
            )

        return NodeExecutionResult.ok({
            **approval.decision_data,
            "approvalDecision": ApprovalDecision.APPROVED.value,
            "approvalId": approval.approval_id,
            "approvalData": approval.decision_data,
            "approvedBy": approval.decided_by,
            "approvedAt": now,
        })

    def timeout_result(self, approval: ApprovalRequest) -> NodeExecutionResult:
        return NodeExecutionResult.failed(
            "Human approval request timed out",
            output={
                "approvalTimeout": True,
                "approvalId": approval.approval_id,
                "timeoutAt": isoformat(approval.timeout_at),
            },
        )

    @staticmethod
    def validate_config(config: Dict[str, Any]) -> Dict[str, Any]:
        errors: List[str] = []

        approval_type = config.get("approvalType")
        if not approval_type:
            errors.append("approvalType is required")
        elif approval_type not in APPROVAL_TYPES:
            errors.append(f"approvalType must be one of: {', '.join(APPROVAL_TYPES)}")

        timeout = config.get("timeoutHours")
        if timeout is not None and (
            isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0
        ):
            errors.append("timeoutHours must be a positive number")

        fields = config.get("approvalFields")
        if fields is not None:
            if not isinstance(fields, list):
                errors.append("approvalFields must be an array")
            else:
                for index, field in enumerate(fields):
                    field = field if isinstance(field, dict) else {}
                    if not field.get("fieldName"):
                        errors.append(f"approvalFields[{index}].fieldName is required")
                    if field.get("fieldType") not in APPROVAL_FIELD_TYPES:
                        errors.append(
                            f"approvalFields[{index}].fieldType must be one of: {', '.join(APPROVAL_FIELD_TYPES)}"
                        )

        return {"valid": not errors, "errors": errors}

    @staticmethod
    def get_approval_requirements(config: Dict[str, Any]) -> Dict[str, Any]:
        timeout = config.get("timeoutHours") or DEFAULT_APPROVAL_TIMEOUT_HOURS
        return {
            "requiresApproval": True,
            "approvalType": config.get("approvalType", "manual_review"),
            "estimatedWaitTime": f"{float(timeout):g} hours",
            "requiredFields": [
                field.get("fieldName") for field in config.get("approvalFields") or []
                if isinstance(field, dict) and field.get("required")
            ],
        }
