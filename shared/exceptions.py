"""Structured exception hierarchy for the workflow orchestrator."""

import traceback
from typing import Optional, List
from pydantic import BaseModel
from shared.constants import MAX_STACK_LINES


class ExecutionErrorInfo(BaseModel):
    """Structured error persisted on failed executions"""
    message: str
    stack: Optional[str] = None
    node_id: Optional[str] = None


def format_stack(exc: BaseException) -> str:
    """Last MAX_STACK_LINES lines of the formatted traceback"""
    lines = traceback.format_exception(type(exc), exc, exc.__traceback__)
    return "\n".join("".join(lines).strip().splitlines()[-MAX_STACK_LINES:])


class WorkflowError(Exception):
    """Base exception for workflow errors"""

    def __init__(self, message: str, execution_id: str = "", **context):
        self.message = message
        self.execution_id = execution_id
        self.context = context
        super().__init__(message)


class WorkflowNotFoundError(WorkflowError):
    pass


class ExecutionNotFoundError(WorkflowError):
    pass


class UnauthorizedError(WorkflowError):
    pass


class NodeExecutionError(WorkflowError):
    """Raised by executors; may carry usage spent before the failure"""

    def __init__(self, message: str, execution_id: str = "", usage=None, **context):
        super().__init__(message, execution_id, **context)
        self.usage = usage


class UnknownNodeTypeError(NodeExecutionError):
    pass


class ConfigValidationError(WorkflowError):

    def __init__(self, message: str, errors: Optional[List[str]] = None, **context):
        super().__init__(message, **context)
        self.errors = errors or []


class ApprovalNotFoundError(WorkflowError):
    pass


class ApprovalAlreadyResolvedError(WorkflowError):
    pass


class ApprovalExpiredError(WorkflowError):
    pass


class ApprovalPermissionError(WorkflowError):
    pass


class BreakpointNotFoundError(WorkflowError):
    pass


class InvalidResumeTokenError(WorkflowError):
    pass


class SweepError(WorkflowError):
    pass
