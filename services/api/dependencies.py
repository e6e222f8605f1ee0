"""Process-wide clients shared by the API routers."""

from services.api.infra.broker import BrokerClient
from services.api.infra.redis_store import WorkflowRepository
from services.orchestrator.engine.approvals import ApprovalService
from services.orchestrator.engine.breakpoints import BreakpointService

repository = WorkflowRepository()
approval_service = ApprovalService(repository.store)
breakpoint_service = BreakpointService(repository.store)
broker = BrokerClient()
