"""Periodic sweeps that force-resolve timed-out approvals and breakpoints."""

import logging
from datetime import datetime
from typing import Callable, Optional
from services.orchestrator.engine.approvals import ApprovalService
from services.orchestrator.infra.notifier import FailureNotifier
from shared.constants import APPROVALS, BREAKPOINTS
from shared.exceptions import SweepError
from shared.types import ApprovalRequest, ApprovalStatus
from shared.utils import utcnow


class ExpirySweeper:
    """
    Both sweeps gate every effect on a conditional write (pending -> expired,
    or a delete that reports whether it removed anything), so running them
    repeatedly or concurrently counts each record once. An approval keeps its
    deadline entry until its timeout path has run, so a failed pass is retried.
    """

    def __init__(self, store, approval_service: ApprovalService, notifier: FailureNotifier,
                 on_approval_expired: Optional[Callable[[ApprovalRequest], bool]] = None):
        self.store = store
        self.approvals = approval_service
        self.notifier = notifier
        self.on_approval_expired = on_approval_expired

    def sweep_expired_approvals(self, now: Optional[datetime] = None) -> int:
        now = now or utcnow()
        try:
            count = 0
            for approval_id in self.store.find_due(APPROVALS, now):
                approval = self.approvals.expire(approval_id, now)
                if approval is not None:
                    count += 1
                else:
                    # Expired on an earlier pass whose timeout path did not finish
                    approval = self._expired_approval(approval_id)

                if approval is not None and self.on_approval_expired is not None:
                    self.on_approval_expired(approval)
                self.store.clear_deadline(APPROVALS, approval_id)

            logging.info("Expired approvals swept", extra={"count": count})
            return count
        except Exception as e:
            logging.error("Approval sweep failed", extra={"error": str(e)})
            self.notifier.notify("sweep_expired_approvals", e)
            raise SweepError(f"Approval sweep failed: {e}") from e

    def _expired_approval(self, approval_id: str) -> Optional[ApprovalRequest]:
        document = self.store.find_by_id(APPROVALS, approval_id)
        if document and document.get("status") == ApprovalStatus.EXPIRED.value:
            return ApprovalRequest.model_validate(document)
        return None

    def sweep_expired_breakpoints(self, now: Optional[datetime] = None) -> int:
        now = now or utcnow()
        try:
            count = 0
            for breakpoint_id in self.store.find_due(BREAKPOINTS, now):
                if self.store.delete(BREAKPOINTS, breakpoint_id):
                    count += 1

            logging.info("Expired breakpoints swept", extra={"count": count})
            return count
        except Exception as e:
            logging.error("Breakpoint sweep failed", extra={"error": str(e)})
            self.notifier.notify("sweep_expired_breakpoints", e)
            raise SweepError(f"Breakpoint sweep failed: {e}") from e
