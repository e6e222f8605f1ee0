"""Debug breakpoints that pause an execution before a node."""

import logging
from datetime import datetime, timedelta
from typing import List, Optional
from shared.constants import BREAKPOINTS, DEFAULT_BREAKPOINT_TIMEOUT_MINUTES
from shared.exceptions import BreakpointNotFoundError, InvalidResumeTokenError
from shared.types import Breakpoint
from shared.utils import generate_breakpoint_id, generate_resume_token, isoformat, utcnow


class BreakpointService:

    def __init__(self, store):
        self.store = store

    def set_breakpoint(self, execution_id: str, node_id: str, created_by: Optional[str] = None,
                       timeout_minutes: float = DEFAULT_BREAKPOINT_TIMEOUT_MINUTES,
                       now: Optional[datetime] = None) -> Breakpoint:
        now = now or utcnow()
        bp = Breakpoint(
            breakpoint_id=generate_breakpoint_id(),
            execution_id=execution_id,
            node_id=node_id,
            resume_token=generate_resume_token(),
            created_by=created_by,
            created_at=now,
            expires_at=now + timedelta(minutes=timeout_minutes),
        )
        self.store.save(BREAKPOINTS, bp.breakpoint_id, bp.model_dump(mode="json"),
                        deadline=bp.expires_at)

        logging.info("Breakpoint set", extra={
            "execution_id": execution_id,
            "node_id": node_id,
            "breakpoint_id": bp.breakpoint_id
        })
        return bp

    def get(self, breakpoint_id: str) -> Breakpoint:
        document = self.store.find_by_id(BREAKPOINTS, breakpoint_id)
        if not document:
            raise BreakpointNotFoundError(f"Breakpoint {breakpoint_id} not found")
        return Breakpoint.model_validate(document)

    def list_active(self, execution_id: Optional[str] = None, now: Optional[datetime] = None) -> List[Breakpoint]:
        now = now or utcnow()
        query = {"execution_id": execution_id} if execution_id else None
        breakpoints = [Breakpoint.model_validate(doc) for doc in self.store.find(BREAKPOINTS, query)]
        return [bp for bp in breakpoints if bp.expires_at > now]

    def check(self, execution_id: str, node_id: str, now: Optional[datetime] = None) -> Optional[Breakpoint]:
        for bp in self.list_active(execution_id, now):
            if bp.node_id == node_id:
                return bp
        return None

    def mark_triggered(self, bp: Breakpoint) -> None:
        if bp.triggered_at is None:
            self.store.update(BREAKPOINTS, bp.breakpoint_id, {"triggered_at": isoformat()})

    def verify_resume(self, breakpoint_id: str, resume_token: str, now: Optional[datetime] = None) -> Breakpoint:
        bp = self.get(breakpoint_id)
        if bp.resume_token != resume_token:
            raise InvalidResumeTokenError("Invalid resume token", bp.execution_id)
        if bp.expires_at <= (now or utcnow()):
            raise InvalidResumeTokenError("Breakpoint has expired", bp.execution_id)
        return bp

    def remove(self, breakpoint_id: str) -> bool:
        return self.store.delete(BREAKPOINTS, breakpoint_id)

    def clear_for_execution(self, execution_id: str) -> int:
        documents = self.store.find(BREAKPOINTS, {"execution_id": execution_id})
        return sum(1 for doc in documents if self.store.delete(BREAKPOINTS, doc["breakpoint_id"]))
