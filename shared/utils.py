"""Shared utilities."""

import secrets
import time
import uuid
from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def isoformat(value: Optional[datetime] = None) -> str:
    return (value or utcnow()).isoformat()


def generate_execution_id() -> str:
    return str(uuid.uuid4())


def _prefixed_id(prefix: str) -> str:
    return f"{prefix}_{int(time.time() * 1000)}_{secrets.token_hex(5)}"


def generate_approval_id() -> str:
    return _prefixed_id("approval")


def generate_breakpoint_id() -> str:
    return _prefixed_id("bp")


def generate_resume_token() -> str:
    return _prefixed_id("resume")
