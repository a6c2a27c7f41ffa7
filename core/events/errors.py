"""
BizzyTrack Events — Errors
===========================
Rejection codes produced by the persist path.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


class PersistRejectionCode:
    UNREGISTERED_EVENT_TYPE = "UNREGISTERED_EVENT_TYPE"
    INVALID_EVENT_STRUCTURE = "INVALID_EVENT_STRUCTURE"
    BUSINESS_ID_MISMATCH = "BUSINESS_ID_MISMATCH"
    DUPLICATE_EVENT = "DUPLICATE_EVENT"
    UNSUPPORTED_EVENT_TYPE = "UNSUPPORTED_EVENT_TYPE"
    ACCOUNT_NOT_FOUND = "ACCOUNT_NOT_FOUND"


@dataclass(frozen=True)
class PersistRejection:
    code: str
    message: str


@dataclass(frozen=True)
class PersistResult:
    accepted: bool
    rejection: Optional[PersistRejection] = None

    def __post_init__(self):
        if self.accepted and self.rejection is not None:
            raise ValueError("Accepted result must not carry a rejection.")
        if not self.accepted and self.rejection is None:
            raise ValueError("Rejected result must carry a rejection.")


class EventStoreError(Exception):
    """Base error for event store operations."""
