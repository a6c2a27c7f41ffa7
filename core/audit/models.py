"""
BizzyTrack Core Audit — Audit Models
=====================================
Append-only audit entries. Once created, never modified.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

AUDIT_STATUSES = ("EXECUTED", "REJECTED", "ERROR")


@dataclass(frozen=True)
class AuditEntry:
    """
    Record of one action: a command execution, a rejection, or a
    system job step such as an opening-balance journal entry.
    """

    entry_id: uuid.UUID
    actor_id: str
    actor_type: str
    action: str
    resource_type: str
    resource_id: str
    business_id: uuid.UUID
    status: str  # EXECUTED | REJECTED | ERROR
    occurred_at: datetime
    event_id: Optional[uuid.UUID] = None
    branch_id: Optional[uuid.UUID] = None
    metadata: dict = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.status not in AUDIT_STATUSES:
            raise ValueError(
                f"AuditEntry status must be EXECUTED|REJECTED|ERROR, got '{self.status}'."
            )
        if not self.action:
            raise ValueError("action must be non-empty.")

    def to_dict(self) -> dict:
        return {
            "entry_id": str(self.entry_id),
            "event_id": str(self.event_id) if self.event_id else None,
            "actor_id": self.actor_id,
            "actor_type": self.actor_type,
            "action": self.action,
            "resource_type": self.resource_type,
            "resource_id": self.resource_id,
            "business_id": str(self.business_id),
            "branch_id": str(self.branch_id) if self.branch_id else None,
            "status": self.status,
            "occurred_at": self.occurred_at.isoformat(),
            "metadata": dict(self.metadata),
        }
