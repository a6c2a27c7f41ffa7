"""
BizzyTrack Core Audit — Audit Functions
========================================
Factory for audit entries and the in-memory append-only log.
"""

from __future__ import annotations

import threading
import uuid
from datetime import datetime
from typing import List, Optional

from core.audit.models import AuditEntry


def create_audit_entry(
    actor_id: str,
    actor_type: str,
    action: str,
    resource_type: str,
    resource_id: str,
    business_id: uuid.UUID,
    status: str,
    occurred_at: datetime,
    event_id: Optional[uuid.UUID] = None,
    branch_id: Optional[uuid.UUID] = None,
    metadata: Optional[dict] = None,
) -> AuditEntry:
    return AuditEntry(
        entry_id=uuid.uuid4(),
        event_id=event_id,
        actor_id=actor_id,
        actor_type=actor_type,
        action=action,
        resource_type=resource_type,
        resource_id=resource_id,
        business_id=business_id,
        branch_id=branch_id,
        status=status,
        occurred_at=occurred_at,
        metadata=metadata or {},
    )


def audit_command(command, *, resource_type: str, resource_id: str,
                  status: str = "EXECUTED", event_id=None,
                  metadata: Optional[dict] = None) -> AuditEntry:
    """Audit entry for an engine command; the action is the command type."""
    return create_audit_entry(
        actor_id=command.actor_id,
        actor_type=command.actor_type,
        action=command.command_type,
        resource_type=resource_type,
        resource_id=resource_id,
        business_id=command.business_id,
        status=status,
        occurred_at=command.issued_at,
        event_id=event_id,
        branch_id=command.branch_id,
        metadata=metadata,
    )


class AuditLog:
    """
    Append-only, thread-safe audit recorder.

    Entries can be read back per business and resource; there is no
    update or delete.
    """

    def __init__(self) -> None:
        self._entries: List[AuditEntry] = []
        self._lock = threading.Lock()

    def record(self, entry: AuditEntry) -> AuditEntry:
        if not isinstance(entry, AuditEntry):
            raise TypeError("AuditLog only records AuditEntry objects.")
        with self._lock:
            self._entries.append(entry)
        return entry

    def entries(
        self,
        business_id: uuid.UUID,
        resource_type: Optional[str] = None,
        resource_id: Optional[str] = None,
    ) -> List[AuditEntry]:
        with self._lock:
            return [
                e for e in self._entries
                if e.business_id == business_id
                and (resource_type is None or e.resource_type == resource_type)
                and (resource_id is None or e.resource_id == resource_id)
            ]

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
