"""
BizzyTrack Core Audit — Public API
===================================
"""

from core.audit.functions import AuditLog, audit_command, create_audit_entry
from core.audit.models import AUDIT_STATUSES, AuditEntry

__all__ = [
    "AUDIT_STATUSES",
    "AuditEntry",
    "AuditLog",
    "audit_command",
    "create_audit_entry",
]
