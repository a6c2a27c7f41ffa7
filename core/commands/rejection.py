"""
BizzyTrack Command Layer — Rejection Model
============================================
Structured explanation attached to every rejected command.

A rejection is deterministic (same input, same reason), machine
readable (code) and human readable (message). It is serialised into
the rejection event payload and into HTTP error bodies.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class RejectionReason:
    """
    Fields:
        code:        SCREAMING_SNAKE_CASE machine code.
        message:     Human-readable explanation.
        policy_name: Policy (or validator) that produced the rejection.
    """

    code: str
    message: str
    policy_name: str

    def __post_init__(self):
        if not self.code or not isinstance(self.code, str):
            raise ValueError("code must be a non-empty string.")
        if not self.message or not isinstance(self.message, str):
            raise ValueError("message must be a non-empty string.")
        if not self.policy_name or not isinstance(self.policy_name, str):
            raise ValueError("policy_name must be a non-empty string.")

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "message": self.message,
            "policy_name": self.policy_name,
        }


class ReasonCode:
    """Known rejection codes. Engines add their own next to their policies."""

    # ── Business lifecycle ────────────────────────────────────
    BUSINESS_SUSPENDED = "BUSINESS_SUSPENDED"
    BUSINESS_CLOSED = "BUSINESS_CLOSED"

    # ── Context ───────────────────────────────────────────────
    NO_ACTIVE_CONTEXT = "NO_ACTIVE_CONTEXT"
    INVALID_CONTEXT = "INVALID_CONTEXT"
    BUSINESS_ID_MISMATCH = "BUSINESS_ID_MISMATCH"
    BRANCH_REQUIRED_MISSING = "BRANCH_REQUIRED_MISSING"
    BRANCH_NOT_IN_BUSINESS = "BRANCH_NOT_IN_BUSINESS"

    # ── Command structure ─────────────────────────────────────
    INVALID_COMMAND_STRUCTURE = "INVALID_COMMAND_STRUCTURE"
    INVALID_COMMAND_TYPE = "INVALID_COMMAND_TYPE"
    INVALID_NAMESPACE = "INVALID_NAMESPACE"

    # ── Actor ─────────────────────────────────────────────────
    AI_EXECUTION_FORBIDDEN = "AI_EXECUTION_FORBIDDEN"
    INVALID_ACTOR = "INVALID_ACTOR"


class CommandRejected(Exception):
    """
    Raised by an engine service when a command reaches it directly
    (not through the bus) and one of its policies rejects it.
    """

    def __init__(self, reason: RejectionReason):
        self.reason = reason
        super().__init__(f"[{reason.code}] {reason.message}")
