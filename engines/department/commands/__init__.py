"""
BizzyTrack Department Engine — Request Commands
================================================
Departments, job assignments and inter-department handoffs.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Optional

from core.commands.base import Command, build_command
from core.commands.request_validation import FieldErrors


# ══════════════════════════════════════════════════════════════
# COMMAND TYPE CONSTANTS
# ══════════════════════════════════════════════════════════════

DEPARTMENT_CREATE_REQUEST = "department.department.create.request"
DEPARTMENT_DEACTIVATE_REQUEST = "department.department.deactivate.request"
DEPARTMENT_JOB_ASSIGN_REQUEST = "department.job.assign.request"
DEPARTMENT_HANDOFF_CREATE_REQUEST = "department.handoff.create.request"
DEPARTMENT_HANDOFF_ACCEPT_REQUEST = "department.handoff.accept.request"
DEPARTMENT_HANDOFF_REJECT_REQUEST = "department.handoff.reject.request"

DEPARTMENT_COMMAND_TYPES = frozenset({
    DEPARTMENT_CREATE_REQUEST,
    DEPARTMENT_DEACTIVATE_REQUEST,
    DEPARTMENT_JOB_ASSIGN_REQUEST,
    DEPARTMENT_HANDOFF_CREATE_REQUEST,
    DEPARTMENT_HANDOFF_ACCEPT_REQUEST,
    DEPARTMENT_HANDOFF_REJECT_REQUEST,
})

DEPARTMENT_TYPES = frozenset({"sales", "service", "admin", "production", "support"})
ASSIGNMENT_TYPES = frozenset({"primary", "collaboration", "review"})
ASSIGNMENT_PRIORITIES = frozenset({"low", "medium", "high", "urgent"})

MAX_NAME_LENGTH = 255
MAX_CODE_LENGTH = 50
MAX_NOTES_LENGTH = 1000


def _department(command_type: str, payload: dict, branch_id, kwargs) -> Command:
    return build_command(
        command_type,
        payload,
        source_engine="department",
        branch_id=branch_id,
        **kwargs,
    )


def _check_notes(errors: FieldErrors, value, field_name: str) -> None:
    if value is None:
        return
    errors.check(
        isinstance(value, str) and len(value) <= MAX_NOTES_LENGTH,
        field_name,
        f"{field_name} must be a string of at most {MAX_NOTES_LENGTH} characters.",
    )


# ══════════════════════════════════════════════════════════════
# REQUEST COMMANDS
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class DepartmentCreateRequest:
    department_id: str
    name: str
    code: str
    department_type: str
    parent_department_id: Optional[str] = None
    description: str = ""
    cost_center_code: str = ""
    sort_order: int = 0
    branch_id: Optional[uuid.UUID] = None

    def __post_init__(self):
        errors = FieldErrors()
        errors.check(bool(self.department_id), "department_id",
                     "department_id must be non-empty.")
        errors.check(
            bool(self.name) and len(self.name) <= MAX_NAME_LENGTH, "name",
            f"name must be 1-{MAX_NAME_LENGTH} characters.",
        )
        errors.check(
            bool(self.code) and len(self.code) <= MAX_CODE_LENGTH, "code",
            f"code must be 1-{MAX_CODE_LENGTH} characters.",
        )
        errors.check(
            self.department_type in DEPARTMENT_TYPES, "department_type",
            f"department_type must be one of: {sorted(DEPARTMENT_TYPES)}.",
        )
        errors.check(
            self.parent_department_id != self.department_id,
            "parent_department_id",
            "A department cannot be its own parent.",
        )
        errors.check(
            isinstance(self.sort_order, int) and not isinstance(self.sort_order, bool)
            and self.sort_order >= 0,
            "sort_order", "sort_order must be an integer >= 0.",
        )
        errors.raise_if_any()

    def to_command(self, **kwargs) -> Command:
        return _department(
            DEPARTMENT_CREATE_REQUEST,
            {
                "department_id": self.department_id,
                "name": self.name,
                "code": self.code,
                "department_type": self.department_type,
                "parent_department_id": self.parent_department_id,
                "description": self.description,
                "cost_center_code": self.cost_center_code,
                "sort_order": self.sort_order,
            },
            self.branch_id, kwargs,
        )


@dataclass(frozen=True)
class DepartmentDeactivateRequest:
    department_id: str
    branch_id: Optional[uuid.UUID] = None

    def __post_init__(self):
        errors = FieldErrors()
        errors.check(bool(self.department_id), "department_id",
                     "department_id must be non-empty.")
        errors.raise_if_any()

    def to_command(self, **kwargs) -> Command:
        return _department(
            DEPARTMENT_DEACTIVATE_REQUEST,
            {"department_id": self.department_id},
            self.branch_id, kwargs,
        )


@dataclass(frozen=True)
class JobAssignRequest:
    assignment_id: str
    job_id: str
    department_id: str
    assigned_to: Optional[str] = None
    assignment_type: str = "primary"
    priority: str = "medium"
    notes: Optional[str] = None
    branch_id: Optional[uuid.UUID] = None

    def __post_init__(self):
        errors = FieldErrors()
        errors.check(bool(self.assignment_id), "assignment_id",
                     "assignment_id must be non-empty.")
        errors.check(bool(self.job_id), "job_id", "job_id must be non-empty.")
        errors.check(bool(self.department_id), "department_id",
                     "department_id must be non-empty.")
        errors.check(
            self.assignment_type in ASSIGNMENT_TYPES, "assignment_type",
            f"assignment_type must be one of: {sorted(ASSIGNMENT_TYPES)}.",
        )
        errors.check(
            self.priority in ASSIGNMENT_PRIORITIES, "priority",
            f"priority must be one of: {sorted(ASSIGNMENT_PRIORITIES)}.",
        )
        _check_notes(errors, self.notes, "notes")
        errors.raise_if_any()

    def to_command(self, **kwargs) -> Command:
        return _department(
            DEPARTMENT_JOB_ASSIGN_REQUEST,
            {
                "assignment_id": self.assignment_id,
                "job_id": self.job_id,
                "department_id": self.department_id,
                "assigned_to": self.assigned_to,
                "assignment_type": self.assignment_type,
                "priority": self.priority,
                "notes": self.notes,
            },
            self.branch_id, kwargs,
        )


@dataclass(frozen=True)
class HandoffCreateRequest:
    """Hand a job from one department to another. Starts PENDING."""
    handoff_id: str
    job_id: str
    from_department_id: str
    to_department_id: str
    handoff_notes: Optional[str] = None
    required_actions: Optional[dict] = None
    branch_id: Optional[uuid.UUID] = None

    def __post_init__(self):
        errors = FieldErrors()
        errors.check(bool(self.handoff_id), "handoff_id", "handoff_id must be non-empty.")
        errors.check(bool(self.job_id), "job_id", "job_id must be non-empty.")
        errors.check(bool(self.from_department_id), "from_department_id",
                     "from_department_id must be non-empty.")
        errors.check(bool(self.to_department_id), "to_department_id",
                     "to_department_id must be non-empty.")
        errors.check(
            self.from_department_id != self.to_department_id, "to_department_id",
            "from_department_id and to_department_id must differ.",
        )
        _check_notes(errors, self.handoff_notes, "handoff_notes")
        errors.check(
            self.required_actions is None or isinstance(self.required_actions, dict),
            "required_actions", "required_actions must be an object.",
        )
        errors.raise_if_any()

    def to_command(self, **kwargs) -> Command:
        return _department(
            DEPARTMENT_HANDOFF_CREATE_REQUEST,
            {
                "handoff_id": self.handoff_id,
                "job_id": self.job_id,
                "from_department_id": self.from_department_id,
                "to_department_id": self.to_department_id,
                "handoff_notes": self.handoff_notes,
                "required_actions": dict(self.required_actions or {}),
            },
            self.branch_id, kwargs,
        )


@dataclass(frozen=True)
class HandoffAcceptRequest:
    """
    Accept a pending handoff. The job gets a primary assignment to the
    receiving department; ``assignment_id`` defaults to one derived from
    the handoff id.
    """
    handoff_id: str
    assigned_to: Optional[str] = None
    assignment_id: Optional[str] = None
    branch_id: Optional[uuid.UUID] = None

    def __post_init__(self):
        errors = FieldErrors()
        errors.check(bool(self.handoff_id), "handoff_id", "handoff_id must be non-empty.")
        errors.raise_if_any()

    def to_command(self, **kwargs) -> Command:
        return _department(
            DEPARTMENT_HANDOFF_ACCEPT_REQUEST,
            {
                "handoff_id": self.handoff_id,
                "assigned_to": self.assigned_to,
                "assignment_id": self.assignment_id or f"{self.handoff_id}-primary",
            },
            self.branch_id, kwargs,
        )


@dataclass(frozen=True)
class HandoffRejectRequest:
    handoff_id: str
    reason: Optional[str] = None
    branch_id: Optional[uuid.UUID] = None

    def __post_init__(self):
        errors = FieldErrors()
        errors.check(bool(self.handoff_id), "handoff_id", "handoff_id must be non-empty.")
        _check_notes(errors, self.reason, "reason")
        errors.raise_if_any()

    def to_command(self, **kwargs) -> Command:
        return _department(
            DEPARTMENT_HANDOFF_REJECT_REQUEST,
            {"handoff_id": self.handoff_id, "reason": self.reason},
            self.branch_id, kwargs,
        )
