"""
BizzyTrack Department Engine — Policies
========================================
Departments must exist, be active and belong to the tenant before jobs
move between them. Handoffs only leave PENDING once.
"""

from __future__ import annotations

from typing import Optional

from core.commands.base import Command
from core.commands.rejection import RejectionReason
from core.primitives.workflow import DEPARTMENT_HANDOFF_WORKFLOW

_CREATE = "department.department.create.request"
_DEACTIVATE = "department.department.deactivate.request"
_ASSIGN = "department.job.assign.request"
_HANDOFF_CREATE = "department.handoff.create.request"
_HANDOFF_ACCEPT = "department.handoff.accept.request"
_HANDOFF_REJECT = "department.handoff.reject.request"

DEPARTMENT_EXISTS = "DEPARTMENT_EXISTS"
DEPARTMENT_CODE_TAKEN = "DEPARTMENT_CODE_TAKEN"
DEPARTMENT_NOT_FOUND = "DEPARTMENT_NOT_FOUND"
DEPARTMENT_INACTIVE = "DEPARTMENT_INACTIVE"
DEPARTMENT_HAS_ASSIGNMENTS = "DEPARTMENT_HAS_ASSIGNMENTS"
HANDOFF_EXISTS = "HANDOFF_EXISTS"
HANDOFF_NOT_FOUND = "HANDOFF_NOT_FOUND"
HANDOFF_NOT_PENDING = "HANDOFF_NOT_PENDING"
ASSIGNMENT_EXISTS = "ASSIGNMENT_EXISTS"


def _reject(code: str, message: str, policy_name: str) -> RejectionReason:
    return RejectionReason(code=code, message=message, policy_name=policy_name)


def department_unique_policy(command: Command, projection) -> Optional[RejectionReason]:
    if command.command_type != _CREATE:
        return None
    department_id = command.payload.get("department_id")
    if projection.get_department(command.business_id, department_id) is not None:
        return _reject(
            DEPARTMENT_EXISTS,
            f"Department '{department_id}' already exists.",
            "department_unique_policy",
        )
    code = command.payload.get("code")
    if projection.find_department_by_code(command.business_id, code) is not None:
        return _reject(
            DEPARTMENT_CODE_TAKEN,
            f"Department code '{code}' is already in use.",
            "department_unique_policy",
        )
    return None


def parent_department_policy(command: Command, projection) -> Optional[RejectionReason]:
    """A parent must exist within the same business."""
    if command.command_type != _CREATE:
        return None
    parent_id = command.payload.get("parent_department_id")
    if parent_id is None:
        return None
    if projection.get_department(command.business_id, parent_id) is None:
        return _reject(
            DEPARTMENT_NOT_FOUND,
            f"Parent department '{parent_id}' not found.",
            "parent_department_policy",
        )
    return None


def department_must_exist_policy(command: Command, projection) -> Optional[RejectionReason]:
    if command.command_type != _DEACTIVATE:
        return None
    department_id = command.payload.get("department_id")
    department = projection.get_department(command.business_id, department_id)
    if department is None:
        return _reject(
            DEPARTMENT_NOT_FOUND,
            f"Department '{department_id}' not found.",
            "department_must_exist_policy",
        )
    if not department["is_active"]:
        return _reject(
            DEPARTMENT_INACTIVE,
            f"Department '{department_id}' is already inactive.",
            "department_must_exist_policy",
        )
    if projection.department_assignments(
        command.business_id, department_id, status="assigned"
    ):
        return _reject(
            DEPARTMENT_HAS_ASSIGNMENTS,
            f"Department '{department_id}' has active job assignments.",
            "department_must_exist_policy",
        )
    return None


def active_departments_policy(command: Command, projection) -> Optional[RejectionReason]:
    if command.command_type == _ASSIGN:
        ids = (command.payload.get("department_id"),)
    elif command.command_type == _HANDOFF_CREATE:
        ids = (
            command.payload.get("from_department_id"),
            command.payload.get("to_department_id"),
        )
    elif command.command_type == _HANDOFF_ACCEPT:
        handoff = projection.get_handoff(
            command.business_id, command.payload.get("handoff_id")
        )
        if handoff is None or handoff["handoff_status"] != "PENDING":
            return None
        ids = (handoff["to_department_id"],)
    else:
        return None

    for department_id in ids:
        department = projection.get_department(command.business_id, department_id)
        if department is None:
            return _reject(
                DEPARTMENT_NOT_FOUND,
                f"Department '{department_id}' not found.",
                "active_departments_policy",
            )
        if not department["is_active"]:
            return _reject(
                DEPARTMENT_INACTIVE,
                f"Department '{department_id}' is inactive.",
                "active_departments_policy",
            )
    return None


def handoff_unique_policy(command: Command, projection) -> Optional[RejectionReason]:
    if command.command_type != _HANDOFF_CREATE:
        return None
    handoff_id = command.payload.get("handoff_id")
    if projection.get_handoff(command.business_id, handoff_id) is not None:
        return _reject(
            HANDOFF_EXISTS,
            f"Handoff '{handoff_id}' already exists.",
            "handoff_unique_policy",
        )
    return None


def handoff_pending_policy(command: Command, projection) -> Optional[RejectionReason]:
    if command.command_type == _HANDOFF_ACCEPT:
        target = "ACCEPTED"
    elif command.command_type == _HANDOFF_REJECT:
        target = "REJECTED"
    else:
        return None

    handoff_id = command.payload.get("handoff_id")
    handoff = projection.get_handoff(command.business_id, handoff_id)
    if handoff is None:
        return _reject(
            HANDOFF_NOT_FOUND,
            f"Handoff '{handoff_id}' not found.",
            "handoff_pending_policy",
        )
    if not handoff["workflow"].can_transition(DEPARTMENT_HANDOFF_WORKFLOW, target):
        return _reject(
            HANDOFF_NOT_PENDING,
            f"Handoff '{handoff_id}' is {handoff['handoff_status']}, not PENDING.",
            "handoff_pending_policy",
        )
    return None


def assignment_unique_policy(command: Command, projection) -> Optional[RejectionReason]:
    if command.command_type not in (_ASSIGN, _HANDOFF_ACCEPT):
        return None
    assignment_id = command.payload.get("assignment_id")
    if projection.get_assignment(command.business_id, assignment_id) is not None:
        return _reject(
            ASSIGNMENT_EXISTS,
            f"Assignment '{assignment_id}' already exists.",
            "assignment_unique_policy",
        )
    return None


DEPARTMENT_POLICIES = (
    department_unique_policy,
    parent_department_policy,
    department_must_exist_policy,
    active_departments_policy,
    handoff_unique_policy,
    handoff_pending_policy,
    assignment_unique_policy,
)
