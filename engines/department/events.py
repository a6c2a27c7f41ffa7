"""
BizzyTrack Department Engine — Event Types and Payload Builders
================================================================
"""

from __future__ import annotations

from core.commands.base import Command


# ══════════════════════════════════════════════════════════════
# EVENT TYPE CONSTANTS
# ══════════════════════════════════════════════════════════════

DEPARTMENT_CREATED_V1 = "department.department.created.v1"
DEPARTMENT_DEACTIVATED_V1 = "department.department.deactivated.v1"
DEPARTMENT_JOB_ASSIGNED_V1 = "department.job.assigned.v1"
DEPARTMENT_HANDOFF_CREATED_V1 = "department.handoff.created.v1"
DEPARTMENT_HANDOFF_ACCEPTED_V1 = "department.handoff.accepted.v1"
DEPARTMENT_HANDOFF_REJECTED_V1 = "department.handoff.rejected.v1"

DEPARTMENT_EVENT_TYPES = (
    DEPARTMENT_CREATED_V1,
    DEPARTMENT_DEACTIVATED_V1,
    DEPARTMENT_JOB_ASSIGNED_V1,
    DEPARTMENT_HANDOFF_CREATED_V1,
    DEPARTMENT_HANDOFF_ACCEPTED_V1,
    DEPARTMENT_HANDOFF_REJECTED_V1,
)


# ══════════════════════════════════════════════════════════════
# COMMAND → EVENT MAPPING
# ══════════════════════════════════════════════════════════════

COMMAND_TO_EVENT_TYPE = {
    "department.department.create.request": DEPARTMENT_CREATED_V1,
    "department.department.deactivate.request": DEPARTMENT_DEACTIVATED_V1,
    "department.job.assign.request": DEPARTMENT_JOB_ASSIGNED_V1,
    "department.handoff.create.request": DEPARTMENT_HANDOFF_CREATED_V1,
    "department.handoff.accept.request": DEPARTMENT_HANDOFF_ACCEPTED_V1,
    "department.handoff.reject.request": DEPARTMENT_HANDOFF_REJECTED_V1,
}


def resolve_department_event_type(command_type: str) -> str | None:
    return COMMAND_TO_EVENT_TYPE.get(command_type)


def register_department_event_types(event_type_registry) -> None:
    for event_type in sorted(DEPARTMENT_EVENT_TYPES):
        event_type_registry.register(event_type)


# ══════════════════════════════════════════════════════════════
# PAYLOAD BUILDERS
# ══════════════════════════════════════════════════════════════

def _base_payload(command: Command) -> dict:
    return {
        "business_id": command.business_id,
        "branch_id": command.branch_id,
        "actor_id": command.actor_id,
        "actor_type": command.actor_type,
        "correlation_id": command.correlation_id,
        "command_id": command.command_id,
    }


def build_department_created_payload(command: Command, handoff=None) -> dict:
    payload = _base_payload(command)
    payload.update({k: command.payload.get(k) for k in (
        "department_id", "name", "code", "department_type",
        "parent_department_id", "description", "cost_center_code", "sort_order",
    )})
    payload["created_at"] = command.issued_at
    return payload


def build_department_deactivated_payload(command: Command, handoff=None) -> dict:
    payload = _base_payload(command)
    payload.update({
        "department_id": command.payload["department_id"],
        "deactivated_at": command.issued_at,
    })
    return payload


def build_job_assigned_payload(command: Command, handoff=None) -> dict:
    payload = _base_payload(command)
    payload.update({k: command.payload.get(k) for k in (
        "assignment_id", "job_id", "department_id", "assigned_to",
        "assignment_type", "priority", "notes",
    )})
    payload["assigned_at"] = command.issued_at
    return payload


def build_handoff_created_payload(command: Command, handoff=None) -> dict:
    payload = _base_payload(command)
    payload.update({
        "handoff_id": command.payload["handoff_id"],
        "job_id": command.payload["job_id"],
        "from_department_id": command.payload["from_department_id"],
        "to_department_id": command.payload["to_department_id"],
        "handoff_notes": command.payload.get("handoff_notes"),
        "required_actions": dict(command.payload.get("required_actions") or {}),
        "handoff_by": command.actor_id,
        "handoff_at": command.issued_at,
    })
    return payload


def build_handoff_accepted_payload(command: Command, handoff: dict) -> dict:
    """Acceptance also carries the primary assignment it creates."""
    payload = _base_payload(command)
    payload.update({
        "handoff_id": command.payload["handoff_id"],
        "job_id": handoff["job_id"],
        "to_department_id": handoff["to_department_id"],
        "handoff_to": command.payload.get("assigned_to"),
        "accepted_at": command.issued_at,
        "assignment": {
            "assignment_id": command.payload["assignment_id"],
            "job_id": handoff["job_id"],
            "department_id": handoff["to_department_id"],
            "assigned_to": command.payload.get("assigned_to"),
            "assignment_type": "primary",
            "priority": "medium",
            "notes": None,
        },
    })
    return payload


def build_handoff_rejected_payload(command: Command, handoff: dict) -> dict:
    reason = command.payload.get("reason")
    payload = _base_payload(command)
    payload.update({
        "handoff_id": command.payload["handoff_id"],
        "job_id": handoff["job_id"],
        "reason": reason,
        "handoff_notes": f"REJECTED: {reason}" if reason else handoff.get("handoff_notes"),
        "rejected_at": command.issued_at,
    })
    return payload
