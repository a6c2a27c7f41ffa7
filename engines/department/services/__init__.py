"""
BizzyTrack Department Engine — Application Service
===================================================
Departments, job assignments and the handoff workflow between
departments (PENDING → ACCEPTED | REJECTED).
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol

from core.audit import AuditLog, audit_command
from core.commands.base import Command
from core.commands.bus import is_persist_accepted
from core.commands.dispatcher import bind_projection_policy
from core.commands.rejection import CommandRejected
from core.primitives.actor import Actor, ActorType
from core.primitives.workflow import DEPARTMENT_HANDOFF_WORKFLOW
from engines.department.commands import DEPARTMENT_COMMAND_TYPES
from engines.department.events import (
    DEPARTMENT_CREATED_V1,
    DEPARTMENT_DEACTIVATED_V1,
    DEPARTMENT_HANDOFF_ACCEPTED_V1,
    DEPARTMENT_HANDOFF_CREATED_V1,
    DEPARTMENT_HANDOFF_REJECTED_V1,
    DEPARTMENT_JOB_ASSIGNED_V1,
    build_department_created_payload,
    build_department_deactivated_payload,
    build_handoff_accepted_payload,
    build_handoff_created_payload,
    build_handoff_rejected_payload,
    build_job_assigned_payload,
    register_department_event_types,
    resolve_department_event_type,
)
from engines.department.policies import DEPARTMENT_POLICIES

logger = logging.getLogger("bizzytrack.department")


class EventFactoryProtocol(Protocol):
    def __call__(
        self, *, command: Command, event_type: str, payload: dict,
    ) -> dict:
        ...


class PersistEventProtocol(Protocol):
    def __call__(
        self, *, event_data: dict, context: Any, registry: Any, **kwargs,
    ) -> Any:
        ...


def serialize_handoff(handoff: dict) -> dict:
    data = {k: v for k, v in handoff.items() if k not in ("workflow", "seq")}
    data["workflow"] = handoff["workflow"].to_dict()
    return data


# ══════════════════════════════════════════════════════════════
# PROJECTION STORE
# ══════════════════════════════════════════════════════════════

class DepartmentProjectionStore:
    """In-memory departments, assignments and handoffs per business."""

    def __init__(self):
        self._events: List[dict] = []
        self._departments: Dict[tuple, dict] = {}
        self._assignments: Dict[tuple, dict] = {}
        self._handoffs: Dict[tuple, dict] = {}
        self._seq = 0

    def apply(self, event_type: str, payload: dict) -> None:
        self._events.append({"event_type": event_type, "payload": payload})
        business_id = payload["business_id"]

        if event_type == DEPARTMENT_CREATED_V1:
            self._departments[(business_id, payload["department_id"])] = {
                "department_id": payload["department_id"],
                "name": payload["name"],
                "code": payload["code"],
                "department_type": payload["department_type"],
                "parent_department_id": payload.get("parent_department_id"),
                "description": payload.get("description") or "",
                "cost_center_code": payload.get("cost_center_code") or "",
                "sort_order": payload.get("sort_order") or 0,
                "is_active": True,
                "created_at": payload["created_at"],
            }

        elif event_type == DEPARTMENT_DEACTIVATED_V1:
            department = self.get_department(business_id, payload["department_id"])
            if department is not None:
                department["is_active"] = False
                department["deactivated_at"] = payload["deactivated_at"]

        elif event_type == DEPARTMENT_JOB_ASSIGNED_V1:
            self._add_assignment(business_id, payload, payload["assigned_at"])

        elif event_type == DEPARTMENT_HANDOFF_CREATED_V1:
            self._seq += 1
            self._handoffs[(business_id, payload["handoff_id"])] = {
                "handoff_id": payload["handoff_id"],
                "job_id": payload["job_id"],
                "from_department_id": payload["from_department_id"],
                "to_department_id": payload["to_department_id"],
                "handoff_notes": payload.get("handoff_notes"),
                "required_actions": payload.get("required_actions") or {},
                "handoff_by": payload["handoff_by"],
                "handoff_at": payload["handoff_at"],
                "handoff_to": None,
                "accepted_at": None,
                "rejected_at": None,
                "handoff_status": DEPARTMENT_HANDOFF_WORKFLOW.initial_state,
                "workflow": DEPARTMENT_HANDOFF_WORKFLOW.start(
                    business_id=business_id,
                    subject_id=payload["handoff_id"],
                    created_at=payload["handoff_at"],
                ),
                "seq": self._seq,
            }

        elif event_type == DEPARTMENT_HANDOFF_ACCEPTED_V1:
            handoff = self._transition(business_id, payload, "ACCEPTED",
                                       payload["accepted_at"])
            handoff["accepted_at"] = payload["accepted_at"]
            handoff["handoff_to"] = payload.get("handoff_to")
            self._add_assignment(business_id, payload["assignment"],
                                 payload["accepted_at"])

        elif event_type == DEPARTMENT_HANDOFF_REJECTED_V1:
            handoff = self._transition(business_id, payload, "REJECTED",
                                       payload["rejected_at"],
                                       reason=payload.get("reason") or "")
            handoff["rejected_at"] = payload["rejected_at"]
            handoff["handoff_notes"] = payload.get("handoff_notes")

    def _transition(self, business_id, payload, to_state, at, reason=""):
        handoff = self._handoffs[(business_id, payload["handoff_id"])]
        actor = Actor(ActorType(payload["actor_type"]), payload["actor_id"])
        handoff["workflow"] = handoff["workflow"].transition(
            DEPARTMENT_HANDOFF_WORKFLOW, to_state, actor, at, reason=reason,
        )
        handoff["handoff_status"] = to_state
        return handoff

    def _add_assignment(self, business_id, data: dict, assigned_at) -> None:
        self._assignments[(business_id, data["assignment_id"])] = {
            "assignment_id": data["assignment_id"],
            "job_id": data["job_id"],
            "department_id": data["department_id"],
            "assigned_to": data.get("assigned_to"),
            "assignment_type": data["assignment_type"],
            "priority": data["priority"],
            "notes": data.get("notes"),
            "status": "assigned",
            "assigned_at": assigned_at,
        }

    # ── reads ─────────────────────────────────────────────────

    def get_department(self, business_id: uuid.UUID, department_id: str) -> Optional[dict]:
        return self._departments.get((business_id, department_id))

    def find_department_by_code(self, business_id: uuid.UUID, code: str) -> Optional[dict]:
        for (biz, _), department in self._departments.items():
            if biz == business_id and department["code"] == code:
                return department
        return None

    def list_departments(
        self,
        business_id: uuid.UUID,
        *,
        department_type: Optional[str] = None,
        is_active: Optional[bool] = None,
    ) -> List[dict]:
        departments = [
            d for (biz, _), d in self._departments.items() if biz == business_id
        ]
        if department_type is not None:
            departments = [d for d in departments if d["department_type"] == department_type]
        if is_active is not None:
            departments = [d for d in departments if d["is_active"] == is_active]
        return sorted(departments, key=lambda d: (d["sort_order"], d["name"]))

    def get_assignment(self, business_id: uuid.UUID, assignment_id: str) -> Optional[dict]:
        return self._assignments.get((business_id, assignment_id))

    def department_assignments(
        self,
        business_id: uuid.UUID,
        department_id: str,
        *,
        status: Optional[str] = None,
    ) -> List[dict]:
        assignments = [
            a for (biz, _), a in self._assignments.items()
            if biz == business_id and a["department_id"] == department_id
        ]
        if status is not None:
            assignments = [a for a in assignments if a["status"] == status]
        return sorted(assignments, key=lambda a: a["assigned_at"])

    def job_assignments(self, business_id: uuid.UUID, job_id: str) -> List[dict]:
        return sorted(
            (a for (biz, _), a in self._assignments.items()
             if biz == business_id and a["job_id"] == job_id),
            key=lambda a: a["assigned_at"],
        )

    def get_handoff(self, business_id: uuid.UUID, handoff_id: str) -> Optional[dict]:
        return self._handoffs.get((business_id, handoff_id))

    def handoffs(self, business_id: uuid.UUID) -> List[dict]:
        """Newest first."""
        return sorted(
            (h for (biz, _), h in self._handoffs.items() if biz == business_id),
            key=lambda h: (h["handoff_at"], h["seq"]),
            reverse=True,
        )

    @property
    def event_count(self) -> int:
        return len(self._events)

    def truncate(self) -> None:
        self._events.clear()
        self._departments.clear()
        self._assignments.clear()
        self._handoffs.clear()
        self._seq = 0


# ══════════════════════════════════════════════════════════════
# PAYLOAD DISPATCHER
# ══════════════════════════════════════════════════════════════

PAYLOAD_BUILDERS = {
    "department.department.create.request": build_department_created_payload,
    "department.department.deactivate.request": build_department_deactivated_payload,
    "department.job.assign.request": build_job_assigned_payload,
    "department.handoff.create.request": build_handoff_created_payload,
    "department.handoff.accept.request": build_handoff_accepted_payload,
    "department.handoff.reject.request": build_handoff_rejected_payload,
}

_AUDIT_RESOURCES = {
    DEPARTMENT_CREATED_V1: ("department", "department_id"),
    DEPARTMENT_DEACTIVATED_V1: ("department", "department_id"),
    DEPARTMENT_JOB_ASSIGNED_V1: ("job_assignment", "assignment_id"),
    DEPARTMENT_HANDOFF_CREATED_V1: ("department_workflow", "handoff_id"),
    DEPARTMENT_HANDOFF_ACCEPTED_V1: ("department_workflow", "handoff_id"),
    DEPARTMENT_HANDOFF_REJECTED_V1: ("department_workflow", "handoff_id"),
}


@dataclass(frozen=True)
class DepartmentExecutionResult:
    event_type: str
    event_data: dict
    persist_result: Any
    projection_applied: bool


class _DepartmentCommandHandler:
    def __init__(self, service: "DepartmentService"):
        self._service = service

    def execute(self, command: Command) -> DepartmentExecutionResult:
        return self._service._execute_command(command)


# ══════════════════════════════════════════════════════════════
# APPLICATION SERVICE
# ══════════════════════════════════════════════════════════════

class DepartmentService:
    """Department Engine application service."""

    def __init__(
        self,
        *,
        business_context,
        command_bus,
        event_factory: EventFactoryProtocol,
        persist_event: PersistEventProtocol,
        event_type_registry,
        projection_store: DepartmentProjectionStore | None = None,
        audit_log: AuditLog | None = None,
    ):
        self._business_context = business_context
        self._command_bus = command_bus
        self._event_factory = event_factory
        self._persist_event = persist_event
        self._event_type_registry = event_type_registry
        self._projection_store = projection_store or DepartmentProjectionStore()
        self._audit_log = audit_log

        register_department_event_types(self._event_type_registry)
        self._register_handlers()

    def _register_handlers(self) -> None:
        handler = _DepartmentCommandHandler(self)
        for command_type in sorted(DEPARTMENT_COMMAND_TYPES):
            self._command_bus.register_handler(command_type, handler)

    @property
    def policies(self) -> list:
        """Dispatcher-ready policies bound to this service's projection."""
        return [
            bind_projection_policy(p, self._projection_store)
            for p in DEPARTMENT_POLICIES
        ]

    def _check_policies(self, command: Command) -> None:
        for policy in DEPARTMENT_POLICIES:
            rejection = policy(command, self._projection_store)
            if rejection is not None:
                raise CommandRejected(rejection)

    def _execute_command(self, command: Command) -> DepartmentExecutionResult:
        event_type = resolve_department_event_type(command.command_type)
        if event_type is None:
            raise ValueError(
                f"Unsupported department command type: {command.command_type}"
            )

        self._check_policies(command)

        handoff = None
        if "handoff_id" in command.payload:
            handoff = self._projection_store.get_handoff(
                command.business_id, command.payload["handoff_id"]
            )
        payload = PAYLOAD_BUILDERS[command.command_type](command, handoff)

        event_data = self._event_factory(
            command=command,
            event_type=event_type,
            payload=payload,
        )

        persist_result = self._persist_event(
            event_data=event_data,
            context=self._business_context,
            registry=self._event_type_registry,
            scope_requirement=command.scope_requirement,
        )

        applied = False
        if is_persist_accepted(persist_result):
            self._projection_store.apply(event_type=event_type, payload=payload)
            applied = True
            if self._audit_log is not None:
                resource_type, key = _AUDIT_RESOURCES[event_type]
                self._audit_log.record(audit_command(
                    command,
                    resource_type=resource_type,
                    resource_id=str(payload[key]),
                    event_id=event_data.get("event_id"),
                ))
            logger.info(
                "Department event %s applied for business %s",
                event_type, command.business_id,
            )
        else:
            logger.warning(
                "Department event %s not persisted for command %s",
                event_type, command.command_id,
            )

        return DepartmentExecutionResult(
            event_type=event_type,
            event_data=event_data,
            persist_result=persist_result,
            projection_applied=applied,
        )

    # ── reads ─────────────────────────────────────────────────

    @property
    def _business_id(self) -> uuid.UUID:
        return self._business_context.business_id

    def get_handoff(self, handoff_id: str) -> Optional[dict]:
        handoff = self._projection_store.get_handoff(self._business_id, handoff_id)
        return serialize_handoff(handoff) if handoff is not None else None

    def job_workflow(self, job_id: str) -> List[dict]:
        """Every handoff of ``job_id``, newest first."""
        return [
            serialize_handoff(h)
            for h in self._projection_store.handoffs(self._business_id)
            if h["job_id"] == job_id
        ]

    def department_handoffs(
        self, department_id: str, status: Optional[str] = None,
    ) -> List[dict]:
        """Handoffs sent or received by ``department_id``, newest first."""
        wanted = status.upper() if status else None
        return [
            serialize_handoff(h)
            for h in self._projection_store.handoffs(self._business_id)
            if department_id in (h["from_department_id"], h["to_department_id"])
            and (wanted is None or h["handoff_status"] == wanted)
        ]

    def pending_handoffs(self) -> List[dict]:
        return [
            serialize_handoff(h)
            for h in self._projection_store.handoffs(self._business_id)
            if h["handoff_status"] == "PENDING"
        ]

    def job_assignments(self, job_id: str) -> List[dict]:
        return self._projection_store.job_assignments(self._business_id, job_id)

    def department_assignments(
        self, department_id: str, status: Optional[str] = None
    ) -> List[dict]:
        return self._projection_store.department_assignments(
            self._business_id, department_id, status=status
        )

    def department_hierarchy(self) -> List[dict]:
        """
        Departments as a parent/child tree. Departments whose parent is
        unknown are listed as roots; a parent cycle raises ValueError.
        """
        departments = self._projection_store.list_departments(self._business_id)
        by_id = {d["department_id"]: d for d in departments}

        for department in departments:
            seen = {department["department_id"]}
            parent_id = department["parent_department_id"]
            while parent_id is not None and parent_id in by_id:
                if parent_id in seen:
                    raise ValueError(
                        f"Department hierarchy cycle at '{parent_id}'."
                    )
                seen.add(parent_id)
                parent_id = by_id[parent_id]["parent_department_id"]

        children: Dict[Optional[str], List[dict]] = {}
        for department in departments:
            parent_id = department["parent_department_id"]
            if parent_id not in by_id:
                parent_id = None
            children.setdefault(parent_id, []).append(department)

        def build(parent_id):
            return [
                {**d, "children": build(d["department_id"])}
                for d in children.get(parent_id, [])
            ]

        return build(None)

    @property
    def projection_store(self) -> DepartmentProjectionStore:
        return self._projection_store
