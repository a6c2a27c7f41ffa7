"""
BizzyTrack Workflow Primitive — Generic State Machine
======================================================
Deterministic state machine for anything with a lifecycle.

Rules:
- Invalid transitions raise ValueError; states are never skipped.
- Terminal states accept no further transitions.
- Every transition is recorded with actor and timestamp.
- Instances are immutable; ``transition`` returns a new snapshot.

Used by:
    Department engine — handoffs (PENDING → ACCEPTED | REJECTED)
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, FrozenSet, Optional, Tuple

from core.primitives.actor import Actor


@dataclass(frozen=True)
class StateTransition:
    from_state: str
    to_state: str
    actor: Actor
    transitioned_at: datetime
    reason: str = ""

    def __post_init__(self):
        if not self.from_state or not isinstance(self.from_state, str):
            raise ValueError("from_state must be non-empty string.")
        if not self.to_state or not isinstance(self.to_state, str):
            raise ValueError("to_state must be non-empty string.")
        if not isinstance(self.actor, Actor):
            raise TypeError("actor must be Actor.")

    def to_dict(self) -> dict:
        return {
            "from_state": self.from_state,
            "to_state": self.to_state,
            "actor": self.actor.to_dict(),
            "transitioned_at": self.transitioned_at.isoformat(),
            "reason": self.reason,
        }


@dataclass(frozen=True)
class WorkflowDefinition:
    """
    State machine schema shared by all instances of one workflow type.

    transitions maps each state to the states reachable from it.
    Every terminal state must map to an empty set.
    """
    name: str
    initial_state: str
    terminal_states: FrozenSet[str]
    transitions: Dict[str, FrozenSet[str]]

    def __post_init__(self):
        if not self.name:
            raise ValueError("Workflow name must be non-empty.")
        if self.initial_state not in self.transitions:
            raise ValueError(
                f"initial_state '{self.initial_state}' not in transitions."
            )
        for state in self.terminal_states:
            if self.transitions.get(state):
                raise ValueError(
                    f"Terminal state '{state}' cannot have outgoing transitions."
                )

    @property
    def states(self) -> FrozenSet[str]:
        return frozenset(self.transitions)

    def is_valid_transition(self, from_state: str, to_state: str) -> bool:
        return to_state in self.transitions.get(from_state, frozenset())

    def is_terminal(self, state: str) -> bool:
        return state in self.terminal_states

    def allowed_next_states(self, from_state: str) -> FrozenSet[str]:
        return self.transitions.get(from_state, frozenset())

    def start(
        self,
        *,
        business_id: uuid.UUID,
        subject_id: str,
        created_at: datetime,
    ) -> WorkflowInstance:
        return WorkflowInstance(
            business_id=business_id,
            workflow_name=self.name,
            subject_id=subject_id,
            current_state=self.initial_state,
            created_at=created_at,
        )


@dataclass(frozen=True)
class WorkflowInstance:
    business_id: uuid.UUID
    workflow_name: str
    subject_id: str
    current_state: str
    created_at: datetime
    transitions: Tuple[StateTransition, ...] = ()

    def __post_init__(self):
        if not isinstance(self.business_id, uuid.UUID):
            raise ValueError("business_id must be UUID.")
        if not self.subject_id:
            raise ValueError("subject_id must be non-empty.")

    @property
    def last_transition(self) -> Optional[StateTransition]:
        return self.transitions[-1] if self.transitions else None

    def can_transition(self, definition: WorkflowDefinition, to_state: str) -> bool:
        return (
            not definition.is_terminal(self.current_state)
            and definition.is_valid_transition(self.current_state, to_state)
        )

    def transition(
        self,
        definition: WorkflowDefinition,
        to_state: str,
        actor: Actor,
        at: datetime,
        reason: str = "",
    ) -> WorkflowInstance:
        if definition.name != self.workflow_name:
            raise ValueError(
                f"Definition '{definition.name}' does not match "
                f"instance workflow '{self.workflow_name}'."
            )
        if definition.is_terminal(self.current_state):
            raise ValueError(
                f"Cannot transition from terminal state '{self.current_state}'."
            )
        if not definition.is_valid_transition(self.current_state, to_state):
            allowed = sorted(definition.allowed_next_states(self.current_state))
            raise ValueError(
                f"Invalid transition: {self.current_state} → {to_state}. "
                f"Allowed: {allowed}."
            )

        record = StateTransition(
            from_state=self.current_state,
            to_state=to_state,
            actor=actor,
            transitioned_at=at,
            reason=reason,
        )
        return WorkflowInstance(
            business_id=self.business_id,
            workflow_name=self.workflow_name,
            subject_id=self.subject_id,
            current_state=to_state,
            created_at=self.created_at,
            transitions=self.transitions + (record,),
        )

    def to_dict(self) -> dict:
        return {
            "business_id": str(self.business_id),
            "workflow_name": self.workflow_name,
            "subject_id": self.subject_id,
            "current_state": self.current_state,
            "created_at": self.created_at.isoformat(),
            "transitions": [t.to_dict() for t in self.transitions],
        }


DEPARTMENT_HANDOFF_WORKFLOW = WorkflowDefinition(
    name="DepartmentHandoff",
    initial_state="PENDING",
    terminal_states=frozenset({"ACCEPTED", "REJECTED"}),
    transitions={
        "PENDING": frozenset({"ACCEPTED", "REJECTED"}),
        "ACCEPTED": frozenset(),
        "REJECTED": frozenset(),
    },
)
