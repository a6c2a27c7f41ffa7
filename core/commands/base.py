"""
BizzyTrack Command Layer — Command Contract
=============================================
Every state change in BizzyTrack starts as a Command.

A Command is a frozen declaration of what an actor wants to happen
inside one business (tenant). It carries identity, scope and payload.
It never touches the database and never decides anything by itself.

Naming law:
    <engine>.<domain>.<action>.request
    e.g. pricing.rule.create.request, department.handoff.accept.request
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from core.context.scope import (
    SCOPE_BUSINESS_ALLOWED,
    VALID_SCOPE_REQUIREMENTS,
)


VALID_ACTOR_TYPES = frozenset({"HUMAN", "SYSTEM", "DEVICE", "AI"})

COMMAND_SUFFIX = ".request"
MIN_COMMAND_SEGMENTS = 4


@dataclass(frozen=True)
class Command:
    """
    Canonical command.

    Fields:
        command_id:        Unique identifier (UUID).
        command_type:      Namespaced type ending in '.request'.
        business_id:       Tenant boundary (UUID).
        branch_id:         Optional branch (UUID).
        actor_type:        HUMAN | SYSTEM | DEVICE | AI.
        actor_id:          Identity of the actor (user id, job name...).
        payload:           Business intent data.
        issued_at:         When the command was issued.
        correlation_id:    Groups commands/events of one story.
        source_engine:     Engine owning the command namespace.
        scope_requirement: Business-wide or branch-required.

    Example:
        Command(
            command_id=uuid.uuid4(),
            command_type="pricing.rule.create.request",
            business_id=business_id,
            branch_id=None,
            actor_type="HUMAN",
            actor_id="user-42",
            payload={"rule_id": "r-1", ...},
            issued_at=datetime.now(timezone.utc),
            correlation_id=uuid.uuid4(),
            source_engine="pricing",
        )
    """

    command_id: uuid.UUID
    command_type: str
    business_id: uuid.UUID
    branch_id: Optional[uuid.UUID]
    actor_type: str
    actor_id: str
    payload: dict
    issued_at: datetime
    correlation_id: uuid.UUID
    source_engine: str
    scope_requirement: str = SCOPE_BUSINESS_ALLOWED

    def __post_init__(self):
        if not isinstance(self.command_id, uuid.UUID):
            raise ValueError(
                f"command_id must be UUID, got {type(self.command_id).__name__}."
            )

        if not self.command_type or not isinstance(self.command_type, str):
            raise ValueError("command_type must be a non-empty string.")
        if not self.command_type.endswith(COMMAND_SUFFIX):
            raise ValueError(
                f"command_type '{self.command_type}' must end with "
                f"'{COMMAND_SUFFIX}'."
            )

        segments = self.command_type.split(".")
        if len(segments) < MIN_COMMAND_SEGMENTS:
            raise ValueError(
                f"command_type '{self.command_type}' must follow "
                f"engine.domain.action.request."
            )
        if segments[0] != self.source_engine:
            raise ValueError(
                f"command_type namespace '{segments[0]}' does not match "
                f"source_engine '{self.source_engine}'."
            )

        if not isinstance(self.business_id, uuid.UUID):
            raise ValueError("business_id must be UUID.")
        if self.branch_id is not None and not isinstance(self.branch_id, uuid.UUID):
            raise ValueError("branch_id must be UUID or None.")

        if self.scope_requirement not in VALID_SCOPE_REQUIREMENTS:
            raise ValueError(
                f"scope_requirement '{self.scope_requirement}' not valid. "
                f"Must be one of: {sorted(VALID_SCOPE_REQUIREMENTS)}"
            )

        if self.actor_type not in VALID_ACTOR_TYPES:
            raise ValueError(
                f"actor_type '{self.actor_type}' not valid. "
                f"Must be one of: {sorted(VALID_ACTOR_TYPES)}"
            )
        if not self.actor_id or not isinstance(self.actor_id, str):
            raise ValueError("actor_id must be a non-empty string.")

        if not isinstance(self.payload, dict):
            raise TypeError("payload must be a dict.")

        if not isinstance(self.correlation_id, uuid.UUID):
            raise ValueError("correlation_id must be UUID.")


def derive_rejection_event_type(command_type: str) -> str:
    """
    pricing.rule.create.request → pricing.rule.create.rejected
    """
    if not command_type.endswith(COMMAND_SUFFIX):
        raise ValueError(
            f"Cannot derive rejection event type from '{command_type}'."
        )
    return f"{command_type[: -len(COMMAND_SUFFIX)]}.rejected"


def derive_source_engine(command_type: str) -> str:
    return command_type.split(".")[0]


def build_command(
    command_type: str,
    payload: dict,
    *,
    source_engine: str,
    business_id: uuid.UUID,
    actor_type: str,
    actor_id: str,
    command_id: uuid.UUID,
    correlation_id: uuid.UUID,
    issued_at: datetime,
    branch_id: Optional[uuid.UUID] = None,
    scope_requirement: str = SCOPE_BUSINESS_ALLOWED,
) -> Command:
    """Shared constructor used by every engine's typed request."""
    return Command(
        command_id=command_id,
        command_type=command_type,
        business_id=business_id,
        branch_id=branch_id,
        actor_type=actor_type,
        actor_id=actor_id,
        payload=payload,
        issued_at=issued_at,
        correlation_id=correlation_id,
        source_engine=source_engine,
        scope_requirement=scope_requirement,
    )
