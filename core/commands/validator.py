"""
BizzyTrack Command Layer — Command Validator
==============================================
Structural and tenant checks run before any policy.

Checks (in order):
    1. object is a Command
    2. context is usable and active
    3. business lifecycle allows writes
    4. command.business_id matches the active tenant
    5. branch scope is satisfied
    6. branch belongs to the business
    7. actor type, command type format and namespace

Failure raises CommandValidationError; success is silent.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from core.commands.base import (
    COMMAND_SUFFIX,
    MIN_COMMAND_SEGMENTS,
    VALID_ACTOR_TYPES,
    Command,
)
from core.commands.rejection import ReasonCode
from core.context.scope import SCOPE_BRANCH_REQUIRED


BLOCKED_LIFECYCLE_STATES = frozenset({"SUSPENDED", "CLOSED"})


@runtime_checkable
class CommandContextProtocol(Protocol):
    def has_active_context(self) -> bool:
        ...

    def get_active_business_id(self):
        ...

    def is_branch_in_business(self, branch_id, business_id) -> bool:
        ...

    def get_business_lifecycle_state(self) -> str:
        ...


class CommandValidationError(Exception):
    """Structured validation failure for commands."""

    def __init__(self, code: str, message: str):
        self.code = code
        self.message = message
        super().__init__(f"[{code}] {message}")


def validate_command(command: Command, context: CommandContextProtocol) -> None:
    if not isinstance(command, Command):
        raise CommandValidationError(
            code=ReasonCode.INVALID_COMMAND_STRUCTURE,
            message=f"Expected Command, got {type(command).__name__}.",
        )

    if context is None or not isinstance(context, CommandContextProtocol):
        raise CommandValidationError(
            code=ReasonCode.INVALID_CONTEXT,
            message="Commands require a BusinessContext-compatible context.",
        )
    if not context.has_active_context():
        raise CommandValidationError(
            code=ReasonCode.NO_ACTIVE_CONTEXT,
            message="No active business context.",
        )

    lifecycle_state = context.get_business_lifecycle_state()
    if lifecycle_state in BLOCKED_LIFECYCLE_STATES:
        raise CommandValidationError(
            code=f"BUSINESS_{lifecycle_state}",
            message=f"Business is {lifecycle_state}. Operations not permitted.",
        )

    active_business_id = context.get_active_business_id()
    if command.business_id != active_business_id:
        raise CommandValidationError(
            code=ReasonCode.BUSINESS_ID_MISMATCH,
            message=(
                f"Command business_id ({command.business_id}) does not "
                f"match active context ({active_business_id})."
            ),
        )

    if (
        command.scope_requirement == SCOPE_BRANCH_REQUIRED
        and command.branch_id is None
    ):
        raise CommandValidationError(
            code=ReasonCode.BRANCH_REQUIRED_MISSING,
            message="branch_id is required for branch-scoped commands.",
        )

    if command.branch_id is not None and not context.is_branch_in_business(
        command.branch_id, command.business_id
    ):
        raise CommandValidationError(
            code=ReasonCode.BRANCH_NOT_IN_BUSINESS,
            message=(
                f"branch_id ({command.branch_id}) does not belong to "
                f"business_id ({command.business_id})."
            ),
        )

    if command.actor_type not in VALID_ACTOR_TYPES:
        raise CommandValidationError(
            code=ReasonCode.INVALID_ACTOR,
            message=f"actor_type '{command.actor_type}' not valid.",
        )

    segments = command.command_type.split(".")
    if (
        not command.command_type.endswith(COMMAND_SUFFIX)
        or len(segments) < MIN_COMMAND_SEGMENTS
    ):
        raise CommandValidationError(
            code=ReasonCode.INVALID_COMMAND_TYPE,
            message=(
                f"command_type '{command.command_type}' must follow "
                f"engine.domain.action.request."
            ),
        )
    if segments[0] != command.source_engine:
        raise CommandValidationError(
            code=ReasonCode.INVALID_NAMESPACE,
            message=(
                f"command_type namespace '{segments[0]}' does not match "
                f"source_engine '{command.source_engine}'."
            ),
        )
