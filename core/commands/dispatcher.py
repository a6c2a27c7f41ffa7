"""
BizzyTrack Command Layer — Command Dispatcher
===============================================
Command → validation → policies → CommandOutcome.

The dispatcher only decides. It does not persist, execute or touch
projections. Policies are callables ``(command, context)`` returning
``None`` (pass) or a ``RejectionReason``; they run in registration
order and the first rejection wins.
"""

from __future__ import annotations

import logging
from typing import Callable, List, Optional

from core.commands.base import Command
from core.commands.outcomes import CommandOutcome
from core.commands.rejection import ReasonCode, RejectionReason
from core.commands.validator import (
    CommandContextProtocol,
    CommandValidationError,
    validate_command,
)
from core.time import Clock, SystemClock

logger = logging.getLogger("bizzytrack.commands")


PolicyEvaluator = Callable[
    [Command, CommandContextProtocol],
    Optional[RejectionReason],
]


def ai_execution_guard(
    command: Command, context: CommandContextProtocol
) -> Optional[RejectionReason]:
    """AI actors are advisory only and never execute state changes."""
    if command.actor_type == "AI":
        return RejectionReason(
            code=ReasonCode.AI_EXECUTION_FORBIDDEN,
            message="AI actors cannot execute operational commands.",
            policy_name="ai_execution_guard",
        )
    return None


class CommandDispatcher:
    """
    Usage:
        dispatcher = CommandDispatcher(context=business_context)
        dispatcher.register_policy(ai_execution_guard)
        outcome = dispatcher.dispatch(command)

    ``clock`` stamps outcomes; it defaults to the system clock.
    """

    def __init__(
        self,
        context: CommandContextProtocol,
        clock: Optional[Clock] = None,
    ):
        self._context = context
        self._clock = clock or SystemClock()
        self._policies: List[PolicyEvaluator] = []

    def register_policy(self, policy: PolicyEvaluator) -> None:
        if not callable(policy):
            raise TypeError(
                f"Policy must be callable, got {type(policy).__name__}."
            )
        self._policies.append(policy)
        logger.debug(
            "Policy registered: %s", getattr(policy, "__qualname__", policy)
        )

    def _first_rejection(self, command: Command) -> Optional[RejectionReason]:
        try:
            validate_command(command, self._context)
        except CommandValidationError as exc:
            return RejectionReason(
                code=exc.code,
                message=exc.message,
                policy_name="command_validator",
            )

        for policy in self._policies:
            rejection = policy(command, self._context)
            if rejection is None:
                continue
            if not isinstance(rejection, RejectionReason):
                raise TypeError(
                    f"Policy must return RejectionReason or None, "
                    f"got {type(rejection).__name__}."
                )
            return rejection
        return None

    def dispatch(self, command: Command) -> CommandOutcome:
        now = self._clock.now_utc()
        rejection = self._first_rejection(command)
        if rejection is None:
            logger.info("Command %s ACCEPTED", command.command_id)
            return CommandOutcome.accepted(command.command_id, now)

        logger.info(
            "Command %s rejected by '%s': [%s] %s",
            command.command_id, rejection.policy_name,
            rejection.code, rejection.message,
        )
        return CommandOutcome.rejected(command.command_id, rejection, now)


def bind_projection_policy(policy, projection) -> PolicyEvaluator:
    """
    Adapt an engine policy ``(command, projection)`` to the dispatcher
    signature ``(command, context)``.
    """
    def _bound(command: Command, context: CommandContextProtocol):
        return policy(command, projection)

    _bound.__qualname__ = getattr(policy, "__qualname__", "bound_policy")
    return _bound
