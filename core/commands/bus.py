"""
BizzyTrack Command Layer — Command Bus
========================================
Orchestrates the command lifecycle:

    1. dispatch → CommandOutcome
    2. ACCEPTED → registered engine handler ``.execute(command)``
    3. REJECTED → rejection event persisted through ``persist_event``

Every command leaves a trace: either the engine's event or a
``<engine>.<domain>.<action>.rejected`` event.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, Protocol

from core.commands.base import Command, derive_rejection_event_type
from core.commands.dispatcher import CommandDispatcher
from core.commands.outcomes import CommandOutcome

logger = logging.getLogger("bizzytrack.commands")


class EngineServiceProtocol(Protocol):
    def execute(self, command: Command) -> Any:
        ...


class PersistEventProtocol(Protocol):
    def __call__(
        self, *, event_data: dict, context: Any, registry: Any, **kwargs: Any,
    ) -> Any:
        ...


class CommandBusError(Exception):
    """Base error for command bus operations."""


class NoHandlerRegistered(CommandBusError):
    def __init__(self, command_type: str):
        self.command_type = command_type
        super().__init__(
            f"No engine service handler registered for '{command_type}'."
        )


class CommandResult:
    def __init__(
        self,
        outcome: CommandOutcome,
        execution_result: Any = None,
        rejection_event_persisted: bool = False,
    ):
        self.outcome = outcome
        self.execution_result = execution_result
        self.rejection_event_persisted = rejection_event_persisted

    @property
    def is_accepted(self) -> bool:
        return self.outcome.is_accepted

    @property
    def is_rejected(self) -> bool:
        return self.outcome.is_rejected


def is_persist_accepted(persist_result: Any) -> bool:
    """Persist callables may return an object, a dict or a bool."""
    if hasattr(persist_result, "accepted"):
        return bool(getattr(persist_result, "accepted"))
    if isinstance(persist_result, dict):
        return bool(persist_result.get("accepted"))
    return bool(persist_result)


class CommandBus:
    """
    Usage:
        bus = CommandBus(dispatcher=dispatcher, persist_event=store.persist,
                         context=context, event_type_registry=registry)
        bus.register_handler("pricing.rule.create.request", handler)
        result = bus.handle(command)
    """

    def __init__(
        self,
        dispatcher: CommandDispatcher,
        persist_event: PersistEventProtocol,
        context: Any,
        event_type_registry: Any,
    ):
        self._dispatcher = dispatcher
        self._persist_event = persist_event
        self._context = context
        self._event_type_registry = event_type_registry
        self._handlers: Dict[str, EngineServiceProtocol] = {}

    @property
    def dispatcher(self) -> CommandDispatcher:
        return self._dispatcher

    def register_handler(
        self, command_type: str, handler: EngineServiceProtocol
    ) -> None:
        if not command_type.endswith(".request"):
            raise ValueError(
                f"command_type '{command_type}' must end with '.request'."
            )
        if not callable(getattr(handler, "execute", None)):
            raise TypeError("Handler must have callable .execute() method.")
        self._handlers[command_type] = handler
        logger.debug("Handler registered: %s", command_type)

    def has_handler(self, command_type: str) -> bool:
        return command_type in self._handlers

    def handle(self, command: Command) -> CommandResult:
        outcome = self._dispatcher.dispatch(command)
        if outcome.is_accepted:
            return self._handle_accepted(command, outcome)
        return self._handle_rejected(command, outcome)

    def _handle_accepted(
        self, command: Command, outcome: CommandOutcome
    ) -> CommandResult:
        handler = self._handlers.get(command.command_type)
        if handler is None:
            raise NoHandlerRegistered(command.command_type)

        logger.info(
            "Executing command %s (%s)", command.command_id, command.command_type
        )
        return CommandResult(
            outcome=outcome, execution_result=handler.execute(command)
        )

    def _handle_rejected(
        self, command: Command, outcome: CommandOutcome
    ) -> CommandResult:
        rejection_event_type = derive_rejection_event_type(command.command_type)
        registry = self._event_type_registry
        if registry is not None and not registry.is_registered(rejection_event_type):
            registry.register(rejection_event_type)

        event_data = {
            "event_id": uuid.uuid4(),
            "event_type": rejection_event_type,
            "business_id": command.business_id,
            "branch_id": command.branch_id,
            "source_engine": command.source_engine,
            "actor_type": command.actor_type,
            "actor_id": command.actor_id,
            "correlation_id": command.correlation_id,
            "payload": {
                "command_id": str(command.command_id),
                "command_type": command.command_type,
                "rejection": outcome.reason.to_dict(),
                "original_payload": command.payload,
            },
            "created_at": outcome.occurred_at,
        }

        logger.info(
            "Persisting %s for command %s (reason: %s)",
            rejection_event_type, command.command_id, outcome.reason.code,
        )
        persist_result = self._persist_event(
            event_data=event_data,
            context=self._context,
            registry=registry,
            scope_requirement=command.scope_requirement,
        )
        return CommandResult(
            outcome=outcome,
            rejection_event_persisted=is_persist_accepted(persist_result),
        )
