"""
BizzyTrack Command Layer
==========================
Every action begins as a Command and produces exactly one Outcome.
"""

from core.commands.base import (
    Command,
    VALID_ACTOR_TYPES,
    build_command,
    derive_rejection_event_type,
    derive_source_engine,
)
from core.commands.outcomes import CommandOutcome, CommandStatus
from core.commands.rejection import CommandRejected, ReasonCode, RejectionReason
from core.commands.validator import (
    CommandContextProtocol,
    CommandValidationError,
    validate_command,
)
from core.commands.request_validation import (
    FieldError,
    FieldErrors,
    RequestValidationError,
)
from core.commands.dispatcher import (
    CommandDispatcher,
    PolicyEvaluator,
    ai_execution_guard,
    bind_projection_policy,
)
from core.commands.bus import (
    CommandBus,
    CommandBusError,
    CommandResult,
    NoHandlerRegistered,
    is_persist_accepted,
)

__all__ = [
    "Command",
    "VALID_ACTOR_TYPES",
    "build_command",
    "derive_rejection_event_type",
    "derive_source_engine",
    "CommandOutcome",
    "CommandStatus",
    "RejectionReason",
    "CommandRejected",
    "ReasonCode",
    "CommandContextProtocol",
    "CommandValidationError",
    "validate_command",
    "FieldError",
    "FieldErrors",
    "RequestValidationError",
    "CommandDispatcher",
    "PolicyEvaluator",
    "ai_execution_guard",
    "bind_projection_policy",
    "CommandBus",
    "CommandBusError",
    "CommandResult",
    "NoHandlerRegistered",
    "is_persist_accepted",
]
