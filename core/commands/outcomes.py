"""
BizzyTrack Command Layer — Command Outcome
============================================
The dispatcher's verdict on one command. Rejections always say why;
acceptances never carry a reason.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from core.commands.rejection import RejectionReason


class CommandStatus(Enum):
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"


@dataclass(frozen=True)
class CommandOutcome:
    command_id: uuid.UUID
    status: CommandStatus
    reason: Optional[RejectionReason]
    occurred_at: datetime

    def __post_init__(self):
        if not isinstance(self.command_id, uuid.UUID):
            raise ValueError("command_id must be UUID.")
        if not isinstance(self.status, CommandStatus):
            raise ValueError(
                f"status must be CommandStatus, got {type(self.status).__name__}."
            )
        if (self.status is CommandStatus.REJECTED) != (self.reason is not None):
            raise ValueError(
                "A RejectionReason is required for REJECTED outcomes "
                "and forbidden for ACCEPTED ones."
            )
        if not isinstance(self.occurred_at, datetime):
            raise ValueError("occurred_at must be a datetime.")

    @classmethod
    def accepted(cls, command_id: uuid.UUID, at: datetime) -> CommandOutcome:
        return cls(command_id, CommandStatus.ACCEPTED, None, at)

    @classmethod
    def rejected(
        cls, command_id: uuid.UUID, reason: RejectionReason, at: datetime
    ) -> CommandOutcome:
        return cls(command_id, CommandStatus.REJECTED, reason, at)

    @property
    def is_accepted(self) -> bool:
        return self.status is CommandStatus.ACCEPTED

    @property
    def is_rejected(self) -> bool:
        return self.status is CommandStatus.REJECTED

    def to_dict(self) -> dict:
        return {
            "command_id": str(self.command_id),
            "status": self.status.value,
            "reason": None if self.reason is None else {
                "code": self.reason.code,
                "message": self.reason.message,
                "policy_name": self.reason.policy_name,
            },
            "occurred_at": self.occurred_at.isoformat(),
        }
