"""
BizzyTrack Actor Primitive
===========================
Captures WHO performed an action. Workflow transitions and audit
entries carry an Actor.

Actor types:
    HUMAN   — a signed-in user (cashier, manager, owner)
    SYSTEM  — automated action (migration script, scheduled job)
    DEVICE  — hardware (POS terminal)
    AI      — advisory only, never commits state
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class ActorType(Enum):
    HUMAN = "HUMAN"
    SYSTEM = "SYSTEM"
    DEVICE = "DEVICE"
    AI = "AI"


@dataclass(frozen=True)
class Actor:
    actor_type: ActorType
    actor_id: str
    display_name: Optional[str] = None

    def __post_init__(self):
        if not isinstance(self.actor_type, ActorType):
            raise ValueError("actor_type must be ActorType enum.")
        if not self.actor_id or not isinstance(self.actor_id, str):
            raise ValueError("actor_id must be a non-empty string.")

    @property
    def can_commit_state(self) -> bool:
        return self.actor_type != ActorType.AI

    def to_dict(self) -> dict:
        return {
            "actor_type": self.actor_type.value,
            "actor_id": self.actor_id,
            "display_name": self.display_name,
        }

    @classmethod
    def from_dict(cls, data: dict) -> Actor:
        return cls(
            actor_type=ActorType(data["actor_type"]),
            actor_id=data["actor_id"],
            display_name=data.get("display_name"),
        )

    @classmethod
    def human(cls, user_id: str, display_name: Optional[str] = None) -> Actor:
        return cls(ActorType.HUMAN, user_id, display_name)

    @classmethod
    def system(cls, component: str) -> Actor:
        return cls(ActorType.SYSTEM, component, component)

    @classmethod
    def device(cls, device_id: str) -> Actor:
        return cls(ActorType.DEVICE, device_id)

    @classmethod
    def ai(cls, advisor: str) -> Actor:
        return cls(ActorType.AI, advisor)
