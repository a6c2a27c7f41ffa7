"""
BizzyTrack HTTP API — Dependencies
===================================
Injected providers for non-deterministic metadata and per-business
service wiring.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Any, Callable, Protocol

from core.time import Clock


class IdProvider(Protocol):
    def new_command_id(self) -> uuid.UUID:
        ...

    def new_correlation_id(self) -> uuid.UUID:
        ...


class UuidIdProvider:
    def new_command_id(self) -> uuid.UUID:
        return uuid.uuid4()

    def new_correlation_id(self) -> uuid.UUID:
        return uuid.uuid4()


@dataclass(frozen=True)
class BusinessServices:
    """Engine services bound to one business context."""
    business_context: Any
    command_bus: Any
    pricing: Any
    department: Any
    accounting: Any


@dataclass(frozen=True)
class HttpApiDependencies:
    services_for: Callable[[uuid.UUID], BusinessServices]
    id_provider: IdProvider
    clock: Clock
