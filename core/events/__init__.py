"""
BizzyTrack Events — Public API
===============================
Event type registry, event factory and in-memory store.
"""

from core.events.errors import (
    EventStoreError,
    PersistRejection,
    PersistRejectionCode,
    PersistResult,
)
from core.events.registry import EventTypeRegistry
from core.events.store import InMemoryEventStore, build_event

__all__ = [
    "EventStoreError",
    "EventTypeRegistry",
    "InMemoryEventStore",
    "PersistRejection",
    "PersistRejectionCode",
    "PersistResult",
    "build_event",
]
