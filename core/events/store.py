"""
BizzyTrack Events — In-Memory Event Store
==========================================
Append-only event log used by the HTTP adapter and by tests.

``persist`` follows the engine ``persist_event`` contract:

    persist(event_data=..., context=..., registry=..., **kwargs)
        → PersistResult(accepted, rejection)

Events are rejected (never raised) when the type is unregistered,
required fields are missing, the event belongs to another tenant, or
the event id was already stored.

``atomic()`` groups several persists: if the block raises, every event
appended inside it is discarded.
"""

from __future__ import annotations

import copy
import logging
import threading
import uuid
from contextlib import contextmanager
from typing import Any, Iterator, Optional

from core.events.errors import (
    PersistRejection,
    PersistRejectionCode,
    PersistResult,
)

logger = logging.getLogger("bizzytrack.events")

REQUIRED_EVENT_FIELDS = (
    "event_id",
    "event_type",
    "business_id",
    "source_engine",
    "actor_type",
    "actor_id",
    "payload",
    "created_at",
)


def build_event(*, command, event_type: str, payload: dict) -> dict[str, Any]:
    """Event factory: turns an accepted command into an event dict."""
    return {
        "event_id": uuid.uuid4(),
        "event_type": event_type,
        "event_version": 1,
        "business_id": command.business_id,
        "branch_id": command.branch_id,
        "source_engine": command.source_engine,
        "actor_type": command.actor_type,
        "actor_id": command.actor_id,
        "correlation_id": command.correlation_id,
        "causation_id": command.command_id,
        "payload": dict(payload),
        "created_at": command.issued_at,
    }


def _reject(code: str, message: str) -> PersistResult:
    return PersistResult(
        accepted=False,
        rejection=PersistRejection(code=code, message=message),
    )


class InMemoryEventStore:
    def __init__(self):
        self._events: list[dict[str, Any]] = []
        self._event_ids: set = set()
        self._lock = threading.RLock()

    def persist(
        self,
        event_data: dict[str, Any],
        context: Any,
        registry: Any,
        **kwargs: Any,
    ) -> PersistResult:
        missing = [f for f in REQUIRED_EVENT_FIELDS if f not in event_data]
        if missing:
            return _reject(
                PersistRejectionCode.INVALID_EVENT_STRUCTURE,
                f"Event is missing fields: {', '.join(missing)}.",
            )

        event_type = event_data["event_type"]
        if registry is not None and not registry.is_registered(event_type):
            return _reject(
                PersistRejectionCode.UNREGISTERED_EVENT_TYPE,
                f"Event type '{event_type}' is not registered.",
            )

        if context is not None:
            active = context.get_active_business_id()
            if event_data["business_id"] != active:
                return _reject(
                    PersistRejectionCode.BUSINESS_ID_MISMATCH,
                    f"Event business_id ({event_data['business_id']}) does "
                    f"not match active context ({active}).",
                )

        with self._lock:
            if event_data["event_id"] in self._event_ids:
                return _reject(
                    PersistRejectionCode.DUPLICATE_EVENT,
                    f"Event {event_data['event_id']} already stored.",
                )
            self._events.append(copy.deepcopy(event_data))
            self._event_ids.add(event_data["event_id"])

        logger.debug("Persisted %s (%s)", event_type, event_data["event_id"])
        return PersistResult(accepted=True)

    __call__ = persist

    @contextmanager
    def atomic(self) -> Iterator[None]:
        with self._lock:
            mark = len(self._events)
            try:
                yield
            except Exception:
                discarded = self._events[mark:]
                del self._events[mark:]
                for event in discarded:
                    self._event_ids.discard(event["event_id"])
                logger.warning(
                    "Rolled back %d event(s) after failure", len(discarded)
                )
                raise

    def events(
        self,
        business_id: Optional[uuid.UUID] = None,
        event_type: Optional[str] = None,
    ) -> tuple[dict[str, Any], ...]:
        with self._lock:
            selected = [
                e for e in self._events
                if (business_id is None or e["business_id"] == business_id)
                and (event_type is None or e["event_type"] == event_type)
            ]
            return tuple(copy.deepcopy(selected))

    def count(self) -> int:
        with self._lock:
            return len(self._events)
