"""
BizzyTrack Events — Event Type Registry
========================================
Controls which event types may be persisted.

Rules:
- Registry starts empty; engines register their types at wiring time.
- Format: engine.domain.action (e.g. pricing.rule.created.v1).
- Unregistered types are rejected by the store.
"""

from threading import Lock


class EventTypeRegistry:
    """
    Usage:
        registry = EventTypeRegistry()
        registry.register("pricing.rule.created.v1")
        registry.is_registered("pricing.rule.created.v1")  # True
    """

    def __init__(self):
        self._registered_types: set[str] = set()
        self._lock = Lock()

    def register(self, event_type: str) -> None:
        if not event_type or not isinstance(event_type, str):
            raise ValueError("Event type must be a non-empty string.")

        parts = event_type.strip().split(".")
        if len(parts) < 3:
            raise ValueError(
                f"Event type '{event_type}' does not follow "
                f"engine.domain.action format."
            )

        with self._lock:
            self._registered_types.add(event_type)

    def is_registered(self, event_type: str) -> bool:
        with self._lock:
            return event_type in self._registered_types

    def count(self) -> int:
        with self._lock:
            return len(self._registered_types)
