"""
BizzyTrack Django Adapter Wiring
=================================
Constructs HttpApiDependencies for local runs: one in-memory event
store and one projection store per engine, shared by every business,
with services and a command bus built lazily per business.
"""

from __future__ import annotations

import threading
import uuid

from core.audit import AuditLog
from core.commands.bus import CommandBus
from core.commands.dispatcher import CommandDispatcher, ai_execution_guard
from core.config.rules import InMemoryConfigStore
from core.context.business_context import BusinessContext
from core.events import EventTypeRegistry, InMemoryEventStore, build_event
from core.http_api.dependencies import (
    BusinessServices,
    HttpApiDependencies,
    UuidIdProvider,
)
from core.time import SystemClock
from engines.accounting.services import AccountingProjectionStore, AccountingService
from engines.department.services import DepartmentProjectionStore, DepartmentService
from engines.pricing.services import PricingProjectionStore, PricingService


_DEPENDENCIES_LOCK = threading.Lock()
_DEPENDENCIES: HttpApiDependencies | None = None


class ServiceRegistry:
    """Per-business service bundles over shared stores."""

    def __init__(
        self,
        *,
        event_store: InMemoryEventStore | None = None,
        config_store: InMemoryConfigStore | None = None,
    ):
        self.event_store = event_store or InMemoryEventStore()
        self.config_store = config_store or InMemoryConfigStore()
        self.event_type_registry = EventTypeRegistry()
        self.audit_log = AuditLog()
        self.pricing_projection = PricingProjectionStore()
        self.department_projection = DepartmentProjectionStore()
        self.accounting_projection = AccountingProjectionStore()
        self._bundles: dict[uuid.UUID, BusinessServices] = {}
        self._lock = threading.Lock()

    def __call__(self, business_id: uuid.UUID) -> BusinessServices:
        with self._lock:
            bundle = self._bundles.get(business_id)
            if bundle is None:
                bundle = self._build(business_id)
                self._bundles[business_id] = bundle
            return bundle

    def _build(self, business_id: uuid.UUID) -> BusinessServices:
        context = BusinessContext(business_id=business_id)
        dispatcher = CommandDispatcher(context=context)
        dispatcher.register_policy(ai_execution_guard)
        command_bus = CommandBus(
            dispatcher=dispatcher,
            persist_event=self.event_store.persist,
            context=context,
            event_type_registry=self.event_type_registry,
        )
        shared = dict(
            business_context=context,
            command_bus=command_bus,
            event_factory=build_event,
            persist_event=self.event_store.persist,
            event_type_registry=self.event_type_registry,
            audit_log=self.audit_log,
        )
        pricing = PricingService(
            projection_store=self.pricing_projection,
            config_store=self.config_store,
            **shared,
        )
        department = DepartmentService(
            projection_store=self.department_projection, **shared,
        )
        accounting = AccountingService(
            projection_store=self.accounting_projection, **shared,
        )
        for service in (pricing, department, accounting):
            for policy in service.policies:
                dispatcher.register_policy(policy)

        return BusinessServices(
            business_context=context,
            command_bus=command_bus,
            pricing=pricing,
            department=department,
            accounting=accounting,
        )


def _create_dependencies() -> HttpApiDependencies:
    return HttpApiDependencies(
        services_for=ServiceRegistry(),
        id_provider=UuidIdProvider(),
        clock=SystemClock(),
    )


def build_dependencies() -> HttpApiDependencies:
    """
    Lazy singleton wiring for adapter runtime.
    """
    global _DEPENDENCIES
    with _DEPENDENCIES_LOCK:
        if _DEPENDENCIES is None:
            _DEPENDENCIES = _create_dependencies()
        return _DEPENDENCIES


def reset_dependencies() -> None:
    global _DEPENDENCIES
    with _DEPENDENCIES_LOCK:
        _DEPENDENCIES = None
