"""
BizzyTrack — Pricing Engine Service Tests
==========================================
Requests, policies, command → event → projection, evaluation reads and
the full command bus path.
"""

import uuid
from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from core.audit import AuditLog
from core.commands import (
    CommandBus,
    CommandDispatcher,
    CommandRejected,
    RequestValidationError,
)
from core.config import InMemoryConfigStore, PricingPolicyConfig
from core.context import BusinessContext
from core.events import EventTypeRegistry, InMemoryEventStore, build_event
from engines.pricing.commands import (
    PricingRuleCreateRequest,
    PricingRuleDeleteRequest,
    PricingRuleDuplicateRequest,
    PricingRuleReprioritizeRequest,
    PricingRuleStatusSetRequest,
    PricingRuleUpdateRequest,
    parse_decimal,
)
from engines.pricing.evaluation import PricingContext
from engines.pricing.events import PRICING_EVENT_TYPES
from engines.pricing.services import PricingProjectionStore, PricingService

BIZ_A = uuid.uuid4()
BIZ_B = uuid.uuid4()
NOW = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)


# ══════════════════════════════════════════════════════════════
# TEST HELPERS
# ══════════════════════════════════════════════════════════════

def kw(**overrides):
    args = dict(
        business_id=BIZ_A,
        actor_type="HUMAN",
        actor_id="manager-1",
        command_id=uuid.uuid4(),
        correlation_id=uuid.uuid4(),
        issued_at=NOW,
    )
    args.update(overrides)
    return args


class StubEventTypeRegistry:
    def __init__(self):
        self._types = set()

    def register(self, event_type: str) -> None:
        self._types.add(event_type)

    def is_registered(self, event_type: str) -> bool:
        return event_type in self._types


class StubEventFactory:
    def __call__(self, *, command, event_type, payload):
        return {
            "event_type": event_type,
            "payload": payload,
            "business_id": command.business_id,
            "source_engine": command.source_engine,
        }


class StubPersistEvent:
    def __init__(self, accepted=True):
        self.calls = []
        self.accepted = accepted

    def __call__(self, *, event_data, context, registry, **kwargs):
        self.calls.append(event_data)
        return {"accepted": self.accepted}


class StubCommandBus:
    def __init__(self):
        self.handlers = {}

    def register_handler(self, command_type, handler):
        self.handlers[command_type] = handler


def make_service(persist=None, config_store=None, audit_log=None):
    bus = StubCommandBus()
    registry = StubEventTypeRegistry()
    persist = persist or StubPersistEvent()
    service = PricingService(
        business_context=BusinessContext(business_id=BIZ_A),
        command_bus=bus,
        event_factory=StubEventFactory(),
        persist_event=persist,
        event_type_registry=registry,
        config_store=config_store,
        audit_log=audit_log,
    )
    return service, bus, persist, registry


def execute(bus, command):
    return bus.handlers[command.command_type].execute(command)


def create_request(rule_id="r-1", **overrides):
    args = dict(
        rule_id=rule_id,
        name=f"Rule {rule_id}",
        rule_type="quantity",
        adjustment_type="percentage",
        adjustment_value=Decimal("10"),
        target_entity="service",
    )
    args.update(overrides)
    return PricingRuleCreateRequest(**args)


def context(**overrides):
    args = dict(base_price=10_000, at=NOW)
    args.update(overrides)
    return PricingContext(**args)


# ══════════════════════════════════════════════════════════════
# REQUESTS
# ══════════════════════════════════════════════════════════════

class TestPricingRequests:
    def test_create_request_to_command(self):
        cmd = create_request(valid_from=date(2026, 1, 1)).to_command(**kw())
        assert cmd.command_type == "pricing.rule.create.request"
        assert cmd.source_engine == "pricing"
        assert cmd.payload["adjustment_value"] == "10"
        assert cmd.payload["valid_from"] == "2026-01-01"
        assert cmd.payload["priority"] == 50

    def test_create_request_collects_field_errors(self):
        with pytest.raises(RequestValidationError) as exc_info:
            create_request(
                name="", rule_type="loyalty", adjustment_value=Decimal("-1"),
                priority=0,
            )
        fields = {e["field"] for e in exc_info.value.to_details()["errors"]}
        assert {"name", "rule_type", "adjustment_value", "priority"} <= fields

    def test_create_request_rejects_bad_conditions(self):
        with pytest.raises(RequestValidationError):
            create_request(conditions={"min_quantity": 5, "max_quantity": 1})

    def test_percentage_over_100_rejected(self):
        with pytest.raises(RequestValidationError):
            create_request(adjustment_value=Decimal("120"))
        create_request(adjustment_type="fixed", adjustment_value=Decimal("120000"))

    def test_update_request_serialises_values(self):
        cmd = PricingRuleUpdateRequest(
            rule_id="r-1",
            changes={"adjustment_value": Decimal("7.5"),
                     "valid_until": date(2026, 12, 31)},
        ).to_command(**kw())
        assert cmd.payload["changes"] == {
            "adjustment_value": "7.5", "valid_until": "2026-12-31",
        }

    def test_update_request_rejects_unknown_fields(self):
        with pytest.raises(RequestValidationError):
            PricingRuleUpdateRequest(rule_id="r-1", changes={"colour": "red"})
        with pytest.raises(RequestValidationError):
            PricingRuleUpdateRequest(rule_id="r-1", changes={})

    def test_bulk_requests_validated(self):
        with pytest.raises(RequestValidationError):
            PricingRuleStatusSetRequest(rule_ids=("a", "a"), is_active=True)
        with pytest.raises(RequestValidationError):
            PricingRuleReprioritizeRequest(rule_ids=("a", "b"), priorities=(10,))
        with pytest.raises(RequestValidationError):
            PricingRuleDuplicateRequest(source_rule_id="a", new_rule_id="a")

    def test_parse_decimal(self):
        assert parse_decimal(12.5, "adjustment_value") == Decimal("12.5")
        with pytest.raises(ValueError, match="adjustment_value must be a number"):
            parse_decimal("ten", "adjustment_value")


# ══════════════════════════════════════════════════════════════
# SERVICE
# ══════════════════════════════════════════════════════════════

class TestPricingService:
    def test_registers_handlers_and_event_types(self):
        _, bus, _, registry = make_service()
        assert len(bus.handlers) == 6
        for event_type in PRICING_EVENT_TYPES:
            assert registry.is_registered(event_type)

    def test_create_rule(self):
        service, bus, persist, _ = make_service()
        result = execute(bus, create_request().to_command(**kw()))

        assert result.event_type == "pricing.rule.created.v1"
        assert result.projection_applied
        assert len(persist.calls) == 1
        rule = service.projection_store.get_rule(BIZ_A, "r-1")
        assert rule.adjustment_value == Decimal("10")
        assert result.event_data["payload"]["created_by"] == "manager-1"

    def test_duplicate_rule_id_rejected(self):
        _, bus, _, _ = make_service()
        execute(bus, create_request().to_command(**kw()))
        with pytest.raises(CommandRejected) as exc_info:
            execute(bus, create_request().to_command(**kw()))
        assert exc_info.value.reason.code == "PRICING_RULE_EXISTS"

    def test_update_merges_changes(self):
        service, bus, _, _ = make_service()
        execute(bus, create_request().to_command(**kw()))
        execute(bus, PricingRuleUpdateRequest(
            rule_id="r-1", changes={"priority": 80, "name": "Bulk"},
        ).to_command(**kw()))

        rule = service.projection_store.get_rule(BIZ_A, "r-1")
        assert rule.priority == 80
        assert rule.name == "Bulk"
        assert rule.adjustment_value == Decimal("10")

    def test_update_leaving_invalid_rule_rejected(self):
        _, bus, _, _ = make_service()
        execute(bus, create_request(
            adjustment_type="fixed", adjustment_value=Decimal("5000"),
        ).to_command(**kw()))
        # switching to percentage keeps 5000, which is over 100%
        with pytest.raises(CommandRejected) as exc_info:
            execute(bus, PricingRuleUpdateRequest(
                rule_id="r-1", changes={"adjustment_type": "percentage"},
            ).to_command(**kw()))
        assert exc_info.value.reason.code == "PRICING_RULE_INVALID"

    def test_missing_rule_rejected(self):
        _, bus, persist, _ = make_service()
        with pytest.raises(CommandRejected) as exc_info:
            execute(bus, PricingRuleDeleteRequest(rule_id="ghost").to_command(**kw()))
        assert exc_info.value.reason.code == "PRICING_RULE_NOT_FOUND"
        assert persist.calls == []

    def test_delete(self):
        service, bus, _, _ = make_service()
        execute(bus, create_request().to_command(**kw()))
        execute(bus, PricingRuleDeleteRequest(rule_id="r-1").to_command(**kw()))
        assert service.projection_store.get_rule(BIZ_A, "r-1") is None

    def test_bulk_status_and_reprioritize(self):
        service, bus, _, _ = make_service()
        for rule_id in ("a", "b"):
            execute(bus, create_request(rule_id).to_command(**kw()))

        execute(bus, PricingRuleStatusSetRequest(
            rule_ids=("a", "b"), is_active=False,
        ).to_command(**kw()))
        assert service.projection_store.list_rules(BIZ_A, status="active") == []

        execute(bus, PricingRuleReprioritizeRequest(
            rule_ids=("a", "b"), priorities=(10, 90),
        ).to_command(**kw()))
        ordered = service.projection_store.list_rules(BIZ_A)
        assert [r.rule_id for r in ordered] == ["b", "a"]

    def test_bulk_with_unknown_rule_rejected(self):
        _, bus, _, _ = make_service()
        execute(bus, create_request("a").to_command(**kw()))
        with pytest.raises(CommandRejected) as exc_info:
            execute(bus, PricingRuleStatusSetRequest(
                rule_ids=("a", "zzz"), is_active=True,
            ).to_command(**kw()))
        assert "zzz" in exc_info.value.reason.message

    def test_duplicate_is_inactive_copy(self):
        service, bus, _, _ = make_service()
        execute(bus, create_request("a", priority=70).to_command(**kw()))
        execute(bus, PricingRuleDuplicateRequest(
            source_rule_id="a", new_rule_id="a-copy",
        ).to_command(**kw()))

        copy = service.projection_store.get_rule(BIZ_A, "a-copy")
        assert copy.name == "Rule a (Copy)"
        assert copy.priority == 70
        assert not copy.is_active

    def test_not_persisted_means_no_projection(self):
        service, bus, _, _ = make_service(persist=StubPersistEvent(accepted=False))
        result = execute(bus, create_request().to_command(**kw()))
        assert not result.projection_applied
        assert service.projection_store.get_rule(BIZ_A, "r-1") is None

    def test_audit_entry_recorded(self):
        audit = AuditLog()
        _, bus, _, _ = make_service(audit_log=audit)
        execute(bus, create_request().to_command(**kw()))
        entries = audit.entries(BIZ_A, resource_type="pricing_rule")
        assert len(entries) == 1
        assert entries[0].resource_id == "r-1"

    def test_list_rules_filters(self):
        service, bus, _, _ = make_service()
        execute(bus, create_request("a").to_command(**kw()))
        execute(bus, create_request(
            "b", rule_type="bundle", target_entity="package",
        ).to_command(**kw()))
        store = service.projection_store
        assert [r.rule_id for r in store.list_rules(BIZ_A, rule_type="bundle")] == ["b"]
        assert [r.rule_id for r in store.list_rules(BIZ_A, target_entity="service")] == ["a"]
        assert store.list_rules(BIZ_B) == []


class TestPricingReads:
    def test_evaluate_uses_active_rules_only(self):
        service, bus, _, _ = make_service()
        execute(bus, create_request("on").to_command(**kw()))
        execute(bus, create_request("off", is_active=False).to_command(**kw()))

        evaluation = service.evaluate(context())
        assert [a.rule_id for a in evaluation.applied_rules] == ["on"]
        assert evaluation.final_price == 9_000

    def test_quote_uses_configured_limits(self):
        config = InMemoryConfigStore()
        config.set_pricing_policy(BIZ_A, PricingPolicyConfig(
            approval_threshold=Decimal("50"),
        ))
        config.set_user_discount_limit(BIZ_A, "cashier-1", Decimal("5"))
        service, bus, _, _ = make_service(config_store=config)
        execute(bus, create_request().to_command(**kw()))

        quote = service.quote(context(), "cashier-1").to_dict()
        assert quote["final_price"] == 9_000
        assert quote["approval"]["requires_approval"] is True
        assert quote["approval"]["exceeds_limit"] is True

        default_user = service.quote(context(), "manager-1").to_dict()
        assert default_user["approval"]["requires_approval"] is False

    def test_stats(self):
        service, bus, _, _ = make_service()
        execute(bus, create_request("a").to_command(**kw()))
        execute(bus, create_request("b", is_active=False).to_command(**kw()))
        stats = service.stats()
        assert stats["total_rules"] == 2
        assert stats["active_rules"] == 1


# ══════════════════════════════════════════════════════════════
# FULL STACK
# ══════════════════════════════════════════════════════════════

class TestPricingThroughCommandBus:
    @pytest.fixture
    def stack(self):
        context_ = BusinessContext(business_id=BIZ_A)
        registry = EventTypeRegistry()
        store = InMemoryEventStore()
        dispatcher = CommandDispatcher(context_)
        bus = CommandBus(dispatcher, store, context_, registry)
        service = PricingService(
            business_context=context_,
            command_bus=bus,
            event_factory=build_event,
            persist_event=store,
            event_type_registry=registry,
            projection_store=PricingProjectionStore(),
        )
        for policy in service.policies:
            dispatcher.register_policy(policy)
        return bus, store, service

    def test_accepted_command_persists_event(self, stack):
        bus, store, service = stack
        result = bus.handle(create_request().to_command(**kw()))

        assert result.is_accepted
        assert result.execution_result.projection_applied
        events = store.events(BIZ_A, "pricing.rule.created.v1")
        assert len(events) == 1
        assert events[0]["source_engine"] == "pricing"

    def test_policy_rejection_persists_rejection_event(self, stack):
        bus, store, _ = stack
        bus.handle(create_request().to_command(**kw()))
        result = bus.handle(create_request().to_command(**kw()))

        assert result.is_rejected
        assert result.outcome.reason.code == "PRICING_RULE_EXISTS"
        assert result.rejection_event_persisted
        rejected = store.events(BIZ_A, "pricing.rule.create.rejected")
        assert rejected[0]["payload"]["rejection"]["code"] == "PRICING_RULE_EXISTS"

    def test_foreign_tenant_command_rejected(self, stack):
        bus, store, service = stack
        result = bus.handle(create_request().to_command(**kw(business_id=BIZ_B)))
        assert result.is_rejected
        assert service.projection_store.get_rule(BIZ_B, "r-1") is None
