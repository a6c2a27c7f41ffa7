"""
BizzyTrack Pricing Engine — Application Service
================================================
Pricing commands → events → projection, plus read-only evaluation
of the tenant's rules.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol

from core.audit import AuditLog, audit_command
from core.commands.base import Command
from core.commands.bus import is_persist_accepted
from core.commands.dispatcher import bind_projection_policy
from core.commands.rejection import CommandRejected
from core.config.rules import ConfigStore, InMemoryConfigStore
from engines.pricing.commands import PRICING_COMMAND_TYPES
from engines.pricing.evaluation import (
    ApprovalCheck,
    PricingContext,
    PricingEvaluation,
    PricingRule,
    evaluate_pricing,
    order_rules,
    pricing_stats,
    summarise_approval,
)
from engines.pricing.events import (
    PRICING_RULE_CREATED_V1,
    PRICING_RULE_DELETED_V1,
    PRICING_RULE_DUPLICATED_V1,
    PRICING_RULE_REPRIORITIZED_V1,
    PRICING_RULE_STATUS_SET_V1,
    PRICING_RULE_UPDATED_V1,
    build_rule_created_payload,
    build_rule_deleted_payload,
    build_rule_duplicated_payload,
    build_rule_reprioritized_payload,
    build_rule_status_set_payload,
    build_rule_updated_payload,
    register_pricing_event_types,
    resolve_pricing_event_type,
)
from engines.pricing.policies import PRICING_POLICIES

logger = logging.getLogger("bizzytrack.pricing")


# ══════════════════════════════════════════════════════════════
# PROTOCOLS
# ══════════════════════════════════════════════════════════════

class EventFactoryProtocol(Protocol):
    def __call__(
        self, *, command: Command, event_type: str, payload: dict,
    ) -> dict:
        ...


class PersistEventProtocol(Protocol):
    def __call__(
        self, *, event_data: dict, context: Any, registry: Any, **kwargs,
    ) -> Any:
        ...


# ══════════════════════════════════════════════════════════════
# PROJECTION STORE
# ══════════════════════════════════════════════════════════════

class PricingProjectionStore:
    """In-memory pricing rules, keyed by (business_id, rule_id)."""

    def __init__(self):
        self._events: List[dict] = []
        self._rules: Dict[tuple, PricingRule] = {}

    def apply(self, event_type: str, payload: dict) -> None:
        self._events.append({"event_type": event_type, "payload": payload})
        business_id = payload["business_id"]

        if event_type == PRICING_RULE_CREATED_V1:
            self._put(PricingRule.from_payload(payload))

        elif event_type == PRICING_RULE_UPDATED_V1:
            current = self.get_rule(business_id, payload["rule_id"])
            if current:
                merged = current.to_dict()
                merged.update(payload["changes"])
                merged["business_id"] = business_id
                self._put(PricingRule.from_payload(merged))

        elif event_type == PRICING_RULE_DELETED_V1:
            self._rules.pop((business_id, payload["rule_id"]), None)

        elif event_type == PRICING_RULE_STATUS_SET_V1:
            for rule_id in payload["rule_ids"]:
                self._replace(business_id, rule_id, is_active=payload["is_active"])

        elif event_type == PRICING_RULE_REPRIORITIZED_V1:
            for rule_id, priority in zip(payload["rule_ids"], payload["priorities"]):
                self._replace(business_id, rule_id, priority=priority)

        elif event_type == PRICING_RULE_DUPLICATED_V1:
            source = self.get_rule(business_id, payload["source_rule_id"])
            if source:
                data = source.to_dict()
                data.update({
                    "rule_id": payload["new_rule_id"],
                    "name": payload.get("new_name") or f"{source.name} (Copy)",
                    "is_active": payload.get("is_active", False),
                    "business_id": business_id,
                })
                self._put(PricingRule.from_payload(data))

    def _put(self, rule: PricingRule) -> None:
        self._rules[(rule.business_id, rule.rule_id)] = rule

    def _replace(self, business_id: uuid.UUID, rule_id: str, **changes) -> None:
        current = self.get_rule(business_id, rule_id)
        if current:
            data = current.to_dict()
            data.update(changes)
            data["business_id"] = business_id
            self._put(PricingRule.from_payload(data))

    def get_rule(self, business_id: uuid.UUID, rule_id: str) -> Optional[PricingRule]:
        return self._rules.get((business_id, rule_id))

    def list_rules(
        self,
        business_id: uuid.UUID,
        *,
        status: Optional[str] = None,
        rule_type: Optional[str] = None,
        target_entity: Optional[str] = None,
    ) -> List[PricingRule]:
        """status: 'active' | 'inactive' | None. Highest priority first."""
        rules = [r for (biz, _), r in self._rules.items() if biz == business_id]
        if status == "active":
            rules = [r for r in rules if r.is_active]
        elif status == "inactive":
            rules = [r for r in rules if not r.is_active]
        if rule_type:
            rules = [r for r in rules if r.rule_type == rule_type]
        if target_entity:
            rules = [r for r in rules if r.target_entity == target_entity]
        return order_rules(rules)

    @property
    def event_count(self) -> int:
        return len(self._events)

    def truncate(self) -> None:
        self._events.clear()
        self._rules.clear()


# ══════════════════════════════════════════════════════════════
# PAYLOAD DISPATCHER
# ══════════════════════════════════════════════════════════════

PAYLOAD_BUILDERS = {
    "pricing.rule.create.request": build_rule_created_payload,
    "pricing.rule.update.request": build_rule_updated_payload,
    "pricing.rule.delete.request": build_rule_deleted_payload,
    "pricing.rule.set_status.request": build_rule_status_set_payload,
    "pricing.rule.reprioritize.request": build_rule_reprioritized_payload,
    "pricing.rule.duplicate.request": build_rule_duplicated_payload,
}


# ══════════════════════════════════════════════════════════════
# RESULTS
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class PricingExecutionResult:
    event_type: str
    event_data: dict
    persist_result: Any
    projection_applied: bool


@dataclass(frozen=True)
class PricingQuote:
    evaluation: PricingEvaluation
    approval: ApprovalCheck

    def to_dict(self) -> dict:
        data = self.evaluation.to_dict()
        data["approval"] = self.approval.to_dict()
        return data


# ══════════════════════════════════════════════════════════════
# COMMAND HANDLER
# ══════════════════════════════════════════════════════════════

class _PricingCommandHandler:
    def __init__(self, service: "PricingService"):
        self._service = service

    def execute(self, command: Command) -> PricingExecutionResult:
        return self._service._execute_command(command)


# ══════════════════════════════════════════════════════════════
# APPLICATION SERVICE
# ══════════════════════════════════════════════════════════════

class PricingService:
    """Pricing Engine application service."""

    def __init__(
        self,
        *,
        business_context,
        command_bus,
        event_factory: EventFactoryProtocol,
        persist_event: PersistEventProtocol,
        event_type_registry,
        projection_store: PricingProjectionStore | None = None,
        config_store: ConfigStore | None = None,
        audit_log: AuditLog | None = None,
    ):
        self._business_context = business_context
        self._command_bus = command_bus
        self._event_factory = event_factory
        self._persist_event = persist_event
        self._event_type_registry = event_type_registry
        self._projection_store = projection_store or PricingProjectionStore()
        self._config_store = config_store or InMemoryConfigStore()
        self._audit_log = audit_log

        register_pricing_event_types(self._event_type_registry)
        self._register_handlers()

    def _register_handlers(self) -> None:
        handler = _PricingCommandHandler(self)
        for command_type in sorted(PRICING_COMMAND_TYPES):
            self._command_bus.register_handler(command_type, handler)

    @property
    def policies(self) -> list:
        """Dispatcher-ready policies bound to this service's projection."""
        return [
            bind_projection_policy(p, self._projection_store)
            for p in PRICING_POLICIES
        ]

    def _check_policies(self, command: Command) -> None:
        for policy in PRICING_POLICIES:
            rejection = policy(command, self._projection_store)
            if rejection is not None:
                raise CommandRejected(rejection)

    def _execute_command(self, command: Command) -> PricingExecutionResult:
        event_type = resolve_pricing_event_type(command.command_type)
        if event_type is None:
            raise ValueError(
                f"Unsupported pricing command type: {command.command_type}"
            )

        builder = PAYLOAD_BUILDERS.get(command.command_type)
        if builder is None:
            raise ValueError(f"No payload builder for: {command.command_type}")

        self._check_policies(command)
        payload = builder(command)

        event_data = self._event_factory(
            command=command,
            event_type=event_type,
            payload=payload,
        )

        persist_result = self._persist_event(
            event_data=event_data,
            context=self._business_context,
            registry=self._event_type_registry,
            scope_requirement=command.scope_requirement,
        )

        applied = False
        if is_persist_accepted(persist_result):
            self._projection_store.apply(event_type=event_type, payload=payload)
            applied = True
            if self._audit_log is not None:
                self._audit_log.record(audit_command(
                    command,
                    resource_type="pricing_rule",
                    resource_id=str(
                        payload.get("rule_id")
                        or payload.get("new_rule_id")
                        or ",".join(payload.get("rule_ids", []))
                    ),
                    event_id=event_data.get("event_id"),
                ))
        else:
            logger.warning(
                "Pricing event %s not persisted for command %s",
                event_type, command.command_id,
            )

        return PricingExecutionResult(
            event_type=event_type,
            event_data=event_data,
            persist_result=persist_result,
            projection_applied=applied,
        )

    # ── reads ─────────────────────────────────────────────────

    def evaluate(self, context: PricingContext) -> PricingEvaluation:
        business_id = self._business_context.business_id
        rules = self._projection_store.list_rules(business_id, status="active")
        evaluation = evaluate_pricing(rules, context)
        logger.info(
            "Pricing evaluated for business %s: %s → %s (%d rule(s) applied)",
            business_id,
            evaluation.original_price,
            evaluation.final_price,
            len(evaluation.applied_rules),
        )
        return evaluation

    def quote(self, context: PricingContext, user_id: str) -> PricingQuote:
        """Evaluation plus the approval check for ``user_id``."""
        business_id = self._business_context.business_id
        evaluation = self.evaluate(context)
        policy = self._config_store.get_pricing_policy(business_id)
        approval = summarise_approval(
            evaluation,
            user_discount_limit=self._config_store.get_user_discount_limit(
                business_id, user_id
            ),
            approval_threshold=policy.approval_threshold,
        )
        if approval.requires_approval:
            logger.info(
                "Discount of %s%% by %s requires approval",
                approval.total_discount_percentage, user_id,
            )
        return PricingQuote(evaluation=evaluation, approval=approval)

    def stats(self) -> dict:
        return pricing_stats(
            self._projection_store.list_rules(self._business_context.business_id)
        )

    @property
    def projection_store(self) -> PricingProjectionStore:
        return self._projection_store
