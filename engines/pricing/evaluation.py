"""
BizzyTrack Pricing Engine — Rule Evaluation
============================================
Pure, deterministic evaluation of a tenant's pricing rules.

A rule applies when it is active, inside its validity window, its
rule-type conditions hold, and its target (when set) matches the
context. Matching rules are applied one after another on the running
price, highest priority first (ties broken by rule_id).

Prices are integer minor units. Percentages are Decimal and every
adjusted price is rounded half-up back to minor units, never below 0.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, time
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, List, Optional, Sequence, Tuple

from core.config.rules import (
    DEFAULT_RULE_PRIORITY,
    MAX_RULE_PRIORITY,
    MIN_RULE_PRIORITY,
)


RULE_TYPES = ("customer_category", "quantity", "time_based", "bundle")
ADJUSTMENT_TYPES = ("percentage", "fixed", "override")
TARGET_ENTITIES = ("service", "package", "customer", "category")

_PERCENT_PLACES = Decimal("0.01")


def _to_minor(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def parse_time_of_day(value: str) -> time:
    """'9:05' / '09:05' → time(9, 5). Raises ValueError otherwise."""
    try:
        hours, minutes = value.split(":")
        return time(int(hours), int(minutes))
    except (AttributeError, TypeError, ValueError) as exc:
        raise ValueError(f"time of day must be HH:MM, got {value!r}.") from exc


def _parse_date(value) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def js_day_of_week(at: datetime) -> int:
    """0 = Sunday … 6 = Saturday."""
    return (at.weekday() + 1) % 7


# ══════════════════════════════════════════════════════════════
# RULE MODEL
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class RuleConditions:
    customer_category_id: Optional[str] = None
    min_quantity: Optional[int] = None
    max_quantity: Optional[int] = None
    min_total_amount: Optional[int] = None
    day_of_week: Tuple[int, ...] = ()
    time_of_day_start: Optional[str] = None
    time_of_day_end: Optional[str] = None
    package_id: Optional[str] = None
    service_ids: Tuple[str, ...] = ()

    def __post_init__(self):
        for name in ("min_quantity", "max_quantity", "min_total_amount"):
            value = getattr(self, name)
            if value is not None and (not isinstance(value, int) or value < 0):
                raise ValueError(f"{name} must be a non-negative integer.")
        if (
            self.min_quantity is not None
            and self.max_quantity is not None
            and self.min_quantity > self.max_quantity
        ):
            raise ValueError("min_quantity cannot exceed max_quantity.")
        for day in self.day_of_week:
            if not isinstance(day, int) or not 0 <= day <= 6:
                raise ValueError("day_of_week values must be integers 0..6.")
        for name in ("time_of_day_start", "time_of_day_end"):
            value = getattr(self, name)
            if value is not None:
                parse_time_of_day(value)

    def to_dict(self) -> dict:
        data = {
            "customer_category_id": self.customer_category_id,
            "min_quantity": self.min_quantity,
            "max_quantity": self.max_quantity,
            "min_total_amount": self.min_total_amount,
            "day_of_week": list(self.day_of_week),
            "time_of_day_start": self.time_of_day_start,
            "time_of_day_end": self.time_of_day_end,
            "package_id": self.package_id,
            "service_ids": list(self.service_ids),
        }
        return {k: v for k, v in data.items() if v not in (None, [])}

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> RuleConditions:
        data = data or {}
        return cls(
            customer_category_id=data.get("customer_category_id"),
            min_quantity=data.get("min_quantity"),
            max_quantity=data.get("max_quantity"),
            min_total_amount=data.get("min_total_amount"),
            day_of_week=tuple(data.get("day_of_week") or ()),
            time_of_day_start=data.get("time_of_day_start"),
            time_of_day_end=data.get("time_of_day_end"),
            package_id=data.get("package_id"),
            service_ids=tuple(data.get("service_ids") or ()),
        )


@dataclass(frozen=True)
class PricingRule:
    """
    adjustment_value is a percentage for ``percentage`` rules and an
    amount in minor units for ``fixed`` and ``override`` rules.
    """
    rule_id: str
    business_id: uuid.UUID
    name: str
    rule_type: str
    adjustment_type: str
    adjustment_value: Decimal
    target_entity: str
    conditions: RuleConditions = field(default_factory=RuleConditions)
    description: str = ""
    target_id: Optional[str] = None
    priority: int = DEFAULT_RULE_PRIORITY
    is_active: bool = True
    valid_from: Optional[date] = None
    valid_until: Optional[date] = None

    def __post_init__(self):
        if not self.rule_id:
            raise ValueError("rule_id must be non-empty.")
        if self.rule_type not in RULE_TYPES:
            raise ValueError(f"rule_type '{self.rule_type}' not valid.")
        if self.adjustment_type not in ADJUSTMENT_TYPES:
            raise ValueError(f"adjustment_type '{self.adjustment_type}' not valid.")
        if self.target_entity not in TARGET_ENTITIES:
            raise ValueError(f"target_entity '{self.target_entity}' not valid.")
        if not isinstance(self.adjustment_value, Decimal):
            raise TypeError("adjustment_value must be Decimal.")
        if self.adjustment_value < 0:
            raise ValueError("adjustment_value must not be negative.")
        if self.adjustment_type == "percentage" and self.adjustment_value > 100:
            raise ValueError("percentage adjustment_value cannot exceed 100.")
        if not MIN_RULE_PRIORITY <= self.priority <= MAX_RULE_PRIORITY:
            raise ValueError(
                f"priority must be between {MIN_RULE_PRIORITY} and "
                f"{MAX_RULE_PRIORITY}, got {self.priority}."
            )
        if (
            self.valid_from is not None
            and self.valid_until is not None
            and self.valid_from > self.valid_until
        ):
            raise ValueError("valid_from cannot be after valid_until.")

    @classmethod
    def from_payload(cls, payload: dict) -> PricingRule:
        return cls(
            rule_id=payload["rule_id"],
            business_id=payload["business_id"],
            name=payload["name"],
            rule_type=payload["rule_type"],
            adjustment_type=payload["adjustment_type"],
            adjustment_value=Decimal(str(payload["adjustment_value"])),
            target_entity=payload["target_entity"],
            conditions=RuleConditions.from_dict(payload.get("conditions")),
            description=payload.get("description", ""),
            target_id=payload.get("target_id"),
            priority=payload.get("priority", DEFAULT_RULE_PRIORITY),
            is_active=payload.get("is_active", True),
            valid_from=_parse_date(payload.get("valid_from")),
            valid_until=_parse_date(payload.get("valid_until")),
        )

    def to_dict(self) -> dict:
        return {
            "rule_id": self.rule_id,
            "business_id": str(self.business_id),
            "name": self.name,
            "description": self.description,
            "rule_type": self.rule_type,
            "conditions": self.conditions.to_dict(),
            "adjustment_type": self.adjustment_type,
            "adjustment_value": str(self.adjustment_value),
            "target_entity": self.target_entity,
            "target_id": self.target_id,
            "priority": self.priority,
            "is_active": self.is_active,
            "valid_from": self.valid_from.isoformat() if self.valid_from else None,
            "valid_until": self.valid_until.isoformat() if self.valid_until else None,
        }


@dataclass(frozen=True)
class PricingContext:
    base_price: int
    at: datetime
    quantity: int = 1
    customer_category_id: Optional[str] = None
    service_id: Optional[str] = None
    package_id: Optional[str] = None
    customer_id: Optional[str] = None
    category_id: Optional[str] = None

    def __post_init__(self):
        if isinstance(self.base_price, bool) or not isinstance(self.base_price, int):
            raise TypeError("base_price must be int (minor units).")
        if self.base_price <= 0:
            raise ValueError("base_price must be positive.")
        if not isinstance(self.quantity, int) or self.quantity < 1:
            raise ValueError("quantity must be an integer >= 1.")
        if not isinstance(self.at, datetime):
            raise TypeError("at must be datetime.")

    @property
    def base_total(self) -> int:
        return self.base_price * self.quantity


@dataclass(frozen=True)
class AppliedRule:
    rule_id: str
    rule_name: str
    rule_type: str
    adjustment_type: str
    adjustment_value: Decimal
    price_before: int
    new_price: int

    def to_dict(self) -> dict:
        return {
            "rule_id": self.rule_id,
            "rule_name": self.rule_name,
            "rule_type": self.rule_type,
            "adjustment_type": self.adjustment_type,
            "adjustment_value": str(self.adjustment_value),
            "price_before": self.price_before,
            "new_price": self.new_price,
        }


@dataclass(frozen=True)
class PricingEvaluation:
    original_price: int
    final_price: int
    quantity: int
    applied_rules: Tuple[AppliedRule, ...] = ()

    @property
    def total_amount(self) -> int:
        return self.final_price * self.quantity

    @property
    def total_discount(self) -> int:
        """Per-unit discount; negative when rules raised the price."""
        return self.original_price - self.final_price

    @property
    def total_discount_percentage(self) -> Decimal:
        """Zero when rules raised the price."""
        if self.total_discount <= 0:
            return Decimal("0.00")
        percentage = Decimal(self.total_discount) * 100 / Decimal(self.original_price)
        return percentage.quantize(_PERCENT_PLACES, rounding=ROUND_HALF_UP)

    def to_dict(self) -> dict:
        return {
            "original_price": self.original_price,
            "final_price": self.final_price,
            "quantity": self.quantity,
            "total_amount": self.total_amount,
            "total_discount": self.total_discount,
            "total_discount_percentage": str(self.total_discount_percentage),
            "applied_rules": [r.to_dict() for r in self.applied_rules],
        }


# ══════════════════════════════════════════════════════════════
# MATCHING
# ══════════════════════════════════════════════════════════════

def _within_validity(rule: PricingRule, on: date) -> bool:
    if rule.valid_from is not None and on < rule.valid_from:
        return False
    if rule.valid_until is not None and on > rule.valid_until:
        return False
    return True


def _within_time_window(start: Optional[str], end: Optional[str], at: datetime) -> bool:
    now = at.time().replace(second=0, microsecond=0, tzinfo=None)
    if start is None and end is None:
        return True
    if start is None:
        return now <= parse_time_of_day(end)
    if end is None:
        return now >= parse_time_of_day(start)

    window_start = parse_time_of_day(start)
    window_end = parse_time_of_day(end)
    if window_start <= window_end:
        return window_start <= now <= window_end
    # wraps midnight, e.g. 22:00 → 02:00
    return now >= window_start or now <= window_end


def _conditions_hold(rule: PricingRule, context: PricingContext) -> bool:
    cond = rule.conditions

    if rule.rule_type == "customer_category":
        if (
            cond.customer_category_id
            and cond.customer_category_id != context.customer_category_id
        ):
            return False

    elif rule.rule_type == "quantity":
        if cond.min_quantity is not None and context.quantity < cond.min_quantity:
            return False
        if cond.max_quantity is not None and context.quantity > cond.max_quantity:
            return False
        if (
            cond.min_total_amount is not None
            and context.base_total < cond.min_total_amount
        ):
            return False

    elif rule.rule_type == "time_based":
        if cond.day_of_week and js_day_of_week(context.at) not in cond.day_of_week:
            return False
        if not _within_time_window(
            cond.time_of_day_start, cond.time_of_day_end, context.at
        ):
            return False

    elif rule.rule_type == "bundle":
        if cond.package_id and cond.package_id != context.package_id:
            return False
        if cond.service_ids and context.service_id not in cond.service_ids:
            return False

    return True


_TARGET_FIELDS = {
    "service": "service_id",
    "package": "package_id",
    "customer": "customer_id",
    "category": "category_id",
}


def _target_matches(rule: PricingRule, context: PricingContext) -> bool:
    if not rule.target_id:
        return True
    return getattr(context, _TARGET_FIELDS[rule.target_entity]) == rule.target_id


def rule_applies(rule: PricingRule, context: PricingContext) -> bool:
    return (
        rule.is_active
        and _within_validity(rule, context.at.date())
        and _conditions_hold(rule, context)
        and _target_matches(rule, context)
    )


def apply_adjustment(rule: PricingRule, price: int) -> int:
    value = rule.adjustment_value
    if rule.adjustment_type == "percentage":
        adjusted = Decimal(price) * (Decimal(100) - value) / Decimal(100)
    elif rule.adjustment_type == "fixed":
        adjusted = Decimal(price) - value
    else:
        adjusted = value
    return max(0, _to_minor(adjusted))


def order_rules(rules: Iterable[PricingRule]) -> List[PricingRule]:
    return sorted(rules, key=lambda r: (-r.priority, r.rule_id))


def evaluate_pricing(
    rules: Sequence[PricingRule], context: PricingContext
) -> PricingEvaluation:
    price = context.base_price
    applied: List[AppliedRule] = []

    for rule in order_rules(rules):
        if not rule_applies(rule, context):
            continue
        new_price = apply_adjustment(rule, price)
        applied.append(
            AppliedRule(
                rule_id=rule.rule_id,
                rule_name=rule.name,
                rule_type=rule.rule_type,
                adjustment_type=rule.adjustment_type,
                adjustment_value=rule.adjustment_value,
                price_before=price,
                new_price=new_price,
            )
        )
        price = new_price

    return PricingEvaluation(
        original_price=context.base_price,
        final_price=price,
        quantity=context.quantity,
        applied_rules=tuple(applied),
    )


# ══════════════════════════════════════════════════════════════
# APPROVAL + STATS
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class ApprovalCheck:
    requires_approval: bool
    exceeds_limit: bool
    user_discount_limit: Decimal
    total_discount_percentage: Decimal

    def to_dict(self) -> dict:
        return {
            "requires_approval": self.requires_approval,
            "exceeds_limit": self.exceeds_limit,
            "user_discount_limit": str(self.user_discount_limit),
            "total_discount_percentage": str(self.total_discount_percentage),
        }


def summarise_approval(
    evaluation: PricingEvaluation,
    user_discount_limit: Decimal,
    approval_threshold: Decimal,
) -> ApprovalCheck:
    percentage = evaluation.total_discount_percentage
    exceeds_limit = percentage > user_discount_limit
    at_threshold = approval_threshold > 0 and percentage >= approval_threshold
    return ApprovalCheck(
        requires_approval=exceeds_limit or at_threshold,
        exceeds_limit=exceeds_limit,
        user_discount_limit=user_discount_limit,
        total_discount_percentage=percentage,
    )


def pricing_stats(rules: Iterable[PricingRule]) -> dict:
    rules = list(rules)
    by_type = {
        rule_type: {"total": 0, "active": 0} for rule_type in RULE_TYPES
    }
    for rule in rules:
        by_type[rule.rule_type]["total"] += 1
        if rule.is_active:
            by_type[rule.rule_type]["active"] += 1
    active = sum(1 for r in rules if r.is_active)
    return {
        "total_rules": len(rules),
        "active_rules": active,
        "inactive_rules": len(rules) - active,
        "by_type": by_type,
    }
