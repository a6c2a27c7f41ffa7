"""
BizzyTrack Pricing Engine — Request Commands
=============================================
Typed pricing-rule requests that convert into canonical Commands.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Optional

from core.commands.base import Command, build_command
from core.commands.request_validation import FieldErrors
from core.config.rules import (
    DEFAULT_RULE_PRIORITY,
    MAX_RULE_PRIORITY,
    MIN_RULE_PRIORITY,
)
from engines.pricing.evaluation import (
    ADJUSTMENT_TYPES,
    RULE_TYPES,
    TARGET_ENTITIES,
    RuleConditions,
)


# ══════════════════════════════════════════════════════════════
# COMMAND TYPE CONSTANTS
# ══════════════════════════════════════════════════════════════

PRICING_RULE_CREATE_REQUEST = "pricing.rule.create.request"
PRICING_RULE_UPDATE_REQUEST = "pricing.rule.update.request"
PRICING_RULE_DELETE_REQUEST = "pricing.rule.delete.request"
PRICING_RULE_SET_STATUS_REQUEST = "pricing.rule.set_status.request"
PRICING_RULE_REPRIORITIZE_REQUEST = "pricing.rule.reprioritize.request"
PRICING_RULE_DUPLICATE_REQUEST = "pricing.rule.duplicate.request"

PRICING_COMMAND_TYPES = frozenset({
    PRICING_RULE_CREATE_REQUEST,
    PRICING_RULE_UPDATE_REQUEST,
    PRICING_RULE_DELETE_REQUEST,
    PRICING_RULE_SET_STATUS_REQUEST,
    PRICING_RULE_REPRIORITIZE_REQUEST,
    PRICING_RULE_DUPLICATE_REQUEST,
})

UPDATABLE_RULE_FIELDS = frozenset({
    "name", "description", "rule_type", "conditions", "adjustment_type",
    "adjustment_value", "target_entity", "target_id", "priority",
    "is_active", "valid_from", "valid_until",
})

MAX_NAME_LENGTH = 100
MAX_DESCRIPTION_LENGTH = 500


def _iso(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _check_priority(errors: FieldErrors, priority, field_name: str = "priority") -> None:
    errors.check(
        isinstance(priority, int)
        and not isinstance(priority, bool)
        and MIN_RULE_PRIORITY <= priority <= MAX_RULE_PRIORITY,
        field_name,
        f"{field_name} must be an integer between {MIN_RULE_PRIORITY} "
        f"and {MAX_RULE_PRIORITY}.",
    )


def _check_conditions(errors: FieldErrors, conditions) -> None:
    if conditions is None:
        return
    if not isinstance(conditions, dict):
        errors.add("conditions", "conditions must be an object.")
        return
    try:
        RuleConditions.from_dict(conditions)
    except (TypeError, ValueError) as exc:
        errors.add("conditions", str(exc))


def _check_adjustment(errors: FieldErrors, adjustment_type, adjustment_value) -> None:
    if not isinstance(adjustment_value, Decimal):
        errors.add("adjustment_value", "adjustment_value must be Decimal.")
        return
    if adjustment_value < 0:
        errors.add("adjustment_value", "adjustment_value must not be negative.")
    if adjustment_type == "percentage" and adjustment_value > 100:
        errors.add(
            "adjustment_value",
            "percentage adjustment_value cannot exceed 100.",
        )


def _check_name(errors: FieldErrors, name) -> None:
    errors.check(
        isinstance(name, str) and 0 < len(name.strip()) <= MAX_NAME_LENGTH,
        "name",
        f"name must be 1..{MAX_NAME_LENGTH} characters.",
    )


# ══════════════════════════════════════════════════════════════
# REQUEST COMMANDS
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class PricingRuleCreateRequest:
    """Request to create a pricing rule."""
    rule_id: str
    name: str
    rule_type: str
    adjustment_type: str
    adjustment_value: Decimal
    target_entity: str
    conditions: dict = field(default_factory=dict)
    description: str = ""
    target_id: Optional[str] = None
    priority: int = DEFAULT_RULE_PRIORITY
    is_active: bool = True
    valid_from: Optional[date] = None
    valid_until: Optional[date] = None
    branch_id: Optional[uuid.UUID] = None

    def __post_init__(self):
        errors = FieldErrors()
        errors.check(bool(self.rule_id), "rule_id", "rule_id must be non-empty.")
        _check_name(errors, self.name)
        errors.check(
            len(self.description or "") <= MAX_DESCRIPTION_LENGTH,
            "description",
            f"description cannot exceed {MAX_DESCRIPTION_LENGTH} characters.",
        )
        errors.check(
            self.rule_type in RULE_TYPES,
            "rule_type", f"rule_type '{self.rule_type}' not valid.",
        )
        errors.check(
            self.adjustment_type in ADJUSTMENT_TYPES,
            "adjustment_type",
            f"adjustment_type '{self.adjustment_type}' not valid.",
        )
        _check_adjustment(errors, self.adjustment_type, self.adjustment_value)
        errors.check(
            self.target_entity in TARGET_ENTITIES,
            "target_entity", f"target_entity '{self.target_entity}' not valid.",
        )
        _check_priority(errors, self.priority)
        _check_conditions(errors, self.conditions)
        if self.valid_from and self.valid_until:
            errors.check(
                self.valid_from <= self.valid_until,
                "valid_until", "valid_until must not be before valid_from.",
            )
        errors.raise_if_any()

    def to_command(self, **kwargs) -> Command:
        return build_command(
            PRICING_RULE_CREATE_REQUEST,
            {
                "rule_id": self.rule_id,
                "name": self.name,
                "description": self.description,
                "rule_type": self.rule_type,
                "conditions": dict(self.conditions or {}),
                "adjustment_type": self.adjustment_type,
                "adjustment_value": str(self.adjustment_value),
                "target_entity": self.target_entity,
                "target_id": self.target_id,
                "priority": self.priority,
                "is_active": self.is_active,
                "valid_from": _iso(self.valid_from),
                "valid_until": _iso(self.valid_until),
            },
            source_engine="pricing",
            branch_id=self.branch_id,
            **kwargs,
        )


@dataclass(frozen=True)
class PricingRuleUpdateRequest:
    """
    Partial update: only keys present in ``changes`` are modified.
    Dates may be given as date objects or ISO strings; None clears them.
    """
    rule_id: str
    changes: dict
    branch_id: Optional[uuid.UUID] = None

    def __post_init__(self):
        errors = FieldErrors()
        errors.check(bool(self.rule_id), "rule_id", "rule_id must be non-empty.")
        if not isinstance(self.changes, dict) or not self.changes:
            errors.add("changes", "changes must be a non-empty object.")
            errors.raise_if_any()

        unknown = sorted(set(self.changes) - UPDATABLE_RULE_FIELDS)
        if unknown:
            errors.add("changes", f"Unknown fields: {', '.join(unknown)}.")

        c = self.changes
        if "name" in c:
            _check_name(errors, c["name"])
        if "rule_type" in c:
            errors.check(c["rule_type"] in RULE_TYPES, "rule_type",
                         f"rule_type '{c['rule_type']}' not valid.")
        if "adjustment_type" in c:
            errors.check(c["adjustment_type"] in ADJUSTMENT_TYPES, "adjustment_type",
                         f"adjustment_type '{c['adjustment_type']}' not valid.")
        if "adjustment_value" in c:
            _check_adjustment(errors, c.get("adjustment_type"), c["adjustment_value"])
        if "target_entity" in c:
            errors.check(c["target_entity"] in TARGET_ENTITIES, "target_entity",
                         f"target_entity '{c['target_entity']}' not valid.")
        if "priority" in c:
            _check_priority(errors, c["priority"])
        if "is_active" in c:
            errors.check(isinstance(c["is_active"], bool), "is_active",
                         "is_active must be a boolean.")
        if "conditions" in c:
            _check_conditions(errors, c["conditions"])
        errors.raise_if_any()

    def to_command(self, **kwargs) -> Command:
        changes = {}
        for key, value in self.changes.items():
            if isinstance(value, Decimal):
                value = str(value)
            elif isinstance(value, date):
                value = value.isoformat()
            changes[key] = value
        return build_command(
            PRICING_RULE_UPDATE_REQUEST,
            {"rule_id": self.rule_id, "changes": changes},
            source_engine="pricing",
            branch_id=self.branch_id,
            **kwargs,
        )


@dataclass(frozen=True)
class PricingRuleDeleteRequest:
    rule_id: str
    branch_id: Optional[uuid.UUID] = None

    def __post_init__(self):
        errors = FieldErrors()
        errors.check(bool(self.rule_id), "rule_id", "rule_id must be non-empty.")
        errors.raise_if_any()

    def to_command(self, **kwargs) -> Command:
        return build_command(
            PRICING_RULE_DELETE_REQUEST,
            {"rule_id": self.rule_id},
            source_engine="pricing",
            branch_id=self.branch_id,
            **kwargs,
        )


@dataclass(frozen=True)
class PricingRuleStatusSetRequest:
    """Bulk activate / deactivate."""
    rule_ids: tuple
    is_active: bool
    branch_id: Optional[uuid.UUID] = None

    def __post_init__(self):
        errors = FieldErrors()
        errors.check(
            isinstance(self.rule_ids, tuple) and len(self.rule_ids) >= 1
            and all(self.rule_ids),
            "rule_ids", "rule_ids must be a non-empty tuple of ids.",
        )
        if isinstance(self.rule_ids, tuple):
            errors.check(
                len(set(self.rule_ids)) == len(self.rule_ids),
                "rule_ids", "rule_ids must not contain duplicates.",
            )
        errors.check(isinstance(self.is_active, bool), "is_active",
                     "is_active must be a boolean.")
        errors.raise_if_any()

    def to_command(self, **kwargs) -> Command:
        return build_command(
            PRICING_RULE_SET_STATUS_REQUEST,
            {"rule_ids": list(self.rule_ids), "is_active": self.is_active},
            source_engine="pricing",
            branch_id=self.branch_id,
            **kwargs,
        )


@dataclass(frozen=True)
class PricingRuleReprioritizeRequest:
    rule_ids: tuple
    priorities: tuple
    branch_id: Optional[uuid.UUID] = None

    def __post_init__(self):
        errors = FieldErrors()
        errors.check(
            isinstance(self.rule_ids, tuple) and len(self.rule_ids) >= 1,
            "rule_ids", "rule_ids must be a non-empty tuple.",
        )
        errors.check(
            isinstance(self.priorities, tuple)
            and isinstance(self.rule_ids, tuple)
            and len(self.priorities) == len(self.rule_ids),
            "priorities", "priorities must match rule_ids in length.",
        )
        for i, priority in enumerate(self.priorities or ()):
            _check_priority(errors, priority, f"priorities[{i}]")
        errors.raise_if_any()

    def to_command(self, **kwargs) -> Command:
        return build_command(
            PRICING_RULE_REPRIORITIZE_REQUEST,
            {
                "rule_ids": list(self.rule_ids),
                "priorities": list(self.priorities),
            },
            source_engine="pricing",
            branch_id=self.branch_id,
            **kwargs,
        )


@dataclass(frozen=True)
class PricingRuleDuplicateRequest:
    """Copy a rule under a new id. Copies are inactive unless asked."""
    source_rule_id: str
    new_rule_id: str
    new_name: Optional[str] = None
    is_active: bool = False
    branch_id: Optional[uuid.UUID] = None

    def __post_init__(self):
        errors = FieldErrors()
        errors.check(bool(self.source_rule_id), "source_rule_id",
                     "source_rule_id must be non-empty.")
        errors.check(bool(self.new_rule_id), "new_rule_id",
                     "new_rule_id must be non-empty.")
        errors.check(self.source_rule_id != self.new_rule_id, "new_rule_id",
                     "new_rule_id must differ from source_rule_id.")
        if self.new_name is not None:
            _check_name(errors, self.new_name)
        errors.raise_if_any()

    def to_command(self, **kwargs) -> Command:
        return build_command(
            PRICING_RULE_DUPLICATE_REQUEST,
            {
                "source_rule_id": self.source_rule_id,
                "new_rule_id": self.new_rule_id,
                "new_name": self.new_name,
                "is_active": self.is_active,
            },
            source_engine="pricing",
            branch_id=self.branch_id,
            **kwargs,
        )


def parse_decimal(value, field_name: str) -> Decimal:
    """Adapter helper: JSON number/string → Decimal."""
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise ValueError(f"{field_name} must be a number.") from exc
