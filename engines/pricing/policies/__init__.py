"""
BizzyTrack Pricing Engine — Policies
=====================================
Rule-existence checks against the pricing projection.
Each policy returns None (pass) or a RejectionReason.
"""

from __future__ import annotations

from typing import Optional

from core.commands.base import Command
from core.commands.rejection import RejectionReason
from engines.pricing.evaluation import PricingRule


PRICING_RULE_NOT_FOUND = "PRICING_RULE_NOT_FOUND"
PRICING_RULE_EXISTS = "PRICING_RULE_EXISTS"
PRICING_RULE_INVALID = "PRICING_RULE_INVALID"

_EXISTING_RULE_KEYS = {
    "pricing.rule.update.request": "rule_id",
    "pricing.rule.delete.request": "rule_id",
    "pricing.rule.duplicate.request": "source_rule_id",
}

_NEW_RULE_KEYS = {
    "pricing.rule.create.request": "rule_id",
    "pricing.rule.duplicate.request": "new_rule_id",
}

_BULK_COMMANDS = frozenset({
    "pricing.rule.set_status.request",
    "pricing.rule.reprioritize.request",
})


def rule_must_exist_policy(command: Command, projection) -> Optional[RejectionReason]:
    """Reject changes to rules the tenant does not have."""
    if command.command_type in _BULK_COMMANDS:
        rule_ids = command.payload.get("rule_ids", [])
    elif command.command_type in _EXISTING_RULE_KEYS:
        rule_ids = [command.payload.get(_EXISTING_RULE_KEYS[command.command_type])]
    else:
        return None

    missing = [
        rule_id for rule_id in rule_ids
        if projection.get_rule(command.business_id, rule_id) is None
    ]
    if missing:
        return RejectionReason(
            code=PRICING_RULE_NOT_FOUND,
            message=f"Pricing rule(s) not found: {', '.join(map(str, missing))}.",
            policy_name="rule_must_exist_policy",
        )
    return None


def rule_must_not_exist_policy(command: Command, projection) -> Optional[RejectionReason]:
    key = _NEW_RULE_KEYS.get(command.command_type)
    if key is None:
        return None

    rule_id = command.payload.get(key)
    if projection.get_rule(command.business_id, rule_id) is not None:
        return RejectionReason(
            code=PRICING_RULE_EXISTS,
            message=f"Pricing rule '{rule_id}' already exists.",
            policy_name="rule_must_not_exist_policy",
        )
    return None


def updated_rule_valid_policy(command: Command, projection) -> Optional[RejectionReason]:
    """The rule left after a partial update must still be a valid rule."""
    if command.command_type != "pricing.rule.update.request":
        return None

    current = projection.get_rule(command.business_id, command.payload.get("rule_id"))
    if current is None:
        return None

    merged = current.to_dict()
    merged.update(command.payload.get("changes", {}))
    merged["business_id"] = current.business_id
    try:
        PricingRule.from_payload(merged)
    except (TypeError, ValueError, ArithmeticError) as exc:
        return RejectionReason(
            code=PRICING_RULE_INVALID,
            message=f"Update would leave rule invalid: {exc}",
            policy_name="updated_rule_valid_policy",
        )
    return None


PRICING_POLICIES = (
    rule_must_exist_policy,
    rule_must_not_exist_policy,
    updated_rule_valid_policy,
)
