"""
BizzyTrack Pricing Engine — Event Types and Payload Builders
=============================================================
One event per accepted pricing command. Payloads carry only
JSON-friendly values (Decimal and dates as strings).
"""

from __future__ import annotations

from core.commands.base import Command


# ══════════════════════════════════════════════════════════════
# EVENT TYPE CONSTANTS
# ══════════════════════════════════════════════════════════════

PRICING_RULE_CREATED_V1 = "pricing.rule.created.v1"
PRICING_RULE_UPDATED_V1 = "pricing.rule.updated.v1"
PRICING_RULE_DELETED_V1 = "pricing.rule.deleted.v1"
PRICING_RULE_STATUS_SET_V1 = "pricing.rule.status_set.v1"
PRICING_RULE_REPRIORITIZED_V1 = "pricing.rule.reprioritized.v1"
PRICING_RULE_DUPLICATED_V1 = "pricing.rule.duplicated.v1"

PRICING_EVENT_TYPES = (
    PRICING_RULE_CREATED_V1,
    PRICING_RULE_UPDATED_V1,
    PRICING_RULE_DELETED_V1,
    PRICING_RULE_STATUS_SET_V1,
    PRICING_RULE_REPRIORITIZED_V1,
    PRICING_RULE_DUPLICATED_V1,
)


# ══════════════════════════════════════════════════════════════
# COMMAND → EVENT MAPPING
# ══════════════════════════════════════════════════════════════

COMMAND_TO_EVENT_TYPE = {
    "pricing.rule.create.request": PRICING_RULE_CREATED_V1,
    "pricing.rule.update.request": PRICING_RULE_UPDATED_V1,
    "pricing.rule.delete.request": PRICING_RULE_DELETED_V1,
    "pricing.rule.set_status.request": PRICING_RULE_STATUS_SET_V1,
    "pricing.rule.reprioritize.request": PRICING_RULE_REPRIORITIZED_V1,
    "pricing.rule.duplicate.request": PRICING_RULE_DUPLICATED_V1,
}


def resolve_pricing_event_type(command_type: str) -> str | None:
    return COMMAND_TO_EVENT_TYPE.get(command_type)


def register_pricing_event_types(event_type_registry) -> None:
    for event_type in sorted(PRICING_EVENT_TYPES):
        event_type_registry.register(event_type)


# ══════════════════════════════════════════════════════════════
# PAYLOAD BUILDERS
# ══════════════════════════════════════════════════════════════

def _base_payload(command: Command) -> dict:
    return {
        "business_id": command.business_id,
        "branch_id": command.branch_id,
        "actor_id": command.actor_id,
        "actor_type": command.actor_type,
        "correlation_id": command.correlation_id,
        "command_id": command.command_id,
    }


def build_rule_created_payload(command: Command) -> dict:
    payload = _base_payload(command)
    payload.update(command.payload)
    payload["created_by"] = command.actor_id
    payload["created_at"] = command.issued_at
    return payload


def build_rule_updated_payload(command: Command) -> dict:
    payload = _base_payload(command)
    payload.update({
        "rule_id": command.payload["rule_id"],
        "changes": dict(command.payload["changes"]),
        "updated_at": command.issued_at,
    })
    return payload


def build_rule_deleted_payload(command: Command) -> dict:
    payload = _base_payload(command)
    payload.update({
        "rule_id": command.payload["rule_id"],
        "deleted_at": command.issued_at,
    })
    return payload


def build_rule_status_set_payload(command: Command) -> dict:
    payload = _base_payload(command)
    payload.update({
        "rule_ids": list(command.payload["rule_ids"]),
        "is_active": command.payload["is_active"],
        "updated_at": command.issued_at,
    })
    return payload


def build_rule_reprioritized_payload(command: Command) -> dict:
    payload = _base_payload(command)
    payload.update({
        "rule_ids": list(command.payload["rule_ids"]),
        "priorities": list(command.payload["priorities"]),
        "updated_at": command.issued_at,
    })
    return payload


def build_rule_duplicated_payload(command: Command) -> dict:
    payload = _base_payload(command)
    payload.update({
        "source_rule_id": command.payload["source_rule_id"],
        "new_rule_id": command.payload["new_rule_id"],
        "new_name": command.payload.get("new_name"),
        "is_active": command.payload.get("is_active", False),
        "created_by": command.actor_id,
        "created_at": command.issued_at,
    })
    return payload
