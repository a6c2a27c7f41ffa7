"""
BizzyTrack Accounting Engine — Event Types and Payload Builders
================================================================
Double-entry bookkeeping. Every posted or reversing entry is balanced;
amounts are integer minor units.
"""

from __future__ import annotations

from core.commands.base import Command


# ══════════════════════════════════════════════════════════════
# EVENT TYPE CONSTANTS
# ══════════════════════════════════════════════════════════════

ACCOUNTING_ACCOUNT_CREATED_V1 = "accounting.account.created.v1"
ACCOUNTING_JOURNAL_POSTED_V1 = "accounting.journal.posted.v1"
ACCOUNTING_JOURNAL_REVERSED_V1 = "accounting.journal.reversed.v1"

ACCOUNTING_EVENT_TYPES = (
    ACCOUNTING_ACCOUNT_CREATED_V1,
    ACCOUNTING_JOURNAL_POSTED_V1,
    ACCOUNTING_JOURNAL_REVERSED_V1,
)


# ══════════════════════════════════════════════════════════════
# COMMAND → EVENT MAPPING
# ══════════════════════════════════════════════════════════════

COMMAND_TO_EVENT_TYPE = {
    "accounting.account.create.request": ACCOUNTING_ACCOUNT_CREATED_V1,
    "accounting.journal.post.request": ACCOUNTING_JOURNAL_POSTED_V1,
    "accounting.journal.reverse.request": ACCOUNTING_JOURNAL_REVERSED_V1,
}


def resolve_accounting_event_type(command_type: str) -> str | None:
    return COMMAND_TO_EVENT_TYPE.get(command_type)


def register_accounting_event_types(event_type_registry) -> None:
    for event_type in sorted(ACCOUNTING_EVENT_TYPES):
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


def _totals(lines: list) -> int:
    return sum(l["amount"] for l in lines if l["side"] == "DEBIT")


def build_account_created_payload(command: Command) -> dict:
    payload = _base_payload(command)
    payload.update({
        "account_code": command.payload["account_code"],
        "account_type": command.payload["account_type"],
        "name": command.payload["name"],
        "parent_code": command.payload.get("parent_code"),
        "created_at": command.issued_at,
    })
    return payload


def build_journal_posted_payload(command: Command) -> dict:
    lines = [dict(l) for l in command.payload["lines"]]
    payload = _base_payload(command)
    payload.update({
        "entry_id": command.payload["entry_id"],
        "lines": lines,
        "memo": command.payload["memo"],
        "currency": command.payload["currency"],
        "reference": command.payload.get("reference"),
        "batch_id": command.payload.get("batch_id"),
        "total_amount": _totals(lines),
        "posted_at": command.issued_at,
    })
    return payload


def build_journal_reversed_payload(command: Command, original_entry: dict) -> dict:
    """The reversing entry mirrors every line of ``original_entry``."""
    lines = [
        {
            "account_code": l["account_code"],
            "side": "CREDIT" if l["side"] == "DEBIT" else "DEBIT",
            "amount": l["amount"],
            "description": l.get("description", ""),
        }
        for l in original_entry["lines"]
    ]
    payload = _base_payload(command)
    payload.update({
        "original_entry_id": command.payload["original_entry_id"],
        "reversal_entry_id": command.payload["reversal_entry_id"],
        "reason": command.payload["reason"],
        "lines": lines,
        "currency": original_entry["currency"],
        "total_amount": _totals(lines),
        "reversed_at": command.issued_at,
    })
    return payload
