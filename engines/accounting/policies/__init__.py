"""
BizzyTrack Accounting Engine — Policies
========================================
Engine-specific validation for journal postings and reversals.
"""

from __future__ import annotations

from typing import Optional

from core.commands.base import Command
from core.commands.rejection import RejectionReason

_POST = "accounting.journal.post.request"
_REVERSE = "accounting.journal.reverse.request"
_ACCOUNT_CREATE = "accounting.account.create.request"


def balanced_entry_policy(command: Command, projection=None) -> Optional[RejectionReason]:
    """Reject journal post if debits != credits."""
    if command.command_type != _POST:
        return None

    lines = command.payload.get("lines", [])
    if len(lines) < 2:
        return RejectionReason(
            code="INSUFFICIENT_LINES",
            message="Journal entry must have at least 2 lines.",
            policy_name="balanced_entry_policy",
        )

    total_debits = sum(l["amount"] for l in lines if l.get("side") == "DEBIT")
    total_credits = sum(l["amount"] for l in lines if l.get("side") == "CREDIT")

    if total_debits != total_credits:
        return RejectionReason(
            code="UNBALANCED_ENTRY",
            message=(
                f"Journal entry unbalanced: debits ({total_debits}) "
                f"!= credits ({total_credits})."
            ),
            policy_name="balanced_entry_policy",
        )
    return None


def positive_amount_policy(command: Command, projection=None) -> Optional[RejectionReason]:
    """Reject if any line has zero or negative amount."""
    if command.command_type != _POST:
        return None

    for i, line in enumerate(command.payload.get("lines", [])):
        if line.get("amount", 0) <= 0:
            return RejectionReason(
                code="NON_POSITIVE_AMOUNT",
                message=f"Line {i} has non-positive amount: {line.get('amount')}.",
                policy_name="positive_amount_policy",
            )
    return None


def unique_entry_policy(command: Command, projection) -> Optional[RejectionReason]:
    if command.command_type == _POST:
        entry_id = command.payload.get("entry_id")
    elif command.command_type == _REVERSE:
        entry_id = command.payload.get("reversal_entry_id")
    else:
        return None

    if projection.get_entry(command.business_id, entry_id) is not None:
        return RejectionReason(
            code="JOURNAL_ENTRY_EXISTS",
            message=f"Journal entry '{entry_id}' already exists.",
            policy_name="unique_entry_policy",
        )
    return None


def known_accounts_policy(command: Command, projection) -> Optional[RejectionReason]:
    """
    Once a business has a chart of accounts, every posted line must
    reference one of its accounts.
    """
    if command.command_type != _POST:
        return None
    if not projection.has_chart(command.business_id):
        return None

    unknown = sorted({
        l.get("account_code") for l in command.payload.get("lines", [])
        if projection.get_account(command.business_id, l.get("account_code")) is None
    })
    if unknown:
        return RejectionReason(
            code="ACCOUNT_NOT_FOUND",
            message=f"Unknown account code(s): {', '.join(unknown)}.",
            policy_name="known_accounts_policy",
        )
    return None


def account_unique_policy(command: Command, projection) -> Optional[RejectionReason]:
    if command.command_type != _ACCOUNT_CREATE:
        return None
    code = command.payload.get("account_code")
    if projection.get_account(command.business_id, code) is not None:
        return RejectionReason(
            code="ACCOUNT_EXISTS",
            message=f"Account '{code}' already exists.",
            policy_name="account_unique_policy",
        )
    return None


def reversal_policy(command: Command, projection) -> Optional[RejectionReason]:
    """Only posted, not yet reversed entries can be reversed."""
    if command.command_type != _REVERSE:
        return None

    original_id = command.payload.get("original_entry_id")
    entry = projection.get_entry(command.business_id, original_id)
    if entry is None:
        return RejectionReason(
            code="JOURNAL_ENTRY_NOT_FOUND",
            message=f"Journal entry '{original_id}' not found.",
            policy_name="reversal_policy",
        )
    if entry["status"] != "POSTED":
        return RejectionReason(
            code="JOURNAL_ENTRY_ALREADY_REVERSED",
            message=f"Journal entry '{original_id}' is {entry['status']}.",
            policy_name="reversal_policy",
        )
    return None


ACCOUNTING_POLICIES = (
    balanced_entry_policy,
    positive_amount_policy,
    unique_entry_policy,
    known_accounts_policy,
    account_unique_policy,
    reversal_policy,
)
