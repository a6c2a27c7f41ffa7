"""
BizzyTrack Accounting Engine — Request Commands
================================================
Typed accounting requests that convert into canonical Command objects.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Optional

from core.commands.base import Command, build_command
from core.commands.request_validation import FieldErrors
from core.primitives.ledger import JournalEntry


# ══════════════════════════════════════════════════════════════
# COMMAND TYPE CONSTANTS
# ══════════════════════════════════════════════════════════════

ACCOUNTING_ACCOUNT_CREATE_REQUEST = "accounting.account.create.request"
ACCOUNTING_JOURNAL_POST_REQUEST = "accounting.journal.post.request"
ACCOUNTING_JOURNAL_REVERSE_REQUEST = "accounting.journal.reverse.request"

ACCOUNTING_COMMAND_TYPES = frozenset({
    ACCOUNTING_ACCOUNT_CREATE_REQUEST,
    ACCOUNTING_JOURNAL_POST_REQUEST,
    ACCOUNTING_JOURNAL_REVERSE_REQUEST,
})

VALID_ACCOUNT_TYPES = frozenset({
    "ASSET", "LIABILITY", "EQUITY", "REVENUE", "EXPENSE",
})
VALID_SIDES = frozenset({"DEBIT", "CREDIT"})


def _check_lines(errors: FieldErrors, lines) -> None:
    if not isinstance(lines, tuple) or len(lines) < 2:
        errors.add("lines", "lines must be a tuple with at least 2 entries.")
        return

    for i, line in enumerate(lines):
        if not isinstance(line, dict):
            errors.add(f"lines[{i}]", "line must be an object.")
            continue
        if not line.get("account_code"):
            errors.add(f"lines[{i}].account_code", "account_code must be non-empty.")
        if line.get("side") not in VALID_SIDES:
            errors.add(f"lines[{i}].side", "side must be DEBIT or CREDIT.")
        amount = line.get("amount")
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            errors.add(f"lines[{i}].amount", "amount must be a positive integer.")
    if errors:
        return

    total_debits = sum(l["amount"] for l in lines if l["side"] == "DEBIT")
    total_credits = sum(l["amount"] for l in lines if l["side"] == "CREDIT")
    if total_debits != total_credits:
        errors.add(
            "lines",
            f"Journal entry unbalanced: debits ({total_debits}) "
            f"!= credits ({total_credits}).",
        )


# ══════════════════════════════════════════════════════════════
# REQUEST COMMANDS
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class AccountCreateRequest:
    """Request to add an account to the chart of accounts."""
    account_code: str
    account_type: str
    name: str
    parent_code: Optional[str] = None
    branch_id: Optional[uuid.UUID] = None

    def __post_init__(self):
        errors = FieldErrors()
        errors.check(bool(self.account_code), "account_code",
                     "account_code must be non-empty.")
        errors.check(self.account_type in VALID_ACCOUNT_TYPES, "account_type",
                     f"account_type '{self.account_type}' not valid.")
        errors.check(bool(self.name), "name", "name must be non-empty.")
        errors.raise_if_any()

    def to_command(self, **kwargs) -> Command:
        return build_command(
            ACCOUNTING_ACCOUNT_CREATE_REQUEST,
            {
                "account_code": self.account_code,
                "account_type": self.account_type,
                "name": self.name,
                "parent_code": self.parent_code,
            },
            source_engine="accounting",
            branch_id=self.branch_id,
            **kwargs,
        )


@dataclass(frozen=True)
class JournalPostRequest:
    """
    Request to post a balanced journal entry.

    lines: tuple of {account_code, side, amount, description} dicts,
    amounts in minor units.
    """
    entry_id: str
    lines: tuple
    memo: str
    currency: str
    reference: Optional[str] = None
    batch_id: Optional[str] = None
    branch_id: Optional[uuid.UUID] = None

    def __post_init__(self):
        errors = FieldErrors()
        errors.check(bool(self.entry_id), "entry_id", "entry_id must be non-empty.")
        errors.check(bool(self.memo), "memo", "memo must be non-empty.")
        errors.check(
            isinstance(self.currency, str) and len(self.currency) == 3,
            "currency", "currency must be 3-letter ISO 4217 code.",
        )
        _check_lines(errors, self.lines)
        errors.raise_if_any()

    @classmethod
    def from_entry(cls, entry: JournalEntry) -> JournalPostRequest:
        return cls(
            entry_id=entry.entry_id,
            lines=tuple(l.to_payload() for l in entry.lines),
            memo=entry.memo,
            currency=entry.currency,
            reference=entry.reference,
            batch_id=entry.batch_id,
        )

    def to_command(self, **kwargs) -> Command:
        return build_command(
            ACCOUNTING_JOURNAL_POST_REQUEST,
            {
                "entry_id": self.entry_id,
                "lines": [dict(l) for l in self.lines],
                "memo": self.memo,
                "currency": self.currency,
                "reference": self.reference,
                "batch_id": self.batch_id,
            },
            source_engine="accounting",
            branch_id=self.branch_id,
            **kwargs,
        )


@dataclass(frozen=True)
class JournalReverseRequest:
    """Request to reverse a posted journal entry (once)."""
    original_entry_id: str
    reversal_entry_id: str
    reason: str
    branch_id: Optional[uuid.UUID] = None

    def __post_init__(self):
        errors = FieldErrors()
        errors.check(bool(self.original_entry_id), "original_entry_id",
                     "original_entry_id must be non-empty.")
        errors.check(bool(self.reversal_entry_id), "reversal_entry_id",
                     "reversal_entry_id must be non-empty.")
        errors.check(self.original_entry_id != self.reversal_entry_id,
                     "reversal_entry_id",
                     "reversal_entry_id must differ from original_entry_id.")
        errors.check(bool(self.reason), "reason", "reason must be non-empty.")
        errors.raise_if_any()

    def to_command(self, **kwargs) -> Command:
        return build_command(
            ACCOUNTING_JOURNAL_REVERSE_REQUEST,
            {
                "original_entry_id": self.original_entry_id,
                "reversal_entry_id": self.reversal_entry_id,
                "reason": self.reason,
            },
            source_engine="accounting",
            branch_id=self.branch_id,
            **kwargs,
        )
