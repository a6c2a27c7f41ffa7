"""
BizzyTrack Ledger Primitive — Double-Entry Core
================================================
Shared bookkeeping building blocks used by the accounting engine and
the opening-balance migration.

Rules:
- Every journal entry balances (total debits == total credits).
- Amounts are integer minor units; conversions from major units
  (database NUMERIC columns) round half-up.
- One currency per entry.
- Every entry is scoped to a business_id.

No persistence here.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Dict, Optional, Tuple, Union

MINOR_UNITS_PER_MAJOR = 100


class DebitCredit(Enum):
    DEBIT = "DEBIT"
    CREDIT = "CREDIT"

    @property
    def opposite(self) -> DebitCredit:
        if self is DebitCredit.DEBIT:
            return DebitCredit.CREDIT
        return DebitCredit.DEBIT


class AccountType(Enum):
    """
    Normal balance: ASSET/EXPENSE = DEBIT, LIABILITY/EQUITY/REVENUE = CREDIT.
    """
    ASSET = "ASSET"
    LIABILITY = "LIABILITY"
    EQUITY = "EQUITY"
    REVENUE = "REVENUE"
    EXPENSE = "EXPENSE"


NORMAL_BALANCE: Dict[AccountType, DebitCredit] = {
    AccountType.ASSET: DebitCredit.DEBIT,
    AccountType.LIABILITY: DebitCredit.CREDIT,
    AccountType.EQUITY: DebitCredit.CREDIT,
    AccountType.REVENUE: DebitCredit.CREDIT,
    AccountType.EXPENSE: DebitCredit.DEBIT,
}


@dataclass(frozen=True)
class Money:
    """
    Monetary value in integer minor units (1050 = 10.50).
    """
    amount: int
    currency: str

    def __post_init__(self):
        if isinstance(self.amount, bool) or not isinstance(self.amount, int):
            raise TypeError(
                f"Money amount must be int (minor units), "
                f"got {type(self.amount).__name__}."
            )
        if not isinstance(self.currency, str) or len(self.currency) != 3:
            raise ValueError(
                f"currency must be 3-letter ISO 4217 code, got '{self.currency}'."
            )

    def __add__(self, other: Money) -> Money:
        self._assert_same_currency(other)
        return Money(self.amount + other.amount, self.currency)

    def __sub__(self, other: Money) -> Money:
        self._assert_same_currency(other)
        return Money(self.amount - other.amount, self.currency)

    def negate(self) -> Money:
        return Money(-self.amount, self.currency)

    def to_major(self) -> Decimal:
        return (Decimal(self.amount) / MINOR_UNITS_PER_MAJOR).quantize(Decimal("0.01"))

    def _assert_same_currency(self, other: Money) -> None:
        if not isinstance(other, Money):
            raise TypeError(f"Cannot operate with {type(other).__name__}.")
        if self.currency != other.currency:
            raise ValueError(
                f"Currency mismatch: {self.currency} vs {other.currency}."
            )

    def to_dict(self) -> dict:
        return {"amount": self.amount, "currency": self.currency}

    @classmethod
    def zero(cls, currency: str) -> Money:
        return cls(0, currency)

    @classmethod
    def from_major(
        cls, value: Union[Decimal, int, float, str, None], currency: str
    ) -> Money:
        """``Decimal("12.345")`` → 1235 minor units. ``None`` is zero."""
        if value is None:
            return cls.zero(currency)
        minor = (Decimal(str(value)) * MINOR_UNITS_PER_MAJOR).quantize(
            Decimal("1"), rounding=ROUND_HALF_UP
        )
        return cls(int(minor), currency)


@dataclass(frozen=True)
class AccountRef:
    account_code: str
    account_type: AccountType
    name: str

    def __post_init__(self):
        if not self.account_code or not isinstance(self.account_code, str):
            raise ValueError("account_code must be a non-empty string.")
        if not isinstance(self.account_type, AccountType):
            raise ValueError("account_type must be an AccountType enum.")
        if not self.name:
            raise ValueError("name must be a non-empty string.")

    @property
    def normal_balance(self) -> DebitCredit:
        return NORMAL_BALANCE[self.account_type]

    def to_dict(self) -> dict:
        return {
            "account_code": self.account_code,
            "account_type": self.account_type.value,
            "name": self.name,
        }


@dataclass(frozen=True)
class JournalLine:
    """Amount is always positive; the side carries the direction."""
    account: AccountRef
    side: DebitCredit
    amount: Money
    description: str = ""

    def __post_init__(self):
        if not isinstance(self.side, DebitCredit):
            raise ValueError("side must be DebitCredit enum.")
        if not isinstance(self.amount, Money):
            raise TypeError("amount must be Money.")
        if self.amount.amount <= 0:
            raise ValueError(
                f"Journal line amount must be positive, got {self.amount.amount}."
            )

    def to_payload(self) -> dict:
        """Flat shape used in accounting command and event payloads."""
        return {
            "account_code": self.account.account_code,
            "side": self.side.value,
            "amount": self.amount.amount,
            "description": self.description,
        }


@dataclass(frozen=True)
class JournalEntry:
    """
    Balanced double-entry journal entry.

    Unbalanced, single-line and mixed-currency entries raise ValueError
    at construction.
    """
    entry_id: str
    business_id: uuid.UUID
    posted_at: datetime
    lines: Tuple[JournalLine, ...]
    memo: str
    currency: str
    reference: Optional[str] = None
    batch_id: Optional[str] = None

    def __post_init__(self):
        if not self.entry_id:
            raise ValueError("entry_id must be non-empty.")
        if not isinstance(self.business_id, uuid.UUID):
            raise ValueError("business_id must be UUID.")
        if not isinstance(self.lines, tuple):
            raise TypeError("lines must be a tuple of JournalLine.")
        if len(self.lines) < 2:
            raise ValueError("Journal entry must have at least 2 lines.")

        for line in self.lines:
            if line.amount.currency != self.currency:
                raise ValueError(
                    f"All lines must use entry currency '{self.currency}', "
                    f"got '{line.amount.currency}' on account "
                    f"'{line.account.account_code}'."
                )

        debits, credits = self._side_totals()
        if debits != credits:
            raise ValueError(
                f"Journal entry unbalanced: debits ({debits}) "
                f"!= credits ({credits})."
            )

    def _side_totals(self) -> Tuple[int, int]:
        debits = sum(
            l.amount.amount for l in self.lines if l.side == DebitCredit.DEBIT
        )
        credits = sum(
            l.amount.amount for l in self.lines if l.side == DebitCredit.CREDIT
        )
        return debits, credits

    @property
    def total_debits(self) -> Money:
        return Money(self._side_totals()[0], self.currency)

    @property
    def total_credits(self) -> Money:
        return Money(self._side_totals()[1], self.currency)

    @property
    def is_balanced(self) -> bool:
        debits, credits = self._side_totals()
        return debits == credits

    def reversed(self, reversal_id: str, posted_at: datetime) -> JournalEntry:
        """Mirror entry: every line on the opposite side."""
        return JournalEntry(
            entry_id=reversal_id,
            business_id=self.business_id,
            posted_at=posted_at,
            lines=tuple(
                JournalLine(
                    account=l.account,
                    side=l.side.opposite,
                    amount=l.amount,
                    description=l.description,
                )
                for l in self.lines
            ),
            memo=f"Reversal of {self.entry_id}",
            currency=self.currency,
            reference=self.entry_id,
            batch_id=self.batch_id,
        )

    def to_dict(self) -> dict:
        return {
            "entry_id": self.entry_id,
            "business_id": str(self.business_id),
            "posted_at": self.posted_at.isoformat(),
            "lines": [l.to_payload() for l in self.lines],
            "memo": self.memo,
            "currency": self.currency,
            "reference": self.reference,
            "batch_id": self.batch_id,
            "total_debits": self.total_debits.amount,
            "total_credits": self.total_credits.amount,
        }

