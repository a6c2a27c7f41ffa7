"""
BizzyTrack Accounting Engine — Opening Balances
================================================
Turns operational data (wallets, assets, stock, invoices, purchase
orders, POS sales, expenses) into the four journal entries that open a
business's books:

    1. Opening balances     Dr assets / Cr payables, Cr owner's capital
    2. Revenue recognition  Dr cash / Cr product + service revenue
    3. COGS recognition     Dr cost of goods sold / Cr inventory
    4. Expense recognition  Dr expenses / Cr cash

Zero-amount lines are dropped and an entry with nothing left is omitted.
Every generated entry is a JournalEntry, so it is balanced by
construction.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Protocol, Tuple

from core.config.rules import ChartOfAccountsMap
from core.primitives.ledger import DebitCredit, JournalEntry, JournalLine, Money
from core.time import Clock, SystemClock


# ══════════════════════════════════════════════════════════════
# SOURCE AGGREGATES
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Aggregate:
    """A summed amount (minor units) and the number of rows behind it."""
    amount: int
    record_count: int = 0
    source: str = ""

    def __post_init__(self):
        if isinstance(self.amount, bool) or not isinstance(self.amount, int):
            raise TypeError("amount must be int (minor units).")
        if self.record_count < 0:
            raise ValueError("record_count must be >= 0.")

    def to_dict(self) -> dict:
        return {
            "amount": self.amount,
            "record_count": self.record_count,
            "source": self.source,
        }


ZERO = Aggregate(0)


@dataclass(frozen=True)
class RevenueBreakdown:
    """
    Completed POS sales split by item type, plus the transaction total.

    The POS total includes taxes, fees and discounts that the item lines
    do not, so ``adjustment`` is usually non-zero.
    """
    product: Aggregate = ZERO
    service: Aggregate = ZERO
    equipment_hire: Aggregate = ZERO
    total_pos: Aggregate = ZERO

    @property
    def service_total(self) -> int:
        """Equipment hire is booked as service revenue."""
        return self.service.amount + self.equipment_hire.amount

    @property
    def items_total(self) -> int:
        return self.product.amount + self.service_total

    @property
    def adjustment(self) -> int:
        return self.total_pos.amount - self.items_total

    def to_dict(self) -> dict:
        return {
            "product_sales": self.product.to_dict(),
            "service_sales": self.service.to_dict(),
            "equipment_hire": self.equipment_hire.to_dict(),
            "total": self.total_pos.to_dict(),
            "adjustment": self.adjustment,
        }


class OpeningBalanceSource(Protocol):
    """Per-business aggregates. Amounts are minor units."""

    def cash(self, business_id: uuid.UUID) -> Aggregate:
        ...  # pragma: no cover

    def fixed_assets(self, business_id: uuid.UUID) -> Aggregate:
        ...  # pragma: no cover

    def inventory(self, business_id: uuid.UUID) -> Aggregate:
        ...  # pragma: no cover

    def accounts_receivable(self, business_id: uuid.UUID) -> Aggregate:
        ...  # pragma: no cover

    def accounts_payable(self, business_id: uuid.UUID) -> Aggregate:
        ...  # pragma: no cover

    def revenue(self, business_id: uuid.UUID) -> RevenueBreakdown:
        ...  # pragma: no cover

    def cogs(self, business_id: uuid.UUID) -> Aggregate:
        ...  # pragma: no cover

    def expenses(self, business_id: uuid.UUID) -> Aggregate:
        ...  # pragma: no cover


@dataclass(frozen=True)
class StaticOpeningBalanceSource:
    """Fixed aggregates, the same for every business."""
    cash_total: Aggregate = ZERO
    fixed_assets_total: Aggregate = ZERO
    inventory_total: Aggregate = ZERO
    receivables_total: Aggregate = ZERO
    payables_total: Aggregate = ZERO
    revenue_breakdown: RevenueBreakdown = field(default_factory=RevenueBreakdown)
    cogs_total: Aggregate = ZERO
    expenses_total: Aggregate = ZERO

    def cash(self, business_id):
        return self.cash_total

    def fixed_assets(self, business_id):
        return self.fixed_assets_total

    def inventory(self, business_id):
        return self.inventory_total

    def accounts_receivable(self, business_id):
        return self.receivables_total

    def accounts_payable(self, business_id):
        return self.payables_total

    def revenue(self, business_id):
        return self.revenue_breakdown

    def cogs(self, business_id):
        return self.cogs_total

    def expenses(self, business_id):
        return self.expenses_total


# ══════════════════════════════════════════════════════════════
# PLAN
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class PlannedEntry:
    entry_number: int
    entry: JournalEntry

    def to_dict(self) -> dict:
        data = self.entry.to_dict()
        data["entry_number"] = self.entry_number
        data["is_balanced"] = self.entry.is_balanced
        return data


@dataclass(frozen=True)
class OpeningBalancePlan:
    business_id: uuid.UUID
    batch_id: str
    currency: str
    calculated_at: datetime
    aggregates: Dict[str, Aggregate]
    revenue: RevenueBreakdown
    entries: Tuple[PlannedEntry, ...]

    @property
    def journal_entries(self) -> List[JournalEntry]:
        return [p.entry for p in self.entries]

    @property
    def total_assets(self) -> int:
        return sum(
            self.aggregates[k].amount
            for k in ("cash", "fixed_assets", "inventory", "accounts_receivable")
        )

    @property
    def total_liabilities(self) -> int:
        return self.aggregates["accounts_payable"].amount

    @property
    def opening_equity(self) -> int:
        return self.total_assets - self.total_liabilities

    def accounting_equation(self) -> dict:
        debits = sum(p.entry.total_debits.amount for p in self.entries)
        credits = sum(p.entry.total_credits.amount for p in self.entries)
        return {
            "total_debits": debits,
            "total_credits": credits,
            "is_balanced": debits == credits,
            "difference": abs(debits - credits),
        }

    def profit_loss(self) -> dict:
        revenue = self.revenue.total_pos.amount
        expenses = self.aggregates["expenses"].amount
        cogs = self.aggregates["cogs"].amount
        net = revenue - expenses - cogs
        return {
            "total_revenue": revenue,
            "total_expenses": expenses,
            "total_cogs": cogs,
            "net_profit_loss": net,
            "is_profit": net > 0,
        }

    def to_dict(self) -> dict:
        return {
            "business_id": str(self.business_id),
            "batch_id": self.batch_id,
            "currency": self.currency,
            "calculated_at": self.calculated_at.isoformat(),
            "assets": {
                k: self.aggregates[k].to_dict()
                for k in ("cash", "fixed_assets", "inventory", "accounts_receivable")
            },
            "liabilities": {
                "accounts_payable": self.aggregates["accounts_payable"].to_dict(),
            },
            "revenue": self.revenue.to_dict(),
            "cogs": self.aggregates["cogs"].to_dict(),
            "expenses": self.aggregates["expenses"].to_dict(),
            "opening_equity": self.opening_equity,
            "journal_entries": [p.to_dict() for p in self.entries],
            "accounting_equation": self.accounting_equation(),
            "profit_loss": self.profit_loss(),
        }


# ══════════════════════════════════════════════════════════════
# CALCULATOR
# ══════════════════════════════════════════════════════════════

class OpeningBalanceCalculator:
    """
    Usage:
        calculator = OpeningBalanceCalculator(source, currency="UGX")
        plan = calculator.calculate(business_id)
    """

    def __init__(
        self,
        source: OpeningBalanceSource,
        *,
        currency: str,
        chart: Optional[ChartOfAccountsMap] = None,
        clock: Optional[Clock] = None,
    ):
        self._source = source
        self._currency = currency
        self._chart = chart or ChartOfAccountsMap()
        self._clock = clock or SystemClock()

    @property
    def currency(self) -> str:
        return self._currency

    def _line(self, role: str, side: DebitCredit, amount: int,
              description: str) -> Optional[JournalLine]:
        if amount == 0:
            return None
        if amount < 0:
            side, amount = side.opposite, -amount
        return JournalLine(
            account=self._chart.ref(role),
            side=side,
            amount=Money(amount, self._currency),
            description=description,
        )

    def _entry(self, business_id, batch_id, number, memo, posted_at,
               lines) -> Optional[PlannedEntry]:
        kept = tuple(l for l in lines if l is not None)
        if not kept:
            return None
        return PlannedEntry(
            entry_number=number,
            entry=JournalEntry(
                entry_id=f"{batch_id}-{number}",
                business_id=business_id,
                posted_at=posted_at,
                lines=kept,
                memo=memo,
                currency=self._currency,
                reference=f"migration:{business_id}:{number}",
                batch_id=batch_id,
            ),
        )

    def calculate(self, business_id: uuid.UUID,
                  batch_id: Optional[str] = None) -> OpeningBalancePlan:
        batch_id = batch_id or str(uuid.uuid4())
        now = self._clock.now_utc()
        src = self._source

        aggregates = {
            "cash": src.cash(business_id),
            "fixed_assets": src.fixed_assets(business_id),
            "inventory": src.inventory(business_id),
            "accounts_receivable": src.accounts_receivable(business_id),
            "accounts_payable": src.accounts_payable(business_id),
            "cogs": src.cogs(business_id),
            "expenses": src.expenses(business_id),
        }
        revenue = src.revenue(business_id)
        amt = {k: v.amount for k, v in aggregates.items()}

        dr, cr = DebitCredit.DEBIT, DebitCredit.CREDIT
        equity = (
            amt["cash"] + amt["fixed_assets"] + amt["inventory"]
            + amt["accounts_receivable"] - amt["accounts_payable"]
        )

        # Negative amounts flip side in _line, so negative equity is debited.
        opening = [
            self._line("cash", dr, amt["cash"], "Cash & Equivalents - Opening Balance"),
            self._line("accounts_receivable", dr, amt["accounts_receivable"],
                       "Accounts Receivable - Opening Balance"),
            self._line("fixed_assets", dr, amt["fixed_assets"],
                       "Fixed Assets - Opening Balance"),
            self._line("inventory", dr, amt["inventory"],
                       "Inventory Assets - Opening Balance"),
            self._line("accounts_payable", cr, amt["accounts_payable"],
                       "Accounts Payable - Opening Balance"),
            self._line("owners_capital", cr, equity,
                       "Owner's Capital - Opening Equity"),
        ]

        adjustment = revenue.adjustment
        recognition = [
            self._line("cash", dr, revenue.total_pos.amount,
                       "Cash Received from Historical Sales"),
            self._line("product_revenue", cr, revenue.product.amount,
                       "Product Sales Revenue"),
            self._line("service_revenue", cr, revenue.service_total,
                       "Service Revenue (Services + Equipment Hire)"),
        ]
        if adjustment > 0:
            recognition.append(self._line(
                "product_revenue", cr, adjustment, "Revenue Adjustment (Taxes/Fees)"
            ))
        elif adjustment < 0:
            recognition.append(self._line(
                "service_revenue", dr, -adjustment, "Revenue Adjustment (Discounts)"
            ))

        cogs = [
            self._line("cost_of_goods_sold", dr, amt["cogs"],
                       "Cost of Goods Sold - Historical"),
            self._line("inventory", cr, amt["cogs"], "Inventory Reduction - COGS"),
        ]
        expenses = [
            self._line("expenses", dr, amt["expenses"], "Business Expenses - Historical"),
            self._line("cash", cr, amt["expenses"], "Cash Payment for Expenses"),
        ]

        planned = [
            self._entry(business_id, batch_id, 1,
                        "Opening Balance Migration - Assets & Liabilities",
                        now, opening),
            self._entry(business_id, batch_id, 2,
                        "Revenue Recognition - Historical Sales (Includes taxes/fees)",
                        now, recognition),
            self._entry(business_id, batch_id, 3,
                        "COGS Recognition - Historical Product Sales", now, cogs),
            self._entry(business_id, batch_id, 4,
                        "Expense Recognition - Historical Expenses", now, expenses),
        ]

        return OpeningBalancePlan(
            business_id=business_id,
            batch_id=batch_id,
            currency=self._currency,
            calculated_at=now,
            aggregates=aggregates,
            revenue=revenue,
            entries=tuple(p for p in planned if p is not None),
        )
