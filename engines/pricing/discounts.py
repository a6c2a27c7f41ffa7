"""
BizzyTrack Pricing Engine — Discount Core
==========================================
Shared discount arithmetic used by promotions, volume tiers and
early-payment terms.

All amounts are integer minor units; percentages are Decimal.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, List, Optional, Sequence, Tuple

logger = logging.getLogger("bizzytrack.pricing")


class DiscountType:
    PERCENTAGE = "PERCENTAGE"
    FIXED = "FIXED"


# Two discounts of the same conflict type never stack.
CONFLICT_TYPES = frozenset({"VOLUME", "PROMOTIONAL", "EARLY_PAYMENT"})


@dataclass(frozen=True)
class Discount:
    discount_id: str
    discount_type: str
    value: Decimal
    priority: int = 0
    stackable: bool = True
    rule_type: Optional[str] = None
    max_discount_amount: Optional[int] = None
    name: str = ""

    def __post_init__(self):
        if self.discount_type not in (DiscountType.PERCENTAGE, DiscountType.FIXED):
            raise ValueError(f"discount_type '{self.discount_type}' not valid.")
        if not isinstance(self.value, Decimal):
            raise TypeError("value must be Decimal.")


def calculate_discount(amount: int, discount_type: str, value: Decimal) -> int:
    """
    PERCENTAGE: amount × min(value, 100) / 100, rounded half-up.
    FIXED:      min(value, amount).
    """
    if amount <= 0 or value <= 0:
        return 0

    if discount_type == DiscountType.PERCENTAGE:
        percentage = min(value, Decimal(100))
        raw = Decimal(amount) * percentage / Decimal(100)
    elif discount_type == DiscountType.FIXED:
        raw = min(value, Decimal(amount))
    else:
        logger.warning("Unknown discount type %r", discount_type)
        return 0

    return int(raw.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def apply_max_discount(discount: int, max_amount: Optional[int], amount: int) -> int:
    if max_amount is not None and max_amount > 0:
        discount = min(discount, max_amount)
    return max(0, min(discount, amount))


def can_stack(applied: Sequence[Discount], candidate: Discount) -> bool:
    if not applied:
        return True
    if not candidate.stackable:
        return False
    if any(not d.stackable for d in applied):
        return False
    if candidate.rule_type in CONFLICT_TYPES and any(
        d.rule_type == candidate.rule_type for d in applied
    ):
        return False
    return True


@dataclass(frozen=True)
class StackedDiscount:
    original_amount: int
    total_discount: int
    applied: Tuple[Tuple[Discount, int], ...] = ()
    skipped: Tuple[str, ...] = ()

    @property
    def final_amount(self) -> int:
        return max(0, self.original_amount - self.total_discount)

    def to_dict(self) -> dict:
        return {
            "original_amount": self.original_amount,
            "total_discount": self.total_discount,
            "final_amount": self.final_amount,
            "applied": [
                {"discount_id": d.discount_id, "amount": amount}
                for d, amount in self.applied
            ],
            "skipped": list(self.skipped),
        }


def calculate_stacked_discount(
    amount: int, discounts: Iterable[Discount]
) -> StackedDiscount:
    """
    Highest priority first; each discount is computed on what remains
    after the previous ones, so the total never exceeds ``amount``.
    """
    remaining = amount
    applied: List[Tuple[Discount, int]] = []
    skipped: List[str] = []

    ordered = sorted(discounts, key=lambda d: (-d.priority, d.discount_id))
    for discount in ordered:
        if not can_stack([d for d, _ in applied], discount):
            logger.debug("Discount %s skipped: cannot stack", discount.discount_id)
            skipped.append(discount.discount_id)
            continue

        value = calculate_discount(remaining, discount.discount_type, discount.value)
        value = apply_max_discount(value, discount.max_discount_amount, remaining)
        if value > 0:
            applied.append((discount, value))
            remaining -= value

    return StackedDiscount(
        original_amount=amount,
        total_discount=amount - remaining,
        applied=tuple(applied),
        skipped=tuple(skipped),
    )


def requires_approval(percentage: Decimal, threshold: Decimal) -> bool:
    if percentage <= 0 or threshold <= 0:
        return False
    return percentage >= threshold


# ══════════════════════════════════════════════════════════════
# VOLUME TIERS
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class VolumeTier:
    tier_name: str
    discount_percentage: Decimal
    min_quantity: int = 0
    min_amount: int = 0

    def is_met(self, quantity: int, amount: int) -> bool:
        return quantity >= self.min_quantity and amount >= self.min_amount


def find_best_volume_tier(
    tiers: Iterable[VolumeTier], quantity: int, amount: int
) -> Optional[VolumeTier]:
    eligible = [t for t in tiers if t.is_met(quantity, amount)]
    if not eligible:
        return None
    return max(eligible, key=lambda t: (t.discount_percentage, t.min_quantity, t.min_amount))


# ══════════════════════════════════════════════════════════════
# EARLY PAYMENT
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class EarlyPaymentEligibility:
    eligible: bool
    days_elapsed: int
    days_remaining: int
    discount_deadline: date


def early_payment_eligibility(
    invoice_date: date, payment_date: date, discount_days: int
) -> EarlyPaymentEligibility:
    """Eligible when paid within ``discount_days`` of the invoice date."""
    if discount_days < 0:
        raise ValueError("discount_days must be non-negative.")
    days_elapsed = (payment_date - invoice_date).days
    return EarlyPaymentEligibility(
        eligible=0 <= days_elapsed <= discount_days,
        days_elapsed=days_elapsed,
        days_remaining=max(0, discount_days - days_elapsed),
        discount_deadline=invoice_date + timedelta(days=discount_days),
    )


def net_due_date(invoice_date: date, net_days: int) -> date:
    if net_days < 0:
        raise ValueError("net_days must be non-negative.")
    return invoice_date + timedelta(days=net_days)


def is_within_validity(
    valid_from: Optional[date], valid_to: Optional[date], on: date
) -> bool:
    if valid_from is not None and on < valid_from:
        return False
    if valid_to is not None and on > valid_to:
        return False
    return True
