"""
BizzyTrack Core Config — Admin-Configurable Rules
==================================================
Discount limits, approval thresholds and the chart-of-accounts mapping
come from admin-configurable data, never from engine code.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, fields
from decimal import Decimal
from typing import Dict, Optional, Protocol, Tuple

from core.primitives.ledger import AccountRef, AccountType


DEFAULT_RULE_PRIORITY = 50
MIN_RULE_PRIORITY = 1
MAX_RULE_PRIORITY = 100


# ══════════════════════════════════════════════════════════════
# PRICING POLICY
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class PricingPolicyConfig:
    """
    Per-business pricing policy.

    default_user_discount_limit: max discount % a user may grant
        without approval when no per-user limit is configured.
    approval_threshold: discount % at or above which approval is
        always required.
    """

    default_rule_priority: int = DEFAULT_RULE_PRIORITY
    default_user_discount_limit: Decimal = Decimal("20")
    approval_threshold: Decimal = Decimal("20")

    def __post_init__(self) -> None:
        if not MIN_RULE_PRIORITY <= self.default_rule_priority <= MAX_RULE_PRIORITY:
            raise ValueError(
                f"default_rule_priority must be between {MIN_RULE_PRIORITY} "
                f"and {MAX_RULE_PRIORITY}, got {self.default_rule_priority}."
            )
        for name in ("default_user_discount_limit", "approval_threshold"):
            value = getattr(self, name)
            if not isinstance(value, Decimal) or not 0 <= value <= 100:
                raise ValueError(f"{name} must be a Decimal between 0 and 100.")


# ══════════════════════════════════════════════════════════════
# CHART OF ACCOUNTS MAP
# ══════════════════════════════════════════════════════════════

_ACCOUNT_ROLES: Dict[str, Tuple[AccountType, str]] = {
    "cash": (AccountType.ASSET, "Cash"),
    "accounts_receivable": (AccountType.ASSET, "Accounts Receivable"),
    "fixed_assets": (AccountType.ASSET, "Fixed Assets"),
    "inventory": (AccountType.ASSET, "Inventory"),
    "accounts_payable": (AccountType.LIABILITY, "Accounts Payable"),
    "owners_capital": (AccountType.EQUITY, "Owner's Capital"),
    "product_revenue": (AccountType.REVENUE, "Sales Revenue - Products"),
    "service_revenue": (AccountType.REVENUE, "Service Revenue"),
    "cost_of_goods_sold": (AccountType.EXPENSE, "Cost of Goods Sold"),
    "expenses": (AccountType.EXPENSE, "Operating Expenses"),
}


@dataclass(frozen=True)
class ChartOfAccountsMap:
    """
    Account codes used when generating journal entries.

    Fixed assets and inventory share 1300 by default; equipment hire
    revenue is booked to the service revenue account.
    """

    cash: str = "1110"
    accounts_receivable: str = "1200"
    fixed_assets: str = "1300"
    inventory: str = "1300"
    accounts_payable: str = "2100"
    owners_capital: str = "3100"
    product_revenue: str = "4100"
    service_revenue: str = "4200"
    cost_of_goods_sold: str = "5100"
    expenses: str = "5200"

    def __post_init__(self) -> None:
        for f in fields(self):
            if not getattr(self, f.name):
                raise ValueError(f"Account code for '{f.name}' must be non-empty.")

    def ref(self, role: str) -> AccountRef:
        if role not in _ACCOUNT_ROLES:
            raise KeyError(f"Unknown account role '{role}'.")
        account_type, name = _ACCOUNT_ROLES[role]
        return AccountRef(
            account_code=getattr(self, role),
            account_type=account_type,
            name=name,
        )

    def codes(self) -> frozenset:
        return frozenset(getattr(self, f.name) for f in fields(self))


# ══════════════════════════════════════════════════════════════
# CONFIG STORE PROTOCOL
# ══════════════════════════════════════════════════════════════

class ConfigStore(Protocol):
    def get_pricing_policy(self, business_id: uuid.UUID) -> PricingPolicyConfig:
        ...  # pragma: no cover

    def get_user_discount_limit(
        self, business_id: uuid.UUID, user_id: str
    ) -> Decimal:
        ...  # pragma: no cover

    def get_chart_of_accounts(self, business_id: uuid.UUID) -> ChartOfAccountsMap:
        ...  # pragma: no cover


# ══════════════════════════════════════════════════════════════
# IN-MEMORY CONFIG STORE (for testing / bootstrap)
# ══════════════════════════════════════════════════════════════

class InMemoryConfigStore:
    """Unconfigured businesses get the defaults."""

    def __init__(self) -> None:
        self._pricing: Dict[uuid.UUID, PricingPolicyConfig] = {}
        self._user_limits: Dict[Tuple[uuid.UUID, str], Decimal] = {}
        self._charts: Dict[uuid.UUID, ChartOfAccountsMap] = {}

    def set_pricing_policy(
        self, business_id: uuid.UUID, config: PricingPolicyConfig
    ) -> None:
        self._pricing[business_id] = config

    def set_user_discount_limit(
        self, business_id: uuid.UUID, user_id: str, limit: Decimal
    ) -> None:
        if not 0 <= limit <= 100:
            raise ValueError("Discount limit must be between 0 and 100.")
        self._user_limits[(business_id, user_id)] = Decimal(limit)

    def set_chart_of_accounts(
        self, business_id: uuid.UUID, chart: ChartOfAccountsMap
    ) -> None:
        self._charts[business_id] = chart

    def get_pricing_policy(self, business_id: uuid.UUID) -> PricingPolicyConfig:
        return self._pricing.get(business_id, PricingPolicyConfig())

    def get_user_discount_limit(
        self, business_id: uuid.UUID, user_id: str
    ) -> Decimal:
        limit: Optional[Decimal] = self._user_limits.get((business_id, user_id))
        if limit is None:
            return self.get_pricing_policy(business_id).default_user_discount_limit
        return limit

    def get_chart_of_accounts(self, business_id: uuid.UUID) -> ChartOfAccountsMap:
        return self._charts.get(business_id, ChartOfAccountsMap())
