"""
BizzyTrack Core Config — Public API
====================================
Admin-configurable business rules (pricing policy, chart of accounts).
"""

from core.config.rules import (
    DEFAULT_RULE_PRIORITY,
    MAX_RULE_PRIORITY,
    MIN_RULE_PRIORITY,
    ChartOfAccountsMap,
    ConfigStore,
    InMemoryConfigStore,
    PricingPolicyConfig,
)

__all__ = [
    "DEFAULT_RULE_PRIORITY",
    "MIN_RULE_PRIORITY",
    "MAX_RULE_PRIORITY",
    "ChartOfAccountsMap",
    "ConfigStore",
    "InMemoryConfigStore",
    "PricingPolicyConfig",
]
