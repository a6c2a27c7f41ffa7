"""
BizzyTrack HTTP API — Public API
=================================
"""

from core.http_api.contracts import (
    ActorMetadata,
    BusinessReadRequest,
    HandoffCreateHttpRequest,
    HandoffDecisionHttpRequest,
    HttpApiErrorBody,
    HttpApiResponse,
    PricingEvaluateHttpRequest,
    PricingRuleCreateHttpRequest,
    PricingRulesListRequest,
)
from core.http_api.dependencies import (
    BusinessServices,
    HttpApiDependencies,
    IdProvider,
    UuidIdProvider,
)
from core.http_api.errors import (
    error_response,
    map_rejection_reason,
    rejection_response,
    success_response,
    validation_error_response,
)
from core.http_api.handlers import (
    get_trial_balance,
    list_pending_handoffs,
    list_pricing_rules,
    post_handoff_accept,
    post_handoff_create,
    post_handoff_reject,
    post_pricing_evaluate,
    post_pricing_rule_create,
)

__all__ = [
    "ActorMetadata",
    "BusinessReadRequest",
    "BusinessServices",
    "HandoffCreateHttpRequest",
    "HandoffDecisionHttpRequest",
    "HttpApiDependencies",
    "HttpApiErrorBody",
    "HttpApiResponse",
    "IdProvider",
    "PricingEvaluateHttpRequest",
    "PricingRuleCreateHttpRequest",
    "PricingRulesListRequest",
    "UuidIdProvider",
    "error_response",
    "get_trial_balance",
    "list_pending_handoffs",
    "list_pricing_rules",
    "map_rejection_reason",
    "post_handoff_accept",
    "post_handoff_create",
    "post_handoff_reject",
    "post_pricing_evaluate",
    "post_pricing_rule_create",
    "rejection_response",
    "success_response",
    "validation_error_response",
]
