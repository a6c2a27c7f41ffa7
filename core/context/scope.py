"""
BizzyTrack Context — Scope Constants
=====================================
Scope requirements are owned by the command, not by the context.

SCOPE_BUSINESS_ALLOWED: the command may run business-wide.
SCOPE_BRANCH_REQUIRED:  the command must name a branch of the business.
"""

SCOPE_BUSINESS_ALLOWED = "SCOPE_BUSINESS_ALLOWED"
SCOPE_BRANCH_REQUIRED = "SCOPE_BRANCH_REQUIRED"

VALID_SCOPE_REQUIREMENTS = frozenset(
    {SCOPE_BUSINESS_ALLOWED, SCOPE_BRANCH_REQUIRED}
)
