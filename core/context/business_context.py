"""
BizzyTrack Context — BusinessContext
=====================================
The tenant a command bus, event store or engine service is bound to.
One BizzyTrack business owns its branches, its base currency and its
lifecycle state; every write is checked against this context.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import FrozenSet, Optional

LIFECYCLE_STATES = frozenset({"ACTIVE", "SUSPENDED", "CLOSED"})


@dataclass(frozen=True)
class BusinessContext:
    """
    business_id is mandatory.

    branch_ids lists the branches known to belong to the business. An
    empty set means branches are not tracked and any branch is accepted.
    """

    business_id: uuid.UUID
    branch_ids: FrozenSet[uuid.UUID] = field(default_factory=frozenset)
    currency: str = "UGX"
    lifecycle_state: str = "ACTIVE"
    active: bool = True

    def __post_init__(self):
        if not isinstance(self.business_id, uuid.UUID):
            raise ValueError("business_id must be UUID.")
        if not all(isinstance(b, uuid.UUID) for b in self.branch_ids):
            raise ValueError("branch_ids must contain UUIDs only.")
        object.__setattr__(self, "branch_ids", frozenset(self.branch_ids))
        if not isinstance(self.currency, str) or len(self.currency) != 3:
            raise ValueError("currency must be a 3-letter ISO 4217 code.")
        if self.lifecycle_state not in LIFECYCLE_STATES:
            raise ValueError(
                f"lifecycle_state '{self.lifecycle_state}' not valid. "
                f"Must be one of: {sorted(LIFECYCLE_STATES)}"
            )

    def has_active_context(self) -> bool:
        return self.active

    def get_active_business_id(self) -> Optional[uuid.UUID]:
        return self.business_id if self.active else None

    def is_branch_in_business(
        self, branch_id: uuid.UUID, business_id: uuid.UUID
    ) -> bool:
        if business_id != self.business_id:
            return False
        return not self.branch_ids or branch_id in self.branch_ids

    def get_business_lifecycle_state(self) -> str:
        return self.lifecycle_state
