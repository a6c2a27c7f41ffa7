"""
BizzyTrack HTTP API — Contracts
================================
Framework-agnostic request/response DTOs.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from engines.department.commands import HandoffCreateRequest
from engines.pricing.commands import PricingRuleCreateRequest


def _check_business(business_id) -> None:
    if not isinstance(business_id, uuid.UUID):
        raise ValueError("business_id must be UUID.")


def _check_actor(actor) -> None:
    if not isinstance(actor, ActorMetadata):
        raise ValueError("actor must be ActorMetadata.")


@dataclass(frozen=True)
class ActorMetadata:
    actor_type: str
    actor_id: str

    def __post_init__(self):
        if not self.actor_type or not isinstance(self.actor_type, str):
            raise ValueError("actor_type must be a non-empty string.")
        if not self.actor_id or not isinstance(self.actor_id, str):
            raise ValueError("actor_id must be a non-empty string.")


@dataclass(frozen=True)
class BusinessReadRequest:
    business_id: uuid.UUID

    def __post_init__(self):
        _check_business(self.business_id)


@dataclass(frozen=True)
class PricingRulesListRequest:
    business_id: uuid.UUID
    status: Optional[str] = None
    rule_type: Optional[str] = None
    target_entity: Optional[str] = None

    def __post_init__(self):
        _check_business(self.business_id)
        if self.status not in (None, "active", "inactive"):
            raise ValueError("status must be 'active' or 'inactive'.")


@dataclass(frozen=True)
class PricingEvaluateHttpRequest:
    """base_price is minor units; user_id enables the approval check."""
    business_id: uuid.UUID
    base_price: int
    at: datetime
    quantity: int = 1
    user_id: Optional[str] = None
    customer_category_id: Optional[str] = None
    service_id: Optional[str] = None
    package_id: Optional[str] = None
    customer_id: Optional[str] = None
    category_id: Optional[str] = None

    def __post_init__(self):
        _check_business(self.business_id)
        if not isinstance(self.at, datetime) or self.at.tzinfo is None:
            raise ValueError("at must be a timezone-aware datetime.")


@dataclass(frozen=True)
class PricingRuleCreateHttpRequest:
    business_id: uuid.UUID
    actor: ActorMetadata
    rule: PricingRuleCreateRequest

    def __post_init__(self):
        _check_business(self.business_id)
        _check_actor(self.actor)


@dataclass(frozen=True)
class HandoffCreateHttpRequest:
    business_id: uuid.UUID
    actor: ActorMetadata
    handoff: HandoffCreateRequest

    def __post_init__(self):
        _check_business(self.business_id)
        _check_actor(self.actor)


@dataclass(frozen=True)
class HandoffDecisionHttpRequest:
    """Accept (with optional assignee) or reject (with optional reason)."""
    business_id: uuid.UUID
    actor: ActorMetadata
    handoff_id: str
    assigned_to: Optional[str] = None
    reason: Optional[str] = None

    def __post_init__(self):
        _check_business(self.business_id)
        _check_actor(self.actor)
        if not self.handoff_id or not isinstance(self.handoff_id, str):
            raise ValueError("handoff_id must be a non-empty string.")


@dataclass(frozen=True)
class HttpApiErrorBody:
    code: str
    message: str
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "details": dict(self.details),
        }


@dataclass(frozen=True)
class HttpApiResponse:
    ok: bool
    data: Any = None
    error: Optional[HttpApiErrorBody] = None
    meta: Optional[dict[str, Any]] = None

    def to_dict(self) -> dict[str, Any]:
        if self.ok:
            body = {"ok": True, "data": self.data}
            if self.meta:
                body["meta"] = dict(self.meta)
            return body
        if self.error is None:
            raise ValueError("error must be set when ok is False.")
        return {"ok": False, "error": self.error.to_dict()}
