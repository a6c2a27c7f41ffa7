"""
BizzyTrack Django Adapter Views
================================
Pass-through HTTP views over core/http_api handlers.
"""

from __future__ import annotations

import json
import uuid
from typing import Any

from django.http import HttpRequest, JsonResponse
from django.utils.dateparse import parse_date, parse_datetime
from django.views.decorators.csrf import csrf_exempt

from adapters.django_api.wiring import build_dependencies
from core.commands.request_validation import RequestValidationError
from core.config.rules import DEFAULT_RULE_PRIORITY
from core.http_api.contracts import (
    ActorMetadata,
    BusinessReadRequest,
    HandoffCreateHttpRequest,
    HandoffDecisionHttpRequest,
    PricingEvaluateHttpRequest,
    PricingRuleCreateHttpRequest,
    PricingRulesListRequest,
)
from core.http_api.errors import error_response, validation_error_response
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
from engines.department.commands import HandoffCreateRequest
from engines.pricing.commands import PricingRuleCreateRequest, parse_decimal


def _headers_from_request(request: HttpRequest) -> dict[str, str]:
    return {str(key): str(value) for key, value in request.headers.items()}


def _json_error(code: str, message: str, status: int = 400) -> JsonResponse:
    return JsonResponse(
        error_response(code=code, message=message, details={}),
        status=status,
    )


def _parse_uuid(value: Any, field_name: str) -> uuid.UUID:
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError, AttributeError) as exc:
        raise ValueError(f"{field_name} must be a valid UUID.") from exc


def _parse_json_body(request: HttpRequest) -> dict[str, Any]:
    if not request.body:
        return {}
    try:
        parsed = json.loads(request.body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise ValueError("Request body must be valid JSON.") from exc
    if not isinstance(parsed, dict):
        raise ValueError("Request body must be a JSON object.")
    return parsed


def _parse_actor_metadata(body: dict[str, Any]) -> ActorMetadata:
    actor_payload = body.get("actor")
    if not isinstance(actor_payload, dict):
        raise ValueError("actor must be an object.")
    return ActorMetadata(
        actor_type=actor_payload["actor_type"],
        actor_id=actor_payload["actor_id"],
    )


def _parse_optional_date(value: Any, field_name: str):
    if value in (None, ""):
        return None
    parsed = parse_date(str(value))
    if parsed is None:
        raise ValueError(f"{field_name} must be an ISO date.")
    return parsed


def _parse_int(value: Any, field_name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{field_name} must be an integer.")
    return value


def _dispatch_read(read_handler, contract_factory, request: HttpRequest) -> JsonResponse:
    headers = _headers_from_request(request)
    try:
        business_id_raw = request.GET.get("business_id")
        if business_id_raw is None:
            raise ValueError("business_id is required.")
        contract = contract_factory(
            query=request.GET,
            business_id=_parse_uuid(business_id_raw, "business_id"),
        )
    except (ValueError, KeyError) as exc:
        return _json_error("INVALID_REQUEST", str(exc), status=400)

    return JsonResponse(read_handler(contract, build_dependencies(), headers=headers))


def _dispatch_write(write_handler, contract_factory, request: HttpRequest) -> JsonResponse:
    headers = _headers_from_request(request)
    try:
        body = _parse_json_body(request)
        contract = contract_factory(
            body=body,
            business_id=_parse_uuid(body.get("business_id"), "business_id"),
        )
    except RequestValidationError as exc:
        return JsonResponse(validation_error_response(exc), status=400)
    except KeyError as exc:
        return _json_error("INVALID_REQUEST", f"Missing field: {exc.args[0]}.", status=400)
    except (ValueError, TypeError) as exc:
        return _json_error("INVALID_REQUEST", str(exc), status=400)

    return JsonResponse(write_handler(contract, build_dependencies(), headers=headers))


def _method_not_allowed() -> JsonResponse:
    return _json_error(
        "METHOD_NOT_ALLOWED",
        "Method not allowed for this endpoint.",
        status=405,
    )


# ── contract factories ────────────────────────────────────────

def _business_read_contract_factory(*, query, business_id):
    return BusinessReadRequest(business_id=business_id)


def _pricing_rules_list_contract_factory(*, query, business_id):
    return PricingRulesListRequest(
        business_id=business_id,
        status=query.get("status") or None,
        rule_type=query.get("rule_type") or None,
        target_entity=query.get("target_entity") or None,
    )


def _pricing_evaluate_contract_factory(*, body, business_id):
    at = parse_datetime(str(body["at"]))
    if at is None:
        raise ValueError("at must be an ISO datetime.")
    return PricingEvaluateHttpRequest(
        business_id=business_id,
        base_price=_parse_int(body["base_price"], "base_price"),
        at=at,
        quantity=_parse_int(body.get("quantity", 1), "quantity"),
        user_id=body.get("user_id"),
        customer_category_id=body.get("customer_category_id"),
        service_id=body.get("service_id"),
        package_id=body.get("package_id"),
        customer_id=body.get("customer_id"),
        category_id=body.get("category_id"),
    )


def _pricing_rule_create_contract_factory(*, body, business_id):
    rule = body["rule"]
    if not isinstance(rule, dict):
        raise ValueError("rule must be an object.")
    return PricingRuleCreateHttpRequest(
        business_id=business_id,
        actor=_parse_actor_metadata(body),
        rule=PricingRuleCreateRequest(
            rule_id=rule["rule_id"],
            name=rule["name"],
            rule_type=rule["rule_type"],
            adjustment_type=rule["adjustment_type"],
            adjustment_value=parse_decimal(rule["adjustment_value"], "adjustment_value"),
            target_entity=rule["target_entity"],
            conditions=rule.get("conditions") or {},
            description=rule.get("description") or "",
            target_id=rule.get("target_id"),
            priority=rule.get("priority", DEFAULT_RULE_PRIORITY),
            is_active=bool(rule.get("is_active", True)),
            valid_from=_parse_optional_date(rule.get("valid_from"), "valid_from"),
            valid_until=_parse_optional_date(rule.get("valid_until"), "valid_until"),
        ),
    )


def _handoff_create_contract_factory(*, body, business_id):
    return HandoffCreateHttpRequest(
        business_id=business_id,
        actor=_parse_actor_metadata(body),
        handoff=HandoffCreateRequest(
            handoff_id=body["handoff_id"],
            job_id=body["job_id"],
            from_department_id=body["from_department_id"],
            to_department_id=body["to_department_id"],
            handoff_notes=body.get("handoff_notes"),
            required_actions=body.get("required_actions"),
        ),
    )


def _handoff_decision_contract_factory(*, body, business_id):
    return HandoffDecisionHttpRequest(
        business_id=business_id,
        actor=_parse_actor_metadata(body),
        handoff_id=body["handoff_id"],
        assigned_to=body.get("assigned_to"),
        reason=body.get("reason"),
    )


# ── views ─────────────────────────────────────────────────────

@csrf_exempt
def pricing_evaluate_view(request: HttpRequest) -> JsonResponse:
    if request.method != "POST":
        return _method_not_allowed()
    return _dispatch_write(
        post_pricing_evaluate, _pricing_evaluate_contract_factory, request,
    )


@csrf_exempt
def pricing_rules_list_view(request: HttpRequest) -> JsonResponse:
    if request.method != "GET":
        return _method_not_allowed()
    return _dispatch_read(
        list_pricing_rules, _pricing_rules_list_contract_factory, request,
    )


@csrf_exempt
def pricing_rules_create_view(request: HttpRequest) -> JsonResponse:
    if request.method != "POST":
        return _method_not_allowed()
    return _dispatch_write(
        post_pricing_rule_create, _pricing_rule_create_contract_factory, request,
    )


@csrf_exempt
def handoffs_create_view(request: HttpRequest) -> JsonResponse:
    if request.method != "POST":
        return _method_not_allowed()
    return _dispatch_write(
        post_handoff_create, _handoff_create_contract_factory, request,
    )


@csrf_exempt
def handoffs_accept_view(request: HttpRequest) -> JsonResponse:
    if request.method != "POST":
        return _method_not_allowed()
    return _dispatch_write(
        post_handoff_accept, _handoff_decision_contract_factory, request,
    )


@csrf_exempt
def handoffs_reject_view(request: HttpRequest) -> JsonResponse:
    if request.method != "POST":
        return _method_not_allowed()
    return _dispatch_write(
        post_handoff_reject, _handoff_decision_contract_factory, request,
    )


@csrf_exempt
def handoffs_pending_view(request: HttpRequest) -> JsonResponse:
    if request.method != "GET":
        return _method_not_allowed()
    return _dispatch_read(
        list_pending_handoffs, _business_read_contract_factory, request,
    )


@csrf_exempt
def trial_balance_view(request: HttpRequest) -> JsonResponse:
    if request.method != "GET":
        return _method_not_allowed()
    return _dispatch_read(
        get_trial_balance, _business_read_contract_factory, request,
    )
