"""
BizzyTrack HTTP API — Framework-Agnostic Handlers
==================================================
Pure handler functions over contracts and injected dependencies.
Every handler returns the JSON envelope from ``core.http_api.errors``.
"""

from __future__ import annotations

import logging
from typing import Any, Callable

from core.commands.rejection import CommandRejected
from core.commands.request_validation import RequestValidationError
from core.http_api.contracts import (
    BusinessReadRequest,
    HandoffCreateHttpRequest,
    HandoffDecisionHttpRequest,
    PricingEvaluateHttpRequest,
    PricingRuleCreateHttpRequest,
    PricingRulesListRequest,
)
from core.http_api.errors import (
    error_response,
    rejection_response,
    success_response,
    validation_error_response,
)
from engines.department.commands import HandoffAcceptRequest, HandoffRejectRequest
from engines.pricing.evaluation import PricingContext

logger = logging.getLogger("bizzytrack.http_api")


def _resolve_language(headers: dict[str, Any] | None) -> str:
    for key, value in (headers or {}).items():
        if str(key).strip().lower() != "accept-language":
            continue
        raw = str(value).strip().lower()
        if not raw:
            break
        lang = raw.split(",")[0].split(";")[0].strip()
        if lang:
            return lang
        break
    return "en"


def _success_with_language(
    data: Any,
    *,
    headers: dict[str, Any] | None = None,
) -> dict[str, Any]:
    return success_response(data, meta={"lang": _resolve_language(headers)})


def _write_result_response(
    command_result,
    resource: Callable[[], Any],
    *,
    headers: dict[str, Any] | None = None,
) -> dict[str, Any]:
    status = command_result.outcome.status.value
    command_id = str(command_result.outcome.command_id)

    if command_result.is_rejected:
        return rejection_response(
            command_result.outcome.reason,
            extra_details={"status": status, "command_id": command_id},
        )

    execution = command_result.execution_result
    event_data = getattr(execution, "event_data", None) or {}
    correlation_id = event_data.get("correlation_id")
    return _success_with_language(
        {
            "status": status,
            "command_id": command_id,
            "event_type": getattr(execution, "event_type", None),
            "correlation_id": None if correlation_id is None else str(correlation_id),
            "projection_applied": getattr(execution, "projection_applied", None),
            "resource": resource(),
        },
        headers=headers,
    )


def _submit(
    request,
    dependencies,
    build_engine_request: Callable[[], Any],
    resource: Callable[[Any], Any],
    *,
    headers: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Build the engine request, run it through the bus, map the result."""
    try:
        services = dependencies.services_for(request.business_id)
        command = build_engine_request().to_command(
            business_id=request.business_id,
            actor_type=request.actor.actor_type,
            actor_id=request.actor.actor_id,
            command_id=dependencies.id_provider.new_command_id(),
            correlation_id=dependencies.id_provider.new_correlation_id(),
            issued_at=dependencies.clock.now_utc(),
        )
        command_result = services.command_bus.handle(command)
    except CommandRejected as exc:
        return rejection_response(exc.reason)
    except RequestValidationError as exc:
        return validation_error_response(exc)
    except ValueError as exc:
        return error_response(code="INVALID_REQUEST", message=str(exc))
    except Exception as exc:
        logger.exception("Command handler failed")
        return error_response(
            code="HANDLER_EXECUTION_FAILED",
            message="Failed to execute command.",
            details={"error_type": type(exc).__name__},
        )
    return _write_result_response(
        command_result, lambda: resource(services), headers=headers,
    )


# ══════════════════════════════════════════════════════════════
# PRICING
# ══════════════════════════════════════════════════════════════

def post_pricing_evaluate(
    request: PricingEvaluateHttpRequest,
    dependencies,
    headers: dict[str, Any] | None = None,
) -> dict[str, Any]:
    try:
        context = PricingContext(
            base_price=request.base_price,
            at=request.at,
            quantity=request.quantity,
            customer_category_id=request.customer_category_id,
            service_id=request.service_id,
            package_id=request.package_id,
            customer_id=request.customer_id,
            category_id=request.category_id,
        )
    except (TypeError, ValueError) as exc:
        return error_response(code="INVALID_REQUEST", message=str(exc))

    pricing = dependencies.services_for(request.business_id).pricing
    if request.user_id:
        data = pricing.quote(context, request.user_id).to_dict()
    else:
        data = pricing.evaluate(context).to_dict()
    return _success_with_language(data, headers=headers)


def post_pricing_rule_create(
    request: PricingRuleCreateHttpRequest,
    dependencies,
    headers: dict[str, Any] | None = None,
) -> dict[str, Any]:
    def _resource(services):
        rule = services.pricing.projection_store.get_rule(
            request.business_id, request.rule.rule_id
        )
        return None if rule is None else rule.to_dict()

    return _submit(request, dependencies, lambda: request.rule, _resource,
                   headers=headers)


def list_pricing_rules(
    request: PricingRulesListRequest,
    dependencies,
    headers: dict[str, Any] | None = None,
) -> dict[str, Any]:
    pricing = dependencies.services_for(request.business_id).pricing
    rules = pricing.projection_store.list_rules(
        request.business_id,
        status=request.status,
        rule_type=request.rule_type,
        target_entity=request.target_entity,
    )
    return _success_with_language(
        {"count": len(rules), "items": [r.to_dict() for r in rules]},
        headers=headers,
    )


# ══════════════════════════════════════════════════════════════
# DEPARTMENT HANDOFFS
# ══════════════════════════════════════════════════════════════

def _handoff_resource(handoff_id: str):
    return lambda services: services.department.get_handoff(handoff_id)


def post_handoff_create(
    request: HandoffCreateHttpRequest,
    dependencies,
    headers: dict[str, Any] | None = None,
) -> dict[str, Any]:
    return _submit(
        request, dependencies, lambda: request.handoff,
        _handoff_resource(request.handoff.handoff_id), headers=headers,
    )


def post_handoff_accept(
    request: HandoffDecisionHttpRequest,
    dependencies,
    headers: dict[str, Any] | None = None,
) -> dict[str, Any]:
    return _submit(
        request, dependencies,
        lambda: HandoffAcceptRequest(
            handoff_id=request.handoff_id, assigned_to=request.assigned_to,
        ),
        _handoff_resource(request.handoff_id), headers=headers,
    )


def post_handoff_reject(
    request: HandoffDecisionHttpRequest,
    dependencies,
    headers: dict[str, Any] | None = None,
) -> dict[str, Any]:
    return _submit(
        request, dependencies,
        lambda: HandoffRejectRequest(
            handoff_id=request.handoff_id, reason=request.reason,
        ),
        _handoff_resource(request.handoff_id), headers=headers,
    )


def list_pending_handoffs(
    request: BusinessReadRequest,
    dependencies,
    headers: dict[str, Any] | None = None,
) -> dict[str, Any]:
    department = dependencies.services_for(request.business_id).department
    items = department.pending_handoffs()
    return _success_with_language(
        {"count": len(items), "items": items}, headers=headers,
    )


# ══════════════════════════════════════════════════════════════
# ACCOUNTING
# ══════════════════════════════════════════════════════════════

def get_trial_balance(
    request: BusinessReadRequest,
    dependencies,
    headers: dict[str, Any] | None = None,
) -> dict[str, Any]:
    accounting = dependencies.services_for(request.business_id).accounting
    return _success_with_language(accounting.trial_balance(), headers=headers)
