"""
BizzyTrack HTTP API — Error Mapping
====================================
Stable transport envelope for rejections, validation failures and
handler errors:

    {"ok": true,  "data": ...}
    {"ok": false, "error": {"code", "message", "details"}}
"""

from __future__ import annotations

from typing import Any, Optional

from core.commands.rejection import RejectionReason
from core.commands.request_validation import RequestValidationError
from core.http_api.contracts import HttpApiErrorBody, HttpApiResponse

VALIDATION_ERROR = "VALIDATION_ERROR"


def error_response(
    *,
    code: str,
    message: str,
    details: Optional[dict[str, Any]] = None,
) -> dict[str, Any]:
    return HttpApiResponse(
        ok=False,
        error=HttpApiErrorBody(
            code=code,
            message=message,
            details=details or {},
        ),
    ).to_dict()


def success_response(
    data: Any,
    *,
    meta: Optional[dict[str, Any]] = None,
) -> dict[str, Any]:
    return HttpApiResponse(ok=True, data=data, meta=meta).to_dict()


def map_rejection_reason(reason: RejectionReason) -> HttpApiErrorBody:
    return HttpApiErrorBody(
        code=reason.code,
        message=reason.message,
        details={"policy_name": reason.policy_name},
    )


def rejection_response(
    reason: RejectionReason,
    *,
    extra_details: Optional[dict[str, Any]] = None,
) -> dict[str, Any]:
    mapped = map_rejection_reason(reason)
    details = dict(mapped.details)
    if extra_details:
        details.update(extra_details)
    return error_response(
        code=mapped.code,
        message=mapped.message,
        details=details,
    )


def validation_error_response(exc: RequestValidationError) -> dict[str, Any]:
    return error_response(
        code=VALIDATION_ERROR,
        message=str(exc),
        details=exc.to_details(),
    )
