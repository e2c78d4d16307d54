# checkout/core/exceptions.py
"""
Structured errors for the checkout API.

Every error raised by services and endpoints derives from CheckoutError and is
rendered by a single exception handler as:

    {"ok": false, "message": ..., "traceId": ..., **extra}

- Validation errors (400) carry field-level detail
- Authorization errors (401/403)
- Upstream gateway errors (422/403/500) carry a remediation hint when known
- Rate-limit errors (429) carry Retry-After
- Anything unexpected becomes a generic 500 with the trace id
"""

import logging
from typing import Any, Dict, Optional

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded

logger = logging.getLogger(__name__)


class ErrorCategory:
    """Error categories for structured error handling"""
    VALIDATION = "validation_error"
    COUPON = "coupon_error"
    AUTHENTICATION = "authentication_error"
    PERMISSION = "permission_error"
    UPSTREAM = "upstream_error"
    CONFIGURATION = "configuration_error"
    RATE_LIMIT = "rate_limit_error"
    NOT_FOUND = "not_found_error"
    INTERNAL = "internal_error"


class CheckoutError(Exception):
    """Base application error with structured information"""

    def __init__(
        self,
        message: str,
        category: str = ErrorCategory.INTERNAL,
        status_code: int = 500,
        extra: Optional[Dict[str, Any]] = None,
        retry_after: Optional[int] = None,
    ):
        self.message = message
        self.category = category
        self.status_code = status_code
        self.extra = extra or {}
        self.retry_after = retry_after
        super().__init__(self.message)


class ValidationFailed(CheckoutError):
    def __init__(self, message: str, extra: Optional[Dict[str, Any]] = None, status_code: int = 400):
        super().__init__(message, ErrorCategory.VALIDATION, status_code, extra)


class CouponRejected(CheckoutError):
    def __init__(self, message: str, coupon: Optional[str] = None):
        super().__init__(message, ErrorCategory.COUPON, 422, {"coupon": coupon})


class Unauthenticated(CheckoutError):
    def __init__(self, message: str = "Not authenticated. Log in with Discord again."):
        super().__init__(message, ErrorCategory.AUTHENTICATION, 401)


class PermissionDenied(CheckoutError):
    def __init__(self, message: str, extra: Optional[Dict[str, Any]] = None):
        super().__init__(message, ErrorCategory.PERMISSION, 403, extra)


class NotFound(CheckoutError):
    def __init__(self, message: str):
        super().__init__(message, ErrorCategory.NOT_FOUND, 404)


class ConfigurationError(CheckoutError):
    def __init__(self, message: str):
        super().__init__(message, ErrorCategory.CONFIGURATION, 500)


class GatewayRejected(CheckoutError):
    """The gateway refused the request for a known, user-fixable reason."""

    def __init__(self, message: str, status_code: int = 422, hint: Optional[str] = None,
                 extra: Optional[Dict[str, Any]] = None):
        payload = dict(extra or {})
        if hint:
            payload["hint"] = hint
        super().__init__(message, ErrorCategory.UPSTREAM, status_code, payload)


class GatewayUnavailable(CheckoutError):
    def __init__(self, message: str = "Payment gateway request failed.",
                 extra: Optional[Dict[str, Any]] = None):
        super().__init__(message, ErrorCategory.UPSTREAM, 500, extra)


def _trace_id(request: Request) -> Optional[str]:
    return getattr(request.state, "trace_id", None)


async def checkout_error_handler(request: Request, error: CheckoutError) -> JSONResponse:
    """Handle structured application errors"""
    trace_id = _trace_id(request)
    log = logger.error if error.status_code >= 500 else logger.info
    log(
        f"[{trace_id}] {error.category} on {request.method} {request.url.path}: "
        f"{error.status_code} {error.message}"
    )

    headers = {}
    if error.retry_after:
        headers["Retry-After"] = str(error.retry_after)

    return JSONResponse(
        status_code=error.status_code,
        content={"ok": False, "message": error.message, "traceId": trace_id, **error.extra},
        headers=headers,
    )


async def validation_error_handler(request: Request, error: RequestValidationError) -> JSONResponse:
    """Handle FastAPI validation errors"""
    errors = []
    for err in error.errors():
        errors.append({
            "field": ".".join(str(loc) for loc in err["loc"] if loc != "body"),
            "message": err["msg"],
        })

    logger.info(f"Validation error on {request.url.path}: {errors}")

    return JSONResponse(
        status_code=400,
        content={
            "ok": False,
            "message": "Invalid payload.",
            "traceId": _trace_id(request),
            "errors": errors,
        },
    )


async def rate_limit_handler(request: Request, error: RateLimitExceeded) -> JSONResponse:
    try:
        retry_after = int(error.limit.limit.get_expiry())
    except AttributeError:
        retry_after = 60

    logger.warning(f"Rate limit exceeded on {request.url.path}: {error.detail}")

    return JSONResponse(
        status_code=429,
        content={
            "ok": False,
            "message": "Too many requests. Try again in a few seconds.",
            "traceId": _trace_id(request),
            "retry_after_sec": retry_after,
        },
        headers={"Retry-After": str(retry_after)},
    )


async def unexpected_error_handler(request: Request, error: Exception) -> JSONResponse:
    trace_id = _trace_id(request)
    logger.exception(f"[{trace_id}] Unexpected error on {request.method} {request.url.path}: {error}")
    return JSONResponse(
        status_code=500,
        content={"ok": False, "message": "Unexpected error.", "traceId": trace_id},
    )
