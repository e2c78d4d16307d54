# checkout/core/middleware.py
import logging
import uuid

from fastapi import Request

from checkout.core.exceptions import unexpected_error_handler
from checkout.core.security import clear_session_cookies

logger = logging.getLogger(__name__)

SECURE_HEADERS = {
    "Cache-Control": "no-store",
    "X-Content-Type-Options": "nosniff",
    "Referrer-Policy": "same-origin",
}


async def trace_and_security_headers_middleware(request: Request, call_next):
    """
    Tag each request with a trace id and harden /api responses.

    - request.state.trace_id is set before routing and echoed as X-Trace-Id
    - /api responses are never cached
    - Unhandled errors are rendered here so the 500 carries the same headers
    - A request flagged with clear_session drops both session cookies
    """
    trace_id = str(uuid.uuid4())
    request.state.trace_id = trace_id
    request.state.clear_session = False

    try:
        response = await call_next(request)
    except Exception as e:
        response = await unexpected_error_handler(request, e)

    response.headers["X-Trace-Id"] = trace_id
    if request.url.path.startswith("/api"):
        for name, value in SECURE_HEADERS.items():
            response.headers[name] = value
    if request.state.clear_session:
        clear_session_cookies(response)
    return response
