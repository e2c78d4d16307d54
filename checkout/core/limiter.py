# checkout/core/limiter.py
"""
Rate limiter configuration module.
Separated to avoid circular imports.
"""

from slowapi import Limiter
from starlette.requests import Request

from checkout.core.config import settings


def get_client_ip(request: Request) -> str:
    """First hop of X-Forwarded-For, then X-Real-IP, then the peer address."""
    forwarded = request.headers.get("x-forwarded-for", "").split(",")[0].strip()
    if forwarded:
        return forwarded
    real_ip = request.headers.get("x-real-ip", "").strip()
    if real_ip:
        return real_ip
    return request.client.host if request.client else "unknown"


# Rate limiter configuration - uses the client IP as key
limiter = Limiter(key_func=get_client_ip, storage_uri=settings.RATE_LIMIT_STORAGE_URI)
