# checkout/core/security.py
"""
Signed session cookies.

The session is split across two cookies:

    discord_user      base64url(JSON SessionUser)
    discord_user_sig  base64url(HMAC-SHA256(SESSION_SECRET, discord_user))

Anything that fails verification (bad signature, malformed payload, unknown
version, expired) is rejected with InvalidSession and the caller clears both
cookies.
"""

import base64
import hashlib
import hmac
import json
import secrets
import time
from typing import Any, Dict, Optional, Tuple

from fastapi import Response
from pydantic import ValidationError

from checkout.core.config import settings
from checkout.schemas.session import SessionUser

SESSION_COOKIE = "discord_user"
SESSION_SIG_COOKIE = "discord_user_sig"
OAUTH_STATE_COOKIE = "discord_oauth_state"
SESSION_VERSION = 1


class InvalidSession(Exception):
    pass


def _b64url_encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def _b64url_decode(value: str) -> bytes:
    return base64.urlsafe_b64decode(value + "=" * (-len(value) % 4))


def _signature(payload: str, secret: Optional[str] = None) -> str:
    key = (secret if secret is not None else settings.SESSION_SECRET).encode("utf-8")
    return _b64url_encode(hmac.new(key, payload.encode("ascii"), hashlib.sha256).digest())


def new_oauth_state() -> str:
    return secrets.token_urlsafe(24)


def session_user_from_profile(profile: Dict[str, Any], now: Optional[float] = None) -> SessionUser:
    now = time.time() if now is None else now
    return SessionUser(
        v=SESSION_VERSION,
        discord_id=str(profile["id"]),
        username=profile.get("username"),
        avatar=profile.get("avatar"),
        exp=int(now) + settings.SESSION_MAX_AGE_SECONDS,
    )


def sign_session(user: SessionUser, secret: Optional[str] = None) -> Tuple[str, str]:
    """Return (payload_cookie, signature_cookie) for a session user."""
    payload = _b64url_encode(user.model_dump_json().encode("utf-8"))
    return payload, _signature(payload, secret)


def verify_session(payload: str, signature: str, *, secret: Optional[str] = None,
                   now: Optional[float] = None) -> SessionUser:
    if not payload or not signature:
        raise InvalidSession("missing cookie")
    if not hmac.compare_digest(signature, _signature(payload, secret)):
        raise InvalidSession("bad signature")

    try:
        data = json.loads(_b64url_decode(payload))
        user = SessionUser.model_validate(data)
    except (ValueError, ValidationError) as e:
        raise InvalidSession(f"malformed payload: {e}")

    if user.v != SESSION_VERSION:
        raise InvalidSession(f"unsupported version {user.v}")
    now = time.time() if now is None else now
    if user.exp <= now:
        raise InvalidSession("expired")
    if not user.discord_id.strip():
        raise InvalidSession("empty discord_id")
    return user


def _cookie_options() -> Dict[str, Any]:
    return {
        "httponly": True,
        "secure": settings.is_production,
        "samesite": "lax",
        "path": "/",
    }


def set_session_cookies(response: Response, user: SessionUser) -> None:
    payload, signature = sign_session(user)
    max_age = max(0, user.exp - int(time.time()))
    response.set_cookie(SESSION_COOKIE, payload, max_age=max_age, **_cookie_options())
    response.set_cookie(SESSION_SIG_COOKIE, signature, max_age=max_age, **_cookie_options())


def clear_session_cookies(response: Response) -> None:
    options = _cookie_options()
    for name in (SESSION_COOKIE, SESSION_SIG_COOKIE):
        response.delete_cookie(name, path=options["path"], secure=options["secure"],
                               httponly=options["httponly"], samesite=options["samesite"])
