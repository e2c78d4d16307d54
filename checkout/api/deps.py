# checkout/api/deps.py
import logging
from typing import Generator, List, Optional

from fastapi import Depends, Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from checkout import crud
from checkout.core.config import settings
from checkout.core.exceptions import PermissionDenied, Unauthenticated, ValidationFailed
from checkout.core.security import SESSION_COOKIE, SESSION_SIG_COOKIE, InvalidSession, verify_session
from checkout.db.session import SessionLocal
from checkout.schemas.session import SessionUser
from checkout.services.payment import PaymentService

logger = logging.getLogger(__name__)


def get_db() -> Generator:
    """Dependency to get database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_session_user_optional(request: Request) -> Optional[SessionUser]:
    """
    The signed-in Discord user, or None.

    A present but invalid session marks the request so the response clears
    both session cookies.
    """
    payload = request.cookies.get(SESSION_COOKIE)
    signature = request.cookies.get(SESSION_SIG_COOKIE)
    if not payload and not signature:
        return None
    try:
        return verify_session(payload or "", signature or "")
    except InvalidSession as e:
        logger.info(f"Rejected session cookie: {e}")
        request.state.clear_session = True
        return None


def get_session_user(user: Optional[SessionUser] = Depends(get_session_user_optional)) -> SessionUser:
    if user is None:
        raise Unauthenticated()
    return user


def get_session_email(
    user: Optional[SessionUser] = Depends(get_session_user_optional),
    db: Session = Depends(get_db),
) -> Optional[str]:
    """Email stored for the signed-in user at login, used as payer email fallback."""
    if user is None:
        return None
    try:
        row = crud.discord_user.get_by_discord_id(db, discord_id=user.discord_id)
    except SQLAlchemyError as e:
        logger.warning(f"Could not load Discord user {user.discord_id}: {e}")
        return None
    return row.email if row and row.email else None


def _origin_allowed(request: Request, allowed: List[str]) -> bool:
    origin = (request.headers.get("origin") or "").rstrip("/")
    if origin:
        return origin in allowed
    referer = request.headers.get("referer") or ""
    return any(referer == o or referer.startswith(o + "/") for o in allowed)


async def enforce_post_guards(request: Request) -> None:
    """Body size, origin (production only) and JSON content type for POST routes."""
    max_bytes = settings.MAX_BODY_BYTES
    declared = request.headers.get("content-length")
    if declared and declared.isdigit() and int(declared) > max_bytes:
        raise ValidationFailed("Payload too large.", status_code=413)
    if len(await request.body()) > max_bytes:
        raise ValidationFailed("Payload too large.", status_code=413)

    if settings.is_production:
        allowed = settings.get_allowed_origins()
        if allowed and not _origin_allowed(request, allowed):
            raise PermissionDenied("Origin not allowed.")

    content_type = (request.headers.get("content-type") or "").lower()
    if not content_type.startswith("application/json"):
        raise ValidationFailed("Content-Type must be application/json.", status_code=415)


def get_payment_service(db: Session = Depends(get_db)) -> PaymentService:
    return PaymentService(db)
