# checkout/api/endpoints/dev.py
"""
Developer tools: simulate a terminal payment status in the checkout UI.

Nothing is sent to the gateway. Unavailable in production.
"""

import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from checkout import crud
from checkout.api import deps
from checkout.core.config import settings
from checkout.core.exceptions import NotFound, PermissionDenied
from checkout.core.limiter import limiter
from checkout.schemas.dev import DEV_ACTION_STATUS, DevStatusRequest
from checkout.schemas.session import SessionUser

router = APIRouter(tags=["Dev"])
logger = logging.getLogger(__name__)


@router.get("/pagment/dev")
@limiter.limit(settings.RATE_LIMIT_GET)
def get_dev_permission(
    request: Request,
    db: Session = Depends(deps.get_db),
    session_user: SessionUser = Depends(deps.get_session_user),
):
    if settings.is_production:
        return {"ok": True, "allowed": False}
    allowed = crud.dev_permission.is_dev(db, discord_id=session_user.discord_id)
    return {"ok": True, "allowed": allowed}


@router.post("/pagment/dev", dependencies=[Depends(deps.enforce_post_guards)])
@limiter.limit(settings.RATE_LIMIT_POST)
def simulate_status(
    request: Request,
    dev_in: DevStatusRequest,
    db: Session = Depends(deps.get_db),
    session_user: SessionUser = Depends(deps.get_session_user),
):
    if settings.is_production:
        raise NotFound("Not available.")
    if not crud.dev_permission.is_dev(db, discord_id=session_user.discord_id):
        raise PermissionDenied("DEV permission required.")

    status = DEV_ACTION_STATUS[dev_in.action]
    status_detail = dev_in.status_detail or f"DEV simulated: {status} (by {session_user.discord_id})"
    logger.info(f"DEV status simulation by {session_user.discord_id}: {status}")
    return {"ok": True, "status": status, "status_detail": status_detail, "kind": dev_in.kind}
