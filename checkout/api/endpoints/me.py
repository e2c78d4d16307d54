# checkout/api/endpoints/me.py
import logging
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from checkout import crud
from checkout.api import deps
from checkout.schemas.session import SessionUser
from checkout.schemas.user import MeResponse, MeUser

router = APIRouter(tags=["Me"])
logger = logging.getLogger(__name__)


@router.get("/me", response_model=MeResponse)
def read_me(
    db: Session = Depends(deps.get_db),
    session_user: Optional[SessionUser] = Depends(deps.get_session_user_optional),
):
    if session_user is None:
        return MeResponse(user=None)

    row = crud.discord_user.get_by_discord_id(db, discord_id=session_user.discord_id)
    if row is None:
        return MeResponse(user=MeUser(
            id=session_user.discord_id,
            username=session_user.username,
            avatar=session_user.avatar,
        ))

    return MeResponse(user=MeUser(
        id=row.discord_id,
        username=row.username,
        avatar=row.avatar,
        avatar_url=row.avatar_url,
        email=row.email,
    ))
