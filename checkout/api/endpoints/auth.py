# checkout/api/endpoints/auth.py
import logging

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import RedirectResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from checkout import crud
from checkout.api import deps
from checkout.core.config import settings
from checkout.core.exceptions import ConfigurationError
from checkout.core.security import (
    OAUTH_STATE_COOKIE,
    clear_session_cookies,
    new_oauth_state,
    session_user_from_profile,
    set_session_cookies,
)
from checkout.services.discord_oauth import DiscordOAuthClient, DiscordOAuthError, get_discord_oauth_client

router = APIRouter(prefix="/auth", tags=["Auth"])
logger = logging.getLogger(__name__)

STATE_MAX_AGE_SECONDS = 600


def _login_redirect(error: str = "") -> RedirectResponse:
    url = f"{settings.APP_URL}/login"
    if error:
        url += f"?error={error}"
    return RedirectResponse(url, status_code=302)


@router.get("/discord")
def discord_login(oauth: DiscordOAuthClient = Depends(get_discord_oauth_client)):
    """Redirect to Discord's consent screen."""
    if not oauth.is_configured:
        raise ConfigurationError("Discord OAuth is not configured.")

    state = new_oauth_state()
    response = RedirectResponse(oauth.authorize_url(state), status_code=302)
    response.set_cookie(
        OAUTH_STATE_COOKIE,
        state,
        max_age=STATE_MAX_AGE_SECONDS,
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
        path="/",
    )
    return response


@router.get("/discord/callback")
async def discord_callback(
    request: Request,
    code: str = Query(""),
    state: str = Query(""),
    db: Session = Depends(deps.get_db),
    oauth: DiscordOAuthClient = Depends(get_discord_oauth_client),
):
    expected_state = request.cookies.get(OAUTH_STATE_COOKIE)
    if not state or not expected_state or state != expected_state:
        logger.warning("Discord callback with missing or mismatched state")
        response = _login_redirect("state")
        clear_session_cookies(response)
        return response

    if not code:
        return _login_redirect("missing_code")

    try:
        access_token = await oauth.exchange_code(code)
        profile = await oauth.fetch_profile(access_token)
    except DiscordOAuthError as e:
        logger.warning(f"Discord login failed: {e.message}")
        response = _login_redirect("oauth")
        clear_session_cookies(response)
        return response

    try:
        crud.discord_user.upsert_from_profile(db, profile=profile)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Could not store Discord user {profile.get('id')}: {e}")

    response = _login_redirect()
    set_session_cookies(response, session_user_from_profile(profile))
    response.delete_cookie(OAUTH_STATE_COOKIE, path="/")
    logger.info(f"Discord user {profile.get('id')} logged in")
    return response
