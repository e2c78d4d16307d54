# checkout/services/discord_oauth.py
"""
Discord OAuth2 authorization-code flow (scope: identify email).
"""

import logging
from typing import Any, Dict, Optional
from urllib.parse import urlencode

import httpx

from checkout.core.config import settings

logger = logging.getLogger(__name__)

OAUTH_SCOPE = "identify email"


class DiscordOAuthError(Exception):
    def __init__(self, message: str, status_code: Optional[int] = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class DiscordOAuthClient:

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        self._transport = transport

    @property
    def is_configured(self) -> bool:
        return bool(settings.DISCORD_CLIENT_ID and settings.DISCORD_CLIENT_SECRET and settings.DISCORD_REDIRECT_URI)

    def authorize_url(self, state: str) -> str:
        query = urlencode({
            "client_id": settings.DISCORD_CLIENT_ID,
            "redirect_uri": settings.DISCORD_REDIRECT_URI,
            "response_type": "code",
            "scope": OAUTH_SCOPE,
            "state": state,
        })
        return f"{settings.DISCORD_AUTHORIZE_URL}?{query}"

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=settings.DISCORD_API_BASE_URL,
            timeout=10.0,
            transport=self._transport,
        )

    async def exchange_code(self, code: str) -> str:
        """Exchange an authorization code for an access token."""
        async with self._client() as client:
            try:
                response = await client.post(
                    "/oauth2/token",
                    data={
                        "client_id": settings.DISCORD_CLIENT_ID,
                        "client_secret": settings.DISCORD_CLIENT_SECRET,
                        "grant_type": "authorization_code",
                        "code": code,
                        "redirect_uri": settings.DISCORD_REDIRECT_URI,
                    },
                    headers={"Content-Type": "application/x-www-form-urlencoded"},
                )
            except httpx.HTTPError as e:
                raise DiscordOAuthError(f"Token request failed: {e}")

        if response.status_code != 200:
            logger.warning(f"Discord token exchange failed: {response.status_code} {response.text[:200]}")
            raise DiscordOAuthError("Token exchange failed", response.status_code)

        token = response.json().get("access_token")
        if not token:
            raise DiscordOAuthError("Token response has no access_token")
        return token

    async def fetch_profile(self, access_token: str) -> Dict[str, Any]:
        async with self._client() as client:
            try:
                response = await client.get("/users/@me", headers={"Authorization": f"Bearer {access_token}"})
            except httpx.HTTPError as e:
                raise DiscordOAuthError(f"Profile request failed: {e}")

        if response.status_code != 200:
            logger.warning(f"Discord profile fetch failed: {response.status_code}")
            raise DiscordOAuthError("Profile fetch failed", response.status_code)

        profile = response.json()
        if not isinstance(profile, dict) or not profile.get("id"):
            raise DiscordOAuthError("Profile has no id")
        return profile


def get_discord_oauth_client() -> DiscordOAuthClient:
    return DiscordOAuthClient()
