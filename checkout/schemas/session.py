# checkout/schemas/session.py
from typing import Optional

from pydantic import BaseModel


class SessionUser(BaseModel):
    """Canonical, versioned payload of the signed session cookie."""

    v: int = 1
    discord_id: str
    username: Optional[str] = None
    avatar: Optional[str] = None
    exp: int
