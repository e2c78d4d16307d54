# checkout/schemas/user.py
from typing import Optional

from pydantic import BaseModel


class MeUser(BaseModel):
    id: str
    username: Optional[str] = None
    avatar: Optional[str] = None
    avatar_url: Optional[str] = None
    email: Optional[str] = None


class MeResponse(BaseModel):
    ok: bool = True
    user: Optional[MeUser] = None
