# checkout/crud/crud_discord_user.py
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from checkout.crud.base import CRUDBase
from checkout.models.discord_user import DiscordUser


def _str_or_none(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


class CRUDDiscordUser(CRUDBase[DiscordUser]):

    def get_by_discord_id(self, db: Session, *, discord_id: str) -> Optional[DiscordUser]:
        discord_id = (discord_id or "").strip()
        if not discord_id:
            return None
        return self.get(db, discord_id)

    def upsert_from_profile(self, db: Session, *, profile: Dict[str, Any]) -> DiscordUser:
        """Insert or refresh a user row from a Discord /users/@me payload."""
        discord_id = str(profile.get("id") or "").strip()
        if not discord_id:
            raise ValueError("Discord profile has no id")

        now = datetime.now(timezone.utc)
        db_obj = self.get(db, discord_id)
        if db_obj is None:
            db_obj = DiscordUser(discord_id=discord_id, created_at=now)

        db_obj.username = _str_or_none(profile.get("username"))
        db_obj.discriminator = _str_or_none(profile.get("discriminator"))
        db_obj.avatar = _str_or_none(profile.get("avatar"))
        db_obj.email = _str_or_none(profile.get("email"))
        db_obj.raw = profile
        db_obj.updated_at = now
        db_obj.last_login_at = now

        db.add(db_obj)
        db.commit()
        db.refresh(db_obj)
        return db_obj


discord_user = CRUDDiscordUser(DiscordUser)
