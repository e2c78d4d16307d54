# checkout/models/discord_user.py
from sqlalchemy import Column, String, JSON, DateTime, text
from checkout.db.base_class import Base


class DiscordUser(Base):
    __tablename__ = "discord_users"

    discord_id = Column(String, primary_key=True)
    username = Column(String, nullable=True)
    discriminator = Column(String, nullable=True)
    avatar = Column(String, nullable=True)
    email = Column(String, nullable=True)
    raw = Column(JSON, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=text("CURRENT_TIMESTAMP"), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=text("CURRENT_TIMESTAMP"), nullable=False)
    last_login_at = Column(DateTime(timezone=True), nullable=True)

    @property
    def avatar_url(self):
        if not self.avatar:
            return None
        return f"https://cdn.discordapp.com/avatars/{self.discord_id}/{self.avatar}.png"
