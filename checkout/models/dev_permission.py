# checkout/models/dev_permission.py
from sqlalchemy import Column, String, Boolean, text
from checkout.db.base_class import Base


class DevPermission(Base):
    __tablename__ = "dev_permission"

    discord_id = Column(String, primary_key=True)
    dev = Column(Boolean, server_default=text("false"), nullable=False)
