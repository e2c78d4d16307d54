# checkout/crud/__init__.py

from .crud_coupon import coupon, gift_coupon
from .crud_discord_user import discord_user
from .crud_plan_feature import plan_feature
from .crud_dev_permission import dev_permission
