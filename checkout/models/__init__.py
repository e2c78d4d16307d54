# checkout/models/__init__.py
from .coupon import Coupon, GiftCoupon
from .discord_user import DiscordUser
from .plan_feature import PlanFeature
from .dev_permission import DevPermission
