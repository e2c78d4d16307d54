# checkout/models/coupon.py
from sqlalchemy import Column, String, Boolean, BigInteger, Integer, Numeric, JSON, DateTime, text
from checkout.db.base_class import Base


class CouponColumnsMixin:
    """Columns shared by general and gift coupons.

    Epoch columns use 0 for "no bound"; max_uses uses 0 for "unlimited".
    """

    code = Column(String(32), primary_key=True)
    active = Column(Boolean, server_default=text("true"), nullable=False)

    # 'percent', 'amount' (flat cents) or 'target_total'
    discount_kind = Column(String(20), nullable=False)
    discount_percent = Column(Numeric(5, 2), nullable=True)
    discount_amount_cents = Column(Integer, nullable=True)
    target_total_cents = Column(Integer, nullable=True)

    starts_at_epoch = Column(BigInteger, server_default="0", nullable=False)
    expires_at_epoch = Column(BigInteger, server_default="0", nullable=False)

    max_uses = Column(Integer, server_default="0", nullable=False)
    uses_count = Column(Integer, server_default="0", nullable=False)

    # Optional restrictions (NULL = any)
    min_total_cents = Column(Integer, nullable=True)
    plans = Column(JSON, nullable=True)
    billings = Column(JSON, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=text("CURRENT_TIMESTAMP"), nullable=False)


class Coupon(CouponColumnsMixin, Base):
    __tablename__ = "coupons"

    # When set, only this Discord user may redeem the coupon
    exclusive_discord_id = Column(String, nullable=True, index=True)


class GiftCoupon(CouponColumnsMixin, Base):
    __tablename__ = "gift_coupons"

    discord_id = Column(String, nullable=False, index=True)
