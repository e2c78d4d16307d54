# checkout/crud/crud_coupon.py
import json
import logging
from typing import Any, Dict, Optional

from sqlalchemy import text
from sqlalchemy.orm import Session

from checkout.crud.base import CRUDBase
from checkout.models.coupon import Coupon, GiftCoupon

logger = logging.getLogger(__name__)


class CRUDCoupon(CRUDBase[Coupon]):
    """Lookups for the general coupons table."""

    def get_by_code(self, db: Session, *, code: str) -> Optional[Coupon]:
        return db.query(self.model).filter(self.model.code == code.upper()).first()

    def claim(
        self,
        db: Session,
        *,
        code: str,
        discord_id: str,
        payment_id: Optional[str] = None,
        order_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Consume one use of a coupon through the claim_coupon() database function.

        The function enforces the usage cap atomically server-side and returns
        a JSON object ({ok, valid, message, ...}) that is passed through as-is.
        """
        row = db.execute(
            text("SELECT claim_coupon(:p_code, :p_discord_id, :p_payment_id, :p_order_id)"),
            {
                "p_code": code.upper(),
                "p_discord_id": discord_id,
                "p_payment_id": payment_id,
                "p_order_id": order_id,
            },
        ).scalar()
        db.commit()

        if isinstance(row, str):
            row = json.loads(row)
        if not isinstance(row, dict):
            logger.error(f"claim_coupon returned an unexpected payload for {code}: {row!r}")
            return {"ok": False, "message": "Invalid claim response."}
        return row


class CRUDGiftCoupon(CRUDBase[GiftCoupon]):
    """Lookups for user-exclusive gift coupons."""

    def get_by_code(self, db: Session, *, code: str) -> Optional[GiftCoupon]:
        return db.query(self.model).filter(self.model.code == code.upper()).first()


coupon = CRUDCoupon(Coupon)
gift_coupon = CRUDGiftCoupon(GiftCoupon)
