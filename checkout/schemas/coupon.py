# checkout/schemas/coupon.py
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, field_validator

from checkout.utils.validators import normalize_coupon_code, normalize_order_id, normalize_payment_id


class CouponAction(str, Enum):
    validate = "validate"
    claim = "claim"


class CouponRequest(BaseModel):
    """Body of POST /api/pagment/cupom."""

    model_config = ConfigDict(extra="ignore")

    action: CouponAction = CouponAction.claim
    code: str = ""
    payment_id: Optional[str] = None
    order_id: Optional[str] = None

    @field_validator("action", mode="before")
    @classmethod
    def default_action(cls, v: Any) -> Any:
        return v.strip() if isinstance(v, str) and v.strip() else CouponAction.claim

    @field_validator("code", mode="before")
    @classmethod
    def clean_code(cls, v: Any) -> str:
        return normalize_coupon_code(v)

    @field_validator("payment_id", mode="before")
    @classmethod
    def clean_payment_id(cls, v: Any) -> Optional[str]:
        return normalize_payment_id(v) or None

    @field_validator("order_id", mode="before")
    @classmethod
    def clean_order_id(cls, v: Any) -> Optional[str]:
        return normalize_order_id(v)
