# checkout/schemas/payment.py
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from checkout.utils.validators import (
    normalize_coupon_code,
    normalize_name,
    normalize_order_id,
    normalize_payment_id,
    normalize_revision,
    normalize_text,
    only_digits,
)


# ============================================
# Enums
# ============================================

class Plan(str, Enum):
    starter = "starter"
    pro = "pro"
    premium = "premium"


class Billing(str, Enum):
    monthly = "monthly"
    annual = "annual"


class PaymentMethod(str, Enum):
    card = "card"
    pix = "pix"
    boleto = "boleto"


# ============================================
# Payment Creation
# ============================================

class PayerInput(BaseModel):
    model_config = ConfigDict(extra="ignore")

    email: str = ""
    cpf: str = ""
    name: str = ""
    address: Optional[Dict[str, Any]] = None

    @field_validator("email", mode="before")
    @classmethod
    def clean_email(cls, v: Any) -> str:
        return v.strip() if isinstance(v, str) else ""

    @field_validator("cpf", mode="before")
    @classmethod
    def clean_cpf(cls, v: Any) -> str:
        return only_digits(v) if isinstance(v, (str, int)) else ""

    @field_validator("name", mode="before")
    @classmethod
    def clean_name(cls, v: Any) -> str:
        return normalize_name(v)

    @field_validator("address", mode="before")
    @classmethod
    def clean_address(cls, v: Any) -> Optional[Dict[str, Any]]:
        return v if isinstance(v, dict) else None


class PaymentCreateInput(BaseModel):
    """Body of POST /api/pagment."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    method: PaymentMethod
    plan: Plan
    billing: Billing
    coupon: str = ""
    payer: PayerInput = Field(default_factory=PayerInput)

    order_id: Optional[str] = None
    revision: int = 0
    replace_payment_id: str = ""
    cancel_previous: bool = False
    quote_only: bool = False

    plan_title: str = Field("", alias="planTitle")
    plan_description: str = Field("", alias="planDescription")

    @field_validator("coupon", mode="before")
    @classmethod
    def clean_coupon(cls, v: Any) -> str:
        return normalize_coupon_code(v)

    @field_validator("payer", mode="before")
    @classmethod
    def default_payer(cls, v: Any) -> Any:
        return v if isinstance(v, (dict, PayerInput)) else {}

    @field_validator("order_id", mode="before")
    @classmethod
    def clean_order_id(cls, v: Any) -> Optional[str]:
        return normalize_order_id(v)

    @field_validator("revision", mode="before")
    @classmethod
    def clean_revision(cls, v: Any) -> int:
        return normalize_revision(v)

    @field_validator("replace_payment_id", mode="before")
    @classmethod
    def clean_replace_payment_id(cls, v: Any) -> str:
        return normalize_payment_id(v)

    @field_validator("cancel_previous", "quote_only", mode="before")
    @classmethod
    def only_literal_true(cls, v: Any) -> bool:
        # Only a JSON `true` opts in; strings like "true" do not.
        return v is True

    @field_validator("plan_title", mode="before")
    @classmethod
    def clean_plan_title(cls, v: Any) -> str:
        return normalize_text(v, 80)

    @field_validator("plan_description", mode="before")
    @classmethod
    def clean_plan_description(cls, v: Any) -> str:
        return normalize_text(v, 140)
