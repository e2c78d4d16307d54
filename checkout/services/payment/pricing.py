# checkout/services/payment/pricing.py
"""
Plan pricing in integer cents.

Unit prices are per month in BRL. The annual cycle is prepaid as 12 months at
the discounted per-month price; monthly is charged one month at a time.
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Optional, Tuple, Union

from checkout.core.config import settings
from checkout.core.exceptions import ValidationFailed

PLAN_PRICES: Dict[str, Dict[str, Decimal]] = {
    "monthly": {
        "starter": Decimal("14.90"),
        "pro": Decimal("19.90"),
        "premium": Decimal("24.99"),
    },
    "annual": {
        "starter": Decimal("12.49"),
        "pro": Decimal("16.59"),
        "premium": Decimal("20.79"),
    },
}

BILLING_MONTHS = {"monthly": 1, "annual": 12}

_CENT = Decimal("0.01")


def to_cents(amount: Union[Decimal, float, int, str]) -> int:
    """Convert a currency amount to integer cents, rounding half-up."""
    value = Decimal(str(amount)).quantize(_CENT, rounding=ROUND_HALF_UP)
    return int(value * 100)


def cents_to_amount(cents: int) -> float:
    return float((Decimal(cents) / 100).quantize(_CENT))


def billing_months(billing: str) -> int:
    return BILLING_MONTHS.get(billing, 1)


def quote_base(plan: str, billing: str) -> Tuple[int, int, int]:
    """Return (unit_cents, months, base_cents) for a plan and billing cycle."""
    unit = PLAN_PRICES.get(billing, {}).get(plan)
    if unit is None or unit <= 0:
        raise ValidationFailed("Invalid plan or billing cycle.")
    unit_cents = to_cents(unit)
    months = billing_months(billing)
    return unit_cents, months, unit_cents * months


def apply_method_floor(total_cents: int, base_cents: int, method: Optional[str]) -> int:
    """Raise a total to the method's minimum charge without exceeding the base."""
    if not method:
        return total_cents
    floor = settings.minimum_cents_for(method)
    return min(max(total_cents, floor), base_cents)


@dataclass
class Pricing:
    plan: str
    billing: str
    unit_cents: int
    months: int
    base_cents: int
    discount_cents: int
    total_cents: int
    coupon: Optional[str] = None
    label: Optional[str] = None
    kind: Optional[str] = None
    source: Optional[str] = None
    floor_applied: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "base": cents_to_amount(self.base_cents),
            "discount": cents_to_amount(self.discount_cents),
            "total": cents_to_amount(self.total_cents),
            "unit": cents_to_amount(self.unit_cents),
            "months": self.months,
            "base_cents": self.base_cents,
            "discount_cents": self.discount_cents,
            "total_cents": self.total_cents,
            "unit_cents": self.unit_cents,
            "coupon": self.coupon,
            "label": self.label,
            "type": self.kind,
            "floor_applied": self.floor_applied,
        }


def build_pricing(plan: str, billing: str, evaluation=None, method: Optional[str] = None) -> Pricing:
    """
    Combine the base quote, an optional coupon evaluation and the method floor.

    `evaluation` is a CouponEvaluation for the same plan/billing; a failed or
    unapplied evaluation prices at the full base.
    """
    unit_cents, months, base_cents = quote_base(plan, billing)

    applied = bool(evaluation is not None and evaluation.ok and evaluation.applied)
    total_cents = evaluation.final_cents if applied else base_cents
    total_cents = max(1, min(total_cents, base_cents))

    floored = apply_method_floor(total_cents, base_cents, method)

    return Pricing(
        plan=plan,
        billing=billing,
        unit_cents=unit_cents,
        months=months,
        base_cents=base_cents,
        discount_cents=base_cents - floored,
        total_cents=floored,
        coupon=evaluation.code if applied else None,
        label=evaluation.label if applied else None,
        kind=evaluation.kind.value if applied else None,
        source=evaluation.source.value if applied else None,
        floor_applied=floored != total_cents,
    )
