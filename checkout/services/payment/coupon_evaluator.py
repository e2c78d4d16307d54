# checkout/services/payment/coupon_evaluator.py
"""
Coupon resolution and evaluation.

Codes are looked up in three sources, in priority order, and the first match
wins:

    STATIC   COUPONS_JSON entries (plus the test coupon outside production)
    GIFT     gift_coupons rows, always bound to one Discord user
    GENERAL  coupons rows, optionally exclusive to one Discord user

A resolved definition is then checked against the order context (owner,
validity window, plan/billing restriction, minimum value, usage cap) and its
discount rule applied to the base total.
"""

import json
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from checkout import crud
from checkout.core.config import settings
from checkout.core.exceptions import CheckoutError
from checkout.services.payment.pricing import cents_to_amount, to_cents
from checkout.utils.validators import normalize_coupon_code

logger = logging.getLogger(__name__)


class CouponSource(str, Enum):
    STATIC = "static"
    GIFT = "gift"
    GENERAL = "general"


class DiscountKind(str, Enum):
    PERCENT = "percent"
    FIXED = "fixed"
    TARGET_TOTAL = "target_total"

    @classmethod
    def parse(cls, value: Any) -> Optional["DiscountKind"]:
        raw = str(value or "").strip().lower()
        if raw == "amount":
            return cls.FIXED
        try:
            return cls(raw)
        except ValueError:
            return None


# Failure messages
MSG_INVALID = "Invalid or inactive coupon."
MSG_SESSION = "Invalid session. Log in again."
MSG_NOT_OWNER = "This coupon is invalid or not available."
MSG_NOT_STARTED = "Coupon is not active yet."
MSG_EXPIRED = "Coupon expired."
MSG_WRONG_PLAN = "Coupon is not valid for this plan."
MSG_WRONG_BILLING = "Coupon is not valid for this billing cycle."
MSG_BELOW_MINIMUM = "Coupon does not meet the minimum order value."
MSG_EXHAUSTED = "Coupon has no uses left."


@dataclass(frozen=True)
class DiscountRule:
    kind: DiscountKind
    percent: Decimal = Decimal("0")
    amount_cents: int = 0
    target_total_cents: int = 0

    def apply(self, base_cents: int) -> int:
        """Return the discounted total in cents, within [1, base_cents]."""
        if self.kind == DiscountKind.PERCENT:
            pct = min(max(self.percent, Decimal("0")), Decimal("100"))
            discount = int((Decimal(base_cents) * pct / 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
            final = base_cents - discount
        elif self.kind == DiscountKind.FIXED:
            final = base_cents - max(self.amount_cents, 0)
        else:
            final = self.target_total_cents

        return max(1, min(final, base_cents))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "percent": float(self.percent) if self.kind == DiscountKind.PERCENT else None,
            "amount_cents": self.amount_cents if self.kind == DiscountKind.FIXED else None,
            "target_total_cents": self.target_total_cents if self.kind == DiscountKind.TARGET_TOTAL else None,
        }


def _to_decimal(value: Any) -> Optional[Decimal]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    return number if number.is_finite() else None


def _iso_to_epoch(value: Any) -> int:
    if not isinstance(value, str) or not value.strip():
        return 0
    try:
        return int(datetime.fromisoformat(value.strip().replace("Z", "+00:00")).timestamp())
    except ValueError:
        return 0


def _string_set(value: Any) -> Optional[FrozenSet[str]]:
    if not isinstance(value, (list, tuple)):
        return None
    items = frozenset(str(v) for v in value if isinstance(v, str) and v)
    return items or None


@dataclass
class CouponDefinition:
    code: str
    rule: DiscountRule
    source: CouponSource
    active: bool = True
    starts_at_epoch: int = 0
    ends_at_epoch: int = 0
    min_total_cents: int = 0
    plans: Optional[FrozenSet[str]] = None
    billings: Optional[FrozenSet[str]] = None
    max_uses: int = 0
    uses_count: int = 0
    owner_discord_id: Optional[str] = None

    @property
    def label(self) -> str:
        return f"Coupon ({self.code})"

    @classmethod
    def from_static(cls, entry: Any) -> Optional["CouponDefinition"]:
        """Parse one COUPONS_JSON entry; malformed entries yield None."""
        if not isinstance(entry, dict):
            return None
        code = normalize_coupon_code(entry.get("code"))
        kind = DiscountKind.parse(entry.get("type"))
        value = _to_decimal(entry.get("value"))
        if not code or kind is None or value is None or value <= 0:
            return None

        if kind == DiscountKind.PERCENT:
            rule = DiscountRule(kind, percent=value)
        elif kind == DiscountKind.FIXED:
            rule = DiscountRule(kind, amount_cents=to_cents(value))
        else:
            rule = DiscountRule(kind, target_total_cents=to_cents(value))

        min_total = _to_decimal(entry.get("min_total"))
        return cls(
            code=code,
            rule=rule,
            source=CouponSource.STATIC,
            active=entry.get("active") is not False,
            starts_at_epoch=_iso_to_epoch(entry.get("starts_at")),
            ends_at_epoch=_iso_to_epoch(entry.get("ends_at")),
            min_total_cents=to_cents(min_total) if min_total and min_total > 0 else 0,
            plans=_string_set(entry.get("plans")),
            billings=_string_set(entry.get("billings")),
        )

    @classmethod
    def from_row(cls, row, source: CouponSource) -> Optional["CouponDefinition"]:
        """Build a definition from a Coupon or GiftCoupon row."""
        kind = DiscountKind.parse(row.discount_kind)
        if kind is None:
            logger.warning(f"Coupon {row.code} has unknown discount kind {row.discount_kind!r}")
            return None

        rule = DiscountRule(
            kind,
            percent=_to_decimal(row.discount_percent) or Decimal("0"),
            amount_cents=int(row.discount_amount_cents or 0),
            target_total_cents=int(row.target_total_cents or 0),
        )
        if source == CouponSource.GIFT:
            owner = row.discord_id
        else:
            owner = row.exclusive_discord_id

        return cls(
            code=str(row.code).upper(),
            rule=rule,
            source=source,
            active=bool(row.active),
            starts_at_epoch=int(row.starts_at_epoch or 0),
            ends_at_epoch=int(row.expires_at_epoch or 0),
            min_total_cents=int(row.min_total_cents or 0),
            plans=_string_set(row.plans),
            billings=_string_set(row.billings),
            max_uses=int(row.max_uses or 0),
            uses_count=int(row.uses_count or 0),
            owner_discord_id=str(owner) if owner else None,
        )


@dataclass
class CouponContext:
    base_cents: Optional[int] = None
    plan: Optional[str] = None
    billing: Optional[str] = None
    discord_id: Optional[str] = None
    now: float = field(default_factory=time.time)


@dataclass
class CouponEvaluation:
    ok: bool
    applied: bool = False
    code: Optional[str] = None
    message: Optional[str] = None
    rule: Optional[DiscountRule] = None
    discount_cents: int = 0
    final_cents: int = 0
    label: Optional[str] = None
    source: Optional[CouponSource] = None
    priced: bool = True

    @property
    def kind(self) -> Optional[DiscountKind]:
        return self.rule.kind if self.rule else None

    def to_dict(self) -> Dict[str, Any]:
        if not self.ok:
            return {"valid": False, "code": self.code, "message": self.message}
        return {
            "valid": self.applied,
            "code": self.code,
            "source": self.source.value if self.source else None,
            "label": self.label,
            "discount": self.rule.to_dict() if self.rule else None,
            "discount_cents": self.discount_cents if self.priced else None,
            "final_cents": self.final_cents if self.priced else None,
            "discount_amount": cents_to_amount(self.discount_cents) if self.priced else None,
            "final_amount": cents_to_amount(self.final_cents) if self.priced else None,
        }


def load_static_coupons(raw: str, include_test_coupon: bool, test_code: str = "DEVS") -> List[CouponDefinition]:
    """Parse COUPONS_JSON, skipping malformed entries."""
    coupons: List[CouponDefinition] = []
    if include_test_coupon and test_code:
        coupons.append(
            CouponDefinition(
                code=test_code.upper(),
                rule=DiscountRule(DiscountKind.TARGET_TOTAL, target_total_cents=1),
                source=CouponSource.STATIC,
            )
        )

    raw = (raw or "").strip()
    if not raw:
        return coupons
    try:
        entries = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("COUPONS_JSON is not valid JSON, ignoring it")
        return coupons
    if not isinstance(entries, list):
        logger.warning("COUPONS_JSON must be a list, ignoring it")
        return coupons

    for entry in entries:
        definition = CouponDefinition.from_static(entry)
        if definition is None:
            logger.warning(f"Skipping malformed COUPONS_JSON entry: {entry!r}")
            continue
        coupons.append(definition)
    return coupons


class CouponEvaluator:
    """Resolve a code across all sources and evaluate it for an order."""

    def __init__(self, db: Optional[Session] = None, static_coupons: Optional[List[CouponDefinition]] = None):
        self.db = db
        if static_coupons is None:
            static_coupons = load_static_coupons(
                settings.COUPONS_JSON,
                include_test_coupon=not settings.is_production,
                test_code=settings.TEST_COUPON_CODE,
            )
        self._static = {c.code: c for c in static_coupons}

    def resolve(self, code: str) -> Optional[CouponDefinition]:
        static = self._static.get(code)
        if static is not None:
            return static
        if self.db is None:
            return None

        try:
            gift = crud.gift_coupon.get_by_code(self.db, code=code)
            if gift is not None:
                return CouponDefinition.from_row(gift, CouponSource.GIFT)
            row = crud.coupon.get_by_code(self.db, code=code)
        except SQLAlchemyError as e:
            logger.error(f"Coupon lookup failed for {code}: {e}")
            raise CheckoutError("Failed to look up coupon.")

        if row is not None:
            return CouponDefinition.from_row(row, CouponSource.GENERAL)
        return None

    @staticmethod
    def check(definition: CouponDefinition, context: CouponContext) -> Optional[str]:
        """Return the failure message for a definition, or None when usable."""
        if not definition.active:
            return MSG_INVALID

        if definition.owner_discord_id:
            if not context.discord_id:
                return MSG_SESSION
            if definition.owner_discord_id != str(context.discord_id):
                return MSG_NOT_OWNER

        now = int(context.now)
        if definition.starts_at_epoch and now < definition.starts_at_epoch:
            return MSG_NOT_STARTED
        if definition.ends_at_epoch and now > definition.ends_at_epoch:
            return MSG_EXPIRED

        if definition.plans and context.plan and context.plan not in definition.plans:
            return MSG_WRONG_PLAN
        if definition.billings and context.billing and context.billing not in definition.billings:
            return MSG_WRONG_BILLING

        if definition.min_total_cents and context.base_cents is not None \
                and context.base_cents < definition.min_total_cents:
            return MSG_BELOW_MINIMUM

        if definition.max_uses and definition.uses_count >= definition.max_uses:
            return MSG_EXHAUSTED

        return None

    def evaluate(self, code: str, context: CouponContext) -> CouponEvaluation:
        if not code:
            return CouponEvaluation(ok=True, applied=False, final_cents=context.base_cents or 0,
                                    priced=context.base_cents is not None)

        definition = self.resolve(code)
        if definition is None:
            return CouponEvaluation(ok=False, code=code, message=MSG_INVALID)

        failure = self.check(definition, context)
        if failure:
            logger.info(f"Coupon {code} ({definition.source.value}) rejected: {failure}")
            return CouponEvaluation(ok=False, code=code, message=failure, source=definition.source)

        evaluation = CouponEvaluation(
            ok=True,
            applied=True,
            code=definition.code,
            rule=definition.rule,
            label=definition.label,
            source=definition.source,
            priced=context.base_cents is not None,
        )
        if evaluation.priced:
            evaluation.final_cents = definition.rule.apply(context.base_cents)
            evaluation.discount_cents = max(0, context.base_cents - evaluation.final_cents)
        return evaluation
