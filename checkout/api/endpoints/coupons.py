# checkout/api/endpoints/coupons.py
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from checkout import crud
from checkout.api import deps
from checkout.core.config import settings
from checkout.core.exceptions import CheckoutError, Unauthenticated
from checkout.core.limiter import limiter
from checkout.schemas.coupon import CouponAction, CouponRequest
from checkout.schemas.payment import Billing, Plan
from checkout.schemas.session import SessionUser
from checkout.services.payment.coupon_evaluator import CouponContext, CouponEvaluator
from checkout.services.payment.pricing import quote_base
from checkout.utils.validators import normalize_coupon_code

router = APIRouter(tags=["Coupons"])
logger = logging.getLogger(__name__)

MSG_MISSING_CODE = "Coupon code is missing."


def _validate(
    db: Session,
    code: str,
    session_user: Optional[SessionUser],
    plan: Optional[Plan] = None,
    billing: Optional[Billing] = None,
) -> dict:
    if not code:
        return {"ok": True, "valid": False, "message": MSG_MISSING_CODE}

    base_cents = None
    if plan and billing:
        _, _, base_cents = quote_base(plan.value, billing.value)

    context = CouponContext(
        base_cents=base_cents,
        plan=plan.value if plan else None,
        billing=billing.value if billing else None,
        discord_id=session_user.discord_id if session_user else None,
    )
    evaluation = CouponEvaluator(db).evaluate(code, context)
    return {"ok": True, **evaluation.to_dict()}


@router.get("/pagment/cupom")
@limiter.limit(settings.RATE_LIMIT_GET)
def validate_coupon(
    request: Request,
    code: str = Query(""),
    plan: Optional[Plan] = Query(None),
    billing: Optional[Billing] = Query(None),
    db: Session = Depends(deps.get_db),
    session_user: Optional[SessionUser] = Depends(deps.get_session_user_optional),
):
    """Check a coupon without consuming it."""
    return _validate(db, normalize_coupon_code(code), session_user, plan, billing)


@router.post("/pagment/cupom", dependencies=[Depends(deps.enforce_post_guards)])
@limiter.limit(settings.RATE_LIMIT_POST)
def coupon_action(
    request: Request,
    coupon_in: CouponRequest,
    db: Session = Depends(deps.get_db),
    session_user: Optional[SessionUser] = Depends(deps.get_session_user_optional),
):
    """
    validate: same as GET.
    claim: consume one use through claim_coupon(); requires a session.
    """
    if coupon_in.action == CouponAction.validate:
        return _validate(db, coupon_in.code, session_user)

    if not coupon_in.code:
        return {"ok": True, "valid": False, "message": MSG_MISSING_CODE}
    if session_user is None:
        raise Unauthenticated("Invalid session. Log in again.")

    try:
        result = crud.coupon.claim(
            db,
            code=coupon_in.code,
            discord_id=session_user.discord_id,
            payment_id=coupon_in.payment_id,
            order_id=coupon_in.order_id,
        )
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"claim_coupon failed for {coupon_in.code}: {e}")
        raise CheckoutError("Failed to claim coupon.")

    logger.info(f"Coupon {coupon_in.code} claim by {session_user.discord_id}: ok={result.get('ok')}")
    return result
