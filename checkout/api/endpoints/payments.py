# checkout/api/endpoints/payments.py
"""
Payment endpoints.

- GET  /pagment?id=            poll a payment's status
- GET  /pagment?receipt=1&id=  redirect to the gateway-hosted receipt
- POST /pagment                quote and create (or reuse) a Pix/boleto payment
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import RedirectResponse

from checkout.api import deps
from checkout.core.config import settings
from checkout.core.exceptions import ValidationFailed
from checkout.core.limiter import limiter
from checkout.schemas.payment import PaymentCreateInput
from checkout.schemas.session import SessionUser
from checkout.services.payment import PaymentService
from checkout.utils.validators import normalize_payment_id

router = APIRouter(tags=["Payments"])
logger = logging.getLogger(__name__)


@router.get("/pagment")
@limiter.limit(settings.RATE_LIMIT_GET)
async def get_payment(
    request: Request,
    id: str = Query("", max_length=64),
    receipt: str = Query(""),
    token: str = Query(""),
    service: PaymentService = Depends(deps.get_payment_service),
):
    payment_id = normalize_payment_id(id)
    if not payment_id:
        raise ValidationFailed("Query parameter 'id' is required.")

    if receipt.strip() == "1":
        url = await service.get_receipt_url(payment_id, token.strip())
        return RedirectResponse(url, status_code=302)

    return await service.get_payment_status(payment_id)


@router.post("/pagment", dependencies=[Depends(deps.enforce_post_guards)])
@limiter.limit(settings.RATE_LIMIT_POST)
async def create_payment(
    request: Request,
    payment_in: PaymentCreateInput,
    service: PaymentService = Depends(deps.get_payment_service),
    session_user: Optional[SessionUser] = Depends(deps.get_session_user_optional),
    session_email: Optional[str] = Depends(deps.get_session_email),
):
    trace_id = request.state.trace_id

    if payment_in.quote_only:
        discord_id = session_user.discord_id if session_user else None
        pricing = service.quote(payment_in, discord_id=discord_id)
        return {"ok": True, "traceId": trace_id, "pricing": pricing.to_dict()}

    return await service.create_payment(
        payment_in,
        trace_id=trace_id,
        session_user=session_user,
        session_email=session_email,
    )
