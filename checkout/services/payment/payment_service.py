# checkout/services/payment/payment_service.py
import logging
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from checkout.core.config import settings
from checkout.core.exceptions import (
    CheckoutError,
    CouponRejected,
    GatewayRejected,
    GatewayUnavailable,
    NotFound,
    PermissionDenied,
    ValidationFailed,
)
from checkout.schemas.payment import PayerInput, PaymentCreateInput
from checkout.schemas.session import SessionUser
from checkout.utils.validators import (
    is_valid_cpf,
    is_valid_email,
    mask,
    new_order_id,
    normalize_boleto_address,
    split_name,
)
from .cancellation import CancellationGuard
from .coupon_evaluator import CouponContext, CouponEvaluator
from .idempotency import external_reference, idempotency_key, pricing_fingerprint
from .intent_store import IntentStore, StoredIntent, get_intent_store, intent_key
from .pricing import Pricing, build_pricing, cents_to_amount, quote_base
from .provider_factory import get_payment_provider
from .provider_interface import (
    GATEWAY_METHOD_IDS,
    CreatePaymentParams,
    GatewayPayment,
    PaymentGatewayError,
    PaymentGatewayInterface,
    PaymentStatus,
)
from .receipt import build_receipt_url, make_receipt_token, receipt_candidates, verify_receipt_token

logger = logging.getLogger(__name__)


MSG_CARD_UNSUPPORTED = (
    "Card checkout requires client-side tokenization (MercadoPago.js/Bricks). "
    "Use Pix or boleto for now."
)
MSG_TEST_TOKEN = (
    "MP_ACCESS_TOKEN looks like a TEST credential (TEST-...). Pix and boleto may fail in test mode. "
    "Use PRODUCTION credentials of an account with Pix enabled."
)
MSG_NO_PIX_KEY = (
    "Mercado Pago refused the payment because the collector account has no Pix key enabled."
)
HINT_NO_PIX_KEY = (
    "Enable Pix on the Mercado Pago account, register an active Pix key and use PRODUCTION "
    "credentials of that same account, then try again."
)


class PaymentService:
    """
    Orchestrates checkout payments.

    This service:
    - Prices an order (plan, billing cycle, coupon, method floor)
    - Validates the payer for Pix and boleto
    - Reuses an open payment for the same order revision instead of creating a duplicate
    - Creates the payment at the gateway with a deterministic idempotency key
    - Cancels a superseded payment only when explicitly requested and safe
    """

    def __init__(
        self,
        db: Optional[Session] = None,
        provider: Optional[PaymentGatewayInterface] = None,
        intent_store: Optional[IntentStore] = None,
        evaluator: Optional[CouponEvaluator] = None,
    ):
        self.db = db
        self._provider = provider
        self.intent_store = intent_store if intent_store is not None else get_intent_store()
        self.evaluator = evaluator if evaluator is not None else CouponEvaluator(db)

    @property
    def provider(self) -> PaymentGatewayInterface:
        if self._provider is None:
            self._provider = get_payment_provider()
        return self._provider

    # ------------------------------------------------------------------
    # Pricing
    # ------------------------------------------------------------------

    def quote(self, data: PaymentCreateInput, *, discord_id: Optional[str] = None) -> Pricing:
        """Price an order. Raises CouponRejected for an unusable coupon."""
        plan, billing, method = data.plan.value, data.billing.value, data.method.value
        _, _, base_cents = quote_base(plan, billing)

        evaluation = self.evaluator.evaluate(
            data.coupon,
            CouponContext(base_cents=base_cents, plan=plan, billing=billing, discord_id=discord_id),
        )
        if not evaluation.ok:
            raise CouponRejected(evaluation.message or "Invalid coupon.", coupon=data.coupon)

        return build_pricing(plan, billing, evaluation, method)

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    async def create_payment(
        self,
        data: PaymentCreateInput,
        *,
        trace_id: str,
        session_user: Optional[SessionUser] = None,
        session_email: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Quote and create (or reuse) a Pix/boleto payment.

        Flow:
        1. Price the order and validate the payer
        2. Reuse an open intent from the local store, then from a gateway search
        3. Otherwise create a new payment and register it locally
        4. Run the cancellation guard for replace_payment_id
        """
        discord_id = session_user.discord_id if session_user else None
        method = data.method.value
        pricing = self.quote(data, discord_id=discord_id)

        payer_email = data.payer.email or (session_email or "").strip()
        logger.info(
            f"[{trace_id}] Payment request: method={method} plan={pricing.plan} billing={pricing.billing} "
            f"total_cents={pricing.total_cents} coupon={pricing.coupon} cancel_previous={data.cancel_previous} "
            f"payer=(email={mask(payer_email)}, cpf={mask(data.payer.cpf)}, session_email={bool(session_email)})"
        )

        if method not in GATEWAY_METHOD_IDS:
            raise GatewayRejected(MSG_CARD_UNSUPPORTED, status_code=422)

        payer = build_payer(method, data.payer, payer_email)

        if settings.is_test_access_token:
            raise GatewayRejected(MSG_TEST_TOKEN, status_code=422)

        order_id = data.order_id or new_order_id()
        revision = data.revision
        ext_ref = external_reference(order_id, revision)
        gateway_method_id = GATEWAY_METHOD_IDS[method]

        fingerprint = pricing_fingerprint(
            method=method,
            plan=pricing.plan,
            billing=pricing.billing,
            total_cents=pricing.total_cents,
            coupon=pricing.coupon or "",
            months=pricing.months,
            unit_cents=pricing.unit_cents,
        )
        store_key = intent_key(order_id, revision, method)

        payment, dedup_source = await self._find_reusable(store_key, ext_ref, fingerprint, gateway_method_id, trace_id)
        expiration = build_expiration(method)

        if payment is None:
            params = CreatePaymentParams(
                amount_cents=pricing.total_cents,
                description=build_description(data),
                payment_method_id=gateway_method_id,
                payer=payer,
                external_reference=ext_ref,
                metadata={
                    "trace_id": trace_id,
                    "plan": pricing.plan,
                    "billing": pricing.billing,
                    "unit_amount": cents_to_amount(pricing.unit_cents),
                    "billing_months": pricing.months,
                    "base_amount": cents_to_amount(pricing.base_cents),
                    "discount_amount": cents_to_amount(pricing.discount_cents),
                    "final_amount": cents_to_amount(pricing.total_cents),
                    "coupon": pricing.coupon,
                    "coupon_type": pricing.kind,
                    "fingerprint": fingerprint,
                    "order_id": order_id,
                    "revision": revision,
                    "replaced_payment_id": data.replace_payment_id or None,
                    "cancel_previous": data.cancel_previous,
                },
                idempotency_key=idempotency_key(
                    external_reference=ext_ref,
                    method=method,
                    fingerprint=fingerprint,
                    cpf=data.payer.cpf,
                    email=payer_email,
                ),
                date_of_expiration=expiration,
                notification_url=settings.MP_WEBHOOK_URL or None,
            )
            try:
                payment = await self.provider.create_payment(params)
            except PaymentGatewayError as e:
                raise self._classify_gateway_error(e, trace_id)

        if dedup_source != "local":
            self.intent_store.put(store_key, StoredIntent(payment.id, fingerprint, time.time()))

        guard = CancellationGuard(self.provider)
        outcome = await guard.run(
            replace_payment_id=data.replace_payment_id,
            order_id=order_id,
            cancel_previous=data.cancel_previous,
            current_payment_id=payment.id,
        )

        receipt_token = make_receipt_token(payment.id)
        response = {
            "ok": True,
            "method": method,
            "id": payment.id,
            "status": payment.status.value,
            "status_detail": payment.status_detail,
            "qr_code": payment.qr_code,
            "qr_code_base64": payment.qr_code_base64,
            "ticket_url": payment.ticket_url,
            "barcode": payment.barcode,
            "external_reference": ext_ref,
            "traceId": trace_id,
            "pricing": pricing.to_dict(),
            "order_id": order_id,
            "revision": revision,
            "deduped": dedup_source is not None,
            "dedup_source": dedup_source,
            "cancelInfo": outcome.to_dict() if outcome else None,
            "date_of_expiration": payment.date_of_expiration or expiration,
            "receipt_url": build_receipt_url(payment.id, receipt_token) if payment.id else None,
            "receipt_token": receipt_token,
        }
        logger.info(
            f"[{trace_id}] Payment {payment.id} ({payment.status.value}) for {ext_ref}"
            f"{f' reused from {dedup_source}' if dedup_source else ' created'}"
        )
        return response

    async def _find_reusable(
        self,
        store_key: str,
        ext_ref: str,
        fingerprint: str,
        gateway_method_id: str,
        trace_id: str,
    ):
        """Return (payment, source) for an open matching intent, or (None, None)."""
        stored = self.intent_store.get(store_key)
        if stored is not None and stored.fingerprint == fingerprint:
            try:
                payment = await self.provider.get_payment(stored.payment_id)
            except PaymentGatewayError as e:
                logger.warning(f"[{trace_id}] Stored intent {stored.payment_id} could not be fetched: {e.message}")
            else:
                if payment.is_open:
                    return payment, "local"
                self.intent_store.delete(store_key)

        limit = settings.DEDUP_SEARCH_LIMIT
        try:
            search = await self.provider.search_payments(ext_ref, limit)
        except PaymentGatewayError as e:
            logger.warning(f"[{trace_id}] Gateway search for {ext_ref} failed, creating a new payment: {e.message}")
            return None, None

        if search.total > limit:
            logger.warning(
                f"[{trace_id}] {search.total} payments share {ext_ref}; only the {limit} most recent were checked"
            )

        for candidate in search.results:
            if candidate.status == PaymentStatus.CANCELLED:
                continue
            if candidate.fingerprint != fingerprint or candidate.payment_method_id != gateway_method_id:
                continue
            if candidate.is_open:
                return candidate, "gateway"
        return None, None

    @staticmethod
    def _classify_gateway_error(error: PaymentGatewayError, trace_id: str) -> CheckoutError:
        logger.error(f"[{trace_id}] Mercado Pago create failed: {error.to_dict()}")
        extra = {} if settings.is_production else {"mp_error": error.to_dict()}

        if error.is_missing_pix_key:
            return GatewayRejected(MSG_NO_PIX_KEY, status_code=422, hint=HINT_NO_PIX_KEY, extra=extra)

        if error.is_policy_rejection:
            pix = cents_to_amount(settings.MIN_PIX_CENTS)
            boleto = cents_to_amount(settings.MIN_BOLETO_CENTS)
            return GatewayRejected(
                "Mercado Pago refused the payment under its risk policies.",
                status_code=403,
                hint=(
                    f"Try again later or with a higher amount. Configured minimums: "
                    f"Pix R$ {pix:.2f}, boleto R$ {boleto:.2f}."
                ),
                extra=extra,
            )

        return GatewayUnavailable("Failed to create the payment at Mercado Pago.", extra=extra)

    # ------------------------------------------------------------------
    # Status and receipts
    # ------------------------------------------------------------------

    async def _fetch(self, payment_id: str) -> GatewayPayment:
        try:
            return await self.provider.get_payment(payment_id)
        except PaymentGatewayError as e:
            if e.status_code == 404:
                raise NotFound("Payment not found.")
            logger.error(f"Fetching payment {payment_id} failed: {e.to_dict()}")
            extra = {} if settings.is_production else {"mp_error": e.to_dict()}
            raise GatewayUnavailable("Failed to fetch the payment.", extra=extra)

    async def get_payment_status(self, payment_id: str) -> Dict[str, Any]:
        payment = await self._fetch(payment_id)
        return {
            "ok": True,
            "id": payment.id or payment_id,
            "status": payment.status.value,
            "status_detail": payment.status_detail,
            "final": payment.is_final,
            "payment_method_id": payment.payment_method_id,
            "transaction_amount": payment.transaction_amount,
            "metadata": payment.metadata or None,
            "external_reference": payment.external_reference,
            "qr_code": payment.qr_code,
            "qr_code_base64": payment.qr_code_base64,
            "ticket_url": payment.ticket_url,
            "barcode": payment.barcode,
            "date_created": payment.date_created,
            "date_of_expiration": payment.date_of_expiration,
        }

    async def get_receipt_url(self, payment_id: str, token: str) -> str:
        """
        Resolve the gateway-hosted document for a payment.

        In production the signed receipt token is required.
        """
        if settings.is_production:
            if not token:
                raise PermissionDenied("Receipt token is required.")
            ok, reason = verify_receipt_token(token, payment_id)
            if not ok:
                raise PermissionDenied(f"Invalid token: {reason}")

        payment = await self._fetch(payment_id)
        candidates = receipt_candidates(payment.ticket_url, payment.receipt_url, payment.external_resource_url)
        if not candidates:
            raise NotFound("No hosted receipt is available for this payment.")
        return candidates[0]


# ----------------------------------------------------------------------
# Helpers
# ----------------------------------------------------------------------

def build_payer(method: str, payer: PayerInput, email: str) -> Dict[str, Any]:
    """Validate the payer and build the gateway payer block."""
    if not email:
        raise ValidationFailed("Payer email is required.")
    if not is_valid_email(email):
        raise ValidationFailed("Invalid payer email.")
    if len(payer.cpf) != 11 or not is_valid_cpf(payer.cpf):
        raise ValidationFailed("Invalid payer CPF.")

    name = payer.name
    if method == "boleto":
        if len(name) < 3:
            raise ValidationFailed("Payer name is required.")
        if not split_name(name)[1]:
            raise ValidationFailed("For boleto, provide first and last name.")
    elif name and len(name) < 3:
        raise ValidationFailed("Invalid payer name.")

    address = None
    if method == "boleto":
        address, missing = normalize_boleto_address(payer.address)
        if address is None:
            raise ValidationFailed(
                "A registered boleto needs a complete address "
                "(CEP, street, number, neighborhood, city and state).",
                extra={"missing": missing},
            )

    block: Dict[str, Any] = {
        "email": email,
        "identification": {"type": "CPF", "number": payer.cpf},
    }
    if name:
        first_name, last_name = split_name(name)
        if first_name:
            block["first_name"] = first_name
        if last_name:
            block["last_name"] = last_name
    if address:
        block["address"] = address
    return block


def build_description(data: PaymentCreateInput) -> str:
    title = data.plan_title or "Plan"
    billing_label = "Annual (12 months)" if data.billing.value == "annual" else "Monthly"
    description = f"{title} - {billing_label}"
    if data.plan_description:
        description += f" | {data.plan_description}"
    return description


def build_expiration(method: str, now: Optional[datetime] = None) -> Optional[str]:
    now = now or datetime.now(timezone.utc)
    if method == "pix":
        minutes = settings.MP_PIX_EXPIRATION_MINUTES
        if minutes <= 0:
            return None
        expires = now + timedelta(minutes=minutes)
    elif method == "boleto":
        days = settings.MP_BOLETO_EXPIRATION_DAYS
        if days <= 0:
            return None
        expires = now + timedelta(days=days)
    else:
        return None
    return expires.isoformat(timespec="milliseconds")
