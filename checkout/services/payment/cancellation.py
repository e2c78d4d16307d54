# checkout/services/payment/cancellation.py
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from .provider_interface import (
    CANCELLABLE_STATUSES,
    PaymentGatewayError,
    PaymentGatewayInterface,
    PaymentStatus,
)

logger = logging.getLogger(__name__)


@dataclass
class CancellationOutcome:
    replace_payment_id: str
    ok: bool
    skipped: bool
    reason: Optional[str] = None
    status: Optional[str] = None
    old_status: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "replace_payment_id": self.replace_payment_id,
            "ok": self.ok,
            "skipped": self.skipped,
            "reason": self.reason,
            "status": self.status,
            "oldStatus": self.old_status,
        }


class CancellationGuard:
    """
    Cancels a superseded payment only when it is provably safe.

    The previous payment is re-fetched first. It is left alone when it cannot
    be fetched, belongs to another order, is already approved, is no longer
    open, or is the very payment being returned to the client.
    """

    def __init__(self, provider: PaymentGatewayInterface):
        self.provider = provider

    async def run(
        self,
        *,
        replace_payment_id: str,
        order_id: str,
        cancel_previous: bool,
        current_payment_id: Optional[str],
    ) -> Optional[CancellationOutcome]:
        if not replace_payment_id:
            return None

        if not cancel_previous:
            return CancellationOutcome(
                replace_payment_id, ok=True, skipped=True,
                reason="Not cancelled: changing or removing a coupon does not cancel payments.",
            )

        if current_payment_id and replace_payment_id == str(current_payment_id):
            return CancellationOutcome(
                replace_payment_id, ok=True, skipped=True,
                reason="Not cancelled: it is the payment being returned.",
            )

        try:
            previous = await self.provider.get_payment(replace_payment_id)
        except PaymentGatewayError as e:
            logger.warning(f"Could not fetch payment {replace_payment_id} before cancelling: {e.message}")
            return CancellationOutcome(
                replace_payment_id, ok=False, skipped=True,
                reason="Previous payment could not be fetched; not cancelled.",
            )

        old_status = previous.status.value

        if previous.order_id != order_id:
            return CancellationOutcome(
                replace_payment_id, ok=False, skipped=True,
                reason="replace_payment_id does not belong to this order_id.",
                old_status=old_status,
            )

        if previous.status == PaymentStatus.APPROVED:
            return CancellationOutcome(
                replace_payment_id, ok=False, skipped=True,
                reason="Previous payment is already approved; not cancelled.",
                old_status=old_status,
            )

        if previous.status not in CANCELLABLE_STATUSES:
            return CancellationOutcome(
                replace_payment_id, ok=False, skipped=True,
                reason=f"Previous payment is {old_status}; not cancellable.",
                old_status=old_status,
            )

        try:
            cancelled = await self.provider.cancel_payment(replace_payment_id)
        except PaymentGatewayError as e:
            logger.error(f"Cancelling payment {replace_payment_id} failed: {e.to_dict()}")
            return CancellationOutcome(
                replace_payment_id, ok=False, skipped=False,
                reason="Gateway refused the cancellation.",
                old_status=old_status,
            )

        return CancellationOutcome(
            replace_payment_id, ok=True, skipped=False,
            status=cancelled.status.value,
            old_status=old_status,
        )
