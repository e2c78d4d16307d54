# tests/services/test_cancellation.py
import pytest

from checkout.services.payment.cancellation import CancellationGuard


def _previous(gateway, status="pending", order_id="order-1"):
    return gateway.add(status=status, metadata={"order_id": order_id} if order_id else {})


@pytest.mark.asyncio
async def test_no_replace_id_means_no_outcome(gateway):
    outcome = await CancellationGuard(gateway).run(
        replace_payment_id="", order_id="order-1", cancel_previous=True, current_payment_id="1",
    )
    assert outcome is None


@pytest.mark.asyncio
async def test_without_flag_previous_payment_is_untouched(gateway):
    previous = _previous(gateway)
    outcome = await CancellationGuard(gateway).run(
        replace_payment_id=previous, order_id="order-1", cancel_previous=False, current_payment_id="9999",
    )

    assert outcome.skipped and outcome.ok
    assert gateway.cancelled == []


@pytest.mark.asyncio
async def test_cancels_open_payment_of_same_order(gateway):
    previous = _previous(gateway)
    outcome = await CancellationGuard(gateway).run(
        replace_payment_id=previous, order_id="order-1", cancel_previous=True, current_payment_id="9999",
    )

    assert outcome.ok and not outcome.skipped
    assert outcome.status == "cancelled"
    assert outcome.old_status == "pending"
    assert gateway.cancelled == [previous]


@pytest.mark.asyncio
async def test_approved_payment_is_never_cancelled(gateway):
    previous = _previous(gateway, status="approved")
    outcome = await CancellationGuard(gateway).run(
        replace_payment_id=previous, order_id="order-1", cancel_previous=True, current_payment_id="9999",
    )

    assert outcome.skipped and not outcome.ok
    assert outcome.old_status == "approved"
    assert gateway.cancelled == []


@pytest.mark.asyncio
@pytest.mark.parametrize("status", ["rejected", "cancelled", "expired", "refunded"])
async def test_non_cancellable_status_is_refused(gateway, status):
    previous = _previous(gateway, status=status)
    outcome = await CancellationGuard(gateway).run(
        replace_payment_id=previous, order_id="order-1", cancel_previous=True, current_payment_id="9999",
    )

    assert outcome.skipped
    assert gateway.cancelled == []


@pytest.mark.asyncio
@pytest.mark.parametrize("order_id", ["order-2", None])
async def test_payment_of_another_order_is_refused(gateway, order_id):
    previous = _previous(gateway, order_id=order_id)
    outcome = await CancellationGuard(gateway).run(
        replace_payment_id=previous, order_id="order-1", cancel_previous=True, current_payment_id="9999",
    )

    assert outcome.skipped
    assert "order_id" in outcome.reason
    assert gateway.cancelled == []


@pytest.mark.asyncio
async def test_unfetchable_payment_is_refused(gateway):
    outcome = await CancellationGuard(gateway).run(
        replace_payment_id="424242", order_id="order-1", cancel_previous=True, current_payment_id="9999",
    )

    assert outcome.skipped and not outcome.ok
    assert gateway.cancelled == []


@pytest.mark.asyncio
async def test_returned_payment_is_never_cancelled(gateway):
    previous = _previous(gateway)
    outcome = await CancellationGuard(gateway).run(
        replace_payment_id=previous, order_id="order-1", cancel_previous=True, current_payment_id=previous,
    )

    assert outcome.skipped
    assert gateway.cancelled == []
