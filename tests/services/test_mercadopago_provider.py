# tests/services/test_mercadopago_provider.py
"""
Tests for MercadoPagoProvider against a mocked HTTP transport.
"""

import json

import httpx
import pytest

from checkout.services.payment.provider_interface import CreatePaymentParams, PaymentGatewayError, PaymentStatus
from checkout.services.payment.providers.mercadopago_provider import MercadoPagoConfig, MercadoPagoProvider


class Recorder:
    """Replays queued responses and records every request."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def _provider(recorder, max_retries=2):
    config = MercadoPagoConfig(access_token="APP_USR-token", max_retries=max_retries, backoff_seconds=0)
    return MercadoPagoProvider(config, transport=httpx.MockTransport(recorder))


def _params(**overrides):
    data = dict(
        amount_cents=1990,
        description="Pro - Monthly",
        payment_method_id="pix",
        payer={"email": "buyer@example.com", "identification": {"type": "CPF", "number": "52998224725"}},
        external_reference="order:o-1:rev:0",
        metadata={"order_id": "o-1", "fingerprint": "abc"},
        idempotency_key="k" * 64,
        date_of_expiration="2026-01-01T13:00:00.000+00:00",
    )
    data.update(overrides)
    return CreatePaymentParams(**data)


PIX_PAYMENT = {
    "id": 123,
    "status": "pending",
    "status_detail": "pending_waiting_transfer",
    "payment_method_id": "pix",
    "external_reference": "order:o-1:rev:0",
    "metadata": {"order_id": "o-1", "fingerprint": "abc"},
    "point_of_interaction": {"transaction_data": {
        "qr_code": "000201",
        "qr_code_base64": "iVBOR",
        "ticket_url": "https://www.mercadopago.com.br/payments/123/ticket",
    }},
}


@pytest.mark.asyncio
async def test_create_payment_sends_body_and_idempotency_header():
    recorder = Recorder(httpx.Response(201, json=PIX_PAYMENT))
    provider = _provider(recorder)

    payment = await provider.create_payment(_params())

    request = recorder.requests[0]
    body = json.loads(request.content)
    assert request.method == "POST"
    assert request.url.path == "/v1/payments"
    assert request.headers["Authorization"] == "Bearer APP_USR-token"
    assert request.headers["X-Idempotency-Key"] == "k" * 64
    assert body["transaction_amount"] == 19.9
    assert body["payment_method_id"] == "pix"
    assert body["date_of_expiration"] == "2026-01-01T13:00:00.000+00:00"
    assert "notification_url" not in body

    assert payment.id == "123"
    assert payment.status == PaymentStatus.PENDING
    assert payment.qr_code == "000201"
    assert payment.order_id == "o-1"
    await provider.close()


@pytest.mark.asyncio
async def test_boleto_fields_are_parsed():
    recorder = Recorder(httpx.Response(201, json={
        "id": 55,
        "status": "pending",
        "payment_method_id": "bolbradesco",
        "barcode": {"content": "23791.11111"},
        "transaction_details": {"external_resource_url": "https://www.mercadopago.com.br/boleto/55"},
    }))
    payment = await _provider(recorder).create_payment(_params(payment_method_id="bolbradesco"))

    assert payment.barcode == "23791.11111"
    assert payment.ticket_url == "https://www.mercadopago.com.br/boleto/55"


@pytest.mark.asyncio
async def test_server_errors_are_retried_up_to_the_bound():
    recorder = Recorder(
        httpx.Response(503, json={"message": "unavailable"}),
        httpx.Response(502, json={"message": "bad gateway"}),
        httpx.Response(200, json=PIX_PAYMENT),
    )
    payment = await _provider(recorder).get_payment("123")

    assert payment.id == "123"
    assert len(recorder.requests) == 3


@pytest.mark.asyncio
async def test_gives_up_after_max_retries():
    recorder = Recorder(*[httpx.Response(500, json={"message": "boom"}) for _ in range(3)])

    with pytest.raises(PaymentGatewayError) as exc:
        await _provider(recorder, max_retries=2).get_payment("123")

    assert exc.value.status_code == 500
    assert exc.value.retryable is True
    assert len(recorder.requests) == 3


@pytest.mark.asyncio
async def test_transport_errors_are_retried():
    recorder = Recorder(httpx.ConnectError("refused"), httpx.Response(200, json=PIX_PAYMENT))
    payment = await _provider(recorder).get_payment("123")

    assert payment.id == "123"
    assert len(recorder.requests) == 2


@pytest.mark.asyncio
async def test_client_errors_are_not_retried():
    recorder = Recorder(httpx.Response(400, json={
        "message": "Collector user without key enabled for QR render",
        "error": "bad_request",
        "cause": [{"code": 13253, "description": "Collector user without key enabled for QR render"}],
    }))

    with pytest.raises(PaymentGatewayError) as exc:
        await _provider(recorder).create_payment(_params())

    assert len(recorder.requests) == 1
    assert exc.value.status_code == 400
    assert exc.value.cause_codes == {13253}
    assert exc.value.is_missing_pix_key is True
    assert exc.value.retryable is False


@pytest.mark.asyncio
async def test_policy_rejection_is_detected():
    recorder = Recorder(httpx.Response(403, json={
        "message": "Unauthorized use of live credentials",
        "error": "PA_UNAUTHORIZED_RESULT_FROM_POLICIES",
    }))

    with pytest.raises(PaymentGatewayError) as exc:
        await _provider(recorder).create_payment(_params())

    assert exc.value.is_policy_rejection is True
    assert exc.value.is_missing_pix_key is False


@pytest.mark.asyncio
async def test_search_by_external_reference():
    recorder = Recorder(httpx.Response(200, json={
        "results": [PIX_PAYMENT, {**PIX_PAYMENT, "id": 122, "status": "cancelled"}],
        "paging": {"total": 14, "limit": 10, "offset": 0},
    }))

    result = await _provider(recorder).search_payments("order:o-1:rev:0", 10)

    params = recorder.requests[0].url.params
    assert recorder.requests[0].url.path == "/v1/payments/search"
    assert params["external_reference"] == "order:o-1:rev:0"
    assert params["sort"] == "date_created"
    assert params["criteria"] == "desc"
    assert params["limit"] == "10"
    assert [p.id for p in result.results] == ["123", "122"]
    assert result.total == 14


@pytest.mark.asyncio
async def test_cancel_payment():
    recorder = Recorder(httpx.Response(200, json={**PIX_PAYMENT, "status": "cancelled"}))

    payment = await _provider(recorder).cancel_payment("123")

    request = recorder.requests[0]
    assert request.method == "PUT"
    assert request.url.path == "/v1/payments/123"
    assert json.loads(request.content) == {"status": "cancelled"}
    assert payment.status == PaymentStatus.CANCELLED
