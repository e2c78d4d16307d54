# tests/api/test_payments_api.py
"""
HTTP tests for /api/pagment.

The payment service is wired to the in-memory gateway from conftest; these
tests cover the request guards, the response envelope and error rendering.
"""

from unittest.mock import MagicMock

from checkout.api import deps
from checkout.core.limiter import limiter
from checkout.core.security import SESSION_COOKIE, SESSION_SIG_COOKIE
from checkout.main import app

VALID_CPF = "52998224725"
URL = "/api/pagment"


def _body(**overrides):
    body = {
        "method": "pix",
        "plan": "pro",
        "billing": "monthly",
        "order_id": "order-1",
        "revision": 0,
        "payer": {"email": "buyer@example.com", "cpf": "529.982.247-25", "name": "Ana Souza"},
    }
    body.update(overrides)
    return body


class TestCreate:

    def test_creates_payment(self, client, gateway):
        response = client.post(URL, json=_body(planTitle="Atlas Pro"))

        assert response.status_code == 200
        data = response.json()
        assert data["ok"] is True
        assert data["status"] == "pending"
        assert data["qr_code"]
        assert data["traceId"] == response.headers["X-Trace-Id"]
        assert gateway.created[0].description == "Atlas Pro - Monthly"

    def test_secure_headers(self, client):
        response = client.post(URL, json=_body())

        assert response.headers["Cache-Control"] == "no-store"
        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["Referrer-Policy"] == "same-origin"

    def test_repeat_request_is_deduped(self, client, gateway):
        first = client.post(URL, json=_body()).json()
        second = client.post(URL, json=_body()).json()

        assert second["id"] == first["id"]
        assert second["deduped"] is True
        assert len(gateway.created) == 1

    def test_quote_only_does_not_touch_the_gateway(self, client, gateway):
        response = client.post(URL, json=_body(coupon="DEVS", quote_only=True))

        assert response.status_code == 200
        pricing = response.json()["pricing"]
        assert pricing["total_cents"] == 100
        assert pricing["discount_cents"] == 1890
        assert gateway.created == []

    def test_quote_only_must_be_literal_true(self, client, gateway):
        client.post(URL, json=_body(quote_only="true"))
        assert len(gateway.created) == 1

    def test_invalid_coupon(self, client):
        response = client.post(URL, json=_body(coupon="NOPE"))

        assert response.status_code == 422
        assert response.json()["ok"] is False
        assert response.json()["coupon"] == "NOPE"

    def test_card_is_refused(self, client):
        response = client.post(URL, json=_body(method="card"))
        assert response.status_code == 422

    def test_unknown_plan_is_a_validation_error(self, client):
        response = client.post(URL, json=_body(plan="enterprise"))

        assert response.status_code == 400
        assert response.json()["message"] == "Invalid payload."
        assert response.json()["errors"][0]["field"] == "plan"

    def test_payer_error(self, client):
        response = client.post(URL, json=_body(payer={"email": "buyer@example.com", "cpf": "123"}))

        assert response.status_code == 400
        assert response.json()["message"] == "Invalid payer CPF."

    def test_session_email_is_payer_fallback(self, client, login, db, gateway):
        login("42")
        db.get.return_value = MagicMock(email="discord@example.com")

        response = client.post(URL, json=_body(payer={"cpf": VALID_CPF}))

        assert response.status_code == 200
        assert gateway.created[0].payer["email"] == "discord@example.com"


class TestPostGuards:

    def test_non_json_content_type(self, client):
        response = client.post(URL, content="method=pix", headers={"Content-Type": "text/plain"})
        assert response.status_code == 415

    def test_body_too_large(self, client, checkout_settings):
        checkout_settings.MAX_BODY_BYTES = 200
        response = client.post(URL, json=_body(planDescription="x" * 500))
        assert response.status_code == 413

    def test_foreign_origin_in_production(self, client, checkout_settings):
        checkout_settings.ENV = "production"
        response = client.post(URL, json=_body(), headers={"Origin": "https://evil.example.com"})

        assert response.status_code == 403
        assert response.json()["message"] == "Origin not allowed."

    def test_own_referer_in_production(self, client, checkout_settings):
        checkout_settings.ENV = "production"
        response = client.post(
            URL, json=_body(), headers={"Referer": "https://checkout.example.com/checkout?plan=pro"},
        )
        assert response.status_code == 200

    def test_rate_limit(self, client):
        limiter.enabled = True
        statuses = [client.post(URL, json=_body(quote_only=True)).status_code for _ in range(31)]

        assert statuses[:30] == [200] * 30
        assert statuses[30] == 429


class TestStatus:

    def test_status(self, client, gateway):
        payment_id = gateway.add(status="approved", status_detail="accredited")
        response = client.get(URL, params={"id": payment_id})

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "approved"
        assert data["final"] is True

    def test_missing_id(self, client):
        response = client.get(URL)
        assert response.status_code == 400

    def test_unknown_payment(self, client):
        response = client.get(URL, params={"id": "999"})

        assert response.status_code == 404
        assert response.json()["traceId"] == response.headers["X-Trace-Id"]

    def test_receipt_redirect(self, client, gateway):
        payment_id = gateway.add(transaction_details={"external_resource_url": "https://mpago.la/abc"})
        response = client.get(URL, params={"id": payment_id, "receipt": "1"}, follow_redirects=False)

        assert response.status_code == 302
        assert response.headers["location"] == "https://mpago.la/abc"

    def test_receipt_without_document(self, client, gateway):
        payment_id = gateway.add()
        response = client.get(URL, params={"id": payment_id, "receipt": "1"}, follow_redirects=False)
        assert response.status_code == 404


def test_invalid_session_clears_cookies(client):
    client.cookies.set(SESSION_COOKIE, "eyJ2IjoxfQ")
    client.cookies.set(SESSION_SIG_COOKIE, "forged")

    response = client.post(URL, json=_body(quote_only=True))

    assert response.status_code == 200
    cleared = " ".join(response.headers.get_list("set-cookie"))
    assert f"{SESSION_COOKIE}=" in cleared
    assert f"{SESSION_SIG_COOKIE}=" in cleared
    assert "Max-Age=0" in cleared


def test_unexpected_error_keeps_trace_and_secure_headers(client):
    def broken_service():
        raise RuntimeError("service wiring failed")

    app.dependency_overrides[deps.get_payment_service] = broken_service

    response = client.get(URL, params={"id": "123"})

    assert response.status_code == 500
    assert response.json()["message"] == "Unexpected error."
    assert response.json()["traceId"] == response.headers["X-Trace-Id"]
    assert response.headers["Cache-Control"] == "no-store"
    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert response.headers["Referrer-Policy"] == "same-origin"
