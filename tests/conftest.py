# tests/conftest.py

import time
from typing import Any, Dict, List

import pytest
from starlette.testclient import TestClient
from unittest.mock import MagicMock

from checkout.api import deps
from checkout.core.config import settings
from checkout.core.limiter import limiter
from checkout.core.security import SESSION_COOKIE, SESSION_SIG_COOKIE, sign_session
from checkout.main import app
from checkout.schemas.session import SessionUser
from checkout.services.payment.coupon_evaluator import CouponEvaluator, load_static_coupons
from checkout.services.payment.intent_store import InMemoryIntentStore
from checkout.services.payment.payment_service import PaymentService
from checkout.services.payment.provider_interface import (
    CreatePaymentParams,
    GatewayPayment,
    PaymentGatewayError,
    PaymentGatewayInterface,
    PaymentSearchResult,
)

VALID_CPF = "52998224725"

STATIC_COUPONS_JSON = """[
  {"code": "HALF", "type": "percent", "value": 50},
  {"code": "FIVEOFF", "type": "fixed", "value": 5},
  {"code": "PROONLY", "type": "percent", "value": 10, "plans": ["pro"]},
  {"code": "ANNUALONLY", "type": "percent", "value": 10, "billings": ["annual"]},
  {"code": "BIGORDER", "type": "percent", "value": 10, "min_total": 100},
  {"code": "OLD", "type": "percent", "value": 10, "ends_at": "2020-01-01T00:00:00Z"},
  {"code": "SOON", "type": "percent", "value": 10, "starts_at": "2999-01-01T00:00:00Z"},
  {"code": "OFF", "type": "percent", "value": 10, "active": false}
]"""


class FakeGateway(PaymentGatewayInterface):
    """In-memory stand-in for the Mercado Pago API."""

    code = "fake"

    def __init__(self):
        self.payments: Dict[str, Dict[str, Any]] = {}
        self.created: List[CreatePaymentParams] = []
        self.cancelled: List[str] = []
        self.create_error = None
        self._next_id = 1000

    def add(self, **fields) -> str:
        payment_id = str(fields.pop("id", self._next_id))
        self._next_id = max(self._next_id, int(payment_id)) + 1
        data = {
            "id": int(payment_id),
            "status": "pending",
            "status_detail": "pending_waiting_transfer",
            "payment_method_id": "pix",
            "metadata": {},
        }
        data.update(fields)
        self.payments[payment_id] = data
        return payment_id

    async def create_payment(self, params: CreatePaymentParams) -> GatewayPayment:
        if self.create_error is not None:
            raise self.create_error
        self.created.append(params)
        payment_id = self.add(
            payment_method_id=params.payment_method_id,
            transaction_amount=params.amount_cents / 100,
            external_reference=params.external_reference,
            metadata=dict(params.metadata),
            date_of_expiration=params.date_of_expiration,
            point_of_interaction={"transaction_data": {
                "qr_code": "00020126580014br.gov.bcb.pix",
                "qr_code_base64": "iVBORw0KGgo=",
                "ticket_url": "https://www.mercadopago.com.br/payments/ticket",
            }},
        )
        return GatewayPayment.from_api(self.payments[payment_id])

    async def get_payment(self, payment_id: str) -> GatewayPayment:
        data = self.payments.get(str(payment_id))
        if data is None:
            raise PaymentGatewayError("Payment not found", status_code=404)
        return GatewayPayment.from_api(data)

    async def search_payments(self, external_reference: str, limit: int) -> PaymentSearchResult:
        matches = [p for p in self.payments.values() if p.get("external_reference") == external_reference]
        matches.sort(key=lambda p: p["id"], reverse=True)
        return PaymentSearchResult(
            results=[GatewayPayment.from_api(p) for p in matches[:limit]],
            total=len(matches),
        )

    async def cancel_payment(self, payment_id: str) -> GatewayPayment:
        self.cancelled.append(str(payment_id))
        self.payments[str(payment_id)]["status"] = "cancelled"
        return GatewayPayment.from_api(self.payments[str(payment_id)])

    async def close(self) -> None:
        pass


@pytest.fixture(autouse=True)
def checkout_settings(monkeypatch):
    """Deterministic settings for every test; nothing talks to real services."""
    monkeypatch.setattr(settings, "ENV", "local")
    monkeypatch.setattr(settings, "MP_ACCESS_TOKEN", "APP_USR-0000-test")
    monkeypatch.setattr(settings, "SESSION_SECRET", "session-secret-for-tests")
    monkeypatch.setattr(settings, "RECEIPT_SECRET", "receipt-secret-for-tests")
    monkeypatch.setattr(settings, "APP_ORIGIN", "https://checkout.example.com")
    monkeypatch.setattr(settings, "ALLOWED_ORIGINS", "")
    monkeypatch.setattr(settings, "APP_URL", "https://checkout.example.com")
    monkeypatch.setattr(settings, "COUPONS_JSON", "")
    monkeypatch.setattr(settings, "MP_WEBHOOK_URL", None)
    monkeypatch.setattr(settings, "DEDUP_SEARCH_LIMIT", 10)
    monkeypatch.setattr(settings, "MIN_PIX_CENTS", 100)
    monkeypatch.setattr(settings, "MIN_BOLETO_CENTS", 300)
    monkeypatch.setattr(settings, "MIN_CARD_CENTS", 100)
    return settings


@pytest.fixture(autouse=True)
def disable_rate_limits():
    limiter.enabled = False
    yield
    limiter.enabled = True
    limiter.reset()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def intent_store():
    return InMemoryIntentStore(ttl_seconds=120)


@pytest.fixture
def evaluator():
    return CouponEvaluator(None, static_coupons=load_static_coupons(STATIC_COUPONS_JSON, include_test_coupon=True))


@pytest.fixture
def payment_service(gateway, intent_store, evaluator):
    return PaymentService(db=None, provider=gateway, intent_store=intent_store, evaluator=evaluator)


@pytest.fixture
def db():
    session = MagicMock()
    # No stored rows unless a test says otherwise
    session.get.return_value = None
    session.query.return_value.filter.return_value.first.return_value = None
    return session


@pytest.fixture
def client(db, payment_service):
    """
    TestClient with the database and the payment service mocked.
    """
    app.dependency_overrides[deps.get_db] = lambda: db
    app.dependency_overrides[deps.get_payment_service] = lambda: payment_service

    with TestClient(app, raise_server_exceptions=False) as c:
        yield c

    app.dependency_overrides.clear()


@pytest.fixture
def login(client):
    """Sign a session cookie pair into the client for a Discord user id."""
    def _login(discord_id: str = "111222333", username: str = "tester") -> SessionUser:
        user = SessionUser(discord_id=discord_id, username=username, exp=int(time.time()) + 3600)
        payload, signature = sign_session(user)
        client.cookies.set(SESSION_COOKIE, payload)
        client.cookies.set(SESSION_SIG_COOKIE, signature)
        return user
    return _login
