# checkout/services/payment/providers/mercadopago_provider.py
import asyncio
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Optional

import httpx

from ..provider_interface import (
    CreatePaymentParams,
    GatewayPayment,
    PaymentGatewayError,
    PaymentGatewayInterface,
    PaymentSearchResult,
)

logger = logging.getLogger(__name__)


@dataclass
class MercadoPagoConfig:
    """Configuration for the Mercado Pago provider."""
    access_token: str
    base_url: str = "https://api.mercadopago.com"
    timeout_seconds: float = 20.0
    max_retries: int = 2
    backoff_seconds: float = 0.5


RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}


class MercadoPagoProvider(PaymentGatewayInterface):
    """
    Mercado Pago REST client for Pix and boleto payments.

    - Every call has an explicit timeout
    - 429/5xx and transport errors are retried with exponential backoff
    - Other 4xx are raised immediately
    - Mutations carry X-Idempotency-Key
    """

    def __init__(self, config: MercadoPagoConfig, transport: Optional[httpx.AsyncBaseTransport] = None):
        self._config = config
        self._transport = transport
        self._http_client: Optional[httpx.AsyncClient] = None

    @property
    def code(self) -> str:
        return "mercadopago"

    def _get_http_client(self) -> httpx.AsyncClient:
        """Get or create the pooled HTTP client."""
        if self._http_client is None or self._http_client.is_closed:
            self._http_client = httpx.AsyncClient(
                base_url=self._config.base_url,
                headers={
                    "Authorization": f"Bearer {self._config.access_token}",
                    "Content-Type": "application/json",
                },
                timeout=self._config.timeout_seconds,
                transport=self._transport,
            )
        return self._http_client

    async def close(self) -> None:
        if self._http_client is not None and not self._http_client.is_closed:
            await self._http_client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
        idempotency_key: Optional[str] = None,
    ) -> Dict[str, Any]:
        client = self._get_http_client()
        headers = {"X-Idempotency-Key": idempotency_key} if idempotency_key else None

        attempt = 0
        while True:
            try:
                response = await client.request(method, path, json=json, params=params, headers=headers)
            except httpx.TransportError as e:
                error = PaymentGatewayError(f"Gateway transport error: {e}", retryable=True)
            else:
                if response.status_code < 400:
                    return response.json()
                error = self._error_from_response(response)

            if not error.retryable or attempt >= self._config.max_retries:
                raise error

            delay = self._config.backoff_seconds * (2 ** attempt)
            attempt += 1
            logger.warning(
                f"Mercado Pago {method} {path} failed ({error.status_code or 'transport'}), "
                f"retry {attempt}/{self._config.max_retries} in {delay:.2f}s"
            )
            await asyncio.sleep(delay)

    @staticmethod
    def _error_from_response(response: httpx.Response) -> PaymentGatewayError:
        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        causes = body.get("cause") or []
        if isinstance(causes, dict):
            causes = [causes]

        return PaymentGatewayError(
            message=str(body.get("message") or response.reason_phrase or "Gateway error"),
            status_code=response.status_code,
            error=body.get("error"),
            causes=[c for c in causes if isinstance(c, dict)],
            retryable=response.status_code in RETRYABLE_STATUS_CODES,
        )

    async def create_payment(self, params: CreatePaymentParams) -> GatewayPayment:
        body: Dict[str, Any] = {
            "transaction_amount": float(Decimal(params.amount_cents) / 100),
            "description": params.description,
            "payment_method_id": params.payment_method_id,
            "payer": params.payer,
            "external_reference": params.external_reference,
            "metadata": params.metadata,
        }
        if params.date_of_expiration:
            body["date_of_expiration"] = params.date_of_expiration
        if params.notification_url:
            body["notification_url"] = params.notification_url

        data = await self._request("POST", "/v1/payments", json=body, idempotency_key=params.idempotency_key)
        payment = GatewayPayment.from_api(data)
        logger.info(f"Mercado Pago payment {payment.id} created ({payment.status.value})")
        return payment

    async def get_payment(self, payment_id: str) -> GatewayPayment:
        data = await self._request("GET", f"/v1/payments/{payment_id}")
        return GatewayPayment.from_api(data)

    async def search_payments(self, external_reference: str, limit: int) -> PaymentSearchResult:
        data = await self._request(
            "GET",
            "/v1/payments/search",
            params={
                "external_reference": external_reference,
                "sort": "date_created",
                "criteria": "desc",
                "limit": limit,
            },
        )
        results = [GatewayPayment.from_api(item) for item in data.get("results") or [] if isinstance(item, dict)]
        total = (data.get("paging") or {}).get("total")
        return PaymentSearchResult(results=results, total=int(total) if isinstance(total, int) else len(results))

    async def cancel_payment(self, payment_id: str) -> GatewayPayment:
        data = await self._request("PUT", f"/v1/payments/{payment_id}", json={"status": "cancelled"})
        logger.info(f"Mercado Pago payment {payment_id} cancelled")
        return GatewayPayment.from_api(data)
