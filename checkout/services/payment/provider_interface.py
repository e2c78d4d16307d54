# checkout/services/payment/provider_interface.py
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Set


class PaymentStatus(str, Enum):
    """Gateway payment status."""
    PENDING = "pending"
    IN_PROCESS = "in_process"
    AUTHORIZED = "authorized"
    IN_MEDIATION = "in_mediation"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"
    EXPIRED = "expired"
    REFUNDED = "refunded"
    CHARGED_BACK = "charged_back"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: Any) -> "PaymentStatus":
        try:
            return cls(str(value or "").strip().lower())
        except ValueError:
            return cls.UNKNOWN


# Terminal states reported to pollers as `final`
FINAL_STATUSES: Set[PaymentStatus] = {
    PaymentStatus.APPROVED,
    PaymentStatus.REJECTED,
    PaymentStatus.CANCELLED,
    PaymentStatus.EXPIRED,
}

# Open states: may still be paid, may be reused or cancelled
CANCELLABLE_STATUSES: Set[PaymentStatus] = {
    PaymentStatus.PENDING,
    PaymentStatus.IN_PROCESS,
    PaymentStatus.AUTHORIZED,
    PaymentStatus.IN_MEDIATION,
}

# Checkout method -> gateway payment_method_id
GATEWAY_METHOD_IDS: Dict[str, str] = {
    "pix": "pix",
    "boleto": "bolbradesco",
}


@dataclass
class CreatePaymentParams:
    """Parameters for creating a payment."""
    amount_cents: int
    description: str
    payment_method_id: str
    payer: Dict[str, Any]
    external_reference: str
    metadata: Dict[str, Any]
    idempotency_key: str
    date_of_expiration: Optional[str] = None
    notification_url: Optional[str] = None


@dataclass
class GatewayPayment:
    """A payment as returned by the gateway."""
    id: str
    status: PaymentStatus
    status_detail: Optional[str] = None
    payment_method_id: Optional[str] = None
    transaction_amount: Optional[float] = None
    external_reference: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    date_created: Optional[str] = None
    date_of_expiration: Optional[str] = None
    qr_code: Optional[str] = None
    qr_code_base64: Optional[str] = None
    ticket_url: Optional[str] = None
    barcode: Optional[str] = None
    receipt_url: Optional[str] = None
    external_resource_url: Optional[str] = None

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "GatewayPayment":
        poi = (data.get("point_of_interaction") or {}).get("transaction_data") or {}
        details = data.get("transaction_details") or {}
        barcode = (poi.get("barcode") or {}).get("content") \
            or (data.get("barcode") or {}).get("content") \
            or details.get("barcode")
        if isinstance(barcode, dict):
            barcode = barcode.get("content")

        return cls(
            id=str(data.get("id") or ""),
            status=PaymentStatus.parse(data.get("status")),
            status_detail=data.get("status_detail"),
            payment_method_id=data.get("payment_method_id"),
            transaction_amount=data.get("transaction_amount"),
            external_reference=data.get("external_reference"),
            metadata=data.get("metadata") or {},
            date_created=data.get("date_created"),
            date_of_expiration=data.get("date_of_expiration"),
            qr_code=poi.get("qr_code"),
            qr_code_base64=poi.get("qr_code_base64"),
            ticket_url=poi.get("ticket_url") or details.get("external_resource_url"),
            barcode=barcode,
            receipt_url=data.get("receipt_url"),
            external_resource_url=poi.get("external_resource_url") or details.get("external_resource_url"),
        )

    @property
    def is_final(self) -> bool:
        return self.status in FINAL_STATUSES

    @property
    def is_open(self) -> bool:
        return self.status in CANCELLABLE_STATUSES

    @property
    def order_id(self) -> Optional[str]:
        value = self.metadata.get("order_id")
        return str(value) if value else None

    @property
    def fingerprint(self) -> Optional[str]:
        value = self.metadata.get("fingerprint")
        return str(value) if value else None


@dataclass
class PaymentSearchResult:
    results: List[GatewayPayment]
    total: int


class PaymentGatewayError(Exception):
    """Error returned by (or while talking to) the payment gateway."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        error: Optional[str] = None,
        causes: Optional[List[Dict[str, Any]]] = None,
        retryable: bool = False,
    ):
        self.message = message
        self.status_code = status_code
        self.error = error
        self.causes = causes or []
        self.retryable = retryable
        super().__init__(message)

    @property
    def cause_codes(self) -> Set[int]:
        codes = set()
        for cause in self.causes:
            try:
                codes.add(int(cause.get("code")))
            except (TypeError, ValueError):
                continue
        return codes

    @property
    def is_missing_pix_key(self) -> bool:
        texts = [self.message or ""] + [str(c.get("description") or "") for c in self.causes]
        return 13253 in self.cause_codes or any("without key enabled" in t.lower() for t in texts)

    @property
    def is_policy_rejection(self) -> bool:
        texts = [self.message or "", self.error or ""] + [str(c.get("description") or "") for c in self.causes]
        return self.status_code == 403 or any("PA_UNAUTHORIZED_RESULT_FROM_POLICIES" in t for t in texts)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status_code,
            "error": self.error,
            "message": self.message,
            "causes": self.causes,
        }


class PaymentGatewayInterface(ABC):
    """
    Operations the checkout needs from a payment gateway.
    """

    @property
    @abstractmethod
    def code(self) -> str:
        pass

    @abstractmethod
    async def create_payment(self, params: CreatePaymentParams) -> GatewayPayment:
        """Create a payment; the idempotency key makes retries safe."""
        pass

    @abstractmethod
    async def get_payment(self, payment_id: str) -> GatewayPayment:
        pass

    @abstractmethod
    async def search_payments(self, external_reference: str, limit: int) -> PaymentSearchResult:
        """Payments with this external reference, most recent first."""
        pass

    @abstractmethod
    async def cancel_payment(self, payment_id: str) -> GatewayPayment:
        pass

    @abstractmethod
    async def close(self) -> None:
        pass
