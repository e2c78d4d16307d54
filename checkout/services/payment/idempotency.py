# checkout/services/payment/idempotency.py
import hashlib
import json
from typing import Any, Dict

from checkout.utils.validators import only_digits


def external_reference(order_id: str, revision: int) -> str:
    return f"order:{order_id}:rev:{revision}"


def _sha256(payload: Dict[str, Any]) -> str:
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def pricing_fingerprint(
    *,
    method: str,
    plan: str,
    billing: str,
    total_cents: int,
    coupon: str,
    months: int,
    unit_cents: int,
) -> str:
    """Hash of every field that affects what the payer is charged."""
    return _sha256({
        "method": method,
        "plan": plan,
        "billing": billing,
        "total_cents": int(total_cents),
        "coupon": coupon or "",
        "months": int(months),
        "unit_cents": int(unit_cents),
    })


def idempotency_key(*, external_reference: str, method: str, fingerprint: str, cpf: str, email: str) -> str:
    """Gateway idempotency key; identical inputs always produce the same key."""
    return _sha256({
        "external_reference": external_reference,
        "method": method,
        "fingerprint": fingerprint,
        "cpf": only_digits(cpf),
        "email": (email or "").strip().lower(),
    })
