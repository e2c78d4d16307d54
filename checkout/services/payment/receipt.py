# checkout/services/payment/receipt.py
"""
Signed receipt links.

A token is base64url(JSON {pid, exp}) + "." + HMAC-SHA256 of that payload,
where exp is a unix timestamp in milliseconds.
"""

import base64
import hashlib
import hmac
import json
import time
from typing import List, Optional, Tuple
from urllib.parse import quote, urlparse

from checkout.core.config import settings

ALLOWED_RECEIPT_HOSTS = ("mpago.la", "mercadopago.com", "mercadopago.com.br")


def _b64url_encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def _b64url_decode(value: str) -> bytes:
    return base64.urlsafe_b64decode(value + "=" * (-len(value) % 4))


def _sign(payload_b64: str, secret: str) -> str:
    digest = hmac.new(secret.encode("utf-8"), payload_b64.encode("ascii"), hashlib.sha256).digest()
    return _b64url_encode(digest)


def make_receipt_token(payment_id: str, *, secret: Optional[str] = None, days: Optional[int] = None,
                       now: Optional[float] = None) -> Optional[str]:
    secret = settings.receipt_secret if secret is None else secret
    payment_id = str(payment_id or "").strip()
    if not secret or not payment_id:
        return None

    days = max(1, settings.RECEIPT_TOKEN_DAYS if days is None else days)
    now = time.time() if now is None else now
    payload = {"pid": payment_id, "exp": int((now + days * 86400) * 1000)}
    payload_b64 = _b64url_encode(json.dumps(payload, separators=(",", ":")).encode("utf-8"))
    return f"{payload_b64}.{_sign(payload_b64, secret)}"


def verify_receipt_token(token: str, expected_payment_id: str, *, secret: Optional[str] = None,
                         now: Optional[float] = None) -> Tuple[bool, Optional[str]]:
    """Return (ok, reason)."""
    secret = settings.receipt_secret if secret is None else secret
    token = (token or "").strip()
    if not secret or "." not in token:
        return False, "invalid token"

    payload_b64, signature = token.split(".", 1)
    if not payload_b64 or not signature:
        return False, "invalid token"
    if not hmac.compare_digest(signature, _sign(payload_b64, secret)):
        return False, "invalid signature"

    try:
        payload = json.loads(_b64url_decode(payload_b64))
        pid = str(payload.get("pid") or "").strip()
        exp = float(payload.get("exp"))
    except (ValueError, TypeError, AttributeError):
        return False, "invalid token"

    if not pid or pid != str(expected_payment_id or "").strip():
        return False, "token does not belong to this payment"
    now = time.time() if now is None else now
    if now * 1000 > exp:
        return False, "token expired"
    return True, None


def build_receipt_url(payment_id: str, token: Optional[str]) -> str:
    path = f"/api/pagment?receipt=1&id={quote(str(payment_id))}"
    if token:
        path += f"&token={quote(token)}"
    origin = settings.APP_ORIGIN
    return f"{origin}{path}" if origin else path


def is_allowed_receipt_host(url: str) -> bool:
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    if parsed.scheme not in ("http", "https"):
        return False
    host = (parsed.hostname or "").lower()
    return any(host == allowed or host.endswith("." + allowed) for allowed in ALLOWED_RECEIPT_HOSTS)


def receipt_candidates(*urls: Optional[str]) -> List[str]:
    """Gateway-hosted document URLs, in order, restricted to Mercado Pago hosts."""
    seen = []
    for url in urls:
        if url and url not in seen and is_allowed_receipt_host(url):
            seen.append(url)
    return seen
