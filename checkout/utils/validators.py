# checkout/utils/validators.py
"""
Input normalization and validation for checkout payloads.

Every normalizer accepts arbitrary JSON values and never raises: invalid input
collapses to an empty/neutral value and the caller decides how to report it.
"""

import re
import unicodedata
import uuid
from typing import Any, Dict, List, Optional, Tuple

# =============================================================================
# CONSTANTS
# =============================================================================

MAX_EMAIL_LENGTH = 180
MAX_ORDER_ID_LENGTH = 64
MAX_REVISION = 1_000_000
MAX_COUPON_LENGTH = 32
MAX_PAYMENT_ID_LENGTH = 32

_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")
_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]{2,}$")
_ORDER_ID_RE = re.compile(r"^[a-zA-Z0-9_-]+$")
_COUPON_STRIP_RE = re.compile(r"[^A-Z0-9_-]")

BR_STATES_TO_UF = {
    "acre": "AC",
    "alagoas": "AL",
    "amapa": "AP",
    "amazonas": "AM",
    "bahia": "BA",
    "ceara": "CE",
    "distrito federal": "DF",
    "espirito santo": "ES",
    "goias": "GO",
    "maranhao": "MA",
    "mato grosso": "MT",
    "mato grosso do sul": "MS",
    "minas gerais": "MG",
    "para": "PA",
    "paraiba": "PB",
    "parana": "PR",
    "pernambuco": "PE",
    "piaui": "PI",
    "rio de janeiro": "RJ",
    "rio grande do norte": "RN",
    "rio grande do sul": "RS",
    "rondonia": "RO",
    "roraima": "RR",
    "santa catarina": "SC",
    "sao paulo": "SP",
    "sergipe": "SE",
    "tocantins": "TO",
}

BR_UF_SET = set(BR_STATES_TO_UF.values())


# =============================================================================
# TEXT
# =============================================================================

def only_digits(value: Any) -> str:
    return re.sub(r"\D", "", value if isinstance(value, str) else str(value or ""))


def normalize_text(value: Any, max_length: int = 120) -> str:
    """Strip control characters and surrounding whitespace, then truncate."""
    if not isinstance(value, str):
        return ""
    return _CONTROL_CHARS.sub("", value).strip()[:max_length]


def normalize_name(value: Any) -> str:
    return re.sub(r"\s+", " ", normalize_text(value, 120))


def split_name(full_name: str) -> Tuple[str, str]:
    parts = normalize_name(full_name).split(" ")
    if not parts or not parts[0]:
        return "", ""
    return parts[0], " ".join(parts[1:])


def strip_diacritics_lower(value: str) -> str:
    decomposed = unicodedata.normalize("NFD", value or "")
    return "".join(c for c in decomposed if not unicodedata.combining(c)).lower().strip()


# =============================================================================
# IDENTIFIERS
# =============================================================================

def normalize_coupon_code(value: Any) -> str:
    if not isinstance(value, str):
        return ""
    return _COUPON_STRIP_RE.sub("", value.strip().upper())[:MAX_COUPON_LENGTH]


def normalize_order_id(value: Any) -> Optional[str]:
    raw = value.strip() if isinstance(value, str) else ""
    if not raw or len(raw) > MAX_ORDER_ID_LENGTH:
        return None
    if not _ORDER_ID_RE.match(raw):
        return None
    return raw


def new_order_id() -> str:
    return str(uuid.uuid4())


def normalize_revision(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0
    if number != number or number in (float("inf"), float("-inf")):
        return 0
    return min(max(int(number // 1), 0), MAX_REVISION)


def normalize_payment_id(value: Any) -> str:
    if isinstance(value, bool) or value is None:
        return ""
    if isinstance(value, int):
        value = str(value)
    if not isinstance(value, str):
        return ""
    return only_digits(value.strip())[:MAX_PAYMENT_ID_LENGTH]


# =============================================================================
# PAYER
# =============================================================================

def is_valid_email(value: str) -> bool:
    email = (value or "").strip()
    if not email or len(email) > MAX_EMAIL_LENGTH:
        return False
    return bool(_EMAIL_RE.match(email))


def is_valid_cpf(value: str) -> bool:
    """Check length, repeated digits and both CPF check digits."""
    cpf = only_digits(value)
    if len(cpf) != 11:
        return False
    if cpf == cpf[0] * 11:
        return False

    def check_digit(base: str, factor: int) -> int:
        total = sum(int(digit) * (factor - i) for i, digit in enumerate(base))
        remainder = total % 11
        return 0 if remainder < 2 else 11 - remainder

    first = check_digit(cpf[:9], 10)
    second = check_digit(cpf[:9] + str(first), 11)
    return cpf.endswith(f"{first}{second}")


def normalize_federal_unit(value: Any) -> str:
    raw = normalize_text(value, 60)
    if not raw:
        return ""
    upper = raw.upper()
    if len(upper) == 2 and upper in BR_UF_SET:
        return upper
    return BR_STATES_TO_UF.get(strip_diacritics_lower(raw), "")


def normalize_boleto_address(raw: Any) -> Tuple[Optional[Dict[str, str]], List[str]]:
    """
    Build the registered-boleto address block.

    Returns (address, []) when complete, otherwise (None, missing_fields).
    """
    raw = raw if isinstance(raw, dict) else {}
    address = {
        "zip_code": only_digits(raw.get("zip_code") or raw.get("zip") or "")[:8],
        "street_name": normalize_text(raw.get("street_name"), 90),
        "street_number": normalize_text(str(raw.get("street_number") or ""), 20),
        "neighborhood": normalize_text(raw.get("neighborhood"), 70),
        "city": normalize_text(raw.get("city"), 70),
        "federal_unit": normalize_federal_unit(raw.get("federal_unit")),
    }

    missing = []
    if len(address["zip_code"]) != 8:
        missing.append("payer.address.zip_code")
    for field in ("street_name", "street_number", "neighborhood", "city", "federal_unit"):
        if not address[field]:
            missing.append(f"payer.address.{field}")

    if missing:
        return None, missing
    return address, []


def mask(value: Optional[str]) -> str:
    """Mask PII for logs."""
    return "***" if value else ""
