# checkout/core/config.py
import json
import logging
from typing import List, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # The environment mode: 'local' or 'prod'
    ENV: str = "local"
    LOG_LEVEL: str = "INFO"

    # --- Origins ---
    APP_ORIGIN: str = ""
    ALLOWED_ORIGINS: str = ""
    APP_URL: str = "http://localhost:3000"

    # --- Storage ---
    DATABASE_URL: str = "sqlite:///./checkout.db"
    REDIS_URL: str = "redis://localhost:6379/0"

    # Intent dedup store: 'memory' (per process) or 'redis' (shared)
    INTENT_STORE_BACKEND: str = "memory"
    INTENT_TTL_SECONDS: int = 120
    DEDUP_SEARCH_LIMIT: int = 10

    # --- Mercado Pago ---
    MP_ACCESS_TOKEN: str = ""
    MP_API_BASE_URL: str = "https://api.mercadopago.com"
    MP_TIMEOUT_SECONDS: float = 20.0
    MP_MAX_RETRIES: int = 2
    MP_RETRY_BACKOFF_SECONDS: float = 0.5
    MP_WEBHOOK_URL: Optional[str] = None
    MP_PIX_EXPIRATION_MINUTES: int = 60
    MP_BOLETO_EXPIRATION_DAYS: int = 3

    # Per-method minimum charge (cents), applied after coupons
    MIN_PIX_CENTS: int = 100
    MIN_BOLETO_CENTS: int = 300
    MIN_CARD_CENTS: int = 100

    # --- Coupons ---
    COUPONS_JSON: str = ""
    TEST_COUPON_CODE: str = "DEVS"

    # --- Receipts ---
    RECEIPT_SECRET: str = ""
    RECEIPT_TOKEN_DAYS: int = 14

    # --- Session / Discord OAuth ---
    SESSION_SECRET: str = "CHANGE-ME-IN-PRODUCTION"
    SESSION_MAX_AGE_SECONDS: int = 60 * 60 * 24
    DISCORD_CLIENT_ID: str = ""
    DISCORD_CLIENT_SECRET: str = ""
    DISCORD_REDIRECT_URI: str = ""
    DISCORD_API_BASE_URL: str = "https://discord.com/api"
    DISCORD_AUTHORIZE_URL: str = "https://discord.com/oauth2/authorize"

    # --- Request hardening ---
    MAX_BODY_BYTES: int = 50_000
    RATE_LIMIT_GET: str = "120/minute"
    RATE_LIMIT_POST: str = "30/minute"
    RATE_LIMIT_STORAGE_URI: str = "memory://"

    @field_validator("APP_ORIGIN", "APP_URL")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.strip().rstrip("/")

    # --- Dynamic Properties ---
    @property
    def is_production(self) -> bool:
        return self.ENV.lower() in ("prod", "production")

    @property
    def is_test_access_token(self) -> bool:
        return self.MP_ACCESS_TOKEN.strip().startswith("TEST-")

    @property
    def receipt_secret(self) -> str:
        return (self.RECEIPT_SECRET or self.MP_ACCESS_TOKEN).strip()

    def get_allowed_origins(self) -> List[str]:
        """Parse ALLOWED_ORIGINS from comma-separated string or JSON array"""
        origins = [self.APP_ORIGIN] if self.APP_ORIGIN else []
        v = self.ALLOWED_ORIGINS.strip()
        if not v:
            return origins
        if v.startswith("["):
            try:
                return origins + [o.strip().rstrip("/") for o in json.loads(v)]
            except json.JSONDecodeError:
                logger.warning("ALLOWED_ORIGINS is not valid JSON, ignoring it")
                return origins
        return origins + [o.strip().rstrip("/") for o in v.split(",") if o.strip()]

    def minimum_cents_for(self, method: str) -> int:
        minimums = {
            "pix": self.MIN_PIX_CENTS,
            "boleto": self.MIN_BOLETO_CENTS,
            "card": self.MIN_CARD_CENTS,
        }
        return max(1, minimums.get(method, 1))


# Create a single instance of the settings
settings = Settings()
