# checkout/services/payment/provider_factory.py
import logging
from typing import Optional

from checkout.core.config import settings
from checkout.core.exceptions import ConfigurationError
from .provider_interface import PaymentGatewayInterface
from .providers.mercadopago_provider import MercadoPagoConfig, MercadoPagoProvider

logger = logging.getLogger(__name__)


# Global provider instance (singleton pattern)
_provider_instance: Optional[PaymentGatewayInterface] = None


def get_payment_provider() -> PaymentGatewayInterface:
    """
    Get the configured payment gateway.

    Raises:
        ConfigurationError: If MP_ACCESS_TOKEN is not set
    """
    global _provider_instance
    if _provider_instance is None:
        access_token = settings.MP_ACCESS_TOKEN.strip()
        if not access_token:
            raise ConfigurationError("MP_ACCESS_TOKEN is not configured.")

        config = MercadoPagoConfig(
            access_token=access_token,
            base_url=settings.MP_API_BASE_URL,
            timeout_seconds=settings.MP_TIMEOUT_SECONDS,
            max_retries=settings.MP_MAX_RETRIES,
            backoff_seconds=settings.MP_RETRY_BACKOFF_SECONDS,
        )
        _provider_instance = MercadoPagoProvider(config)
        logger.info("Mercado Pago payment provider initialized")
    return _provider_instance


async def close_payment_provider() -> None:
    global _provider_instance
    if _provider_instance is not None:
        await _provider_instance.close()
        _provider_instance = None
