# checkout/main.py
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from slowapi.errors import RateLimitExceeded

from checkout.api.api import api_router
from checkout.core.config import settings
from checkout.core.exceptions import (
    CheckoutError,
    checkout_error_handler,
    rate_limit_handler,
    unexpected_error_handler,
    validation_error_handler,
)
from checkout.core.limiter import limiter
from checkout.core.middleware import trace_and_security_headers_middleware
from checkout.services.payment.provider_factory import close_payment_provider

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events"""
    logger.info(f"Starting checkout service (ENV={settings.ENV})...")
    if not settings.MP_ACCESS_TOKEN:
        logger.warning("MP_ACCESS_TOKEN is not set; payment creation will fail")
    if settings.is_production and settings.SESSION_SECRET == "CHANGE-ME-IN-PRODUCTION":
        logger.error("SESSION_SECRET is the default value in production")
    yield
    logger.info("Shutting down checkout service...")
    await close_payment_provider()


app = FastAPI(
    title="Atlas Checkout Service",
    version="1.0.0",
    description="Plan checkout with Discord login and Mercado Pago Pix/boleto payments.",
    lifespan=lifespan,
)

app.state.limiter = limiter

origins = settings.get_allowed_origins()
if not origins and not settings.is_production:
    origins = ["http://localhost:3000"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=["X-Trace-Id", "Retry-After"],
)

app.middleware("http")(trace_and_security_headers_middleware)

app.add_exception_handler(CheckoutError, checkout_error_handler)
app.add_exception_handler(RequestValidationError, validation_error_handler)
app.add_exception_handler(RateLimitExceeded, rate_limit_handler)
app.add_exception_handler(Exception, unexpected_error_handler)

app.include_router(api_router, prefix="/api")


@app.get("/")
def read_root():
    return {"status": "Checkout service is running"}
