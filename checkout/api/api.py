# checkout/api/api.py

from fastapi import APIRouter
from checkout.api.endpoints import (
    payments,
    coupons,
    dev,
    auth,
    me,
    plan_features,
)

# Main router, mounted under /api
api_router = APIRouter()

api_router.include_router(payments.router)
api_router.include_router(coupons.router)
api_router.include_router(dev.router)
api_router.include_router(auth.router)
api_router.include_router(me.router)
api_router.include_router(plan_features.router)
