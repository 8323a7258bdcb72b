"""API routes."""

from fastapi import APIRouter

from stonebridge.routes import cart, deposit_plans, deposit_sessions, payments, webhooks

api_router = APIRouter()

# Cart bridge (external catalog -> storefront cart)
api_router.include_router(cart.router, prefix="/v1/cart", tags=["cart"])

# Deposit plans and sessions
api_router.include_router(deposit_plans.router, prefix="/v1/deposit-plans", tags=["deposit-plans"])
api_router.include_router(deposit_sessions.router, prefix="/v1/deposit-sessions", tags=["deposit-sessions"])

# Order payments (remaining balance)
api_router.include_router(payments.router, prefix="/v1/payments", tags=["payments"])

# Shopify webhooks
api_router.include_router(webhooks.router, prefix="/v1/webhooks", tags=["webhooks"])
