"""API routes for the FastAPI application."""

from storepilot.api.router import TrailingSlashRouter
from storepilot.api.v1.endpoints import (
    health,
    invoices,
    payment_methods,
    plans,
    subscription,
    webhook,
)

# Use our custom router that handles trailing slashes
api_router = TrailingSlashRouter()
api_router.include_router(health.router, prefix="/health", tags=["health"])
api_router.include_router(subscription.router, prefix="/subscription", tags=["subscription"])
api_router.include_router(plans.router, prefix="/subscription-plans", tags=["subscription"])
api_router.include_router(invoices.router, prefix="/invoices", tags=["invoices"])
api_router.include_router(
    payment_methods.router, prefix="/payment-methods", tags=["payment-methods"]
)
api_router.include_router(webhook.router, prefix="/billing", tags=["billing"])
