"""Inbound webhook endpoint for the billing provider."""

from typing import Optional

from fastapi import Depends, Header, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from storepilot.api import deps
from storepilot.api.router import TrailingSlashRouter
from storepilot.core.config import settings
from storepilot.core.logging import logger
from storepilot.integrations.stripe_client import stripe_client
from storepilot.platform.billing.webhook_handler import BillingWebhookProcessor

router = TrailingSlashRouter()


@router.post("/webhook", include_in_schema=False)
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None),
    db: AsyncSession = Depends(deps.get_db),
) -> Response:
    """Handle Stripe webhook events.

    Security:
    - Verifies webhook signature

    Delivery is at-least-once and unordered. Duplicate and stale events are
    acknowledged with 200 without changing anything.

    Args:
        request: Raw HTTP request
        stripe_signature: Stripe signature header
        db: Database session

    Returns:
        200 OK when processed or discarded, 400 on an invalid payload or signature,
        500 when processing failed and Stripe should retry
    """
    if not settings.STRIPE_ENABLED or stripe_client is None:
        return Response(status_code=200)

    payload = await request.body()
    if not stripe_signature:
        return Response(status_code=400)

    try:
        event = stripe_client.verify_webhook_signature(payload, stripe_signature)
    except ValueError as e:
        logger.warning(f"Rejected webhook: {e}")
        return Response(status_code=400)

    try:
        processor = BillingWebhookProcessor(db)
        await processor.process_event(event)
    except Exception:
        # Already logged by the processor
        return Response(status_code=500)

    return Response(status_code=200)
