"""API endpoints for the account's subscription.

This module provides the HTTP interface for subscription lifecycle operations,
delegating all business logic to the lifecycle manager.
"""

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from storepilot import schemas
from storepilot.api import deps
from storepilot.api.context import ApiContext
from storepilot.api.router import TrailingSlashRouter
from storepilot.platform.billing.billing_service import lifecycle_manager

router = TrailingSlashRouter()


@router.get("/current", response_model=schemas.CurrentSubscription)
async def get_current_subscription(
    db: AsyncSession = Depends(deps.get_db),
    ctx: ApiContext = Depends(deps.get_context),
) -> schemas.CurrentSubscription:
    """Get the account's subscription.

    Returns the live subscription, or the most recently canceled one, together with
    its plan, the default payment method and the latest invoice.
    """
    return await lifecycle_manager.get_current_subscription(db, ctx)


@router.post("/change-plan", response_model=schemas.SubscriptionWithPlan)
async def change_plan(
    request: schemas.ChangePlanRequest,
    db: AsyncSession = Depends(deps.get_db),
    ctx: ApiContext = Depends(deps.get_context),
) -> schemas.SubscriptionWithPlan:
    """Switch the subscription to another plan.

    The provider prorates the change. Choosing the current plan is a no-op, and a
    scheduled cancellation is cleared by any plan change.

    Args:
        request: Target plan
        db: Database session
        ctx: API context

    Returns:
        The subscription after the change
    """
    return await lifecycle_manager.change_plan(db, request.plan_id, ctx)


@router.post("/cancel", response_model=schemas.SubscriptionWithPlan)
async def cancel_subscription(
    db: AsyncSession = Depends(deps.get_db),
    ctx: ApiContext = Depends(deps.get_context),
) -> schemas.SubscriptionWithPlan:
    """Cancel the subscription at the end of the current billing period."""
    return await lifecycle_manager.cancel(db, ctx)


@router.post("/reactivate", response_model=schemas.SubscriptionWithPlan)
async def reactivate_subscription(
    db: AsyncSession = Depends(deps.get_db),
    ctx: ApiContext = Depends(deps.get_context),
) -> schemas.SubscriptionWithPlan:
    """Undo a scheduled cancellation while the paid period is still running."""
    return await lifecycle_manager.reactivate(db, ctx)


@router.post("/checkout-session", response_model=schemas.CheckoutSessionResponse)
async def create_checkout_session(
    request: schemas.CheckoutSessionRequest,
    db: AsyncSession = Depends(deps.get_db),
    ctx: ApiContext = Depends(deps.get_context),
) -> schemas.CheckoutSessionResponse:
    """Create a provider checkout session for a new subscription.

    Args:
        request: Checkout session request with plan, billing email and URLs
        db: Database session
        ctx: API context

    Returns:
        Checkout session URL to redirect the user to
    """
    checkout_url = await lifecycle_manager.start_checkout(
        db,
        plan_id=request.plan_id,
        billing_email=request.billing_email,
        success_url=str(request.success_url),
        cancel_url=str(request.cancel_url),
        ctx=ctx,
    )
    return schemas.CheckoutSessionResponse(checkout_url=checkout_url)
