"""API endpoints for payment methods."""

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from storepilot import schemas
from storepilot.api import deps
from storepilot.api.context import ApiContext
from storepilot.api.router import TrailingSlashRouter
from storepilot.platform.billing.billing_service import lifecycle_manager

router = TrailingSlashRouter()


@router.get("", response_model=list[schemas.PaymentMethod])
async def list_payment_methods(
    db: AsyncSession = Depends(deps.get_db),
    ctx: ApiContext = Depends(deps.get_context),
) -> list[schemas.PaymentMethod]:
    """List the account's payment methods from the provider."""
    return await lifecycle_manager.list_payment_methods(db, ctx)


@router.post("/setup-session", response_model=schemas.SetupSessionResponse)
async def create_setup_session(
    request: schemas.SetupSessionRequest,
    db: AsyncSession = Depends(deps.get_db),
    ctx: ApiContext = Depends(deps.get_context),
) -> schemas.SetupSessionResponse:
    """Create a provider-hosted page for adding a payment method."""
    setup_url = await lifecycle_manager.add_payment_method(
        db,
        success_url=str(request.success_url),
        cancel_url=str(request.cancel_url),
        ctx=ctx,
    )
    return schemas.SetupSessionResponse(setup_url=setup_url)


@router.delete("/{payment_method_id}", response_model=list[schemas.PaymentMethod])
async def remove_payment_method(
    payment_method_id: str,
    db: AsyncSession = Depends(deps.get_db),
    ctx: ApiContext = Depends(deps.get_context),
) -> list[schemas.PaymentMethod]:
    """Detach a payment method and return the remaining ones."""
    return await lifecycle_manager.remove_payment_method(db, payment_method_id, ctx)
