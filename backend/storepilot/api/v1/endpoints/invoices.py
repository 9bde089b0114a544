"""API endpoints for invoices."""

from fastapi import Depends
from fastapi.responses import RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from storepilot import schemas
from storepilot.api import deps
from storepilot.api.context import ApiContext
from storepilot.api.router import TrailingSlashRouter
from storepilot.platform.billing.billing_service import lifecycle_manager

router = TrailingSlashRouter()


@router.get("", response_model=list[schemas.Invoice])
async def list_invoices(
    db: AsyncSession = Depends(deps.get_db),
    ctx: ApiContext = Depends(deps.get_context),
) -> list[schemas.Invoice]:
    """List the subscription's invoices from the provider, newest first."""
    return await lifecycle_manager.list_invoices(db, ctx)


@router.get("/{invoice_id}/download", response_class=RedirectResponse, status_code=307)
async def download_invoice(
    invoice_id: str,
    db: AsyncSession = Depends(deps.get_db),
    ctx: ApiContext = Depends(deps.get_context),
) -> RedirectResponse:
    """Redirect to the invoice PDF hosted by the provider."""
    url = await lifecycle_manager.get_invoice_download_url(db, invoice_id, ctx)
    return RedirectResponse(url=url, status_code=307)
