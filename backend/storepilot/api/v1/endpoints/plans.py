"""API endpoints for the plan catalog."""

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from storepilot import schemas
from storepilot.api import deps
from storepilot.api.router import TrailingSlashRouter
from storepilot.platform.billing.billing_service import lifecycle_manager

router = TrailingSlashRouter()


@router.get("", response_model=list[schemas.Plan])
async def list_plans(db: AsyncSession = Depends(deps.get_db)) -> list[schemas.Plan]:
    """List the plans an account can subscribe to, cheapest first."""
    return await lifecycle_manager.list_plans(db)
