"""CRUD operations for the plan catalog."""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from storepilot import schemas
from storepilot.crud._base import CRUDBase
from storepilot.models import Plan


class CRUDPlan(CRUDBase[Plan, schemas.PlanCreate, schemas.PlanCreate]):
    """CRUD operations for plans."""

    async def get_active(self, db: AsyncSession) -> list[Plan]:
        """Get the active catalog ordered by price, cheapest first."""
        query = select(Plan).where(Plan.is_active.is_(True)).order_by(Plan.price, Plan.name)
        result = await db.execute(query)
        return list(result.scalars().all())

    async def get_by_provider_price(
        self, db: AsyncSession, *, provider_price_id: str
    ) -> Optional[Plan]:
        """Get a plan by its provider price ID.

        Args:
            db: Database session
            provider_price_id: Price identifier at the provider

        Returns:
            Plan or None
        """
        query = select(Plan).where(Plan.provider_price_id == provider_price_id)
        result = await db.execute(query)
        return result.scalar_one_or_none()


plan = CRUDPlan(Plan)
