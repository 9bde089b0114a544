"""CRUD operations for the billing event audit log."""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from storepilot import schemas
from storepilot.crud._base import CRUDBase
from storepilot.models import BillingEvent


class CRUDBillingEvent(
    CRUDBase[BillingEvent, schemas.BillingEventCreate, schemas.BillingEventCreate]
):
    """CRUD operations for billing events."""

    async def get_by_provider_event(
        self, db: AsyncSession, *, provider_event_id: str
    ) -> Optional[BillingEvent]:
        """Get a recorded event by its provider event ID."""
        query = select(BillingEvent).where(BillingEvent.provider_event_id == provider_event_id)
        result = await db.execute(query)
        return result.scalar_one_or_none()


billing_event = CRUDBillingEvent(BillingEvent)
