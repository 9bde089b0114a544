"""CRUD operations for billing customers."""

from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from storepilot import schemas
from storepilot.crud._base import CRUDBase
from storepilot.models import BillingCustomer


class CRUDBillingCustomer(
    CRUDBase[BillingCustomer, schemas.BillingCustomerCreate, schemas.BillingCustomerUpdate]
):
    """CRUD operations for billing customers."""

    async def get_by_account(
        self, db: AsyncSession, *, account_id: UUID
    ) -> Optional[BillingCustomer]:
        """Get the billing customer of an account."""
        query = select(BillingCustomer).where(BillingCustomer.account_id == account_id)
        result = await db.execute(query)
        return result.scalar_one_or_none()

    async def get_by_provider_customer(
        self, db: AsyncSession, *, provider_customer_id: str
    ) -> Optional[BillingCustomer]:
        """Get a billing customer by its provider customer ID."""
        query = select(BillingCustomer).where(
            BillingCustomer.provider_customer_id == provider_customer_id
        )
        result = await db.execute(query)
        return result.scalar_one_or_none()


billing_customer = CRUDBillingCustomer(BillingCustomer)
