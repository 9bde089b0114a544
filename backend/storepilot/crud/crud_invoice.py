"""CRUD operations for the local invoice mirror."""

from typing import Optional
from uuid import UUID

from sqlalchemy import desc, select
from sqlalchemy.ext.asyncio import AsyncSession

from storepilot import schemas
from storepilot.crud._base import CRUDBase
from storepilot.models import Invoice


class CRUDInvoice(CRUDBase[Invoice, schemas.InvoiceCreate, schemas.InvoiceCreate]):
    """CRUD operations for invoices.

    Invoices are append-only, so no update path is exposed beyond the base class.
    """

    async def get_by_provider_invoice(
        self, db: AsyncSession, *, provider_invoice_id: str
    ) -> Optional[Invoice]:
        """Get a mirrored invoice by its provider invoice ID."""
        query = select(Invoice).where(Invoice.provider_invoice_id == provider_invoice_id)
        result = await db.execute(query)
        return result.scalar_one_or_none()

    async def get_latest_by_subscription(
        self, db: AsyncSession, *, subscription_id: UUID
    ) -> Optional[Invoice]:
        """Get the most recently issued invoice of a subscription."""
        query = (
            select(Invoice)
            .where(Invoice.subscription_id == subscription_id)
            .order_by(desc(Invoice.issued_at))
            .limit(1)
        )
        result = await db.execute(query)
        return result.scalar_one_or_none()


invoice = CRUDInvoice(Invoice)
