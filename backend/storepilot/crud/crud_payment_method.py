"""CRUD operations for the local payment method mirror."""

from typing import Optional
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from storepilot import schemas
from storepilot.crud._base import CRUDBase
from storepilot.db.unit_of_work import UnitOfWork
from storepilot.models import PaymentMethod


class CRUDPaymentMethod(
    CRUDBase[PaymentMethod, schemas.PaymentMethodCreate, schemas.PaymentMethodCreate]
):
    """CRUD operations for payment methods."""

    async def get_default_by_account(
        self, db: AsyncSession, *, account_id: UUID
    ) -> Optional[PaymentMethod]:
        """Get the account's default payment method."""
        query = select(PaymentMethod).where(
            PaymentMethod.account_id == account_id, PaymentMethod.is_default.is_(True)
        )
        result = await db.execute(query)
        return result.scalar_one_or_none()

    async def replace_for_account(
        self,
        db: AsyncSession,
        *,
        account_id: UUID,
        objs_in: list[schemas.PaymentMethodCreate],
        uow: UnitOfWork,
    ) -> list[PaymentMethod]:
        """Replace the account's mirrored payment methods with the provider's current list.

        Args:
            db: Database session
            account_id: Account ID
            objs_in: Payment methods as reported by the provider
            uow: Unit of work owning the transaction

        Returns:
            The newly mirrored payment methods
        """
        await db.execute(delete(PaymentMethod).where(PaymentMethod.account_id == account_id))
        # The old default must be gone before a new one is inserted
        await db.flush()

        db_objs = [PaymentMethod(**obj_in.model_dump()) for obj_in in objs_in]
        db.add_all(db_objs)
        await db.flush()
        return db_objs


payment_method = CRUDPaymentMethod(PaymentMethod)
