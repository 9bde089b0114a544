"""CRUD operations for subscriptions."""

from typing import Optional
from uuid import UUID

from sqlalchemy import desc, select
from sqlalchemy.ext.asyncio import AsyncSession

from storepilot import schemas
from storepilot.crud._base import CRUDBase
from storepilot.models import Subscription
from storepilot.schemas.subscription import SubscriptionStatus


class CRUDSubscription(
    CRUDBase[Subscription, schemas.SubscriptionCreate, schemas.SubscriptionUpdate]
):
    """CRUD operations for subscriptions."""

    async def get_live_by_account(
        self, db: AsyncSession, *, account_id: UUID, for_update: bool = False
    ) -> Optional[Subscription]:
        """Get the account's subscription that is not canceled.

        Args:
            db: Database session
            account_id: Account ID
            for_update: Lock the row until the surrounding transaction ends

        Returns:
            Subscription or None
        """
        query = select(Subscription).where(
            Subscription.account_id == account_id,
            Subscription.status != SubscriptionStatus.CANCELED.value,
        )
        if for_update:
            # Sessions keep objects across commits, so a locked read must refresh them
            query = query.with_for_update().execution_options(populate_existing=True)
        result = await db.execute(query)
        return result.scalar_one_or_none()

    async def get_latest_by_account(
        self, db: AsyncSession, *, account_id: UUID
    ) -> Optional[Subscription]:
        """Get the account's most recently created subscription, live or canceled."""
        query = (
            select(Subscription)
            .where(Subscription.account_id == account_id)
            .order_by(desc(Subscription.created_at))
            .limit(1)
        )
        result = await db.execute(query)
        return result.scalar_one_or_none()

    async def get_by_provider_subscription(
        self, db: AsyncSession, *, provider_subscription_id: str, for_update: bool = False
    ) -> Optional[Subscription]:
        """Get a subscription by its provider subscription ID.

        Args:
            db: Database session
            provider_subscription_id: Subscription identifier at the provider
            for_update: Lock the row until the surrounding transaction ends

        Returns:
            Subscription or None
        """
        query = select(Subscription).where(
            Subscription.provider_subscription_id == provider_subscription_id
        )
        if for_update:
            # Sessions keep objects across commits, so a locked read must refresh them
            query = query.with_for_update().execution_options(populate_existing=True)
        result = await db.execute(query)
        return result.scalar_one_or_none()


subscription = CRUDSubscription(Subscription)
