"""Repository pattern for billing database operations.

This module handles all database interactions for billing,
providing a clean interface between the service layer and CRUD operations.
"""

from typing import Any, Optional, Union
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from storepilot import crud, schemas
from storepilot.db.unit_of_work import UnitOfWork
from storepilot.models import (
    BillingCustomer,
    BillingEvent,
    Invoice,
    PaymentMethod,
    Plan,
    Subscription,
)


class BillingRepository:
    """Repository for all billing-related database operations."""

    # Plans

    async def get_plan(self, db: AsyncSession, plan_id: UUID) -> Optional[Plan]:
        """Get a catalog plan by ID."""
        return await crud.plan.get(db, id=plan_id)

    async def get_plan_by_provider_price(
        self, db: AsyncSession, provider_price_id: str
    ) -> Optional[Plan]:
        """Get a catalog plan by its provider price ID."""
        return await crud.plan.get_by_provider_price(db, provider_price_id=provider_price_id)

    async def list_active_plans(self, db: AsyncSession) -> list[Plan]:
        """Get the active catalog ordered by price."""
        return await crud.plan.get_active(db)

    # Subscriptions

    async def get_live_subscription(
        self, db: AsyncSession, account_id: UUID, for_update: bool = False
    ) -> Optional[Subscription]:
        """Get the account's non-canceled subscription, optionally locking the row."""
        return await crud.subscription.get_live_by_account(
            db, account_id=account_id, for_update=for_update
        )

    async def get_latest_subscription(
        self, db: AsyncSession, account_id: UUID
    ) -> Optional[Subscription]:
        """Get the account's most recent subscription, live or canceled."""
        return await crud.subscription.get_latest_by_account(db, account_id=account_id)

    async def get_subscription_by_provider_id(
        self, db: AsyncSession, provider_subscription_id: str, for_update: bool = False
    ) -> Optional[Subscription]:
        """Get a subscription by its provider ID. Returns the model for reconciliation."""
        return await crud.subscription.get_by_provider_subscription(
            db, provider_subscription_id=provider_subscription_id, for_update=for_update
        )

    async def create_subscription(
        self, db: AsyncSession, obj_in: schemas.SubscriptionCreate, uow: UnitOfWork
    ) -> Subscription:
        """Create a subscription inside the caller's transaction."""
        return await crud.subscription.create(db, obj_in=obj_in, uow=uow)

    async def update_subscription(
        self,
        db: AsyncSession,
        subscription: Subscription,
        changes: Union[schemas.SubscriptionUpdate, dict[str, Any]],
        uow: UnitOfWork,
    ) -> Subscription:
        """Apply changes to a subscription inside the caller's transaction."""
        return await crud.subscription.update(db, db_obj=subscription, obj_in=changes, uow=uow)

    # Customers

    async def get_billing_customer(
        self, db: AsyncSession, account_id: UUID
    ) -> Optional[BillingCustomer]:
        """Get the account's provider customer."""
        return await crud.billing_customer.get_by_account(db, account_id=account_id)

    async def get_billing_customer_by_provider_id(
        self, db: AsyncSession, provider_customer_id: str
    ) -> Optional[BillingCustomer]:
        """Get a billing customer by its provider customer ID."""
        return await crud.billing_customer.get_by_provider_customer(
            db, provider_customer_id=provider_customer_id
        )

    async def create_billing_customer(
        self, db: AsyncSession, obj_in: schemas.BillingCustomerCreate, uow: UnitOfWork
    ) -> BillingCustomer:
        """Create the account's billing customer inside the caller's transaction."""
        return await crud.billing_customer.create(db, obj_in=obj_in, uow=uow)

    # Payment methods

    async def get_default_payment_method(
        self, db: AsyncSession, account_id: UUID
    ) -> Optional[PaymentMethod]:
        """Get the account's default payment method from the local mirror."""
        return await crud.payment_method.get_default_by_account(db, account_id=account_id)

    async def replace_payment_methods(
        self,
        db: AsyncSession,
        account_id: UUID,
        methods: list[schemas.PaymentMethod],
        uow: UnitOfWork,
    ) -> list[PaymentMethod]:
        """Replace the local mirror with the provider's current payment methods."""
        objs_in = [
            schemas.PaymentMethodCreate(
                account_id=account_id,
                provider_payment_method_id=method.id,
                type=method.type,
                card_brand=method.card_brand,
                card_last4=method.card_last4,
                card_exp_month=method.card_exp_month,
                card_exp_year=method.card_exp_year,
                is_default=method.is_default,
            )
            for method in methods
        ]
        return await crud.payment_method.replace_for_account(
            db, account_id=account_id, objs_in=objs_in, uow=uow
        )

    # Invoices

    async def get_latest_invoice(
        self, db: AsyncSession, subscription_id: UUID
    ) -> Optional[Invoice]:
        """Get the most recently issued mirrored invoice of a subscription."""
        return await crud.invoice.get_latest_by_subscription(db, subscription_id=subscription_id)

    async def append_invoice(
        self,
        db: AsyncSession,
        subscription: Subscription,
        invoice: schemas.Invoice,
        uow: UnitOfWork,
    ) -> tuple[Invoice, bool]:
        """Append a provider invoice to the local mirror.

        Returns the mirrored row and whether it was newly created. Appending an invoice
        that is already mirrored leaves the existing row untouched.
        """
        existing = await crud.invoice.get_by_provider_invoice(
            db, provider_invoice_id=invoice.id
        )
        if existing:
            return existing, False

        invoice_create = schemas.InvoiceCreate(
            account_id=subscription.account_id,
            subscription_id=subscription.id,
            provider_invoice_id=invoice.id,
            **invoice.model_dump(exclude={"id"}),
        )
        created = await crud.invoice.create(db, obj_in=invoice_create, uow=uow)
        return created, True

    # Events

    async def get_event(self, db: AsyncSession, provider_event_id: str) -> Optional[BillingEvent]:
        """Get a recorded provider event."""
        return await crud.billing_event.get_by_provider_event(
            db, provider_event_id=provider_event_id
        )

    async def record_event(
        self, db: AsyncSession, obj_in: schemas.BillingEventCreate, uow: UnitOfWork
    ) -> BillingEvent:
        """Record a processed provider event in the audit log."""
        return await crud.billing_event.create(db, obj_in=obj_in, uow=uow)
