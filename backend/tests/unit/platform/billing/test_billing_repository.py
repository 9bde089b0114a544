"""Tests for the billing repository and reconciliation against a real database session."""

from datetime import datetime, timedelta

import pytest
from sqlalchemy import func, select

from storepilot import crud, schemas
from storepilot.models import BillingEvent, Invoice, PaymentMethod
from storepilot.platform.billing.account_locks import AccountLockRegistry
from storepilot.platform.billing.billing_data_access import BillingRepository
from storepilot.platform.billing.billing_service import SubscriptionLifecycleManager
from storepilot.schemas.billing_event import EventOutcome
from tests.fixtures.common import make_event, make_fake_provider, make_invoice
from tests.fixtures.database import seed_customer, seed_plan, seed_subscription

T0 = datetime(2026, 1, 1, 12, 0)


@pytest.fixture
def provider():
    """Create a mocked billing provider."""
    return make_fake_provider()


@pytest.fixture
def manager(provider):
    """Create a lifecycle manager on the real repository."""
    return SubscriptionLifecycleManager(
        provider=provider, repository=BillingRepository(), locks=AccountLockRegistry()
    )


async def _count(session, model) -> int:
    result = await session.execute(select(func.count()).select_from(model))
    return result.scalar_one()


class TestReconcileOrdering:
    """Tests for event ordering when sessions hold previously loaded rows."""

    @pytest.mark.asyncio
    async def test_older_event_after_newer_commit_is_stale(
        self, manager, session_factory, account_id
    ):
        async with session_factory() as setup:
            plan = await seed_plan(setup, "Basic", "29.00", "price_basic")
            await seed_subscription(
                setup, account_id, plan, "sub_1", last_event_id="evt_0", last_event_at=T0
            )

        async with session_factory() as waiting, session_factory() as other:
            # The row is already in the waiting session when the newer event commits
            loaded = await manager.repository.get_subscription_by_provider_id(waiting, "sub_1")
            assert loaded.status == "active"

            newer = make_event(
                "sub_1",
                "evt_2",
                T0 + timedelta(days=19),
                status="canceled",
                event_type="customer.subscription.deleted",
            )
            assert await manager.reconcile(other, newer) == EventOutcome.APPLIED

            older = make_event("sub_1", "evt_1", T0 + timedelta(days=9), status="past_due")
            assert await manager.reconcile(waiting, older) == EventOutcome.STALE
            assert loaded.status == "canceled"

        async with session_factory() as check:
            subscription = await crud.subscription.get_by_provider_subscription(
                check, provider_subscription_id="sub_1"
            )
            assert subscription.status == "canceled"
            assert subscription.last_event_id == "evt_2"
            assert subscription.last_event_at == T0 + timedelta(days=19)

            event = await crud.billing_event.get_by_provider_event(
                check, provider_event_id="evt_1"
            )
            assert event.outcome == "stale"

    @pytest.mark.asyncio
    async def test_cancel_sees_schedule_committed_elsewhere(
        self, manager, provider, session_factory, api_context
    ):
        async with session_factory() as setup:
            plan = await seed_plan(setup, "Basic", "29.00", "price_basic")
            await seed_subscription(setup, api_context.account_id, plan, "sub_1")

        async with session_factory() as waiting, session_factory() as other:
            await manager.repository.get_live_subscription(waiting, api_context.account_id)

            await manager.cancel(other, api_context)
            result = await manager.cancel(waiting, api_context)

        assert result.cancel_at_period_end is True
        provider.schedule_cancellation.assert_awaited_once_with("sub_1")

    @pytest.mark.asyncio
    async def test_duplicate_across_sessions(self, manager, session_factory, account_id):
        async with session_factory() as setup:
            plan = await seed_plan(setup, "Basic", "29.00", "price_basic")
            await seed_subscription(setup, account_id, plan, "sub_1")

        event = make_event("sub_1", "evt_1", T0, status="past_due")
        async with session_factory() as first:
            assert await manager.reconcile(first, event) == EventOutcome.APPLIED
        async with session_factory() as second:
            assert await manager.reconcile(second, event) == EventOutcome.STALE
            assert await _count(second, BillingEvent) == 1


class TestReconcileCreation:
    """Tests for creating subscriptions from events with the real constraints."""

    @pytest.mark.asyncio
    async def test_new_subscription_next_to_canceled_history(
        self, manager, db_session, account_id
    ):
        plan = await seed_plan(db_session, "Pro", "79.00", "price_pro")
        await seed_subscription(
            db_session, account_id, plan, "sub_old", status="canceled", canceled_at=T0
        )
        event = make_event(
            "sub_new",
            "evt_1",
            T0 + timedelta(days=3),
            status="active",
            event_type="customer.subscription.created",
            account_id=account_id,
            provider_price_id="price_pro",
            provider_customer_id="cus_1",
        )

        assert await manager.reconcile(db_session, event) == EventOutcome.APPLIED

        live = await manager.repository.get_live_subscription(db_session, account_id)
        assert live.provider_subscription_id == "sub_new"
        assert live.plan_id == plan.id
        assert live.last_event_id == "evt_1"


class TestInvoiceMirror:
    """Tests for the append-only invoice mirror."""

    @pytest.mark.asyncio
    async def test_invoice_is_appended_once(self, manager, session_factory, account_id):
        async with session_factory() as setup:
            plan = await seed_plan(setup, "Basic", "29.00", "price_basic")
            subscription = await seed_subscription(setup, account_id, plan, "sub_1")

        invoice = make_invoice("in_1", T0)
        async with session_factory() as session:
            await manager.reconcile(
                session,
                make_event(
                    "sub_1", "evt_1", T0, event_type="invoice.finalized", new_invoice=invoice
                ),
            )
        async with session_factory() as session:
            await manager.reconcile(
                session,
                make_event(
                    "sub_1",
                    "evt_2",
                    T0 + timedelta(minutes=5),
                    event_type="invoice.paid",
                    new_invoice=invoice.model_copy(update={"status": "void"}),
                ),
            )

        async with session_factory() as check:
            assert await _count(check, Invoice) == 1
            latest = await manager.repository.get_latest_invoice(check, subscription.id)
            assert latest.provider_invoice_id == "in_1"
            assert latest.status == "paid"
            assert latest.account_id == account_id

    @pytest.mark.asyncio
    async def test_late_event_still_mirrors_invoice(self, manager, db_session, account_id):
        plan = await seed_plan(db_session, "Basic", "29.00", "price_basic")
        subscription = await seed_subscription(
            db_session, account_id, plan, "sub_1", last_event_id="evt_9", last_event_at=T0
        )
        late = make_event(
            "sub_1",
            "evt_1",
            T0 - timedelta(days=1),
            status="past_due",
            event_type="invoice.payment_failed",
            new_invoice=make_invoice("in_1", T0 - timedelta(days=1), status="open"),
        )

        assert await manager.reconcile(db_session, late) == EventOutcome.STALE

        assert subscription.status == "active"
        latest = await manager.repository.get_latest_invoice(db_session, subscription.id)
        assert latest.provider_invoice_id == "in_1"


class TestPaymentMethodMirror:
    """Tests for mirroring the provider's payment methods."""

    @pytest.mark.asyncio
    async def test_refresh_replaces_mirror_and_default(
        self, manager, provider, db_session, account_id
    ):
        await seed_customer(db_session, account_id, "cus_1")
        provider.list_payment_methods.return_value = [
            schemas.PaymentMethod(id="pm_1", card_brand="visa", card_last4="4242", is_default=True),
            schemas.PaymentMethod(id="pm_2", card_brand="mastercard", card_last4="4444"),
        ]

        assert await manager.refresh_payment_methods(db_session, "cus_1") == 2
        default = await manager.repository.get_default_payment_method(db_session, account_id)
        assert default.provider_payment_method_id == "pm_1"

        provider.list_payment_methods.return_value = [
            schemas.PaymentMethod(
                id="pm_2", card_brand="mastercard", card_last4="4444", is_default=True
            ),
        ]

        assert await manager.refresh_payment_methods(db_session, "cus_1") == 1
        default = await manager.repository.get_default_payment_method(db_session, account_id)
        assert default.provider_payment_method_id == "pm_2"
        assert await _count(db_session, PaymentMethod) == 1

    @pytest.mark.asyncio
    async def test_refresh_for_unknown_customer(self, manager, provider, db_session):
        assert await manager.refresh_payment_methods(db_session, "cus_unknown") == 0
        provider.list_payment_methods.assert_not_awaited()
