"""Common test fixtures.

The lifecycle manager is exercised against an in-memory repository and a mocked
billing provider, so unit tests need neither Postgres nor Stripe.
"""

import asyncio
import uuid
from datetime import datetime
from decimal import Decimal
from types import SimpleNamespace
from typing import Any, Optional
from unittest.mock import AsyncMock

import pytest
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from storepilot import schemas
from storepilot.api.context import ApiContext
from storepilot.core.datetime_utils import utc_now_naive
from storepilot.core.logging import logger
from storepilot.integrations._base import BaseBillingProvider
from storepilot.platform.billing.account_locks import AccountLockRegistry
from storepilot.platform.billing.billing_service import SubscriptionLifecycleManager

PERIOD_START = datetime(2026, 1, 1)
PERIOD_END = datetime(2026, 2, 1)
NEXT_PERIOD_END = datetime(2026, 3, 1)


def make_plan(name: str, price: str, provider_price_id: Optional[str], **overrides) -> Any:
    """Build a plan row as the ORM would return it."""
    values = {
        "id": uuid.uuid4(),
        "name": name,
        "description": f"{name} plan",
        "price": Decimal(price),
        "currency": "usd",
        "interval": "month",
        "features": [],
        "max_products": 100,
        "max_emails": 1000,
        "max_sms": 100,
        "max_ai_generations": 50,
        "is_popular": False,
        "is_active": True,
        "trial_period_days": None,
        "provider_price_id": provider_price_id,
        "created_at": utc_now_naive(),
        "modified_at": utc_now_naive(),
    }
    values.update(overrides)
    return SimpleNamespace(**values)


def make_event(
    subscription_id: str,
    event_id: str,
    occurred_at: datetime,
    status: str = "active",
    **overrides,
) -> schemas.ProviderEvent:
    """Build a provider event for reconciliation."""
    values = {
        "event_id": event_id,
        "event_type": "customer.subscription.updated",
        "subscription_id": subscription_id,
        "occurred_at": occurred_at,
        "new_status": status,
        "new_period_start": PERIOD_START,
        "new_period_end": PERIOD_END,
    }
    values.update(overrides)
    return schemas.ProviderEvent(**values)


def make_invoice(invoice_id: str, issued_at: datetime, **overrides) -> schemas.Invoice:
    """Build an invoice as the provider reports it."""
    values = {
        "id": invoice_id,
        "invoice_number": f"INV-{invoice_id}",
        "amount": Decimal("29.00"),
        "currency": "usd",
        "status": "paid",
        "issued_at": issued_at,
        "pdf_url": f"https://files.stripe.test/{invoice_id}.pdf",
    }
    values.update(overrides)
    return schemas.Invoice(**values)


class FakeBillingRepository:
    """In-memory stand-in for BillingRepository with the same method signatures."""

    def __init__(self, plans: list[Any]):
        self.plans = {plan.id: plan for plan in plans}
        self.subscriptions: list[Any] = []
        self.customers: list[Any] = []
        self.payment_methods: dict[uuid.UUID, list[Any]] = {}
        self.invoices: list[Any] = []
        self.events: dict[str, Any] = {}

    @staticmethod
    def _row(values: dict) -> Any:
        now = utc_now_naive()
        return SimpleNamespace(id=uuid.uuid4(), created_at=now, modified_at=now, **values)

    # Seeding helpers

    def add_subscription(
        self,
        account_id: uuid.UUID,
        plan: Any,
        status: str = "active",
        cancel_at_period_end: bool = False,
        provider_subscription_id: Optional[str] = None,
        **overrides,
    ) -> Any:
        values = {
            "account_id": account_id,
            "plan_id": plan.id,
            "plan": plan,
            "status": status,
            "current_period_start": PERIOD_START,
            "current_period_end": PERIOD_END,
            "cancel_at_period_end": cancel_at_period_end,
            "canceled_at": None,
            "provider_subscription_id": provider_subscription_id or f"sub_{uuid.uuid4().hex[:8]}",
            "provider_customer_id": "cus_test",
            "last_event_id": None,
            "last_event_at": None,
        }
        values.update(overrides)
        subscription = self._row(values)
        self.subscriptions.append(subscription)
        return subscription

    def add_customer(self, account_id: uuid.UUID, provider_customer_id: str = "cus_test") -> Any:
        customer = self._row(
            {
                "account_id": account_id,
                "provider_customer_id": provider_customer_id,
                "billing_email": "owner@shop.test",
            }
        )
        self.customers.append(customer)
        return customer

    def live_subscriptions(self, account_id: uuid.UUID) -> list[Any]:
        return [
            s
            for s in self.subscriptions
            if s.account_id == account_id and s.status != "canceled"
        ]

    # Plans

    async def get_plan(self, db, plan_id):
        return self.plans.get(plan_id)

    async def get_plan_by_provider_price(self, db, provider_price_id):
        return next(
            (p for p in self.plans.values() if p.provider_price_id == provider_price_id), None
        )

    async def list_active_plans(self, db):
        return sorted((p for p in self.plans.values() if p.is_active), key=lambda p: p.price)

    # Subscriptions

    async def get_live_subscription(self, db, account_id, for_update=False):
        live = self.live_subscriptions(account_id)
        return live[0] if live else None

    async def get_latest_subscription(self, db, account_id):
        owned = [s for s in self.subscriptions if s.account_id == account_id]
        return owned[-1] if owned else None

    async def get_subscription_by_provider_id(self, db, provider_subscription_id, for_update=False):
        return next(
            (
                s
                for s in self.subscriptions
                if s.provider_subscription_id == provider_subscription_id
            ),
            None,
        )

    async def create_subscription(self, db, obj_in, uow):
        values = obj_in.model_dump()
        subscription = self._row({**values, "plan": self.plans.get(values["plan_id"])})
        self.subscriptions.append(subscription)
        return subscription

    async def update_subscription(self, db, subscription, changes, uow):
        if isinstance(changes, BaseModel):
            changes = changes.model_dump(exclude_unset=True)
        for field, value in changes.items():
            setattr(subscription, field, value)
        subscription.modified_at = utc_now_naive()
        return subscription

    # Customers

    async def get_billing_customer(self, db, account_id):
        return next((c for c in self.customers if c.account_id == account_id), None)

    async def get_billing_customer_by_provider_id(self, db, provider_customer_id):
        return next(
            (c for c in self.customers if c.provider_customer_id == provider_customer_id), None
        )

    async def create_billing_customer(self, db, obj_in, uow):
        customer = self._row(obj_in.model_dump())
        self.customers.append(customer)
        return customer

    # Payment methods

    async def get_default_payment_method(self, db, account_id):
        methods = self.payment_methods.get(account_id, [])
        return next((m for m in methods if m.is_default), None)

    async def replace_payment_methods(self, db, account_id, methods, uow):
        rows = [
            self._row(
                {
                    "account_id": account_id,
                    "provider_payment_method_id": m.id,
                    **m.model_dump(exclude={"id"}),
                }
            )
            for m in methods
        ]
        self.payment_methods[account_id] = rows
        return rows

    # Invoices

    async def get_latest_invoice(self, db, subscription_id):
        owned = [i for i in self.invoices if i.subscription_id == subscription_id]
        return max(owned, key=lambda i: i.issued_at) if owned else None

    async def append_invoice(self, db, subscription, invoice, uow):
        existing = next(
            (i for i in self.invoices if i.provider_invoice_id == invoice.id), None
        )
        if existing:
            return existing, False
        row = self._row(
            {
                "account_id": subscription.account_id,
                "subscription_id": subscription.id,
                "provider_invoice_id": invoice.id,
                **invoice.model_dump(exclude={"id"}),
            }
        )
        self.invoices.append(row)
        return row, True

    # Events

    async def get_event(self, db, provider_event_id):
        return self.events.get(provider_event_id)

    async def record_event(self, db, obj_in, uow):
        row = self._row(obj_in.model_dump())
        self.events[obj_in.provider_event_id] = row
        return row


def make_fake_provider() -> AsyncMock:
    """Mock billing provider that answers like Stripe does, yielding to the loop on writes."""
    provider = AsyncMock(spec=BaseBillingProvider)
    provider.service_name = "FakeProvider"

    async def _plan_change(provider_subscription_id, provider_price_id, **kwargs):
        await asyncio.sleep(0)
        return schemas.ProviderSubscriptionState(
            provider_subscription_id=provider_subscription_id,
            status="active",
            current_period_start=PERIOD_START,
            current_period_end=PERIOD_END,
            cancel_at_period_end=False,
            provider_price_id=provider_price_id,
        )

    async def _yield(*args, **kwargs):
        await asyncio.sleep(0)

    provider.create_plan_change.side_effect = _plan_change
    provider.get_subscription_state.side_effect = lambda provider_subscription_id: (
        schemas.ProviderSubscriptionState(
            provider_subscription_id=provider_subscription_id,
            status="active",
            current_period_start=PERIOD_START,
            current_period_end=PERIOD_END,
        )
    )
    provider.schedule_cancellation.side_effect = _yield
    provider.clear_scheduled_cancellation.side_effect = _yield
    provider.detach_payment_method.side_effect = _yield
    provider.create_customer.return_value = "cus_new"
    provider.create_checkout_session.return_value = "https://checkout.stripe.test/c/session"
    provider.create_setup_session.return_value = "https://checkout.stripe.test/c/setup"
    provider.list_invoices.return_value = []
    provider.list_payment_methods.return_value = []
    return provider


@pytest.fixture
def mock_db():
    """Create a mock database session."""
    return AsyncMock(spec=AsyncSession)


@pytest.fixture
def account_id():
    """Account the tests act for."""
    return uuid.uuid4()


@pytest.fixture
def api_context(account_id):
    """Create an API context for the test account."""
    request_id = str(uuid.uuid4())
    return ApiContext(
        request_id=request_id,
        account_id=account_id,
        logger=logger.with_context(request_id=request_id, account_id=str(account_id)),
    )


@pytest.fixture
def basic_plan():
    """Entry plan of the catalog."""
    return make_plan("Basic", "29.00", "price_basic")


@pytest.fixture
def pro_plan():
    """Upgrade target of the catalog."""
    return make_plan("Pro", "79.00", "price_pro", is_popular=True)


@pytest.fixture
def fake_repository(basic_plan, pro_plan):
    """Create an in-memory billing repository holding the catalog."""
    return FakeBillingRepository([basic_plan, pro_plan])


@pytest.fixture
def fake_provider():
    """Create a mocked billing provider."""
    return make_fake_provider()


@pytest.fixture
def lifecycle(fake_provider, fake_repository):
    """Create a lifecycle manager wired to the fakes."""
    return SubscriptionLifecycleManager(
        provider=fake_provider, repository=fake_repository, locks=AccountLockRegistry()
    )
