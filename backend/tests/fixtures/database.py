"""Database fixtures.

Repository tests run the real CRUD layer against a SQLite file through aiosqlite, so
identity-map and query behavior match what the service sees in production sessions.
"""

import uuid
from decimal import Decimal
from typing import Optional

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from storepilot.models import Base, BillingCustomer, Plan, Subscription
from tests.fixtures.common import PERIOD_END, PERIOD_START


@pytest_asyncio.fixture
async def db_engine(tmp_path):
    """Create a file-backed SQLite engine with all billing tables."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'billing.db'}", echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    """Session factory configured like the application's."""
    return async_sessionmaker(
        db_engine, class_=AsyncSession, autoflush=False, expire_on_commit=False
    )


@pytest_asyncio.fixture
async def db_session(session_factory):
    """Provide a session on the test database."""
    async with session_factory() as session:
        yield session


async def seed_plan(
    session: AsyncSession, name: str, price: str, provider_price_id: Optional[str]
) -> Plan:
    """Insert a catalog plan."""
    plan = Plan(
        name=name,
        price=Decimal(price),
        currency="usd",
        interval="month",
        features=[],
        provider_price_id=provider_price_id,
    )
    session.add(plan)
    await session.commit()
    return plan


async def seed_subscription(
    session: AsyncSession,
    account_id: uuid.UUID,
    plan: Plan,
    provider_subscription_id: str,
    **overrides,
) -> Subscription:
    """Insert a subscription, active on the current period unless overridden."""
    values = {
        "account_id": account_id,
        "plan_id": plan.id,
        "status": "active",
        "current_period_start": PERIOD_START,
        "current_period_end": PERIOD_END,
        "cancel_at_period_end": False,
        "provider_subscription_id": provider_subscription_id,
        "provider_customer_id": "cus_1",
    }
    values.update(overrides)
    subscription = Subscription(**values)
    session.add(subscription)
    await session.commit()
    return subscription


async def seed_customer(
    session: AsyncSession, account_id: uuid.UUID, provider_customer_id: str = "cus_1"
) -> BillingCustomer:
    """Insert the account's billing customer."""
    customer = BillingCustomer(
        account_id=account_id,
        provider_customer_id=provider_customer_id,
        billing_email="owner@shop.test",
    )
    session.add(customer)
    await session.commit()
    return customer
