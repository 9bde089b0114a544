"""Billing event model for audit trail."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import JSON, DateTime, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from storepilot.models._base import Base


class BillingEvent(Base):
    """Audit log of processed provider events and how reconciliation treated them."""

    __tablename__ = "billing_event"

    provider_event_id: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)

    event_type: Mapped[str] = mapped_column(
        String(100), nullable=False
    )  # customer.subscription.updated, invoice.paid, etc.

    account_id: Mapped[Optional[UUID]] = mapped_column(nullable=True)
    subscription_id: Mapped[Optional[UUID]] = mapped_column(
        ForeignKey("subscription.id", ondelete="SET NULL"), nullable=True
    )

    occurred_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    outcome: Mapped[str] = mapped_column(String(20), nullable=False)  # applied | stale | ignored

    event_data: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)

    __table_args__ = (
        Index("idx_billing_events_account", "account_id"),
        Index("idx_billing_events_type", "event_type"),
    )
