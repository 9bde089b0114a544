"""Subscription model."""

from datetime import datetime
from typing import TYPE_CHECKING, Optional
from uuid import UUID

from sqlalchemy import Boolean, CheckConstraint, DateTime, ForeignKey, Index, String, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from storepilot.models._base import AccountBase

if TYPE_CHECKING:
    from storepilot.models.plan import Plan


class Subscription(AccountBase):
    """An account's binding to a plan over a billing period.

    Canceled rows are kept as history; at most one row per account is live.
    """

    __tablename__ = "subscription"

    plan_id: Mapped[UUID] = mapped_column(ForeignKey("plan.id"), nullable=False)

    status: Mapped[str] = mapped_column(String(20), nullable=False)

    current_period_start: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    current_period_end: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    cancel_at_period_end: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    canceled_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=False), nullable=True)

    # Provider identifiers
    provider_subscription_id: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    provider_customer_id: Mapped[str] = mapped_column(String(255), nullable=False)

    # Reconciliation watermark
    last_event_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    last_event_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=False), nullable=True
    )

    plan: Mapped["Plan"] = relationship("Plan", lazy="selectin")

    __table_args__ = (
        CheckConstraint(
            "current_period_end > current_period_start", name="ck_subscription_period_order"
        ),
        Index(
            "uq_subscription_live_account",
            "account_id",
            unique=True,
            postgresql_where=text("status <> 'canceled'"),
            sqlite_where=text("status <> 'canceled'"),
        ),
    )
