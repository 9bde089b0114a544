"""Invoice model."""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from sqlalchemy import DateTime, ForeignKey, Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from storepilot.models._base import AccountBase


class Invoice(AccountBase):
    """Local mirror of a provider invoice.

    Rows are append-only and never updated after insert.
    """

    __tablename__ = "invoice"

    subscription_id: Mapped[UUID] = mapped_column(
        ForeignKey("subscription.id", ondelete="CASCADE"), nullable=False
    )
    provider_invoice_id: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)

    invoice_number: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)

    due_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=False), nullable=True)
    paid_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=False), nullable=True)
    issued_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)

    hosted_invoice_url: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    pdf_url: Mapped[Optional[str]] = mapped_column(String, nullable=True)

    __table_args__ = (Index("idx_invoice_subscription_issued", "subscription_id", "issued_at"),)
