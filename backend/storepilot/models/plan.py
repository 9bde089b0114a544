"""Plan catalog model."""

from decimal import Decimal
from typing import Optional

from sqlalchemy import JSON, Boolean, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from storepilot.models._base import Base


class Plan(Base):
    """A billing tier with price, interval and usage limits.

    Plans are seeded by an administrative process and are read-only to the billing core.
    """

    __tablename__ = "plan"

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="usd", nullable=False)
    interval: Mapped[str] = mapped_column(String(10), nullable=False)  # month | year

    features: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    # Usage limits, None means unlimited
    max_products: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    max_emails: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    max_sms: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    max_ai_generations: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    is_popular: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    trial_period_days: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    provider_price_id: Mapped[Optional[str]] = mapped_column(
        String(255), unique=True, nullable=True
    )
