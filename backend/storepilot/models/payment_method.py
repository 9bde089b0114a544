"""Payment method model."""

from typing import Optional

from sqlalchemy import Boolean, Index, Integer, String, text
from sqlalchemy.orm import Mapped, mapped_column

from storepilot.models._base import AccountBase


class PaymentMethod(AccountBase):
    """Local mirror of a payment method attached to the account's provider customer."""

    __tablename__ = "payment_method"

    provider_payment_method_id: Mapped[str] = mapped_column(
        String(255), nullable=False, unique=True
    )
    type: Mapped[str] = mapped_column(String(50), nullable=False)

    # Masked card metadata
    card_brand: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    card_last4: Mapped[Optional[str]] = mapped_column(String(4), nullable=True)
    card_exp_month: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    card_exp_year: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    is_default: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    __table_args__ = (
        Index(
            "uq_payment_method_default_account",
            "account_id",
            unique=True,
            postgresql_where=text("is_default"),
            sqlite_where=text("is_default"),
        ),
    )
