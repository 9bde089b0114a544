"""Billing customer model."""

from sqlalchemy import String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from storepilot.models._base import AccountBase


class BillingCustomer(AccountBase):
    """Maps an account to its customer record at the billing provider."""

    __tablename__ = "billing_customer"

    provider_customer_id: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    billing_email: Mapped[str] = mapped_column(String, nullable=False)

    __table_args__ = (UniqueConstraint("account_id", name="uq_billing_customer_account"),)
