"""Billing customer schemas."""

from uuid import UUID

from pydantic import BaseModel


class BillingCustomerCreate(BaseModel):
    """Billing customer creation schema."""

    account_id: UUID
    provider_customer_id: str
    billing_email: str


class BillingCustomerUpdate(BaseModel):
    """Billing customer update schema."""

    billing_email: str
