"""Subscription schemas."""

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field, HttpUrl, model_validator

from storepilot.schemas.invoice import Invoice
from storepilot.schemas.payment_method import PaymentMethod
from storepilot.schemas.plan import Plan


class SubscriptionStatus(str, Enum):
    """Subscription lifecycle status."""

    INCOMPLETE = "incomplete"
    TRIALING = "trialing"
    ACTIVE = "active"
    PAST_DUE = "past_due"
    CANCELED = "canceled"


class SubscriptionCreate(BaseModel):
    """Subscription creation schema, used when reconciliation sees a new provider subscription."""

    model_config = {"use_enum_values": True}

    account_id: UUID
    plan_id: UUID
    status: SubscriptionStatus
    current_period_start: datetime
    current_period_end: datetime
    cancel_at_period_end: bool = False
    canceled_at: Optional[datetime] = None
    provider_subscription_id: str
    provider_customer_id: str
    last_event_id: Optional[str] = None
    last_event_at: Optional[datetime] = None

    @model_validator(mode="after")
    def validate_period(self) -> "SubscriptionCreate":
        """The period must end strictly after it starts."""
        if self.current_period_end <= self.current_period_start:
            raise ValueError("current_period_end must be after current_period_start")
        return self


class SubscriptionUpdate(BaseModel):
    """Subscription update schema."""

    model_config = {"use_enum_values": True}

    plan_id: Optional[UUID] = None
    status: Optional[SubscriptionStatus] = None
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    cancel_at_period_end: Optional[bool] = None
    canceled_at: Optional[datetime] = None
    last_event_id: Optional[str] = None
    last_event_at: Optional[datetime] = None


class Subscription(BaseModel):
    """Subscription schema."""

    model_config = {"from_attributes": True}

    id: UUID
    account_id: UUID
    plan_id: UUID
    status: SubscriptionStatus
    current_period_start: datetime
    current_period_end: datetime
    cancel_at_period_end: bool = False
    canceled_at: Optional[datetime] = None
    provider_subscription_id: str
    created_at: datetime
    modified_at: datetime


class SubscriptionWithPlan(Subscription):
    """Subscription together with the plan it is bound to."""

    plan: Plan


class CurrentSubscription(BaseModel):
    """Everything the dashboard's billing page shows about the account."""

    subscription: SubscriptionWithPlan
    default_payment_method: Optional[PaymentMethod] = Field(
        None, description="Default payment method, if one is attached"
    )
    latest_invoice: Optional[Invoice] = Field(None, description="Most recent mirrored invoice")


class ProviderSubscriptionState(BaseModel):
    """The provider's view of a subscription after a mutation."""

    provider_subscription_id: str
    status: SubscriptionStatus
    current_period_start: datetime
    current_period_end: datetime
    cancel_at_period_end: bool = False
    provider_price_id: Optional[str] = None


class ChangePlanRequest(BaseModel):
    """Request to switch the account's subscription to another plan."""

    plan_id: UUID = Field(..., description="Target plan ID")


class CheckoutSessionRequest(BaseModel):
    """Request to start a checkout for a new subscription."""

    plan_id: UUID = Field(..., description="Plan to subscribe to")
    billing_email: str = Field(..., description="Billing contact email")
    success_url: HttpUrl
    cancel_url: HttpUrl


class CheckoutSessionResponse(BaseModel):
    """Checkout session response."""

    checkout_url: str = Field(..., description="Provider-hosted checkout URL")
