"""Provider event schema fed into reconciliation."""

from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from storepilot.schemas.invoice import Invoice
from storepilot.schemas.subscription import SubscriptionStatus


class ProviderEvent(BaseModel):
    """An authoritative state change reported by the billing provider.

    Delivery is at-least-once and may be out of order; ``occurred_at`` is the logical
    time used to order events for the same subscription.
    """

    event_id: str = Field(..., description="Provider event ID, unique per delivery")
    event_type: str = Field(..., description="Provider event type")
    subscription_id: str = Field(..., description="Provider subscription ID")
    occurred_at: datetime = Field(..., description="Logical time of the event at the provider")
    new_status: SubscriptionStatus
    new_period_start: datetime
    new_period_end: datetime
    new_invoice: Optional[Invoice] = None
    cancel_at_period_end: Optional[bool] = None
    provider_price_id: Optional[str] = None
    provider_customer_id: Optional[str] = None
    account_id: Optional[UUID] = Field(
        None, description="Owning account, carried in the provider subscription metadata"
    )
    raw: Optional[dict[str, Any]] = Field(None, description="Original payload for the audit log")

    @model_validator(mode="after")
    def validate_period(self) -> "ProviderEvent":
        """The reported period must end strictly after it starts."""
        if self.new_period_end <= self.new_period_start:
            raise ValueError("new_period_end must be after new_period_start")
        return self
