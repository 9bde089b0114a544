"""Billing event audit schemas."""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel


class EventOutcome(str, Enum):
    """How reconciliation treated a provider event."""

    APPLIED = "applied"
    STALE = "stale"
    IGNORED = "ignored"


class BillingEventCreate(BaseModel):
    """Billing event creation schema."""

    model_config = {"use_enum_values": True}

    provider_event_id: str
    event_type: str
    account_id: Optional[UUID] = None
    subscription_id: Optional[UUID] = None
    occurred_at: datetime
    outcome: EventOutcome
    event_data: Optional[dict[str, Any]] = None
