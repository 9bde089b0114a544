"""Invoice schemas."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import AliasChoices, BaseModel, Field


class InvoiceStatus(str, Enum):
    """Invoice status as reported by the provider."""

    DRAFT = "draft"
    OPEN = "open"
    PAID = "paid"
    UNCOLLECTIBLE = "uncollectible"
    VOID = "void"


class Invoice(BaseModel):
    """Invoice as surfaced to the dashboard.

    Built either from the provider's listing or from a locally mirrored row, in which
    case ``id`` is read from ``provider_invoice_id``.
    """

    model_config = {"from_attributes": True, "populate_by_name": True}

    id: str = Field(
        ...,
        validation_alias=AliasChoices("provider_invoice_id", "id"),
        description="Provider invoice ID",
    )
    invoice_number: Optional[str] = None
    amount: Decimal = Field(..., description="Total amount in major currency units")
    currency: str
    status: InvoiceStatus
    due_date: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    issued_at: datetime = Field(..., description="When the provider issued the invoice")
    hosted_invoice_url: Optional[str] = None
    pdf_url: Optional[str] = None


class InvoiceCreate(BaseModel):
    """Schema for appending a provider invoice to the local mirror."""

    model_config = {"use_enum_values": True}

    account_id: UUID
    subscription_id: UUID
    provider_invoice_id: str
    invoice_number: Optional[str] = None
    amount: Decimal
    currency: str
    status: InvoiceStatus
    due_date: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    issued_at: datetime
    hosted_invoice_url: Optional[str] = None
    pdf_url: Optional[str] = None
