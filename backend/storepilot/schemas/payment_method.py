"""Payment method schemas."""

from typing import Optional
from uuid import UUID

from pydantic import AliasChoices, BaseModel, Field


class PaymentMethod(BaseModel):
    """Payment method with masked card metadata."""

    model_config = {"from_attributes": True, "populate_by_name": True}

    id: str = Field(
        ...,
        validation_alias=AliasChoices("provider_payment_method_id", "id"),
        description="Provider payment method ID",
    )
    type: str = Field("card", description="Payment method type")
    card_brand: Optional[str] = None
    card_last4: Optional[str] = None
    card_exp_month: Optional[int] = None
    card_exp_year: Optional[int] = None
    is_default: bool = False


class PaymentMethodCreate(BaseModel):
    """Schema for mirroring a provider payment method locally."""

    account_id: UUID
    provider_payment_method_id: str
    type: str
    card_brand: Optional[str] = None
    card_last4: Optional[str] = None
    card_exp_month: Optional[int] = None
    card_exp_year: Optional[int] = None
    is_default: bool = False
