"""Plan catalog schemas."""

from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field, computed_field


class BillingInterval(str, Enum):
    """Billing interval of a plan."""

    MONTH = "month"
    YEAR = "year"


class PlanLimits(BaseModel):
    """Usage limits of a plan. None means unlimited."""

    products: Optional[int] = Field(None, description="Maximum number of optimized products")
    emails: Optional[int] = Field(None, description="Maximum number of emails per period")
    sms: Optional[int] = Field(None, description="Maximum number of SMS per period")
    ai_generations: Optional[int] = Field(None, description="Maximum number of AI generations")


class PlanBase(BaseModel):
    """Plan base schema."""

    name: str = Field(..., description="Display name of the plan")
    description: Optional[str] = Field(None, description="Short marketing description")
    price: Decimal = Field(..., ge=0, description="Price per interval")
    currency: str = Field("usd", min_length=3, max_length=3, description="ISO currency code")
    interval: BillingInterval = Field(..., description="Billing interval")
    features: list[str] = Field(default_factory=list, description="Feature bullet points")
    max_products: Optional[int] = None
    max_emails: Optional[int] = None
    max_sms: Optional[int] = None
    max_ai_generations: Optional[int] = None
    is_popular: bool = False
    trial_period_days: Optional[int] = Field(None, ge=1, description="Trial length in days")
    provider_price_id: Optional[str] = Field(None, description="Price identifier at the provider")


class PlanCreate(PlanBase):
    """Plan creation schema, used by catalog seeding."""

    is_active: bool = True


class Plan(PlanBase):
    """Plan schema returned by the catalog."""

    model_config = {"from_attributes": True}

    id: UUID
    is_active: bool = True

    @computed_field
    @property
    def limits(self) -> PlanLimits:
        """Usage limits grouped the way the dashboard renders them."""
        return PlanLimits(
            products=self.max_products,
            emails=self.max_emails,
            sms=self.max_sms,
            ai_generations=self.max_ai_generations,
        )
