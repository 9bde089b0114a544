"""Request and response schemas for billing session endpoints."""

from pydantic import BaseModel, Field, HttpUrl


class SetupSessionRequest(BaseModel):
    """Request to add a payment method through a provider-hosted setup page."""

    success_url: HttpUrl
    cancel_url: HttpUrl


class SetupSessionResponse(BaseModel):
    """Setup session response."""

    setup_url: str = Field(..., description="Provider-hosted setup URL")


class WebhookResponse(BaseModel):
    """Acknowledgement returned to the provider."""

    status: str = "success"
