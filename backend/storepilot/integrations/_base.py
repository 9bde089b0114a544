"""Billing provider contract."""

from abc import ABC, abstractmethod
from typing import Any, Optional
from uuid import UUID

from storepilot.schemas.invoice import Invoice
from storepilot.schemas.payment_method import PaymentMethod
from storepilot.schemas.subscription import ProviderSubscriptionState


class BaseBillingProvider(ABC):
    """Contract the billing core consumes from the payment provider.

    Every method raises ProviderError when the provider fails or does not answer in time.
    """

    service_name: str = "BillingProvider"

    @abstractmethod
    async def create_customer(self, account_id: UUID, email: str) -> str:
        """Create a customer for the account and return its provider customer ID."""

    @abstractmethod
    async def create_plan_change(
        self,
        provider_subscription_id: str,
        provider_price_id: str,
        clear_scheduled_cancellation: bool = False,
    ) -> ProviderSubscriptionState:
        """Swap the subscription to another price with proration."""

    @abstractmethod
    async def get_subscription_state(
        self, provider_subscription_id: str
    ) -> ProviderSubscriptionState:
        """Fetch the provider's current view of a subscription."""

    @abstractmethod
    async def schedule_cancellation(self, provider_subscription_id: str) -> None:
        """Cancel the subscription at the end of the current period."""

    @abstractmethod
    async def clear_scheduled_cancellation(self, provider_subscription_id: str) -> None:
        """Undo a cancellation scheduled for the end of the current period."""

    @abstractmethod
    async def list_invoices(self, provider_subscription_id: str) -> list[Invoice]:
        """List the subscription's invoices, newest first."""

    @abstractmethod
    async def list_payment_methods(self, provider_customer_id: str) -> list[PaymentMethod]:
        """List the customer's payment methods, newest first."""

    @abstractmethod
    async def create_checkout_session(
        self,
        provider_customer_id: str,
        provider_price_id: str,
        success_url: str,
        cancel_url: str,
        trial_period_days: Optional[int] = None,
        metadata: Optional[dict[str, str]] = None,
    ) -> str:
        """Create a hosted checkout for a new subscription and return its URL."""

    @abstractmethod
    async def create_setup_session(
        self, provider_customer_id: str, success_url: str, cancel_url: str
    ) -> str:
        """Create a hosted page for adding a payment method and return its URL."""

    @abstractmethod
    async def detach_payment_method(self, provider_payment_method_id: str) -> None:
        """Detach a payment method from its customer."""

    @abstractmethod
    def verify_webhook_signature(self, payload: bytes, signature: str) -> Any:
        """Verify a webhook delivery and return the parsed event.

        Raises ValueError when the payload or signature is invalid.
        """
