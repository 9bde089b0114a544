"""Stripe API client for billing operations.

This module provides a clean interface to the Stripe API, handling all direct
Stripe interactions without business logic. Every call is bounded by
BILLING_PROVIDER_TIMEOUT_SECONDS and every failure surfaces as ProviderError.
"""

import asyncio
from decimal import Decimal
from typing import Any, Awaitable, Dict, Optional, TypeVar
from uuid import UUID

import stripe
import tenacity
from stripe import SignatureVerificationError, StripeError
from tenacity import retry_if_exception, stop_after_attempt, wait_exponential

from storepilot.core.config import settings
from storepilot.core.datetime_utils import from_unix_timestamp
from storepilot.core.exceptions import ProviderError
from storepilot.core.logging import logger
from storepilot.integrations._base import BaseBillingProvider
from storepilot.schemas.invoice import Invoice
from storepilot.schemas.payment_method import PaymentMethod
from storepilot.schemas.subscription import ProviderSubscriptionState

T = TypeVar("T")

# Currencies Stripe bills in whole units
ZERO_DECIMAL_CURRENCIES = frozenset(
    {"bif", "clp", "djf", "gnf", "jpy", "kmf", "krw", "mga", "pyg", "rwf", "ugx", "vnd", "vuv"}
)


def get_field(obj: Any, key: str, default: Any = None) -> Any:
    """Read a field from a Stripe object or a plain dict."""
    if obj is None:
        return default
    if isinstance(obj, dict):
        return obj.get(key, default)
    return getattr(obj, key, default)


def get_id(value: Any) -> Optional[str]:
    """Return the ID of an expandable Stripe field, expanded or not."""
    if value is None or isinstance(value, str):
        return value
    return get_field(value, "id")


def amount_from_minor_units(amount: int, currency: str) -> Decimal:
    """Convert a Stripe amount in minor units to major units."""
    if currency.lower() in ZERO_DECIMAL_CURRENCIES:
        return Decimal(amount)
    return (Decimal(amount) / Decimal(100)).quantize(Decimal("0.01"))


def _items_of(subscription: Any) -> list:
    # Subscript access, since "items" collides with the mapping method on StripeObject
    try:
        items = subscription["items"]
    except (KeyError, TypeError):
        return []
    return list(get_field(items, "data") or [])


def subscription_price_id(subscription: Any) -> Optional[str]:
    """Extract the price ID of the subscription's first item."""
    items = _items_of(subscription)
    if not items:
        return None
    return get_id(get_field(items[0], "price"))


def subscription_period(subscription: Any) -> tuple[Optional[int], Optional[int]]:
    """Return the current period boundaries as unix timestamps.

    Newer API versions report the period on the subscription item instead of the
    subscription itself.
    """
    start = get_field(subscription, "current_period_start")
    end = get_field(subscription, "current_period_end")
    if start is None or end is None:
        items = _items_of(subscription)
        if items:
            start = get_field(items[0], "current_period_start")
            end = get_field(items[0], "current_period_end")
    return start, end


def subscription_state_from_stripe(subscription: Any) -> ProviderSubscriptionState:
    """Map a Stripe subscription to the provider-neutral subscription state."""
    start, end = subscription_period(subscription)
    return ProviderSubscriptionState(
        provider_subscription_id=get_field(subscription, "id"),
        status=_normalize_status(get_field(subscription, "status")),
        current_period_start=from_unix_timestamp(start),
        current_period_end=from_unix_timestamp(end),
        cancel_at_period_end=bool(get_field(subscription, "cancel_at_period_end", False)),
        provider_price_id=subscription_price_id(subscription),
    )


def invoice_subscription_id(invoice: Any) -> Optional[str]:
    """Return the provider subscription ID an invoice was issued for."""
    subscription_id = get_id(get_field(invoice, "subscription"))
    if subscription_id:
        return subscription_id
    parent = get_field(invoice, "parent")
    details = get_field(parent, "subscription_details")
    return get_id(get_field(details, "subscription"))


def invoice_from_stripe(invoice: Any) -> Invoice:
    """Map a Stripe invoice to the invoice schema."""
    currency = get_field(invoice, "currency") or "usd"
    transitions = get_field(invoice, "status_transitions")
    paid_at = get_field(transitions, "paid_at")
    due_date = get_field(invoice, "due_date")
    return Invoice(
        id=get_field(invoice, "id"),
        invoice_number=get_field(invoice, "number"),
        amount=amount_from_minor_units(get_field(invoice, "total") or 0, currency),
        currency=currency,
        status=get_field(invoice, "status") or "draft",
        due_date=from_unix_timestamp(due_date) if due_date else None,
        paid_at=from_unix_timestamp(paid_at) if paid_at else None,
        issued_at=from_unix_timestamp(get_field(invoice, "created")),
        hosted_invoice_url=get_field(invoice, "hosted_invoice_url"),
        pdf_url=get_field(invoice, "invoice_pdf"),
    )


def payment_method_from_stripe(
    payment_method: Any, default_payment_method_id: Optional[str] = None
) -> PaymentMethod:
    """Map a Stripe payment method to the payment method schema."""
    card = get_field(payment_method, "card")
    pm_id = get_field(payment_method, "id")
    return PaymentMethod(
        id=pm_id,
        type=get_field(payment_method, "type") or "card",
        card_brand=get_field(card, "brand"),
        card_last4=get_field(card, "last4"),
        card_exp_month=get_field(card, "exp_month"),
        card_exp_year=get_field(card, "exp_year"),
        is_default=pm_id is not None and pm_id == default_payment_method_id,
    )


def _is_transient(error: BaseException) -> bool:
    """Whether a failed read is worth retrying. Timeouts are not, to keep reads bounded."""
    return isinstance(error, ProviderError) and isinstance(
        error.__cause__, (stripe.APIConnectionError, stripe.RateLimitError)
    )


# Reads are idempotent, so transient Stripe failures are retried before surfacing
retry_transient_reads = tenacity.retry(
    retry=retry_if_exception(_is_transient),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=5),
    reraise=True,
)


def _normalize_status(status: Optional[str]) -> str:
    """Collapse Stripe statuses the billing core does not model."""
    if status == "incomplete_expired":
        return "canceled"
    if status in ("unpaid", "paused"):
        return "past_due"
    return status or "incomplete"


class StripeClient(BaseBillingProvider):
    """Client for Stripe API operations."""

    service_name = "Stripe"

    def __init__(self, timeout: Optional[float] = None):
        """Initialize Stripe client."""
        if not settings.STRIPE_ENABLED:
            raise ValueError("Stripe is not enabled in settings")

        stripe.api_key = settings.STRIPE_SECRET_KEY
        self.webhook_secret = settings.STRIPE_WEBHOOK_SECRET
        self.timeout = timeout or settings.BILLING_PROVIDER_TIMEOUT_SECONDS

    async def _call(self, operation: str, awaitable: Awaitable[T]) -> T:
        """Await a Stripe call within the provider timeout.

        Args:
        ----
            operation (str): Human readable description, used in error messages.
            awaitable (Awaitable[T]): The Stripe call.

        Returns:
        -------
            T: The call's result.

        Raises:
        ------
            ProviderError: If Stripe fails or does not answer in time.

        """
        try:
            return await asyncio.wait_for(awaitable, timeout=self.timeout)
        except asyncio.TimeoutError as e:
            logger.warning(f"Stripe call timed out after {self.timeout}s: {operation}")
            raise ProviderError(
                service_name=self.service_name,
                message=f"Timed out after {self.timeout}s while trying to {operation}",
                detail="timeout",
            ) from e
        except StripeError as e:
            raise ProviderError(
                service_name=self.service_name,
                message=f"Failed to {operation}: {str(e)}",
                detail=e.user_message or str(e),
            ) from e

    # Customer operations

    async def create_customer(self, account_id: UUID, email: str) -> str:
        """Create a Stripe customer tagged with the account ID."""
        customer = await self._call(
            "create customer",
            stripe.Customer.create_async(
                email=email,
                metadata={"account_id": str(account_id)},
            ),
        )
        return customer.id

    # Subscription operations

    async def create_plan_change(
        self,
        provider_subscription_id: str,
        provider_price_id: str,
        clear_scheduled_cancellation: bool = False,
    ) -> ProviderSubscriptionState:
        """Swap the subscription's price, prorating the remainder of the period."""

        async def _swap() -> Any:
            subscription = await stripe.Subscription.retrieve_async(provider_subscription_id)
            items = _items_of(subscription)
            if not items:
                raise ProviderError(
                    service_name=self.service_name,
                    message=f"Subscription {provider_subscription_id} has no items",
                )

            update_params: Dict[str, Any] = {
                "items": [{"id": get_field(items[0], "id"), "price": provider_price_id}],
                "proration_behavior": "create_prorations",
            }
            if clear_scheduled_cancellation:
                update_params["cancel_at_period_end"] = False

            return await stripe.Subscription.modify_async(provider_subscription_id, **update_params)

        subscription = await self._call("change subscription plan", _swap())
        return subscription_state_from_stripe(subscription)

    @retry_transient_reads
    async def get_subscription_state(
        self, provider_subscription_id: str
    ) -> ProviderSubscriptionState:
        """Retrieve a subscription's current state."""
        subscription = await self._call(
            "retrieve subscription",
            stripe.Subscription.retrieve_async(provider_subscription_id),
        )
        return subscription_state_from_stripe(subscription)

    async def schedule_cancellation(self, provider_subscription_id: str) -> None:
        """Cancel the subscription at period end."""
        await self._call(
            "schedule cancellation",
            stripe.Subscription.modify_async(provider_subscription_id, cancel_at_period_end=True),
        )

    async def clear_scheduled_cancellation(self, provider_subscription_id: str) -> None:
        """Clear a scheduled cancellation."""
        await self._call(
            "clear scheduled cancellation",
            stripe.Subscription.modify_async(provider_subscription_id, cancel_at_period_end=False),
        )

    # Read operations

    @retry_transient_reads
    async def list_invoices(self, provider_subscription_id: str) -> list[Invoice]:
        """List the subscription's invoices, newest first."""
        result = await self._call(
            "list invoices",
            stripe.Invoice.list_async(subscription=provider_subscription_id, limit=100),
        )
        invoices = [invoice_from_stripe(invoice) for invoice in result.data]
        return sorted(invoices, key=lambda invoice: invoice.issued_at, reverse=True)

    @retry_transient_reads
    async def list_payment_methods(self, provider_customer_id: str) -> list[PaymentMethod]:
        """List the customer's payment methods, newest first, flagging the default one."""

        async def _list() -> tuple[Any, Any]:
            customer = await stripe.Customer.retrieve_async(provider_customer_id)
            methods = await stripe.PaymentMethod.list_async(
                customer=provider_customer_id, limit=100
            )
            return customer, methods

        customer, methods = await self._call("list payment methods", _list())
        default_id = get_id(
            get_field(get_field(customer, "invoice_settings"), "default_payment_method")
        )
        ordered = sorted(methods.data, key=lambda pm: get_field(pm, "created") or 0, reverse=True)
        return [payment_method_from_stripe(pm, default_id) for pm in ordered]

    # Checkout operations

    async def create_checkout_session(
        self,
        provider_customer_id: str,
        provider_price_id: str,
        success_url: str,
        cancel_url: str,
        trial_period_days: Optional[int] = None,
        metadata: Optional[dict[str, str]] = None,
    ) -> str:
        """Create a subscription checkout session and return its URL."""
        subscription_data: Dict[str, Any] = {"metadata": metadata or {}}
        if trial_period_days:
            subscription_data["trial_period_days"] = trial_period_days

        session = await self._call(
            "create checkout session",
            stripe.checkout.Session.create_async(
                customer=provider_customer_id,
                line_items=[{"price": provider_price_id, "quantity": 1}],
                mode="subscription",
                success_url=success_url,
                cancel_url=cancel_url,
                metadata=metadata or {},
                subscription_data=subscription_data,
            ),
        )
        return session.url

    async def create_setup_session(
        self, provider_customer_id: str, success_url: str, cancel_url: str
    ) -> str:
        """Create a setup-mode checkout session for adding a card."""
        session = await self._call(
            "create setup session",
            stripe.checkout.Session.create_async(
                customer=provider_customer_id,
                mode="setup",
                payment_method_types=["card"],
                success_url=success_url,
                cancel_url=cancel_url,
            ),
        )
        return session.url

    async def detach_payment_method(self, provider_payment_method_id: str) -> None:
        """Detach a payment method from its customer."""
        await self._call(
            "detach payment method",
            stripe.PaymentMethod.detach_async(provider_payment_method_id),
        )

    # Webhook operations

    def verify_webhook_signature(self, payload: bytes, signature: str) -> stripe.Event:
        """Verify and construct webhook event."""
        try:
            return stripe.Webhook.construct_event(payload, signature, self.webhook_secret)
        except ValueError as e:
            raise ValueError(f"Invalid webhook payload: {e}") from e
        except SignatureVerificationError as e:
            raise ValueError(f"Invalid webhook signature: {e}") from e


# Singleton instance
stripe_client = StripeClient() if settings.STRIPE_ENABLED else None
