"""Webhook processor for Stripe billing events.

This module translates incoming Stripe webhook events into provider events and
hands them to reconciliation, or refreshes the payment method mirror.
"""

from typing import Any, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from storepilot import schemas
from storepilot.core.datetime_utils import from_unix_timestamp
from storepilot.core.logging import ContextualLogger, logger
from storepilot.integrations._base import BaseBillingProvider
from storepilot.integrations.stripe_client import (
    get_field,
    get_id,
    invoice_from_stripe,
    invoice_subscription_id,
    stripe_client,
    subscription_state_from_stripe,
)
from storepilot.platform.billing.billing_service import (
    SubscriptionLifecycleManager,
    lifecycle_manager,
)
from storepilot.schemas.billing_event import EventOutcome


def _to_dict(obj: Any) -> Optional[dict]:
    """Best-effort plain dict of a Stripe object for the audit log."""
    if obj is None:
        return None
    if isinstance(obj, dict):
        return obj
    to_dict = getattr(obj, "to_dict", None)
    return to_dict() if callable(to_dict) else None


def _account_id_from_metadata(obj: Any) -> Optional[UUID]:
    metadata = get_field(obj, "metadata") or {}
    raw = metadata.get("account_id") if hasattr(metadata, "get") else None
    if not raw:
        return None
    try:
        return UUID(str(raw))
    except ValueError:
        return None


def provider_event_from_subscription(event: Any) -> schemas.ProviderEvent:
    """Translate a customer.subscription.* event into a provider event."""
    subscription = get_field(get_field(event, "data"), "object")
    state = subscription_state_from_stripe(subscription)
    return schemas.ProviderEvent(
        event_id=get_field(event, "id"),
        event_type=get_field(event, "type"),
        subscription_id=state.provider_subscription_id,
        occurred_at=from_unix_timestamp(get_field(event, "created")),
        new_status=state.status,
        new_period_start=state.current_period_start,
        new_period_end=state.current_period_end,
        cancel_at_period_end=state.cancel_at_period_end,
        provider_price_id=state.provider_price_id,
        provider_customer_id=get_id(get_field(subscription, "customer")),
        account_id=_account_id_from_metadata(subscription),
        raw=_to_dict(event),
    )


def provider_event_from_invoice(
    event: Any, state: schemas.ProviderSubscriptionState
) -> schemas.ProviderEvent:
    """Translate an invoice.* event, given the subscription's current provider state."""
    invoice = get_field(get_field(event, "data"), "object")
    return schemas.ProviderEvent(
        event_id=get_field(event, "id"),
        event_type=get_field(event, "type"),
        subscription_id=state.provider_subscription_id,
        occurred_at=from_unix_timestamp(get_field(event, "created")),
        new_status=state.status,
        new_period_start=state.current_period_start,
        new_period_end=state.current_period_end,
        new_invoice=invoice_from_stripe(invoice),
        cancel_at_period_end=state.cancel_at_period_end,
        provider_price_id=state.provider_price_id,
        provider_customer_id=get_id(get_field(invoice, "customer")),
        raw=_to_dict(event),
    )


class BillingWebhookProcessor:
    """Process Stripe webhook events for billing."""

    def __init__(
        self,
        db: AsyncSession,
        service: Optional[SubscriptionLifecycleManager] = None,
        provider: Optional[BaseBillingProvider] = None,
    ):
        """Initialize webhook processor."""
        self.db = db
        self.service = service or lifecycle_manager
        self.provider = provider if provider is not None else stripe_client

        # Event handler mapping
        self.handlers = {
            "customer.subscription.created": self._handle_subscription_event,
            "customer.subscription.updated": self._handle_subscription_event,
            "customer.subscription.deleted": self._handle_subscription_event,
            "customer.subscription.paused": self._handle_subscription_event,
            "customer.subscription.resumed": self._handle_subscription_event,
            "invoice.finalized": self._handle_invoice_event,
            "invoice.paid": self._handle_invoice_event,
            "invoice.payment_failed": self._handle_invoice_event,
            "payment_method.attached": self._handle_payment_method_event,
            "payment_method.detached": self._handle_payment_method_event,
            "payment_method.updated": self._handle_payment_method_event,
            "customer.updated": self._handle_customer_updated,
        }

    def _create_context_logger(self, event: Any) -> ContextualLogger:
        return logger.with_context(
            auth_method="stripe_webhook",
            event_type=get_field(event, "type"),
            provider_event_id=get_field(event, "id"),
        )

    async def process_event(self, event: Any) -> Optional[EventOutcome]:
        """Process a Stripe webhook event.

        Returns the reconciliation outcome for subscription and invoice events, None otherwise.
        Errors propagate so the endpoint answers 500 and Stripe retries the delivery.
        """
        log = self._create_context_logger(event)
        event_type = get_field(event, "type")

        handler = self.handlers.get(event_type)
        if not handler:
            log.info(f"Unhandled webhook event type: {event_type}")
            return None

        try:
            log.info(f"Processing webhook event: {event_type}")
            return await handler(event, log)
        except Exception as e:
            log.error(f"Error handling {event_type}: {e}", exc_info=True)
            raise

    # Event handlers

    async def _handle_subscription_event(
        self, event: Any, log: ContextualLogger
    ) -> EventOutcome:
        """Reconcile a subscription lifecycle change."""
        provider_event = provider_event_from_subscription(event)
        return await self.service.reconcile(self.db, provider_event, log)

    async def _handle_invoice_event(
        self, event: Any, log: ContextualLogger
    ) -> Optional[EventOutcome]:
        """Reconcile an invoice together with its subscription's current state."""
        invoice = get_field(get_field(event, "data"), "object")
        subscription_id = invoice_subscription_id(invoice)
        if not subscription_id:
            log.info(f"Invoice {get_field(invoice, 'id')} is not tied to a subscription, skipping")
            return None

        if self.provider is None:
            log.warning("Billing provider not configured, cannot resolve invoice subscription")
            return None

        state = await self.provider.get_subscription_state(subscription_id)
        provider_event = provider_event_from_invoice(event, state)
        return await self.service.reconcile(self.db, provider_event, log)

    async def _handle_payment_method_event(self, event: Any, log: ContextualLogger) -> None:
        """Refresh the payment method mirror of the affected customer."""
        data = get_field(event, "data")
        payment_method = get_field(data, "object")
        customer_id = get_id(get_field(payment_method, "customer"))
        if not customer_id:
            # Detached methods only carry their former customer in previous_attributes
            customer_id = get_id(get_field(get_field(data, "previous_attributes"), "customer"))
        if not customer_id:
            log.info("Payment method event without customer, skipping")
            return None

        await self.service.refresh_payment_methods(self.db, customer_id, log)
        return None

    async def _handle_customer_updated(self, event: Any, log: ContextualLogger) -> None:
        """Refresh the mirror when the customer's default payment method changed."""
        data = get_field(event, "data")
        previous = get_field(data, "previous_attributes")
        if get_field(previous, "invoice_settings") is None:
            log.debug("Customer update does not touch invoice settings, skipping")
            return None

        customer_id = get_field(get_field(data, "object"), "id")
        await self.service.refresh_payment_methods(self.db, customer_id, log)
        return None
