"""Subscription lifecycle orchestrator.

This module coordinates subscription operations by orchestrating between the
lifecycle rules, the repository and the billing provider client.

Every mutation holds the account's lock, locks the subscription row inside a
UnitOfWork and only writes locally after the provider has confirmed. The locked
section is shielded from caller cancellation, so a provider call and its local
commit either both happen or neither does.
"""

import asyncio
from datetime import datetime
from typing import Any, Awaitable, Callable, Hashable, Optional, TypeVar
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from storepilot import schemas
from storepilot.api.context import ApiContext
from storepilot.core.datetime_utils import to_utc_naive
from storepilot.core.exceptions import (
    InvalidTransitionError,
    NotFoundException,
    PlanNotFoundException,
    ProviderError,
    StaleEventError,
    SubscriptionNotFoundException,
    TerminalStateError,
)
from storepilot.core.logging import ContextualLogger, logger
from storepilot.db.unit_of_work import UnitOfWork
from storepilot.integrations._base import BaseBillingProvider
from storepilot.integrations.stripe_client import stripe_client
from storepilot.models import Plan, Subscription
from storepilot.platform.billing.account_locks import AccountLockRegistry, account_locks
from storepilot.platform.billing.billing_data_access import BillingRepository
from storepilot.platform.billing.subscription_state import (
    LifecycleContext,
    analyze_cancel,
    analyze_plan_change,
    analyze_reactivate,
    check_event_order,
    resolve_reported_status,
)
from storepilot.schemas.billing_event import EventOutcome
from storepilot.schemas.subscription import SubscriptionStatus

T = TypeVar("T")


class SubscriptionLifecycleManager:
    """Service owning the local subscription record of every account."""

    def __init__(
        self,
        provider: Optional[BaseBillingProvider] = None,
        repository: Optional[BillingRepository] = None,
        locks: Optional[AccountLockRegistry] = None,
    ):
        """Initialize the lifecycle manager.

        Args:
        ----
            provider (Optional[BaseBillingProvider]): Billing provider, Stripe by default.
            repository (Optional[BillingRepository]): Data access layer.
            locks (Optional[AccountLockRegistry]): Per-account lock registry.

        """
        self.provider = provider if provider is not None else stripe_client
        self.repository = repository or BillingRepository()
        self.locks = locks or account_locks

    # Helpers

    def _provider(self) -> BaseBillingProvider:
        if self.provider is None:
            raise ProviderError(
                service_name="Billing", message="Billing is not enabled for this instance"
            )
        return self.provider

    async def _serialized(self, key: Hashable, operation: Callable[[], Awaitable[T]]) -> T:
        """Run an operation under the account's lock, shielded from caller cancellation."""

        async def _locked() -> T:
            async with self.locks.hold(key):
                return await operation()

        return await asyncio.shield(_locked())

    @staticmethod
    def _lifecycle_context(subscription: Subscription) -> LifecycleContext:
        return LifecycleContext(
            status=SubscriptionStatus(subscription.status),
            cancel_at_period_end=subscription.cancel_at_period_end,
            plan_id=subscription.plan_id,
        )

    @staticmethod
    def _to_schema(subscription: Subscription) -> schemas.SubscriptionWithPlan:
        return schemas.SubscriptionWithPlan.model_validate(subscription, from_attributes=True)

    async def _get_live_for_update(
        self, db: AsyncSession, account_id: UUID
    ) -> Subscription:
        """Lock and return the account's live subscription.

        Raises:
        ------
            TerminalStateError: If the account only has canceled subscriptions.
            SubscriptionNotFoundException: If the account never had a subscription.

        """
        subscription = await self.repository.get_live_subscription(
            db, account_id, for_update=True
        )
        if subscription:
            return subscription

        if await self.repository.get_latest_subscription(db, account_id):
            raise TerminalStateError()
        raise SubscriptionNotFoundException(f"No subscription found for account {account_id}")

    async def _get_current(self, db: AsyncSession, account_id: UUID) -> Subscription:
        """Return the live subscription, else the latest canceled one."""
        subscription = await self.repository.get_live_subscription(db, account_id)
        if subscription is None:
            subscription = await self.repository.get_latest_subscription(db, account_id)
        if subscription is None:
            raise SubscriptionNotFoundException(
                f"No subscription found for account {account_id}"
            )
        return subscription

    async def _get_purchasable_plan(self, db: AsyncSession, plan_id: UUID) -> Plan:
        plan = await self.repository.get_plan(db, plan_id)
        if plan is None or not plan.is_active:
            raise PlanNotFoundException(f"Plan {plan_id} not found")
        if not plan.provider_price_id:
            raise PlanNotFoundException(f"Plan {plan_id} is not available for purchase")
        return plan

    # Reads

    async def get_current_subscription(
        self, db: AsyncSession, ctx: ApiContext
    ) -> schemas.CurrentSubscription:
        """Get the account's subscription with its plan, default card and latest invoice."""
        subscription = await self._get_current(db, ctx.account_id)
        default_method = await self.repository.get_default_payment_method(db, ctx.account_id)
        latest_invoice = await self.repository.get_latest_invoice(db, subscription.id)

        return schemas.CurrentSubscription(
            subscription=self._to_schema(subscription),
            default_payment_method=(
                schemas.PaymentMethod.model_validate(default_method, from_attributes=True)
                if default_method
                else None
            ),
            latest_invoice=(
                schemas.Invoice.model_validate(latest_invoice, from_attributes=True)
                if latest_invoice
                else None
            ),
        )

    async def list_plans(self, db: AsyncSession) -> list[schemas.Plan]:
        """List the active plan catalog, cheapest first."""
        plans = await self.repository.list_active_plans(db)
        return [schemas.Plan.model_validate(plan, from_attributes=True) for plan in plans]

    async def list_invoices(self, db: AsyncSession, ctx: ApiContext) -> list[schemas.Invoice]:
        """List the current subscription's invoices from the provider, newest first."""
        subscription = await self._get_current(db, ctx.account_id)
        invoices = await self._provider().list_invoices(subscription.provider_subscription_id)
        return sorted(invoices, key=lambda invoice: invoice.issued_at, reverse=True)

    async def list_payment_methods(
        self, db: AsyncSession, ctx: ApiContext
    ) -> list[schemas.PaymentMethod]:
        """List the account's payment methods from the provider, newest first."""
        customer = await self.repository.get_billing_customer(db, ctx.account_id)
        if customer is None:
            return []
        return await self._provider().list_payment_methods(customer.provider_customer_id)

    async def get_invoice_download_url(
        self, db: AsyncSession, invoice_id: str, ctx: ApiContext
    ) -> str:
        """Resolve the PDF (or hosted page) URL of one of the account's invoices."""
        for invoice in await self.list_invoices(db, ctx):
            if invoice.id == invoice_id:
                url = invoice.pdf_url or invoice.hosted_invoice_url
                if url:
                    return url
                break
        raise NotFoundException(f"Invoice {invoice_id} not found")

    # Lifecycle operations

    async def change_plan(
        self, db: AsyncSession, target_plan_id: UUID, ctx: ApiContext
    ) -> schemas.SubscriptionWithPlan:
        """Switch the account's subscription to another plan.

        A plan change while a cancellation is scheduled also clears the schedule.
        Choosing the current plan again returns the subscription unchanged.
        """
        log = ctx.logger.with_context(operation="change_plan", target_plan_id=str(target_plan_id))

        async def _change() -> schemas.SubscriptionWithPlan:
            async with UnitOfWork(db) as uow:
                subscription = await self._get_live_for_update(db, ctx.account_id)
                decision = analyze_plan_change(
                    self._lifecycle_context(subscription), target_plan_id
                )
                if not decision.requires_provider_call:
                    log.info(decision.message)
                    return self._to_schema(subscription)

                target_plan = await self._get_purchasable_plan(db, target_plan_id)

                log.info(
                    f"Requesting plan swap {subscription.plan_id} -> {target_plan.id} "
                    f"(clear scheduled cancellation: {decision.clear_scheduled_cancellation})"
                )
                state = await self._provider().create_plan_change(
                    subscription.provider_subscription_id,
                    target_plan.provider_price_id,
                    clear_scheduled_cancellation=decision.clear_scheduled_cancellation,
                )

                changes: dict[str, Any] = {
                    "plan_id": target_plan.id,
                    "plan": target_plan,
                    "current_period_start": to_utc_naive(state.current_period_start),
                    "current_period_end": to_utc_naive(state.current_period_end),
                }
                if decision.clear_scheduled_cancellation:
                    changes["cancel_at_period_end"] = False

                subscription = await self.repository.update_subscription(
                    db, subscription, changes, uow
                )

            log.info(f"Subscription {subscription.id} moved to plan {target_plan.id}")
            return self._to_schema(subscription)

        return await self._serialized(ctx.account_id, _change)

    async def cancel(self, db: AsyncSession, ctx: ApiContext) -> schemas.SubscriptionWithPlan:
        """Schedule cancellation at the end of the current period.

        The status stays unchanged until the provider ends the period. Repeating the
        request while a cancellation is scheduled is a no-op.
        """
        log = ctx.logger.with_context(operation="cancel")

        async def _cancel() -> schemas.SubscriptionWithPlan:
            async with UnitOfWork(db) as uow:
                subscription = await self._get_live_for_update(db, ctx.account_id)
                decision = analyze_cancel(self._lifecycle_context(subscription))
                if not decision.requires_provider_call:
                    log.info(decision.message)
                    return self._to_schema(subscription)

                await self._provider().schedule_cancellation(
                    subscription.provider_subscription_id
                )
                subscription = await self.repository.update_subscription(
                    db, subscription, {"cancel_at_period_end": True}, uow
                )

            log.info(f"Subscription {subscription.id}: {decision.message}")
            return self._to_schema(subscription)

        return await self._serialized(ctx.account_id, _cancel)

    async def reactivate(self, db: AsyncSession, ctx: ApiContext) -> schemas.SubscriptionWithPlan:
        """Clear a scheduled cancellation while the paid period is still running."""
        log = ctx.logger.with_context(operation="reactivate")

        async def _reactivate() -> schemas.SubscriptionWithPlan:
            async with UnitOfWork(db) as uow:
                subscription = await self._get_live_for_update(db, ctx.account_id)
                decision = analyze_reactivate(self._lifecycle_context(subscription))

                await self._provider().clear_scheduled_cancellation(
                    subscription.provider_subscription_id
                )
                subscription = await self.repository.update_subscription(
                    db, subscription, {"cancel_at_period_end": False}, uow
                )

            log.info(f"Subscription {subscription.id}: {decision.message}")
            return self._to_schema(subscription)

        return await self._serialized(ctx.account_id, _reactivate)

    # Checkout and payment methods

    async def start_checkout(
        self,
        db: AsyncSession,
        plan_id: UUID,
        billing_email: str,
        success_url: str,
        cancel_url: str,
        ctx: ApiContext,
    ) -> str:
        """Start a provider checkout for a new subscription and return its URL.

        The subscription record itself is created when the provider reports it.
        """
        log = ctx.logger.with_context(operation="start_checkout", plan_id=str(plan_id))

        async def _checkout() -> str:
            async with UnitOfWork(db) as uow:
                if await self.repository.get_live_subscription(db, ctx.account_id):
                    raise InvalidTransitionError(
                        "Account already has a live subscription; change its plan instead"
                    )
                plan = await self._get_purchasable_plan(db, plan_id)
                provider = self._provider()

                customer = await self.repository.get_billing_customer(db, ctx.account_id)
                if customer is None:
                    provider_customer_id = await provider.create_customer(
                        ctx.account_id, billing_email
                    )
                    customer = await self.repository.create_billing_customer(
                        db,
                        schemas.BillingCustomerCreate(
                            account_id=ctx.account_id,
                            provider_customer_id=provider_customer_id,
                            billing_email=billing_email,
                        ),
                        uow,
                    )
                    log.info(f"Created provider customer {provider_customer_id}")

                return await provider.create_checkout_session(
                    customer.provider_customer_id,
                    plan.provider_price_id,
                    success_url=success_url,
                    cancel_url=cancel_url,
                    trial_period_days=plan.trial_period_days,
                    metadata={"account_id": str(ctx.account_id), "plan_id": str(plan.id)},
                )

        return await self._serialized(ctx.account_id, _checkout)

    async def add_payment_method(
        self, db: AsyncSession, success_url: str, cancel_url: str, ctx: ApiContext
    ) -> str:
        """Return a provider-hosted page URL where the account can add a card."""
        customer = await self.repository.get_billing_customer(db, ctx.account_id)
        if customer is None:
            raise NotFoundException(
                f"Account {ctx.account_id} has no billing customer; start a checkout first"
            )
        return await self._provider().create_setup_session(
            customer.provider_customer_id, success_url=success_url, cancel_url=cancel_url
        )

    async def remove_payment_method(
        self, db: AsyncSession, payment_method_id: str, ctx: ApiContext
    ) -> list[schemas.PaymentMethod]:
        """Detach one of the account's payment methods and return the remaining ones.

        The default method cannot be removed while a subscription is live.
        """
        log = ctx.logger.with_context(
            operation="remove_payment_method", payment_method_id=payment_method_id
        )

        async def _remove() -> list[schemas.PaymentMethod]:
            async with UnitOfWork(db) as uow:
                customer = await self.repository.get_billing_customer(db, ctx.account_id)
                if customer is None:
                    raise NotFoundException(f"Payment method {payment_method_id} not found")

                provider = self._provider()
                methods = await provider.list_payment_methods(customer.provider_customer_id)
                method = next((m for m in methods if m.id == payment_method_id), None)
                if method is None:
                    raise NotFoundException(f"Payment method {payment_method_id} not found")

                if method.is_default and await self.repository.get_live_subscription(
                    db, ctx.account_id
                ):
                    raise InvalidTransitionError(
                        "Cannot remove the default payment method while a subscription is live"
                    )

                await provider.detach_payment_method(payment_method_id)
                remaining = [m for m in methods if m.id != payment_method_id]
                await self.repository.replace_payment_methods(
                    db, ctx.account_id, remaining, uow
                )

            log.info(f"Detached payment method, {len(remaining)} remaining")
            return remaining

        return await self._serialized(ctx.account_id, _remove)

    async def refresh_payment_methods(
        self,
        db: AsyncSession,
        provider_customer_id: str,
        log: Optional[ContextualLogger] = None,
    ) -> int:
        """Mirror the provider's payment methods of a customer locally.

        Returns the number of mirrored methods; unknown customers are skipped.
        """
        log = log or logger
        customer = await self.repository.get_billing_customer_by_provider_id(
            db, provider_customer_id
        )
        if customer is None:
            log.info(f"Skipping payment method refresh for unknown customer {provider_customer_id}")
            return 0

        async def _refresh() -> int:
            async with UnitOfWork(db) as uow:
                methods = await self._provider().list_payment_methods(provider_customer_id)
                await self.repository.replace_payment_methods(
                    db, customer.account_id, methods, uow
                )
            return len(methods)

        count = await self._serialized(customer.account_id, _refresh)
        log.info(f"Mirrored {count} payment methods for account {customer.account_id}")
        return count

    # Reconciliation

    async def reconcile(
        self,
        db: AsyncSession,
        event: schemas.ProviderEvent,
        log: Optional[ContextualLogger] = None,
    ) -> EventOutcome:
        """Apply a provider-reported state change to the local subscription.

        Duplicate and out-of-order events are discarded by comparing the event's logical
        time with the last applied one; the discard is logged and recorded, never raised.

        Returns:
        -------
            EventOutcome: Whether the event was applied, stale or ignored.

        """
        log = (log or logger).with_context(
            operation="reconcile",
            provider_event_id=event.event_id,
            provider_subscription_id=event.subscription_id,
        )

        existing = await self.repository.get_subscription_by_provider_id(
            db, event.subscription_id
        )
        if existing is not None:
            lock_key: Hashable = existing.account_id
        else:
            lock_key = event.account_id or event.subscription_id

        return await self._serialized(lock_key, lambda: self._reconcile(db, event, log))

    async def _reconcile(
        self, db: AsyncSession, event: schemas.ProviderEvent, log: ContextualLogger
    ) -> EventOutcome:
        occurred_at = to_utc_naive(event.occurred_at)

        async with UnitOfWork(db) as uow:
            subscription = await self.repository.get_subscription_by_provider_id(
                db, event.subscription_id, for_update=True
            )
            already_recorded = await self.repository.get_event(db, event.event_id) is not None

            try:
                if already_recorded:
                    raise StaleEventError(event.event_id, "Duplicate provider event")
                if subscription is not None:
                    check_event_order(
                        event.event_id,
                        occurred_at,
                        subscription.last_event_id,
                        subscription.last_event_at,
                    )
            except StaleEventError as e:
                log.info(f"Discarding provider event: {e}")
                if subscription is not None and not already_recorded:
                    # Invoices are immutable, so a late event still mirrors the one it carries
                    await self._append_invoice(db, subscription, event, log, uow)
                    if e.simultaneous:
                        await self._refresh_from_provider(db, subscription, occurred_at, log, uow)
                    await self._record(db, event, subscription, EventOutcome.STALE, uow)
                return EventOutcome.STALE

            if subscription is None:
                try:
                    subscription = await self._create_from_event(db, event, occurred_at, log, uow)
                except InvalidTransitionError as e:
                    log.warning(f"Rejecting provider subscription: {e}")
                    subscription = None
                if subscription is None:
                    await self._record(db, event, None, EventOutcome.IGNORED, uow)
                    return EventOutcome.IGNORED
            else:
                await self._apply_event(db, subscription, event, occurred_at, log, uow)

            await self._append_invoice(db, subscription, event, log, uow)
            await self._record(db, event, subscription, EventOutcome.APPLIED, uow)

        log.info(f"Applied provider event, subscription {subscription.id} is {subscription.status}")
        return EventOutcome.APPLIED

    async def _create_from_event(
        self,
        db: AsyncSession,
        event: schemas.ProviderEvent,
        occurred_at: datetime,
        log: ContextualLogger,
        uow: UnitOfWork,
    ) -> Optional[Subscription]:
        """Create the local record of a subscription first seen through an event.

        Returns None when the event lacks what a new record needs.

        Raises:
        ------
            InvalidTransitionError: If the account already has another live subscription.

        """
        if event.account_id is None or event.provider_price_id is None:
            log.warning("Unknown subscription without account or price, ignoring event")
            return None

        plan = await self.repository.get_plan_by_provider_price(db, event.provider_price_id)
        if plan is None:
            log.warning(f"No plan for provider price {event.provider_price_id}, ignoring event")
            return None

        if event.new_status != SubscriptionStatus.CANCELED:
            live = await self.repository.get_live_subscription(
                db, event.account_id, for_update=True
            )
            if live is not None:
                raise InvalidTransitionError(
                    f"Account {event.account_id} already has live subscription {live.id}",
                    current_status=live.status,
                )

        provider_customer_id = event.provider_customer_id
        if provider_customer_id is None:
            customer = await self.repository.get_billing_customer(db, event.account_id)
            if customer is None:
                log.warning("Unknown subscription without provider customer, ignoring event")
                return None
            provider_customer_id = customer.provider_customer_id

        subscription = await self.repository.create_subscription(
            db,
            schemas.SubscriptionCreate(
                account_id=event.account_id,
                plan_id=plan.id,
                status=event.new_status,
                current_period_start=to_utc_naive(event.new_period_start),
                current_period_end=to_utc_naive(event.new_period_end),
                cancel_at_period_end=bool(event.cancel_at_period_end),
                canceled_at=(
                    occurred_at if event.new_status == SubscriptionStatus.CANCELED else None
                ),
                provider_subscription_id=event.subscription_id,
                provider_customer_id=provider_customer_id,
                last_event_id=event.event_id,
                last_event_at=occurred_at,
            ),
            uow,
        )
        subscription.plan = plan
        log.info(f"Created subscription {subscription.id} in status {event.new_status.value}")
        return subscription

    async def _apply_event(
        self,
        db: AsyncSession,
        subscription: Subscription,
        event: schemas.ProviderEvent,
        occurred_at: datetime,
        log: ContextualLogger,
        uow: UnitOfWork,
    ) -> None:
        """Apply status, period, plan and cancellation flag from the event."""
        await self._apply_reported_state(
            db,
            subscription,
            schemas.ProviderSubscriptionState(
                provider_subscription_id=event.subscription_id,
                status=event.new_status,
                current_period_start=event.new_period_start,
                current_period_end=event.new_period_end,
                cancel_at_period_end=bool(event.cancel_at_period_end),
                provider_price_id=event.provider_price_id,
            ),
            occurred_at,
            log,
            uow,
            changes={"last_event_id": event.event_id, "last_event_at": occurred_at},
            keep_cancel_flag=event.cancel_at_period_end is None,
        )

    async def _refresh_from_provider(
        self,
        db: AsyncSession,
        subscription: Subscription,
        occurred_at: datetime,
        log: ContextualLogger,
        uow: UnitOfWork,
    ) -> None:
        """Apply the provider's current state when event order cannot be decided.

        Provider event times have one-second resolution, so events raised together
        (creation, activation and first invoice at checkout) tie with the watermark.
        The watermark itself is left as it is.
        """
        state = await self._provider().get_subscription_state(
            subscription.provider_subscription_id
        )
        log.info(f"Refreshed subscription from provider, reported status {state.status.value}")
        await self._apply_reported_state(db, subscription, state, occurred_at, log, uow)

    async def _apply_reported_state(
        self,
        db: AsyncSession,
        subscription: Subscription,
        state: schemas.ProviderSubscriptionState,
        occurred_at: datetime,
        log: ContextualLogger,
        uow: UnitOfWork,
        changes: Optional[dict[str, Any]] = None,
        keep_cancel_flag: bool = False,
    ) -> None:
        current = SubscriptionStatus(subscription.status)
        resolution = resolve_reported_status(current, state.status)
        changes = dict(changes or {})

        if not resolution.allowed:
            log.warning(
                f"Provider reported forbidden transition {current.value} -> "
                f"{state.status.value}, keeping {current.value}"
            )
            if changes:
                await self.repository.update_subscription(db, subscription, changes, uow)
            return

        changes["status"] = resolution.status.value
        changes["current_period_start"] = to_utc_naive(state.current_period_start)
        changes["current_period_end"] = to_utc_naive(state.current_period_end)

        if resolution.status == SubscriptionStatus.CANCELED:
            # The scheduled flag stays as it was once the cancellation has executed
            if current != SubscriptionStatus.CANCELED:
                changes["canceled_at"] = occurred_at
        elif not keep_cancel_flag:
            changes["cancel_at_period_end"] = state.cancel_at_period_end

        current_price_id = subscription.plan.provider_price_id if subscription.plan else None
        if state.provider_price_id and state.provider_price_id != current_price_id:
            plan = await self.repository.get_plan_by_provider_price(db, state.provider_price_id)
            if plan is None:
                log.warning(f"No plan for provider price {state.provider_price_id}, keeping plan")
            else:
                changes["plan_id"] = plan.id
                changes["plan"] = plan

        await self.repository.update_subscription(db, subscription, changes, uow)

    async def _append_invoice(
        self,
        db: AsyncSession,
        subscription: Subscription,
        event: schemas.ProviderEvent,
        log: ContextualLogger,
        uow: UnitOfWork,
    ) -> None:
        if event.new_invoice is None:
            return
        _, created = await self.repository.append_invoice(
            db, subscription, event.new_invoice, uow
        )
        if created:
            log.info(f"Mirrored invoice {event.new_invoice.id}")

    async def _record(
        self,
        db: AsyncSession,
        event: schemas.ProviderEvent,
        subscription: Optional[Subscription],
        outcome: EventOutcome,
        uow: UnitOfWork,
    ) -> None:
        await self.repository.record_event(
            db,
            schemas.BillingEventCreate(
                provider_event_id=event.event_id,
                event_type=event.event_type,
                account_id=subscription.account_id if subscription else event.account_id,
                subscription_id=subscription.id if subscription else None,
                occurred_at=to_utc_naive(event.occurred_at),
                outcome=outcome,
                event_data=event.raw,
            ),
            uow,
        )


# Singleton instance
lifecycle_manager = SubscriptionLifecycleManager()
