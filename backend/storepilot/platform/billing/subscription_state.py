"""Pure business logic for the subscription lifecycle.

This module holds the status transition table and the rules that decide what a
lifecycle operation or a provider event does to a subscription. It is separated
from infrastructure concerns like the database and the Stripe API.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional
from uuid import UUID

from storepilot.core.exceptions import InvalidTransitionError, StaleEventError, TerminalStateError
from storepilot.schemas.subscription import SubscriptionStatus

# Central transition table. Same-status transitions are always allowed.
ALLOWED_TRANSITIONS: dict[SubscriptionStatus, frozenset[SubscriptionStatus]] = {
    SubscriptionStatus.INCOMPLETE: frozenset(
        {SubscriptionStatus.TRIALING, SubscriptionStatus.ACTIVE, SubscriptionStatus.CANCELED}
    ),
    SubscriptionStatus.TRIALING: frozenset(
        {SubscriptionStatus.ACTIVE, SubscriptionStatus.PAST_DUE, SubscriptionStatus.CANCELED}
    ),
    SubscriptionStatus.ACTIVE: frozenset(
        {SubscriptionStatus.PAST_DUE, SubscriptionStatus.CANCELED}
    ),
    SubscriptionStatus.PAST_DUE: frozenset(
        {SubscriptionStatus.ACTIVE, SubscriptionStatus.CANCELED}
    ),
    SubscriptionStatus.CANCELED: frozenset(),
}

# Statuses in which change_plan, cancel and reactivate may run
MUTABLE_STATUSES = frozenset(
    {SubscriptionStatus.ACTIVE, SubscriptionStatus.TRIALING, SubscriptionStatus.PAST_DUE}
)


def is_terminal(status: SubscriptionStatus) -> bool:
    """Whether the status is terminal."""
    return status == SubscriptionStatus.CANCELED


def can_transition(current: SubscriptionStatus, target: SubscriptionStatus) -> bool:
    """Whether the transition table allows moving from current to target."""
    return current == target or target in ALLOWED_TRANSITIONS[current]


def initial_status(trial_period_days: Optional[int]) -> SubscriptionStatus:
    """Status a subscription starts in after its first successful checkout."""
    return SubscriptionStatus.TRIALING if trial_period_days else SubscriptionStatus.ACTIVE


@dataclass
class LifecycleContext:
    """Snapshot of a subscription that user-initiated operations decide on."""

    status: SubscriptionStatus
    cancel_at_period_end: bool
    plan_id: UUID


@dataclass
class LifecycleDecision:
    """Result of analyzing a user-initiated operation."""

    requires_provider_call: bool
    message: str
    clear_scheduled_cancellation: bool = False


def _require_mutable(ctx: LifecycleContext, operation: str) -> None:
    if is_terminal(ctx.status):
        raise TerminalStateError(
            f"Cannot {operation}: subscription is canceled; start a new subscription instead"
        )
    if ctx.status not in MUTABLE_STATUSES:
        raise InvalidTransitionError(
            f"Cannot {operation} while subscription is {ctx.status.value}",
            current_status=ctx.status.value,
        )


def analyze_plan_change(ctx: LifecycleContext, target_plan_id: UUID) -> LifecycleDecision:
    """Decide what a plan change does.

    Switching plan while a cancellation is scheduled clears the schedule: picking a
    plan signals the account intends to keep the service.
    """
    _require_mutable(ctx, "change plan")

    if ctx.plan_id == target_plan_id:
        return LifecycleDecision(
            requires_provider_call=False, message="Subscription is already on this plan"
        )

    return LifecycleDecision(
        requires_provider_call=True,
        message="Plan change requested",
        clear_scheduled_cancellation=ctx.cancel_at_period_end,
    )


def analyze_cancel(ctx: LifecycleContext) -> LifecycleDecision:
    """Decide what a cancel request does. Repeating it is a no-op."""
    _require_mutable(ctx, "cancel")

    if ctx.cancel_at_period_end:
        return LifecycleDecision(
            requires_provider_call=False,
            message="Cancellation is already scheduled for the end of the period",
        )

    return LifecycleDecision(
        requires_provider_call=True, message="Cancellation scheduled for the end of the period"
    )


def analyze_reactivate(ctx: LifecycleContext) -> LifecycleDecision:
    """Decide what a reactivate request does."""
    _require_mutable(ctx, "reactivate")

    if not ctx.cancel_at_period_end:
        raise InvalidTransitionError(
            "Cannot reactivate: no cancellation is scheduled", current_status=ctx.status.value
        )

    return LifecycleDecision(requires_provider_call=True, message="Scheduled cancellation cleared")


def check_event_order(
    event_id: str,
    occurred_at: datetime,
    last_event_id: Optional[str],
    last_event_at: Optional[datetime],
) -> None:
    """Reject an event that was already applied or is not newer than the last applied one.

    Ordering is by the provider's logical time, never by arrival order.

    Raises:
    ------
        StaleEventError: If the event is a duplicate or older than or equal to the watermark.
            An event at the watermark's time is flagged ``simultaneous``.

    """
    if last_event_id is not None and event_id == last_event_id:
        raise StaleEventError(event_id, "Duplicate provider event")
    if last_event_at is not None and occurred_at < last_event_at:
        raise StaleEventError(event_id, "Provider event is older than the last applied one")
    if last_event_at is not None and occurred_at == last_event_at:
        raise StaleEventError(
            event_id, "Provider event has the same time as the last applied one", simultaneous=True
        )


@dataclass
class StatusResolution:
    """Outcome of applying a provider-reported status."""

    status: SubscriptionStatus
    allowed: bool


def resolve_reported_status(
    current: SubscriptionStatus, reported: SubscriptionStatus
) -> StatusResolution:
    """Apply a provider-reported status through the transition table.

    A transition the table forbids keeps the current status.
    """
    if can_transition(current, reported):
        return StatusResolution(status=reported, allowed=True)
    return StatusResolution(status=current, allowed=False)
