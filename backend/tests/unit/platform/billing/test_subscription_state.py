"""Unit tests for the subscription lifecycle rules."""

import uuid
from datetime import datetime, timedelta

import pytest

from storepilot.core.exceptions import (
    InvalidTransitionError,
    StaleEventError,
    TerminalStateError,
)
from storepilot.platform.billing.subscription_state import (
    ALLOWED_TRANSITIONS,
    LifecycleContext,
    analyze_cancel,
    analyze_plan_change,
    analyze_reactivate,
    can_transition,
    check_event_order,
    initial_status,
    is_terminal,
    resolve_reported_status,
)
from storepilot.schemas.subscription import SubscriptionStatus as S


def _ctx(status: S, cancel_at_period_end: bool = False, plan_id=None) -> LifecycleContext:
    return LifecycleContext(
        status=status,
        cancel_at_period_end=cancel_at_period_end,
        plan_id=plan_id or uuid.uuid4(),
    )


class TestTransitionTable:
    """Tests for the status transition table."""

    @pytest.mark.parametrize(
        "current,target",
        [
            (S.INCOMPLETE, S.ACTIVE),
            (S.INCOMPLETE, S.TRIALING),
            (S.TRIALING, S.ACTIVE),
            (S.TRIALING, S.PAST_DUE),
            (S.ACTIVE, S.PAST_DUE),
            (S.PAST_DUE, S.ACTIVE),
            (S.ACTIVE, S.CANCELED),
            (S.PAST_DUE, S.CANCELED),
        ],
    )
    def test_allowed(self, current, target):
        assert can_transition(current, target)

    @pytest.mark.parametrize(
        "current,target",
        [
            (S.CANCELED, S.ACTIVE),
            (S.CANCELED, S.TRIALING),
            (S.ACTIVE, S.TRIALING),
            (S.ACTIVE, S.INCOMPLETE),
            (S.PAST_DUE, S.TRIALING),
        ],
    )
    def test_forbidden(self, current, target):
        assert not can_transition(current, target)

    def test_same_status_is_allowed(self):
        for status in S:
            assert can_transition(status, status)

    def test_canceled_is_the_only_terminal_status(self):
        assert ALLOWED_TRANSITIONS[S.CANCELED] == frozenset()
        assert [s for s in S if is_terminal(s)] == [S.CANCELED]

    def test_initial_status(self):
        assert initial_status(14) == S.TRIALING
        assert initial_status(None) == S.ACTIVE
        assert initial_status(0) == S.ACTIVE


class TestAnalyzePlanChange:
    """Tests for analyze_plan_change."""

    def test_same_plan_is_a_no_op(self):
        plan_id = uuid.uuid4()
        decision = analyze_plan_change(_ctx(S.ACTIVE, plan_id=plan_id), plan_id)
        assert not decision.requires_provider_call

    def test_other_plan_requires_provider(self):
        decision = analyze_plan_change(_ctx(S.TRIALING), uuid.uuid4())
        assert decision.requires_provider_call
        assert not decision.clear_scheduled_cancellation

    def test_clears_scheduled_cancellation(self):
        decision = analyze_plan_change(_ctx(S.ACTIVE, cancel_at_period_end=True), uuid.uuid4())
        assert decision.requires_provider_call
        assert decision.clear_scheduled_cancellation

    def test_past_due_may_change_plan(self):
        assert analyze_plan_change(_ctx(S.PAST_DUE), uuid.uuid4()).requires_provider_call

    def test_canceled_is_terminal(self):
        with pytest.raises(TerminalStateError):
            analyze_plan_change(_ctx(S.CANCELED), uuid.uuid4())

    def test_incomplete_is_invalid_but_not_terminal(self):
        with pytest.raises(InvalidTransitionError) as exc_info:
            analyze_plan_change(_ctx(S.INCOMPLETE), uuid.uuid4())
        assert not isinstance(exc_info.value, TerminalStateError)
        assert exc_info.value.current_status == "incomplete"


class TestAnalyzeCancelAndReactivate:
    """Tests for analyze_cancel and analyze_reactivate."""

    def test_cancel_requires_provider(self):
        assert analyze_cancel(_ctx(S.ACTIVE)).requires_provider_call

    def test_repeated_cancel_is_a_no_op(self):
        assert not analyze_cancel(_ctx(S.ACTIVE, cancel_at_period_end=True)).requires_provider_call

    def test_cancel_canceled_is_terminal(self):
        with pytest.raises(TerminalStateError):
            analyze_cancel(_ctx(S.CANCELED))

    def test_reactivate_scheduled(self):
        decision = analyze_reactivate(_ctx(S.ACTIVE, cancel_at_period_end=True))
        assert decision.requires_provider_call

    def test_reactivate_without_schedule(self):
        with pytest.raises(InvalidTransitionError) as exc_info:
            analyze_reactivate(_ctx(S.ACTIVE))
        assert not isinstance(exc_info.value, TerminalStateError)

    def test_reactivate_canceled_is_terminal(self):
        with pytest.raises(TerminalStateError):
            analyze_reactivate(_ctx(S.CANCELED, cancel_at_period_end=True))


class TestEventOrdering:
    """Tests for check_event_order and resolve_reported_status."""

    last_at = datetime(2026, 1, 10, 12, 0)

    def test_first_event_passes(self):
        check_event_order("evt_1", self.last_at, None, None)

    def test_newer_event_passes(self):
        check_event_order("evt_2", self.last_at + timedelta(seconds=1), "evt_1", self.last_at)

    def test_duplicate_is_stale(self):
        with pytest.raises(StaleEventError) as exc_info:
            check_event_order("evt_1", self.last_at + timedelta(hours=1), "evt_1", self.last_at)
        assert exc_info.value.event_id == "evt_1"

    def test_older_event_is_stale(self):
        with pytest.raises(StaleEventError) as exc_info:
            check_event_order("evt_0", self.last_at - timedelta(minutes=5), "evt_1", self.last_at)
        assert not exc_info.value.simultaneous

    def test_equal_time_is_stale(self):
        with pytest.raises(StaleEventError) as exc_info:
            check_event_order("evt_2", self.last_at, "evt_1", self.last_at)
        assert exc_info.value.simultaneous

    def test_forbidden_reported_status_keeps_current(self):
        resolution = resolve_reported_status(S.CANCELED, S.ACTIVE)
        assert not resolution.allowed
        assert resolution.status == S.CANCELED

    def test_allowed_reported_status(self):
        resolution = resolve_reported_status(S.ACTIVE, S.PAST_DUE)
        assert resolution.allowed
        assert resolution.status == S.PAST_DUE
