"""Unit tests for the order status transition table."""

import itertools

import pytest

from app.business import order_state_machine as sm
from app.business.enums import OrderStatus
from app.business.errors import BusinessRuleError, ErrorCode


ALLOWED_PAIRS = {
    (OrderStatus.ACTIVE, OrderStatus.PAUSED),
    (OrderStatus.ACTIVE, OrderStatus.FROZEN),
    (OrderStatus.ACTIVE, OrderStatus.COMPLETED),
    (OrderStatus.ACTIVE, OrderStatus.CANCELLED),
    (OrderStatus.PAUSED, OrderStatus.ACTIVE),
    (OrderStatus.PAUSED, OrderStatus.CANCELLED),
    (OrderStatus.FROZEN, OrderStatus.CANCELLED),
}


@pytest.mark.unit
class TestTransitionTable:
    """The table is closed: anything not listed is rejected."""

    @pytest.mark.parametrize(
        "current,target",
        list(itertools.product(OrderStatus, OrderStatus))
    )
    def test_can_transition_matches_table(self, current, target):
        assert sm.can_transition(current, target) == ((current, target) in ALLOWED_PAIRS)

    def test_terminal_statuses_have_no_successors(self):
        for status in (OrderStatus.COMPLETED, OrderStatus.CANCELLED):
            assert sm.is_terminal(status)
            assert not sm.can_modify(status)
            assert sm.get_allowed_transitions(status) == frozenset()

    def test_describe_terminal_status(self):
        message = sm.describe_allowed_transitions(OrderStatus.CANCELLED)

        assert "final status" in message
        assert "Отменён" in message

    def test_describe_lists_successors(self):
        message = sm.describe_allowed_transitions(OrderStatus.PAUSED)

        assert "Активен" in message
        assert "Отменён" in message


@pytest.mark.unit
class TestTransition:
    """Validated transitions used by services."""

    def test_allowed_transition_returns_target(self):
        assert sm.transition(OrderStatus.ACTIVE, OrderStatus.PAUSED) == OrderStatus.PAUSED

    def test_disallowed_transition_raises(self):
        with pytest.raises(BusinessRuleError) as exc_info:
            sm.transition(OrderStatus.CANCELLED, OrderStatus.ACTIVE)

        assert exc_info.value.code == ErrorCode.ORDER_INVALID_TRANSITION
        assert exc_info.value.details["allowed"] == []

    def test_completed_requires_settlement(self):
        with pytest.raises(BusinessRuleError) as exc_info:
            sm.transition(OrderStatus.ACTIVE, OrderStatus.COMPLETED)

        assert exc_info.value.code == ErrorCode.ORDER_INVALID_TRANSITION

        assert sm.transition(
            OrderStatus.ACTIVE, OrderStatus.COMPLETED, settlement=True
        ) == OrderStatus.COMPLETED

    def test_settlement_cannot_complete_paused_order(self):
        with pytest.raises(BusinessRuleError):
            sm.transition(OrderStatus.PAUSED, OrderStatus.COMPLETED, settlement=True)

    def test_refund_cancels_completed_order(self):
        assert sm.can_refund(OrderStatus.COMPLETED)
        assert sm.transition(
            OrderStatus.COMPLETED, OrderStatus.CANCELLED, refund=True
        ) == OrderStatus.CANCELLED

    def test_refund_flag_does_not_open_other_moves(self):
        with pytest.raises(BusinessRuleError):
            sm.transition(OrderStatus.COMPLETED, OrderStatus.ACTIVE, refund=True)

        with pytest.raises(BusinessRuleError):
            sm.transition(OrderStatus.CANCELLED, OrderStatus.CANCELLED, refund=True)

    def test_frozen_order_returns_to_active_only_by_unfreezing(self):
        with pytest.raises(BusinessRuleError) as exc_info:
            sm.transition(OrderStatus.FROZEN, OrderStatus.ACTIVE)

        assert exc_info.value.code == ErrorCode.ORDER_INVALID_TRANSITION
        assert sm.transition(
            OrderStatus.FROZEN, OrderStatus.ACTIVE, unfreeze=True
        ) == OrderStatus.ACTIVE

    def test_unfreeze_flag_does_not_open_other_moves(self):
        with pytest.raises(BusinessRuleError):
            sm.transition(OrderStatus.PAUSED, OrderStatus.FROZEN, unfreeze=True)
