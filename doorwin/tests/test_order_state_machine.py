import pytest

from doorwin.core.errors import InvalidTransition
from doorwin.services.order_state_machine import (
    OrderAction,
    OrderStatus,
    StockEffect,
    allowed_actions,
    is_terminal,
    transition,
)


class TestLegalTransitions:

    @pytest.mark.parametrize("current, action, expected_status, expected_effect", [
        ("pending", "approve", OrderStatus.APPROVED, StockEffect.DECREMENT),
        ("pending", "reject", OrderStatus.REJECTED, StockEffect.NONE),
        ("pending", "cancel", OrderStatus.CANCELLED, StockEffect.NONE),
        ("approved", "complete", OrderStatus.COMPLETED, StockEffect.NONE),
        ("approved", "cancel", OrderStatus.CANCELLED, StockEffect.RESTORE),
    ])
    def test_table(self, current, action, expected_status, expected_effect):
        step = transition(current, action)
        assert step.from_status == OrderStatus(current)
        assert step.to_status == expected_status
        assert step.stock_effect == expected_effect

    def test_accepts_enum_members(self):
        step = transition(OrderStatus.PENDING, OrderAction.APPROVE)
        assert step.to_status == OrderStatus.APPROVED


class TestIllegalTransitions:

    @pytest.mark.parametrize("current, action, target", [
        ("approved", "approve", "approved"),
        ("approved", "reject", "rejected"),
        ("pending", "complete", "completed"),
        ("rejected", "approve", "approved"),
        ("rejected", "cancel", "cancelled"),
        ("completed", "cancel", "cancelled"),
        ("completed", "approve", "approved"),
        ("cancelled", "cancel", "cancelled"),
        ("cancelled", "approve", "approved"),
    ])
    def test_rejected_with_from_and_to(self, current, action, target):
        with pytest.raises(InvalidTransition) as exc_info:
            transition(current, action)

        error = exc_info.value
        assert error.from_status == current
        assert error.to_status == target
        assert error.to_dict()["from"] == current
        assert error.to_dict()["to"] == target
        assert error.code == "invalid_transition"

    def test_unknown_status(self):
        with pytest.raises(ValueError):
            transition("shipped", "approve")


def test_allowed_actions():
    assert allowed_actions("pending") == [OrderAction.APPROVE, OrderAction.REJECT, OrderAction.CANCEL]
    assert allowed_actions("approved") == [OrderAction.COMPLETE, OrderAction.CANCEL]
    assert allowed_actions("completed") == []


def test_terminal_states():
    assert not is_terminal("pending")
    assert not is_terminal("approved")
    for status in ("rejected", "completed", "cancelled"):
        assert is_terminal(status)
