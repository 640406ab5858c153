"""Order status state machine: transition table and the customer policy on top of it."""

import pytest

from orderflow.domain.errors import ForbiddenError, InvalidTransitionError, ValidationError
from orderflow.domain.models import OrderStatus
from orderflow.services.order_status import OrderStatusStateMachine, check_customer_transition

S = OrderStatus


@pytest.fixture()
def machine():
    return OrderStatusStateMachine()


@pytest.mark.parametrize(
    "current, target",
    [
        (S.PENDING, S.CONFIRMED),
        (S.PENDING, S.CANCELLED),
        (S.CONFIRMED, S.PROCESSING),
        (S.CONFIRMED, S.CANCELLED),
        (S.PROCESSING, S.SHIPPED),
        (S.PROCESSING, S.CANCELLED),
        (S.SHIPPED, S.DELIVERED),
    ],
)
def test_valid_transitions_pass(machine, current, target):
    machine.validate(current, target)


def test_pending_to_shipped_lists_allowed_targets(machine):
    with pytest.raises(InvalidTransitionError) as exc_info:
        machine.validate("pending", "shipped")

    assert exc_info.value.allowed == ["cancelled", "confirmed"]
    assert exc_info.value.kind == "INVALID_TRANSITION"
    assert "Allowed transitions: cancelled, confirmed" in exc_info.value.message


@pytest.mark.parametrize("target", list(OrderStatus))
def test_delivered_is_terminal(machine, target):
    with pytest.raises(InvalidTransitionError) as exc_info:
        machine.validate(S.DELIVERED, target)
    assert exc_info.value.allowed == []
    assert "none (terminal state)" in exc_info.value.message


@pytest.mark.parametrize("target", list(OrderStatus))
def test_cancelled_is_terminal(machine, target):
    with pytest.raises(InvalidTransitionError):
        machine.validate(S.CANCELLED, target)


def test_shipped_cannot_be_cancelled(machine):
    with pytest.raises(InvalidTransitionError) as exc_info:
        machine.validate(S.SHIPPED, S.CANCELLED)
    assert exc_info.value.allowed == ["delivered"]


def test_unknown_target_is_rejected(machine):
    with pytest.raises(InvalidTransitionError) as exc_info:
        machine.validate(S.PENDING, "teleported")
    assert exc_info.value.requested == "teleported"


def test_invalid_transition_is_validation_class():
    assert issubclass(InvalidTransitionError, ValidationError)


def test_terminal_states(machine):
    assert machine.is_terminal(S.DELIVERED)
    assert machine.is_terminal(S.CANCELLED)
    assert not machine.is_terminal(S.SHIPPED)


class TestCustomerPolicy:
    def test_customer_may_cancel_pending(self):
        check_customer_transition(S.PENDING, S.CANCELLED)

    def test_customer_may_not_confirm(self):
        with pytest.raises(ForbiddenError):
            check_customer_transition(S.PENDING, S.CONFIRMED)

    def test_customer_may_not_cancel_confirmed(self):
        with pytest.raises(ValidationError) as exc_info:
            check_customer_transition(S.CONFIRMED, S.CANCELLED)
        assert exc_info.value.message == "Can only cancel pending orders"
