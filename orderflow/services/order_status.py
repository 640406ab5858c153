# orderflow/services/order_status.py
from typing import Dict, FrozenSet

from orderflow.domain.errors import ForbiddenError, InvalidTransitionError, ValidationError
from orderflow.domain.models import OrderStatus

S = OrderStatus

TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    S.PENDING: frozenset({S.CONFIRMED, S.CANCELLED}),
    S.CONFIRMED: frozenset({S.PROCESSING, S.CANCELLED}),
    S.PROCESSING: frozenset({S.SHIPPED, S.CANCELLED}),
    S.SHIPPED: frozenset({S.DELIVERED}),
    S.DELIVERED: frozenset(),
    S.CANCELLED: frozenset(),
}


class OrderStatusStateMachine:
    """Order lifecycle: pending -> confirmed -> processing -> shipped -> delivered, cancel until shipped."""

    def __init__(self, transitions: Dict[OrderStatus, FrozenSet[OrderStatus]] = TRANSITIONS):
        self.transitions = transitions

    def allowed(self, current: OrderStatus | str) -> FrozenSet[OrderStatus]:
        return self.transitions.get(OrderStatus(current), frozenset())

    def is_terminal(self, status: OrderStatus | str) -> bool:
        return not self.allowed(status)

    def validate(self, current: OrderStatus | str, requested: OrderStatus | str) -> None:
        current = OrderStatus(current)
        allowed = self.allowed(current)
        try:
            target = OrderStatus(requested)
        except ValueError:
            target = None

        if target not in allowed:
            raise InvalidTransitionError(
                current.value,
                requested.value if isinstance(requested, OrderStatus) else str(requested),
                (s.value for s in allowed),
            )


def check_customer_transition(current: OrderStatus, requested: OrderStatus) -> None:
    """
    Polityka dla zwyklego klienta (nie admin) - wolno tylko anulowac i tylko z pending.
    Wolane przed state machine, nie w niej.
    """
    if requested != OrderStatus.CANCELLED:
        raise ForbiddenError("Customers can only cancel orders")
    if current != OrderStatus.PENDING:
        raise ValidationError("Can only cancel pending orders", details={"status": current.value})
