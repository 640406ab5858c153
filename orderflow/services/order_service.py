# orderflow/services/order_service.py
from datetime import datetime
from typing import Callable, List, NamedTuple

from orderflow.domain.errors import NotFoundError
from orderflow.domain.models import OrderAggregate, OrderStatus, utcnow
from orderflow.repos.order_repo import OrderRepo
from orderflow.services.order_status import OrderStatusStateMachine, check_customer_transition
from orderflow.utils.logging import get_logger
from orderflow.utils.settings import ORDER_LIST_LIMIT

logger = get_logger(__name__)


class OrderPage(NamedTuple):
    orders: List[OrderAggregate]
    has_more: bool


class OrderService:
    """
    Serwis odpowiedzialny za odczyt zamowien i zmiane statusu.
    Tworzenie zamowienia jest w OrderTransactionEngine.
    """

    def __init__(
        self,
        orders: OrderRepo,
        state_machine: OrderStatusStateMachine | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.orders = orders
        self.state_machine = state_machine or OrderStatusStateMachine()
        self.clock = clock

    async def get_order(self, user_id: str, order_id: str) -> OrderAggregate:
        order = await self.orders.get_order(user_id, order_id)
        if order is None:
            raise NotFoundError("Order not found", details={"order_id": order_id})
        return order

    async def list_orders(self, user_id: str, limit: int = ORDER_LIST_LIMIT) -> OrderPage:
        # jeden rekord ponad limit mowi, czy jest nastepna strona
        orders = await self.orders.list_orders(user_id, limit + 1)
        return OrderPage(orders[:limit], len(orders) > limit)

    async def update_status(
        self,
        user_id: str,
        order_id: str,
        status: OrderStatus,
        is_admin: bool = False,
    ) -> OrderAggregate:
        """
        Use Case: zmiana statusu.
        admin szuka po samym order_id, klient tylko w swoich zamowieniach
        """
        if is_admin:
            order = await self.orders.find_by_order_id(order_id)
            if order is None:
                raise NotFoundError("Order not found", details={"order_id": order_id})
        else:
            order = await self.get_order(user_id, order_id)
            check_customer_transition(order.status, status)

        self.state_machine.validate(order.status, status)

        updated = await self.orders.update_status(order, status, self.clock())
        logger.info(f"Order {order_id} status {order.status.value} -> {status.value}")
        return updated
