# orderflow/repos/order_repo.py
from datetime import datetime
from typing import List

from orderflow.data.store import (
    AttrEquals,
    ConditionFailedError,
    NotExists,
    OpRole,
    OpTag,
    RecordKey,
    RecordStore,
    TransactPut,
)
from orderflow.domain.errors import ConflictError
from orderflow.domain.models import OrderAggregate, OrderStatus


def order_key(user_id: str, order_id: str) -> RecordKey:
    return RecordKey(f"USER#{user_id}", f"ORDER#{order_id}")


def order_lookup(order_id: str) -> str:
    return f"ORDER#{order_id}"


class OrderRepo:
    def __init__(self, store: RecordStore):
        self.store = store

    def create_in_transaction(self, order: OrderAggregate) -> TransactPut:
        return TransactPut(
            key=order_key(order.user_id, order.order_id),
            item=order.model_dump(mode="json"),
            tag=OpTag(OpRole.ORDER_CREATE),
            condition=NotExists(),
            lookup_key=order_lookup(order.order_id),
        )

    async def get_order(self, user_id: str, order_id: str) -> OrderAggregate | None:
        item = await self.store.get(order_key(user_id, order_id))
        return OrderAggregate.model_validate(item) if item is not None else None

    async def find_by_order_id(self, order_id: str) -> OrderAggregate | None:
        items = await self.store.query_lookup(order_lookup(order_id))
        return OrderAggregate.model_validate(items[0]) if items else None

    async def list_orders(self, user_id: str, limit: int) -> List[OrderAggregate]:
        items = await self.store.query(f"USER#{user_id}", "ORDER#")
        orders = [OrderAggregate.model_validate(item) for item in items]
        orders.sort(key=lambda o: o.created_at, reverse=True)
        return orders[:limit]

    async def update_status(
        self,
        order: OrderAggregate,
        status: OrderStatus,
        now: datetime,
    ) -> OrderAggregate:
        """Persist a status change only if nobody changed the status since ``order`` was read."""
        try:
            item = await self.store.update(
                order_key(order.user_id, order.order_id),
                set_values={"status": status.value, "updated_at": now.isoformat()},
                condition=AttrEquals("status", order.status.value),
            )
        except ConditionFailedError as exc:
            raise ConflictError(
                "Order status was changed concurrently. Please retry.",
                details={"order_id": order.order_id},
            ) from exc
        return OrderAggregate.model_validate(item)
