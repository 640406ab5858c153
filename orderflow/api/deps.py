# orderflow/api/deps.py
from dataclasses import dataclass

from fastapi import Header, Request

from orderflow.data.store import RecordStore
from orderflow.domain.errors import UnauthorizedError
from orderflow.repos.cart_repo import CartStore
from orderflow.repos.idempotency_repo import IdempotencyRepo
from orderflow.repos.order_repo import OrderRepo
from orderflow.repos.product_repo import ProductRepo
from orderflow.services.cart_retry import CartRetryCoordinator
from orderflow.services.cart_service import CartService
from orderflow.services.idempotency_service import IdempotencyLedger
from orderflow.services.order_engine import OrderTransactionEngine
from orderflow.services.order_service import OrderService


@dataclass(frozen=True)
class Actor:
    user_id: str
    is_admin: bool = False


def get_actor(
    x_user_id: str | None = Header(default=None),
    x_user_groups: str | None = Header(default=None),
) -> Actor:
    # tozsamosc wystawia zewnetrzny serwis, tutaj tylko czytamy naglowki
    if not x_user_id:
        raise UnauthorizedError("User not authenticated")
    groups = {g.strip().strip("[]") for g in (x_user_groups or "").split(",")}
    return Actor(user_id=x_user_id, is_admin="admin" in groups)


def get_store(request: Request) -> RecordStore:
    return request.app.state.store


def build_cart_service(store: RecordStore) -> CartService:
    cart_store = CartStore(store)
    return CartService(
        cart_store=cart_store,
        catalog=ProductRepo(store),
        coordinator=CartRetryCoordinator(cart_store),
    )


def build_order_engine(store: RecordStore) -> OrderTransactionEngine:
    orders = OrderRepo(store)
    products = ProductRepo(store)
    return OrderTransactionEngine(
        store=store,
        cart_store=CartStore(store),
        catalog=products,
        products=products,
        orders=orders,
        ledger=IdempotencyLedger(IdempotencyRepo(store), orders),
    )


def build_order_service(store: RecordStore) -> OrderService:
    return OrderService(OrderRepo(store))
