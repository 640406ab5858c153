from datetime import datetime, timedelta, timezone
from decimal import Decimal
from pathlib import Path

import pytest

from orderflow.data.memory_store import MemoryRecordStore
from orderflow.domain.models import Product, ProductStatus, ShippingAddress
from orderflow.repos.cart_repo import CartStore
from orderflow.repos.idempotency_repo import IdempotencyRepo
from orderflow.repos.order_repo import OrderRepo
from orderflow.repos.product_repo import ProductRepo
from orderflow.services.cart_retry import CartRetryCoordinator
from orderflow.services.cart_service import CartService
from orderflow.services.idempotency_service import IdempotencyLedger
from orderflow.services.order_engine import OrderTransactionEngine
from orderflow.services.order_service import OrderService


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their directory location."""
    for item in items:
        test_path = str(Path(item.fspath))
        for marker in ("domain", "services", "data", "api"):
            if f"/{marker}/" in test_path:
                item.add_marker(getattr(pytest.mark, marker))


class FrozenClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


@pytest.fixture()
def clock():
    return FrozenClock(datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture()
def store():
    return MemoryRecordStore()


@pytest.fixture()
def cart_store(store, clock):
    return CartStore(store, clock=clock)


@pytest.fixture()
def products(store, clock):
    return ProductRepo(store, clock=clock)


@pytest.fixture()
def orders(store):
    return OrderRepo(store)


@pytest.fixture()
def ledger(store, orders, clock):
    return IdempotencyLedger(IdempotencyRepo(store), orders, ttl_seconds=300, clock=clock)


@pytest.fixture()
def coordinator(cart_store):
    return CartRetryCoordinator(cart_store, max_attempts=3, base_delay=0.001)


@pytest.fixture()
def cart_service(cart_store, products, coordinator):
    return CartService(cart_store, products, coordinator)


@pytest.fixture()
def engine(store, cart_store, products, orders, ledger, clock):
    return OrderTransactionEngine(
        store=store,
        cart_store=cart_store,
        catalog=products,
        products=products,
        orders=orders,
        ledger=ledger,
        clock=clock,
    )


@pytest.fixture()
def order_service(orders, clock):
    return OrderService(orders, clock=clock)


@pytest.fixture()
def address():
    return ShippingAddress(
        full_name="Jane Doe",
        street="12 Main Street",
        city="Springfield",
        state="Illinois",
        postal_code="62701",
        country="USA",
    )


def make_product(product_id="p1", name="Keyboard", price="150", stock=10, status=ProductStatus.ACTIVE):
    return Product(
        product_id=product_id,
        name=name,
        price=Decimal(price),
        stock=stock,
        status=status,
    )


@pytest.fixture()
def add_product(products):
    async def _add(**kwargs):
        return await products.put(make_product(**kwargs))

    return _add
