"""CartRetryCoordinator: optimistic save, re-read and re-apply on version conflicts."""

import asyncio
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from orderflow.domain.errors import ConflictError, NotFoundError
from orderflow.domain.models import Product
from orderflow.services.cart_retry import CartRetryCoordinator

KEYBOARD = Product(product_id="p1", name="Keyboard", price=Decimal("150"), stock=10)


async def test_first_attempt_saves_with_version_one(cart_store, coordinator):
    cart = cart_store.add_item(None, "u1", KEYBOARD, 1)

    rebuild = AsyncMock()
    saved = await coordinator.execute(cart, rebuild)

    assert saved.version == 1
    assert (await cart_store.get("u1")).version == 1
    rebuild.assert_not_called()


async def test_conflict_rebuilds_on_latest_state(cart_store, coordinator):
    stale = cart_store.add_item(None, "u1", KEYBOARD, 1)
    # another request saved in the meantime
    await cart_store.save(cart_store.add_item(None, "u1", KEYBOARD, 2), 0)

    seen = []

    async def rebuild(latest):
        seen.append(latest.version if latest else None)
        return cart_store.add_item(latest, "u1", KEYBOARD, 1)

    saved = await coordinator.execute(stale, rebuild)

    assert seen == [1]
    assert saved.version == 2
    assert saved.items[0].quantity == 3


async def test_exhausted_attempts_raise_conflict_with_attempt_count(cart_store, coordinator):
    await cart_store.save(cart_store.add_item(None, "u1", KEYBOARD, 1), 0)
    stale = cart_store.add_item(None, "u1", KEYBOARD, 1)

    calls = 0

    async def rebuild(latest):
        nonlocal calls
        calls += 1
        return stale  # keeps replaying the stale version

    with pytest.raises(ConflictError) as exc_info:
        await coordinator.execute(stale, rebuild)

    assert exc_info.value.details["attempts"] == 3
    assert calls == 2
    assert (await cart_store.get("u1")).version == 1


async def test_cart_disappearing_is_not_a_version_conflict(cart_store, coordinator):
    saved = await cart_store.save(cart_store.add_item(None, "u1", KEYBOARD, 1), 0)
    pending = cart_store.update_item(saved, "p1", 5)
    await cart_store.delete("u1")

    async def rebuild(latest):
        return cart_store.update_item(latest, "p1", 5)

    with pytest.raises(NotFoundError, match="Cart not found"):
        await coordinator.execute(pending, rebuild)


async def test_infrastructure_errors_propagate_without_retry(cart_store):
    failing = AsyncMock()
    failing.save.side_effect = RuntimeError("connection reset")
    coordinator = CartRetryCoordinator(failing, max_attempts=3, base_delay=0)
    rebuild = AsyncMock()

    with pytest.raises(RuntimeError, match="connection reset"):
        await coordinator.execute(cart_store.add_item(None, "u1", KEYBOARD, 1), rebuild)

    assert failing.save.await_count == 1
    rebuild.assert_not_called()


async def test_backoff_waits_grow_exponentially(cart_store):
    coordinator = CartRetryCoordinator(cart_store, base_delay=0.1)
    wait = coordinator._retrying(3).wait

    class State:
        def __init__(self, n):
            self.attempt_number = n

    assert [round(wait(State(n)), 3) for n in (1, 2, 3)] == [0.1, 0.2, 0.4]


async def test_concurrent_adds_on_empty_cart_both_count(cart_service, add_product, cart_store):
    await add_product(product_id="p1", stock=10)

    await asyncio.gather(
        cart_service.add_item("u1", "p1", 1),
        cart_service.add_item("u1", "p1", 1),
    )

    cart = await cart_store.get("u1")
    assert cart.items[0].quantity == 2
    assert cart.version == 2


async def test_version_counts_successful_saves(store, cart_store, products, add_product):
    from orderflow.services.cart_service import CartService

    await add_product(product_id="p1", stock=100)
    await add_product(product_id="p2", name="Mouse", price="20", stock=100)
    service = CartService(cart_store, products, CartRetryCoordinator(cart_store, max_attempts=10, base_delay=0.001))

    results = await asyncio.gather(
        service.add_item("u1", "p1", 1),
        service.add_item("u1", "p2", 2),
        service.add_item("u1", "p1", 3),
        return_exceptions=True,
    )

    successes = [r for r in results if not isinstance(r, Exception)]
    cart = await cart_store.get("u1")
    assert cart.version == len(successes) == 3
    assert {line.product_id: line.quantity for line in cart.items} == {"p1": 4, "p2": 2}
    assert cart.total_amount == Decimal("640")
