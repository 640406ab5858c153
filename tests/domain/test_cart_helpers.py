"""CartStore helpers compute new aggregates without touching the store."""

from decimal import Decimal

import pytest

from orderflow.domain.errors import NotFoundError
from orderflow.domain.models import Product


def _product(product_id="p1", price="150", stock=10):
    return Product(product_id=product_id, name=f"Product {product_id}", price=Decimal(price), stock=stock)


def test_add_to_absent_cart_creates_unsaved_aggregate(cart_store, store):
    cart = cart_store.add_item(None, "u1", _product(), 2)

    assert cart.user_id == "u1"
    assert cart.version == 0
    assert len(cart.items) == 1
    assert cart.items[0].subtotal == Decimal("300")
    assert cart.total_amount == Decimal("300")
    assert store._records == {}


def test_add_same_product_merges_quantity(cart_store):
    cart = cart_store.add_item(None, "u1", _product(), 2)
    cart = cart_store.add_item(cart, "u1", _product(), 3)

    assert len(cart.items) == 1
    assert cart.items[0].quantity == 5
    assert cart.items[0].subtotal == Decimal("750")
    assert cart.total_amount == Decimal("750")


def test_total_is_sum_of_subtotals(cart_store):
    cart = cart_store.add_item(None, "u1", _product("p1", "10.50"), 2)
    cart = cart_store.add_item(cart, "u1", _product("p2", "3.25"), 4)

    assert [line.subtotal for line in cart.items] == [Decimal("21.00"), Decimal("13.00")]
    assert cart.total_amount == Decimal("34.00")


def test_helpers_do_not_mutate_snapshot(cart_store):
    original = cart_store.add_item(None, "u1", _product(), 1)
    updated = cart_store.update_item(original, "p1", 4)

    assert original.items[0].quantity == 1
    assert updated.items[0].quantity == 4


def test_update_to_zero_removes_line(cart_store):
    cart = cart_store.add_item(None, "u1", _product(), 2)
    cart = cart_store.update_item(cart, "p1", 0)

    assert cart.items == []
    assert cart.total_amount == Decimal("0")


def test_update_missing_line(cart_store):
    cart = cart_store.add_item(None, "u1", _product(), 2)
    with pytest.raises(NotFoundError, match="Item not found"):
        cart_store.update_item(cart, "nope", 1)


def test_update_on_absent_cart(cart_store):
    with pytest.raises(NotFoundError, match="Cart not found"):
        cart_store.update_item(None, "p1", 1)


def test_remove_item(cart_store):
    cart = cart_store.add_item(None, "u1", _product("p1"), 1)
    cart = cart_store.add_item(cart, "u1", _product("p2", "5"), 1)
    cart = cart_store.remove_item(cart, "p1")

    assert [line.product_id for line in cart.items] == ["p2"]
    assert cart.total_amount == Decimal("5")


def test_remove_missing_line(cart_store):
    cart = cart_store.add_item(None, "u1", _product(), 1)
    with pytest.raises(NotFoundError):
        cart_store.remove_item(cart, "p9")
