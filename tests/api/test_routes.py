import asyncio
import uuid
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from orderflow.data.memory_store import MemoryRecordStore
from orderflow.data.seed import seed
from orderflow.main import create_app
from orderflow.repos.product_repo import ProductRepo

USER = {"X-User-Id": "user-1"}
ADMIN = {"X-User-Id": "admin-1", "X-User-Groups": "customers,admin"}

ADDRESS = {
    "full_name": "Jane Doe",
    "street": "12 Main Street",
    "city": "Springfield",
    "state": "Illinois",
    "postal_code": "62701",
    "country": "USA",
}


@pytest.fixture()
def memory_store():
    store = MemoryRecordStore()
    asyncio.run(seed(store))
    return store


@pytest.fixture()
def client(memory_store):
    return TestClient(create_app(store=memory_store))


def stock_of(store, product_id):
    return asyncio.run(ProductRepo(store).get_by_id(product_id)).stock


def order_payload(**overrides):
    payload = {"shipping_address": dict(ADDRESS), "payment_method": "card"}
    payload.update(overrides)
    return payload


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_missing_user_header_is_401(client):
    response = client.get("/cart")
    assert response.status_code == 401
    assert response.json()["error"]["code"] == "UNAUTHORIZED"


def test_empty_cart_view(client):
    body = client.get("/cart", headers=USER).json()
    assert body["items"] == []
    assert body["version"] == 0
    assert body["item_count"] == 0


def test_cart_lifecycle(client):
    response = client.post("/cart/items", json={"product_id": "p1", "quantity": 2}, headers=USER)
    assert response.status_code == 200
    body = response.json()
    assert body["version"] == 1
    assert Decimal(body["total_amount"]) == Decimal("399.98")

    body = client.put("/cart/items/p1", json={"quantity": 5}, headers=USER).json()
    assert body["items"][0]["quantity"] == 5
    assert body["version"] == 2

    body = client.delete("/cart/items/p1", headers=USER).json()
    assert body["items"] == []

    assert client.delete("/cart", headers=USER).json() == {"message": "Cart cleared successfully"}


def test_add_more_than_stock_is_409(client):
    response = client.post("/cart/items", json={"product_id": "p3", "quantity": 6}, headers=USER)
    assert response.status_code == 409
    error = response.json()["error"]
    assert error["details"]["errors"][0]["available"] == 5


def test_add_unknown_product_is_404(client):
    response = client.post("/cart/items", json={"product_id": "nope", "quantity": 1}, headers=USER)
    assert response.status_code == 404


def test_create_order_then_replay_with_same_key(client, memory_store):
    client.post("/cart/items", json={"product_id": "p2", "quantity": 4}, headers=USER)
    key = str(uuid.uuid4())

    first = client.post("/orders", json=order_payload(idempotency_key=key), headers=USER)
    assert first.status_code == 201
    order = first.json()
    assert order["status"] == "pending"
    assert Decimal(order["total_amount"]) == Decimal("198.00")
    assert stock_of(memory_store, "p2") == 96
    assert client.get("/cart", headers=USER).json()["items"] == []

    replay = client.post("/orders", json=order_payload(idempotency_key=key), headers=USER)
    assert replay.status_code == 200
    assert replay.json()["order_id"] == order["order_id"]
    assert stock_of(memory_store, "p2") == 96


def test_order_from_empty_cart_is_400(client):
    response = client.post("/orders", json=order_payload(), headers=USER)
    assert response.status_code == 400
    assert "Cart is empty" in response.json()["error"]["message"]


def test_invalid_idempotency_key_is_400(client):
    client.post("/cart/items", json={"product_id": "p1", "quantity": 1}, headers=USER)
    response = client.post("/orders", json=order_payload(idempotency_key="not-a-uuid"), headers=USER)
    assert response.status_code == 400
    assert response.json()["error"]["details"]["errors"][0]["field"] == "idempotencyKey"


def test_address_violations_are_listed(client):
    client.post("/cart/items", json={"product_id": "p1", "quantity": 1}, headers=USER)
    address = dict(ADDRESS, city="", postal_code="!!!")

    response = client.post("/orders", json=order_payload(shipping_address=address), headers=USER)

    assert response.status_code == 400
    fields = {e["field"]: e["code"] for e in response.json()["error"]["details"]["errors"]}
    assert fields == {
        "shippingAddress.city": "REQUIRED_FIELD",
        "shippingAddress.postalCode": "INVALID_FORMAT",
    }


def test_order_queries_and_status_changes(client):
    client.post("/cart/items", json={"product_id": "p1", "quantity": 1}, headers=USER)
    order_id = client.post("/orders", json=order_payload(), headers=USER).json()["order_id"]

    listing = client.get("/orders", headers=USER).json()
    assert listing["count"] == 1
    assert listing["has_more"] is False
    assert client.get(f"/orders/{order_id}", headers=USER).status_code == 200
    assert client.get(f"/orders/{order_id}", headers={"X-User-Id": "someone-else"}).status_code == 404

    response = client.patch(f"/orders/{order_id}/status", json={"status": "confirmed"}, headers=USER)
    assert response.status_code == 403

    response = client.patch(f"/orders/{order_id}/status", json={"status": "confirmed"}, headers=ADMIN)
    assert response.status_code == 200
    assert response.json()["status"] == "confirmed"

    response = client.patch(f"/orders/{order_id}/status", json={"status": "delivered"}, headers=ADMIN)
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "INVALID_TRANSITION"
