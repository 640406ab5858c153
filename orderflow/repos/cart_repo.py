# orderflow/repos/cart_repo.py
import uuid
from typing import Callable

from orderflow.data.store import (
    ConditionFailedError,
    Exists,
    NotExists,
    AttrEquals,
    OpRole,
    OpTag,
    RecordKey,
    RecordStore,
    TransactDelete,
)
from orderflow.domain.errors import NotFoundError
from orderflow.domain.models import CartAggregate, CartLine, Product, utcnow
from orderflow.utils.logging import get_logger
from orderflow.utils.settings import DEFAULT_CURRENCY

logger = get_logger(__name__)


class VersionConflict(Exception):
    """Stored cart version moved on since the snapshot was read."""

    def __init__(self, user_id: str, expected_version: int):
        super().__init__(f"Cart of user {user_id} is no longer at version {expected_version}")
        self.user_id = user_id
        self.expected_version = expected_version


def cart_key(user_id: str) -> RecordKey:
    return RecordKey(f"USER#{user_id}", "CART")


class CartStore:
    """
    Versioned cart per user.

    Reading and saving are separate steps: the ``add_item`` / ``update_item`` /
    ``remove_item`` helpers only compute a new aggregate from the snapshot they
    get, and ``save`` persists it if nobody saved in between.
    """

    def __init__(
        self,
        store: RecordStore,
        currency: str = DEFAULT_CURRENCY,
        clock: Callable = utcnow,
    ):
        self.store = store
        self.currency = currency
        self.clock = clock

    # =====================================================
    # ODCZYT / ZAPIS
    # =====================================================
    async def get(self, user_id: str) -> CartAggregate | None:
        item = await self.store.get(cart_key(user_id))
        if item is None:
            return None
        return CartAggregate.model_validate(item)

    async def save(self, cart: CartAggregate, expected_version: int) -> CartAggregate:
        # version 0 = koszyk nigdy nie zapisany, wiec rekord nie moze istniec
        if expected_version == 0:
            condition = NotExists()
        else:
            condition = AttrEquals("version", expected_version)

        saved = cart.model_copy(update={"version": expected_version + 1, "updated_at": self.clock()})
        try:
            await self.store.put(
                cart_key(cart.user_id),
                saved.model_dump(mode="json"),
                condition=condition,
            )
        except ConditionFailedError as exc:
            raise VersionConflict(cart.user_id, expected_version) from exc

        logger.info(f"Cart of user {cart.user_id} saved, new version: {saved.version}")
        return saved

    async def delete(self, user_id: str) -> None:
        await self.store.delete(cart_key(user_id))
        logger.info(f"Cart of user {user_id} cleared")

    def delete_in_transaction(self, user_id: str) -> TransactDelete:
        """Cart deletion for an atomic commit; fails if the cart is already gone."""
        return TransactDelete(
            key=cart_key(user_id),
            tag=OpTag(OpRole.CART_DELETE),
            condition=Exists(),
        )

    # =====================================================
    # HELPERY - bez zapisu
    # =====================================================
    def add_item(
        self,
        cart: CartAggregate | None,
        user_id: str,
        product: Product,
        quantity: int,
    ) -> CartAggregate:
        now = self.clock()
        if cart is None:
            cart = CartAggregate(
                user_id=user_id,
                currency=self.currency,
                version=0,
                created_at=now,
                updated_at=now,
            )

        items = list(cart.items)
        existing = cart.find_line(product.product_id)
        if existing is not None:
            index = items.index(existing)
            items[index] = existing.with_quantity(existing.quantity + quantity)
        else:
            items.append(
                CartLine(
                    item_id=str(uuid.uuid4()),
                    product_id=product.product_id,
                    product_name=product.name,
                    price=product.price,
                    quantity=quantity,
                    subtotal=product.price * quantity,
                )
            )
        return cart.with_items(items, now)

    def update_item(self, cart: CartAggregate | None, product_id: str, quantity: int) -> CartAggregate:
        if cart is None:
            raise NotFoundError("Cart not found")

        existing = cart.find_line(product_id)
        if existing is None:
            raise NotFoundError("Item not found in cart", details={"product_id": product_id})

        items = list(cart.items)
        index = items.index(existing)
        if quantity == 0:
            del items[index]
        else:
            items[index] = existing.with_quantity(quantity)
        return cart.with_items(items, self.clock())

    def remove_item(self, cart: CartAggregate | None, product_id: str) -> CartAggregate:
        if cart is None:
            raise NotFoundError("Cart not found")

        items = [line for line in cart.items if line.product_id != product_id]
        if len(items) == len(cart.items):
            raise NotFoundError("Item not found in cart", details={"product_id": product_id})
        return cart.with_items(items, self.clock())
