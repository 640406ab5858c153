# orderflow/repos/product_repo.py
from datetime import datetime
from typing import Callable, Dict, Iterable, Protocol

from orderflow.data.store import (
    AllOf,
    AttrAtLeast,
    AttrEquals,
    OpRole,
    OpTag,
    RecordKey,
    RecordStore,
    TransactUpdate,
)
from orderflow.domain.models import Product, ProductStatus, utcnow
from orderflow.utils.logging import get_logger

logger = get_logger(__name__)


def product_key(product_id: str) -> RecordKey:
    return RecordKey(f"PRODUCT#{product_id}", "DETAILS")


class ProductCatalog(Protocol):
    async def get_by_id(self, product_id: str) -> Product | None:
        ...

    async def get_many(self, product_ids: Iterable[str]) -> Dict[str, Product]:
        ...


class ProductRepo:
    """Katalog produktow w tym samym store co koszyki i zamowienia (stan magazynu)."""

    def __init__(self, store: RecordStore, clock: Callable[[], datetime] = utcnow):
        self.store = store
        self.clock = clock

    async def get_by_id(self, product_id: str) -> Product | None:
        item = await self.store.get(product_key(product_id))
        return Product.model_validate(item) if item is not None else None

    async def get_many(self, product_ids: Iterable[str]) -> Dict[str, Product]:
        keys = [product_key(pid) for pid in dict.fromkeys(product_ids)]
        found = await self.store.batch_get(keys)
        products = (Product.model_validate(item) for item in found.values())
        return {p.product_id: p for p in products}

    async def put(self, product: Product) -> Product:
        await self.store.put(product_key(product.product_id), product.model_dump(mode="json"))
        logger.info(f"Product {product.product_id} stored (stock {product.stock})")
        return product

    def decrement_stock_in_transaction(
        self, product_id: str, quantity: int, line_index: int
    ) -> TransactUpdate:
        """Stock decrement that only applies while stock >= quantity and the product is active."""
        return TransactUpdate(
            key=product_key(product_id),
            tag=OpTag(OpRole.STOCK_DECREMENT, line_index=line_index, product_id=product_id),
            set_values={"updated_at": self.clock().isoformat()},
            increments={"stock": -quantity},
            condition=AllOf(
                AttrAtLeast("stock", quantity),
                AttrEquals("status", ProductStatus.ACTIVE.value),
            ),
        )
