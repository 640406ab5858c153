# orderflow/data/seed.py
import asyncio
from decimal import Decimal

from orderflow.data.store import RecordStore
from orderflow.domain.models import Product
from orderflow.repos.product_repo import ProductRepo
from orderflow.utils.logging import configure_logging, get_logger

logger = get_logger(__name__)

PRODUCTS = [
    Product(product_id="p1", name="Keyboard", price=Decimal("199.99"), stock=25),
    Product(product_id="p2", name="Mouse", price=Decimal("49.50"), stock=100),
    Product(product_id="p3", name="Monitor", price=Decimal("899.00"), stock=5),
]


async def seed(store: RecordStore) -> None:
    repo = ProductRepo(store)
    # not forcing: only seed products that are missing
    existing = await repo.get_many(p.product_id for p in PRODUCTS)
    for product in PRODUCTS:
        if product.product_id not in existing:
            await repo.put(product)


async def main() -> None:
    from orderflow.data.database import create_tables
    from orderflow.main import build_store

    configure_logging()
    store, engine = build_store()
    try:
        if engine is not None:
            await create_tables(engine)
        await seed(store)
        logger.info("Seed finished")
    finally:
        if engine is not None:
            await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
