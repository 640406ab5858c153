# orderflow/services/cart_service.py
from orderflow.domain.errors import ConflictError, NotFoundError, ValidationError, Violation
from orderflow.domain.models import CartAggregate, Product
from orderflow.repos.cart_repo import CartStore
from orderflow.repos.product_repo import ProductCatalog
from orderflow.services.cart_retry import CartRetryCoordinator
from orderflow.utils.logging import get_logger

logger = get_logger(__name__)


class CartService:
    """
    Use case'y koszyka.
    query (get) tylko odczyt, commands (add, update, remove, clear) ida przez
    CartRetryCoordinator - kazda komenda ma swoj rebuild, ktory na swiezym
    stanie koszyka ponownie sprawdza produkt i stan magazynu
    """

    def __init__(
        self,
        cart_store: CartStore,
        catalog: ProductCatalog,
        coordinator: CartRetryCoordinator,
    ):
        self.cart_store = cart_store
        self.catalog = catalog
        self.coordinator = coordinator

    # query - odczyt
    async def get_cart(self, user_id: str) -> CartAggregate:
        cart = await self.cart_store.get(user_id)
        if cart is None:
            # pusty widok, nic nie zapisujemy
            return CartAggregate(user_id=user_id, currency=self.cart_store.currency)
        return cart

    # commands
    async def add_item(self, user_id: str, product_id: str, quantity: int) -> CartAggregate:
        if quantity <= 0:
            raise ValidationError(
                "Validation failed",
                [Violation("INVALID_VALUE", "Quantity must be greater than 0", field="quantity")],
            )

        async def build(latest: CartAggregate | None) -> CartAggregate:
            product = await self._sellable_product(product_id)
            line = latest.find_line(product_id) if latest is not None else None
            already = line.quantity if line is not None else 0
            self._ensure_stock(product, already + quantity)
            return self.cart_store.add_item(latest, user_id, product, quantity)

        logger.info(f"Adding product {product_id} x{quantity} to cart of user {user_id}")
        initial = await build(await self.cart_store.get(user_id))
        return await self.coordinator.execute(initial, build)

    async def update_item(self, user_id: str, product_id: str, quantity: int) -> CartAggregate:
        if quantity < 0:
            raise ValidationError(
                "Validation failed",
                [Violation("INVALID_VALUE", "Quantity must not be negative", field="quantity")],
            )

        async def build(latest: CartAggregate | None) -> CartAggregate:
            if quantity > 0:
                product = await self._sellable_product(product_id)
                self._ensure_stock(product, quantity)
            return self.cart_store.update_item(latest, product_id, quantity)

        logger.info(f"Setting product {product_id} quantity to {quantity} for user {user_id}")
        initial = await build(await self.cart_store.get(user_id))
        return await self.coordinator.execute(initial, build)

    async def remove_item(self, user_id: str, product_id: str) -> CartAggregate:
        async def build(latest: CartAggregate | None) -> CartAggregate:
            return self.cart_store.remove_item(latest, product_id)

        logger.info(f"Removing product {product_id} from cart of user {user_id}")
        initial = await build(await self.cart_store.get(user_id))
        return await self.coordinator.execute(initial, build)

    async def clear_cart(self, user_id: str) -> None:
        await self.cart_store.delete(user_id)

    async def _sellable_product(self, product_id: str) -> Product:
        product = await self.catalog.get_by_id(product_id)
        if product is None:
            raise NotFoundError(f"Product {product_id} not found", details={"product_id": product_id})
        if not product.sellable:
            raise ValidationError(
                f"Product {product.name} is not available (status: {product.status.value})",
                [
                    Violation(
                        "PRODUCT_UNAVAILABLE",
                        "Product is not available",
                        product_id=product.product_id,
                        product_name=product.name,
                    )
                ],
            )
        return product

    @staticmethod
    def _ensure_stock(product: Product, wanted: int) -> None:
        if product.stock < wanted:
            raise ConflictError(
                f"Insufficient stock for product {product.name}",
                [
                    Violation(
                        "INSUFFICIENT_STOCK",
                        f"Available: {product.stock}, Requested: {wanted}",
                        product_id=product.product_id,
                        product_name=product.name,
                        available=product.stock,
                        requested=wanted,
                    )
                ],
            )
