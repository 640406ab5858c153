# orderflow/services/order_engine.py
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Callable, Dict, List, Sequence

from orderflow.data.store import (
    OpRole,
    RecordStore,
    TransactionCancelledError,
    TransactItem,
)
from orderflow.domain.errors import ConflictError, NotFoundError, ValidationError, Violation
from orderflow.domain.models import (
    CartAggregate,
    OrderAggregate,
    OrderLine,
    OrderResult,
    OrderStatus,
    PaymentStatus,
    Product,
    ShippingAddress,
    utcnow,
)
from orderflow.repos.cart_repo import CartStore
from orderflow.repos.order_repo import OrderRepo
from orderflow.repos.product_repo import ProductCatalog, ProductRepo
from orderflow.services.idempotency_service import IdempotencyLedger
from orderflow.utils.logging import get_logger

logger = get_logger(__name__)

NOT_FOUND = "PRODUCT_NOT_FOUND"
UNAVAILABLE = "PRODUCT_UNAVAILABLE"
INSUFFICIENT_STOCK = "INSUFFICIENT_STOCK"


class OrderTransactionEngine:
    """
    Use Case: zamowienie z koszyka.

    1. idempotency check (trafienie konczy wszystko, bez efektow)
    2. koszyk musi istniec i miec pozycje
    3. produkty z katalogu jednym batchem
    4. walidacja wszystkich pozycji naraz (nie fail-fast)
    5. snapshot aktualnych cen -> zamowienie
    6. jeden atomowy commit: zamowienie + dekrementacja stanow + usuniecie
       koszyka + rezerwacja klucza idempotencji
    7. odrzucony commit klasyfikujemy po roli operacji, nie po indeksie
    """

    def __init__(
        self,
        store: RecordStore,
        cart_store: CartStore,
        catalog: ProductCatalog,
        products: ProductRepo,
        orders: OrderRepo,
        ledger: IdempotencyLedger,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.cart_store = cart_store
        self.catalog = catalog
        self.products = products
        self.orders = orders
        self.ledger = ledger
        self.clock = clock

    async def create_order_from_cart(
        self,
        user_id: str,
        shipping_address: ShippingAddress,
        payment_method: str,
        idempotency_key: str | None = None,
    ) -> OrderResult:
        if idempotency_key:
            existing = await self.ledger.check(user_id, idempotency_key)
            if existing is not None:
                logger.info(
                    f"Idempotent request: returning order {existing.order_id} for key {idempotency_key}"
                )
                return OrderResult(existing, True)

        cart = await self.cart_store.get(user_id)
        if cart is None or cart.is_empty:
            raise ValidationError("Cart is empty. Add items to cart before creating an order.")

        products = await self.catalog.get_many(line.product_id for line in cart.items)
        self._validate_lines(cart, products)

        order = self._build_order(user_id, cart, products, shipping_address, payment_method)
        items = self._compose_commit(order, idempotency_key)

        try:
            await self.store.transact(items)
        except TransactionCancelledError as exc:
            logger.error(
                f"Order commit for user {user_id} rejected: {[str(f.tag) for f in exc.failures]}"
            )
            return await self._resolve_rejection(exc, order, user_id, idempotency_key)

        logger.info(
            f"Order {order.order_id} created from cart of user {user_id}, total {order.total_amount}"
        )
        return OrderResult(order, False)

    # =====================================================
    # WALIDACJA
    # =====================================================
    @staticmethod
    def _validate_lines(cart: CartAggregate, products: Dict[str, Product]) -> None:
        violations: List[Violation] = []

        for index, line in enumerate(cart.items):
            product = products.get(line.product_id)
            if product is None:
                violations.append(
                    Violation(
                        NOT_FOUND,
                        f"Product {line.product_id} not found",
                        product_id=line.product_id,
                        product_name=line.product_name,
                        line_index=index,
                    )
                )
                continue

            if not product.sellable:
                violations.append(
                    Violation(
                        UNAVAILABLE,
                        f"Product {product.name} is not available (status: {product.status.value})",
                        product_id=product.product_id,
                        product_name=product.name,
                        line_index=index,
                    )
                )

            if product.stock < line.quantity:
                violations.append(
                    Violation(
                        INSUFFICIENT_STOCK,
                        f"Insufficient stock for product {product.name}. "
                        f"Available: {product.stock}, Requested: {line.quantity}",
                        product_id=product.product_id,
                        product_name=product.name,
                        available=product.stock,
                        requested=line.quantity,
                        line_index=index,
                    )
                )

        if not violations:
            return

        # priorytet: brak stanu > brak produktu > reszta walidacji
        codes = {v.code for v in violations}
        if INSUFFICIENT_STOCK in codes:
            raise ConflictError("Some items have insufficient stock", violations)
        if NOT_FOUND in codes:
            raise NotFoundError("Some products in the cart no longer exist", violations)
        raise ValidationError("Some products in the cart are not available", violations)

    # =====================================================
    # BUDOWA ZAMOWIENIA
    # =====================================================
    def _build_order(
        self,
        user_id: str,
        cart: CartAggregate,
        products: Dict[str, Product],
        shipping_address: ShippingAddress,
        payment_method: str,
    ) -> OrderAggregate:
        now = self.clock()

        # cena z katalogu w chwili zamowienia, nie ta z koszyka
        lines = []
        for cart_line in cart.items:
            product = products[cart_line.product_id]
            lines.append(
                OrderLine(
                    item_id=str(uuid.uuid4()),
                    product_id=cart_line.product_id,
                    product_name=product.name,
                    price=product.price,
                    quantity=cart_line.quantity,
                    subtotal=product.price * cart_line.quantity,
                )
            )

        return OrderAggregate(
            order_id=str(uuid.uuid4()),
            user_id=user_id,
            order_date=now.date().isoformat(),
            items=tuple(lines),
            total_amount=sum((line.subtotal for line in lines), Decimal("0")),
            currency=cart.currency,
            status=OrderStatus.PENDING,
            payment_status=PaymentStatus.PENDING,
            shipping_address=shipping_address,
            payment_method=payment_method,
            created_at=now,
            updated_at=now,
        )

    def _compose_commit(self, order: OrderAggregate, idempotency_key: str | None) -> List[TransactItem]:
        items: List[TransactItem] = [self.orders.create_in_transaction(order)]
        items.extend(
            self.products.decrement_stock_in_transaction(line.product_id, line.quantity, index)
            for index, line in enumerate(order.items)
        )
        items.append(self.cart_store.delete_in_transaction(order.user_id))
        if idempotency_key:
            items.append(self.ledger.reserve(order.user_id, idempotency_key, order.order_id))
        return items

    # =====================================================
    # ODRZUCONY COMMIT
    # =====================================================
    async def _resolve_rejection(
        self,
        exc: TransactionCancelledError,
        order: OrderAggregate,
        user_id: str,
        idempotency_key: str | None,
    ) -> OrderResult:
        roles = exc.failed_roles()

        if OpRole.IDEMPOTENCY_RESERVE in roles and idempotency_key:
            # rownolegle zgloszenie z tym samym kluczem
            existing = await self.ledger.check(user_id, idempotency_key)
            if existing is not None:
                logger.info(f"Concurrent duplicate resolved to order {existing.order_id}")
                return OrderResult(existing, True)
            raise ConflictError(
                "A request with this idempotency key is already being processed. Please retry.",
                details={"idempotency_key": idempotency_key},
            ) from exc

        stock_failures = sorted(
            (f.tag for f in exc.failures if f.tag.role == OpRole.STOCK_DECREMENT),
            key=lambda tag: tag.line_index,
        )
        if stock_failures:
            violations = [self._stock_violation(order.items, tag.line_index) for tag in stock_failures]
            first = order.items[stock_failures[0].line_index]
            raise ConflictError(
                f"Product {first.product_name} is no longer available or has insufficient stock",
                violations,
            ) from exc

        if OpRole.CART_DELETE in roles:
            raise ConflictError("Cart was modified or deleted. Please try again.") from exc

        raise ConflictError("Order creation failed due to a conflict. Please try again.") from exc

    @staticmethod
    def _stock_violation(lines: Sequence[OrderLine], index: int) -> Violation:
        line = lines[index]
        return Violation(
            INSUFFICIENT_STOCK,
            f"Product {line.product_name} is no longer available or has insufficient stock",
            product_id=line.product_id,
            product_name=line.product_name,
            requested=line.quantity,
            line_index=index,
        )
