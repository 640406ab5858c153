# orderflow/domain/models.py
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import List, NamedTuple

from pydantic import BaseModel, ConfigDict, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ProductStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    OUT_OF_STOCK = "out_of_stock"


class OrderStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


class Product(BaseModel):
    """Catalog entry. Stock lives on the same record so it can be decremented atomically."""

    product_id: str
    name: str
    price: Decimal = Field(..., ge=0)
    currency: str = "USD"
    stock: int = Field(0, ge=0)
    status: ProductStatus = ProductStatus.ACTIVE
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def sellable(self) -> bool:
        return self.status == ProductStatus.ACTIVE


class CartLine(BaseModel):
    item_id: str
    product_id: str
    product_name: str
    price: Decimal
    quantity: int = Field(..., gt=0)
    subtotal: Decimal

    def with_quantity(self, quantity: int) -> "CartLine":
        return self.model_copy(update={"quantity": quantity, "subtotal": self.price * quantity})


class CartAggregate(BaseModel):
    """
    Koszyk uzytkownika - jeden na usera.
    version = liczba udanych zapisow, 0 znaczy ze koszyk nigdy nie byl zapisany
    """

    user_id: str
    items: List[CartLine] = Field(default_factory=list)
    total_amount: Decimal = Decimal("0")
    currency: str = "USD"
    version: int = 0
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def is_empty(self) -> bool:
        return not self.items

    def find_line(self, product_id: str) -> CartLine | None:
        return next((line for line in self.items if line.product_id == product_id), None)

    def with_items(self, items: List[CartLine], now: datetime | None = None) -> "CartAggregate":
        total = sum((line.subtotal for line in items), Decimal("0"))
        return self.model_copy(
            update={"items": items, "total_amount": total, "updated_at": now or utcnow()}
        )


class ShippingAddress(BaseModel):
    model_config = ConfigDict(frozen=True)

    full_name: str = ""
    street: str = ""
    city: str = ""
    state: str = ""
    postal_code: str = ""
    country: str = ""


class OrderLine(BaseModel):
    model_config = ConfigDict(frozen=True)

    item_id: str
    product_id: str
    product_name: str
    price: Decimal
    quantity: int
    subtotal: Decimal


class OrderAggregate(BaseModel):
    """
    Immutable snapshot of a cart at commit time.

    Only ``status``, ``payment_status`` and ``updated_at`` ever change after
    creation, and only through the status state machine.
    """

    model_config = ConfigDict(frozen=True)

    order_id: str
    user_id: str
    order_date: str
    items: tuple[OrderLine, ...]
    total_amount: Decimal
    currency: str = "USD"
    status: OrderStatus = OrderStatus.PENDING
    payment_status: PaymentStatus = PaymentStatus.PENDING
    shipping_address: ShippingAddress
    payment_method: str
    created_at: datetime
    updated_at: datetime


class IdempotencyRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    key: str
    user_id: str
    order_id: str
    created_at: datetime
    expires_at: int  # epoch seconds

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at <= int(now.timestamp())


class OrderResult(NamedTuple):
    order: OrderAggregate
    is_idempotent: bool
