# orderflow/domain/schemas.py
from datetime import datetime
from decimal import Decimal
from typing import List

from pydantic import BaseModel, ConfigDict, Field

from orderflow.domain.models import OrderStatus, PaymentStatus, ShippingAddress


class ItemIn(BaseModel):
    """Schema dla dodawania produktu do koszyka."""

    product_id: str = Field(..., min_length=1, description="ID produktu")
    quantity: int = Field(..., gt=0, description="Ilosc produktu (musi byc > 0)")


class ItemUpdateIn(BaseModel):
    """Nowa ilosc pozycji, 0 usuwa pozycje."""

    quantity: int = Field(..., ge=0)


class CartLineOut(BaseModel):
    item_id: str
    product_id: str
    product_name: str
    price: Decimal
    quantity: int
    subtotal: Decimal

    model_config = ConfigDict(from_attributes=True)


class CartOut(BaseModel):
    user_id: str
    items: List[CartLineOut]
    total_amount: Decimal
    currency: str
    item_count: int
    version: int
    updated_at: datetime


class AddressIn(BaseModel):
    """Adres jest sprawdzany przez AddressValidator, tu tylko ksztalt."""

    full_name: str = ""
    street: str = ""
    city: str = ""
    state: str = ""
    postal_code: str = ""
    country: str = ""

    def to_domain(self) -> ShippingAddress:
        return ShippingAddress(**self.model_dump())


class OrderCreate(BaseModel):
    shipping_address: AddressIn
    payment_method: str = Field(..., min_length=1)
    idempotency_key: str | None = None


class StatusUpdateIn(BaseModel):
    status: OrderStatus


class OrderLineOut(BaseModel):
    item_id: str
    product_id: str
    product_name: str
    price: Decimal
    quantity: int
    subtotal: Decimal

    model_config = ConfigDict(from_attributes=True)


class OrderOut(BaseModel):
    order_id: str
    user_id: str
    order_date: str
    items: List[OrderLineOut]
    total_amount: Decimal
    currency: str
    status: OrderStatus
    payment_status: PaymentStatus
    shipping_address: ShippingAddress
    payment_method: str
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class OrderListOut(BaseModel):
    orders: List[OrderOut]
    count: int
    has_more: bool
