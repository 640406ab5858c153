# orderflow/api/routers/orders.py
import uuid

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from orderflow.api.deps import (
    Actor,
    build_order_engine,
    build_order_service,
    get_actor,
    get_store,
)
from orderflow.data.store import RecordStore
from orderflow.domain.errors import ValidationError, Violation
from orderflow.domain.models import OrderAggregate
from orderflow.domain.schemas import OrderCreate, OrderListOut, OrderOut, StatusUpdateIn
from orderflow.services.address_validator import AddressValidator
from orderflow.services.order_engine import OrderTransactionEngine
from orderflow.services.order_service import OrderService
from orderflow.utils.settings import ORDER_LIST_LIMIT

router = APIRouter(prefix="/orders", tags=["orders"])


def get_engine(store: RecordStore = Depends(get_store)) -> OrderTransactionEngine:
    return build_order_engine(store)


def get_service(store: RecordStore = Depends(get_store)) -> OrderService:
    return build_order_service(store)


def to_out(order: OrderAggregate) -> OrderOut:
    return OrderOut.model_validate(order)


def _check_idempotency_key(key: str | None) -> None:
    if key is None:
        return
    try:
        uuid.UUID(key)
    except ValueError:
        raise ValidationError(
            "Validation failed",
            [Violation("INVALID_FORMAT", "Idempotency key must be a valid UUID", field="idempotencyKey")],
        )


@router.post("", response_model=OrderOut, status_code=201)
async def create_order(
    payload: OrderCreate,
    actor: Actor = Depends(get_actor),
    engine: OrderTransactionEngine = Depends(get_engine),
):
    """
    Tworzy zamowienie z koszyka.
    201 dla nowego zamowienia, 200 gdy zwracamy wynik z idempotency cache.
    """
    address = payload.shipping_address.to_domain()
    violations = AddressValidator().validate(address)
    if violations:
        raise ValidationError("Validation failed", violations)
    _check_idempotency_key(payload.idempotency_key)

    result = await engine.create_order_from_cart(
        actor.user_id,
        address,
        payload.payment_method,
        payload.idempotency_key,
    )
    body = to_out(result.order).model_dump(mode="json")
    return JSONResponse(status_code=200 if result.is_idempotent else 201, content=body)


@router.get("", response_model=OrderListOut)
async def list_orders(
    limit: int = Query(ORDER_LIST_LIMIT, gt=0, le=100),
    actor: Actor = Depends(get_actor),
    svc: OrderService = Depends(get_service),
):
    page = await svc.list_orders(actor.user_id, limit)
    return OrderListOut(
        orders=[to_out(o) for o in page.orders],
        count=len(page.orders),
        has_more=page.has_more,
    )


@router.get("/{order_id}", response_model=OrderOut)
async def get_order(
    order_id: str,
    actor: Actor = Depends(get_actor),
    svc: OrderService = Depends(get_service),
):
    return to_out(await svc.get_order(actor.user_id, order_id))


@router.patch("/{order_id}/status", response_model=OrderOut)
async def update_status(
    order_id: str,
    payload: StatusUpdateIn,
    actor: Actor = Depends(get_actor),
    svc: OrderService = Depends(get_service),
):
    order = await svc.update_status(actor.user_id, order_id, payload.status, actor.is_admin)
    return to_out(order)
