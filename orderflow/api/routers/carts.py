# orderflow/api/routers/carts.py
from fastapi import APIRouter, Depends

from orderflow.api.deps import Actor, build_cart_service, get_actor, get_store
from orderflow.data.store import RecordStore
from orderflow.domain.models import CartAggregate
from orderflow.domain.schemas import CartOut, ItemIn, ItemUpdateIn
from orderflow.services.cart_service import CartService

router = APIRouter(prefix="/cart", tags=["cart"])


def get_service(store: RecordStore = Depends(get_store)) -> CartService:
    return build_cart_service(store)


def to_out(cart: CartAggregate) -> CartOut:
    return CartOut(
        user_id=cart.user_id,
        items=[line.model_dump() for line in cart.items],
        total_amount=cart.total_amount,
        currency=cart.currency,
        item_count=len(cart.items),
        version=cart.version,
        updated_at=cart.updated_at,
    )


@router.get("", response_model=CartOut)
async def get_cart(actor: Actor = Depends(get_actor), svc: CartService = Depends(get_service)):
    return to_out(await svc.get_cart(actor.user_id))


@router.delete("")
async def clear_cart(actor: Actor = Depends(get_actor), svc: CartService = Depends(get_service)):
    await svc.clear_cart(actor.user_id)
    return {"message": "Cart cleared successfully"}


@router.post("/items", response_model=CartOut)
async def add_item(
    payload: ItemIn,
    actor: Actor = Depends(get_actor),
    svc: CartService = Depends(get_service),
):
    cart = await svc.add_item(actor.user_id, payload.product_id, payload.quantity)
    return to_out(cart)


@router.put("/items/{product_id}", response_model=CartOut)
async def update_item(
    product_id: str,
    payload: ItemUpdateIn,
    actor: Actor = Depends(get_actor),
    svc: CartService = Depends(get_service),
):
    cart = await svc.update_item(actor.user_id, product_id, payload.quantity)
    return to_out(cart)


@router.delete("/items/{product_id}", response_model=CartOut)
async def remove_item(
    product_id: str,
    actor: Actor = Depends(get_actor),
    svc: CartService = Depends(get_service),
):
    cart = await svc.remove_item(actor.user_id, product_id)
    return to_out(cart)
