"""Shopping cart API routes."""

from uuid import UUID

from fastapi import APIRouter, status

from src.api.deps import CurrentUser
from src.schemas.cart import CartItemCreate, CartItemUpdate, CartLineResponse, CartResponse
from src.services.cart_service import CartService

router = APIRouter(prefix="/cart", tags=["cart"])


@router.get("", response_model=CartResponse, summary="Get cart")
async def get_cart(user: CurrentUser) -> CartResponse:
    """Get the current user's cart with current product data."""
    service = CartService()
    items = await service.get_cart(user.user_id)
    return CartResponse(items=[CartLineResponse.model_validate(i) for i in items])


@router.post(
    "/items",
    response_model=CartResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add to cart",
    description="Adds a product variant; an existing line for the same variant has its quantity increased.",
)
async def add_item(data: CartItemCreate, user: CurrentUser) -> CartResponse:
    service = CartService()
    await service.add_item(
        user.user_id,
        data.product_id,
        quantity=data.quantity,
        color=data.color,
        size=data.size,
    )
    items = await service.get_cart(user.user_id)
    return CartResponse(items=[CartLineResponse.model_validate(i) for i in items])


@router.patch(
    "/items/{item_id}",
    response_model=CartResponse,
    summary="Change quantity",
    description="Sets a line's quantity. Zero removes the line.",
)
async def update_item(item_id: UUID, data: CartItemUpdate, user: CurrentUser) -> CartResponse:
    service = CartService()
    await service.update_quantity(user.user_id, item_id, data.quantity)
    items = await service.get_cart(user.user_id)
    return CartResponse(items=[CartLineResponse.model_validate(i) for i in items])


@router.delete(
    "/items/{item_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Remove from cart",
)
async def remove_item(item_id: UUID, user: CurrentUser) -> None:
    service = CartService()
    await service.remove_item(user.user_id, item_id)
