"""Cart Pydantic schemas for API request/response models."""

from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field


class CartItemCreate(BaseModel):
    """Request to add a product variant to the cart."""

    product_id: UUID = Field(description="Product UUID")
    quantity: int = Field(default=1, ge=1, description="Quantity to add")
    color: str | None = Field(default=None, description="Selected color")
    size: str | None = Field(default=None, description="Selected size")


class CartItemUpdate(BaseModel):
    """Request to change a cart line's quantity; zero removes it."""

    quantity: int = Field(ge=0, description="New quantity")


class CartLineResponse(BaseModel):
    """A cart line with its current product row."""

    id: UUID
    product_id: UUID
    quantity: int
    color: str | None = None
    size: str | None = None
    product: dict[str, Any] | None = None


class CartResponse(BaseModel):
    """The current user's cart."""

    items: list[CartLineResponse]
