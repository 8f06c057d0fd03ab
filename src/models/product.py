"""Product and cart model type definitions for database operations."""

from datetime import datetime
from typing import TypedDict
from uuid import UUID


class Product(TypedDict):
    """Product table row representation.

    Only the columns the order workflow reads are listed. Prices are in
    major currency units; stock is decremented by the place_order function.
    """

    id: UUID
    title: str
    price: float
    stock: int
    is_sale: bool
    discounted_price: float | None
    sale_start: datetime | None
    sale_end: datetime | None
    images: list[str]


class CartItem(TypedDict):
    """cart_items table row representation."""

    id: UUID
    user_id: UUID
    product_id: UUID
    quantity: int
    color: str | None
    size: str | None
    created_at: datetime


class CartLine(TypedDict):
    """A cart item joined with its current product row."""

    product_id: str
    quantity: int
    color: str | None
    size: str | None
    product: Product | None
