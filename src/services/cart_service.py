"""Shopping cart persistence service."""

import logging
from typing import Any
from uuid import UUID

from supabase import Client

from src.api.middleware.error_handler import NotFoundError, ValidationError
from src.core.supabase import get_supabase_client
from src.models.product import CartLine

logger = logging.getLogger(__name__)

CART_SELECT = "id, product_id, quantity, color, size, product:products(*)"


class CartService:
    """Service for a shopper's cart items.

    Checkout reads the cart through this service; the cart is emptied by
    the place_order database function in the same transaction that
    creates the order.
    """

    def __init__(self, supabase_client: Client | None = None) -> None:
        """Initialize cart service.

        Args:
            supabase_client: Optional Supabase client for testing.
        """
        self._supabase_client = supabase_client

    @property
    def supabase(self) -> Client:
        """Get Supabase client."""
        if self._supabase_client is None:
            self._supabase_client = get_supabase_client()
        return self._supabase_client

    async def get_cart(self, user_id: UUID) -> list[CartLine]:
        """Get the user's cart items joined with current product rows.

        Args:
            user_id: The cart owner's user ID.

        Returns:
            list[CartLine]: Cart lines in insertion order.
        """
        response = (
            self.supabase.table("cart_items")
            .select(CART_SELECT)
            .eq("user_id", str(user_id))
            .order("created_at")
            .execute()
        )
        return response.data or []

    async def add_item(
        self,
        user_id: UUID,
        product_id: UUID,
        quantity: int = 1,
        color: str | None = None,
        size: str | None = None,
    ) -> dict[str, Any]:
        """Add a product variant to the cart, merging with an existing line.

        Raises:
            ValidationError: If quantity is not positive.
        """
        if quantity < 1:
            raise ValidationError("Quantity must be at least 1")

        query = (
            self.supabase.table("cart_items")
            .select("id, quantity")
            .eq("user_id", str(user_id))
            .eq("product_id", str(product_id))
        )
        # PostgREST needs IS NULL rather than eq for missing variants
        query = query.eq("color", color) if color is not None else query.is_("color", "null")
        query = query.eq("size", size) if size is not None else query.is_("size", "null")
        existing = query.limit(1).execute()

        if existing.data:
            line = existing.data[0]
            response = (
                self.supabase.table("cart_items")
                .update({"quantity": line["quantity"] + quantity})
                .eq("id", line["id"])
                .execute()
            )
        else:
            response = (
                self.supabase.table("cart_items")
                .insert({
                    "user_id": str(user_id),
                    "product_id": str(product_id),
                    "quantity": quantity,
                    "color": color,
                    "size": size,
                })
                .execute()
            )
        return response.data[0]

    async def update_quantity(self, user_id: UUID, item_id: UUID, quantity: int) -> dict[str, Any] | None:
        """Set a cart line's quantity; zero removes the line.

        Raises:
            ValidationError: If quantity is negative.
            NotFoundError: If the line is not in the user's cart.
        """
        if quantity < 0:
            raise ValidationError("Quantity cannot be negative")
        if quantity == 0:
            await self.remove_item(user_id, item_id)
            return None

        response = (
            self.supabase.table("cart_items")
            .update({"quantity": quantity})
            .eq("id", str(item_id))
            .eq("user_id", str(user_id))
            .execute()
        )
        if not response.data:
            raise NotFoundError("Cart item not found")
        return response.data[0]

    async def remove_item(self, user_id: UUID, item_id: UUID) -> None:
        """Remove a line from the user's cart.

        Raises:
            NotFoundError: If the line is not in the user's cart.
        """
        response = (
            self.supabase.table("cart_items")
            .delete()
            .eq("id", str(item_id))
            .eq("user_id", str(user_id))
            .execute()
        )
        if not response.data:
            raise NotFoundError("Cart item not found")
