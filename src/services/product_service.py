"""Product lookups and sale-aware pricing for checkout."""

import logging
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Any
from uuid import UUID

from supabase import Client

from src.core.supabase import get_supabase_client
from src.models.product import Product

logger = logging.getLogger(__name__)


def _parse_optional(value: Any) -> datetime | None:
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def to_cents(amount: Any) -> int:
    """Convert a major-unit price to integer minor units, rounding half up."""
    return int((Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def is_on_sale(product: Product, now: datetime | None = None) -> bool:
    """Check whether a sale window covers the given instant.

    A product is on sale when it is flagged, has a discounted price and
    now falls inside [sale_start, sale_end]; a missing bound is open.
    """
    if not product.get("is_sale") or product.get("discounted_price") is None:
        return False

    now = now or datetime.now(timezone.utc)
    start = _parse_optional(product.get("sale_start"))
    end = _parse_optional(product.get("sale_end"))
    if start and now < start:
        return False
    if end and now > end:
        return False
    return True


def unit_price_cents(product: Product, now: datetime | None = None) -> int:
    """Current unit price of a product in minor units."""
    if is_on_sale(product, now):
        return to_cents(product["discounted_price"])
    return to_cents(product["price"])


class ProductService:
    """Service for reading product rows."""

    def __init__(self, supabase_client: Client | None = None) -> None:
        """Initialize product service.

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

    async def get_products_by_ids(self, product_ids: list[UUID | str]) -> dict[str, Product]:
        """Get product rows keyed by their string ID.

        Args:
            product_ids: Product IDs to look up. Duplicates are allowed.

        Returns:
            dict[str, Product]: Found products; missing IDs are absent.
        """
        unique_ids = sorted({str(pid) for pid in product_ids})
        if not unique_ids:
            return {}

        response = (
            self.supabase.table("products")
            .select("*")
            .in_("id", unique_ids)
            .execute()
        )
        return {str(row["id"]): row for row in response.data or []}
