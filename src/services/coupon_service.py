"""Coupon lookup, loyalty minting and redemption."""

import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any
from uuid import UUID

from supabase import Client

from src.api.middleware.error_handler import InvalidCouponError
from src.core.config import get_settings
from src.core.supabase import get_supabase_client
from src.models.coupon import Coupon, CouponCreate

logger = logging.getLogger(__name__)

LOYALTY_CODE_PREFIX = "GIFT"


def _parse_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def is_expired(coupon: Coupon, now: datetime | None = None) -> bool:
    now = now or datetime.now(timezone.utc)
    return _parse_timestamp(coupon["expiration_date"]) <= now


class CouponService:
    """Service for per-user discount codes."""

    def __init__(self, supabase_client: Client | None = None) -> None:
        """Initialize coupon service.

        Args:
            supabase_client: Optional Supabase client for testing.
        """
        self._supabase_client = supabase_client
        self.settings = get_settings()

    @property
    def supabase(self) -> Client:
        """Get Supabase client."""
        if self._supabase_client is None:
            self._supabase_client = get_supabase_client()
        return self._supabase_client

    async def _get_active(self, code: str, owner_id: UUID) -> Coupon | None:
        response = (
            self.supabase.table("coupons")
            .select("*")
            .eq("code", code)
            .eq("owner_id", str(owner_id))
            .eq("is_active", True)
            .maybe_single()
            .execute()
        )
        return response.data if response and response.data else None

    async def find_redeemable(self, code: str, owner_id: UUID) -> Coupon:
        """Get a coupon the buyer may apply to a checkout right now.

        Args:
            code: Coupon code entered by the buyer.
            owner_id: The buyer's user ID.

        Returns:
            Coupon: The active, unexpired coupon.

        Raises:
            InvalidCouponError: If the coupon is missing, inactive, expired,
                owned by someone else or has an out-of-range percentage.
        """
        coupon = await self._get_active(code, owner_id)
        if not coupon:
            raise InvalidCouponError("Coupon not found or inactive")

        if is_expired(coupon):
            raise InvalidCouponError("Coupon has expired")

        percentage = coupon.get("discount_percentage") or 0
        if percentage < 1 or percentage > 100:
            raise InvalidCouponError("Coupon discount is out of range")

        return coupon

    async def validate_coupon(self, code: str, owner_id: UUID) -> Coupon:
        """Check a coupon on behalf of the buyer.

        Unlike find_redeemable, an expired coupon found here is deactivated
        before being rejected.

        Raises:
            InvalidCouponError: If the coupon cannot be redeemed.
        """
        coupon = await self._get_active(code, owner_id)
        if not coupon:
            raise InvalidCouponError("Coupon not found or inactive")

        if is_expired(coupon):
            await self.deactivate(code, owner_id)
            raise InvalidCouponError("Coupon has expired")

        return coupon

    async def get_active_coupon(self, owner_id: UUID) -> Coupon | None:
        """Get the buyer's most recent active coupon, if any."""
        response = (
            self.supabase.table("coupons")
            .select("*")
            .eq("owner_id", str(owner_id))
            .eq("is_active", True)
            .order("created_at", desc=True)
            .limit(1)
            .execute()
        )
        return response.data[0] if response.data else None

    async def create_loyalty_coupon(self, owner_id: UUID) -> Coupon:
        """Mint a loyalty reward coupon for a high-value checkout.

        Args:
            owner_id: The buyer receiving the coupon.

        Returns:
            Coupon: The stored coupon.
        """
        expires = datetime.now(timezone.utc) + timedelta(days=self.settings.loyalty_coupon_days)
        data: CouponCreate = {
            "code": LOYALTY_CODE_PREFIX + secrets.token_hex(3).upper(),
            "discount_percentage": self.settings.loyalty_coupon_percentage,
            "expiration_date": expires.isoformat(),
            "is_active": True,
            "owner_id": str(owner_id),
        }

        response = self.supabase.table("coupons").insert(data).execute()
        coupon = response.data[0]
        logger.info("Loyalty coupon %s created for user %s", coupon["code"], owner_id)
        return coupon

    async def deactivate(self, code: str, owner_id: UUID) -> None:
        """Deactivate a redeemed or expired coupon. Coupons are never deleted."""
        (
            self.supabase.table("coupons")
            .update({"is_active": False})
            .eq("code", code)
            .eq("owner_id", str(owner_id))
            .execute()
        )
        logger.info("Coupon %s deactivated for user %s", code, owner_id)
