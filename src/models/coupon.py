"""Coupon model type definitions for database operations."""

from datetime import datetime
from typing import TypedDict
from uuid import UUID


class Coupon(TypedDict):
    """Coupon table row representation."""

    id: UUID
    code: str
    discount_percentage: int
    expiration_date: datetime
    is_active: bool
    owner_id: UUID
    created_at: datetime
    updated_at: datetime


class CouponCreate(TypedDict):
    """Data required to create a new coupon."""

    code: str
    discount_percentage: int
    expiration_date: str
    is_active: bool
    owner_id: str
