"""Coupon Pydantic schemas for API request/response models."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class CouponResponse(BaseModel):
    """Schema for a coupon owned by the current user."""

    model_config = ConfigDict(from_attributes=True)

    code: str = Field(description="Coupon code")
    discount_percentage: int = Field(ge=1, le=100, description="Discount percentage")
    expiration_date: datetime = Field(description="Expiry timestamp")
    is_active: bool = Field(description="Whether the coupon can still be used")


class CouponValidateRequest(BaseModel):
    """Request to check a coupon code."""

    code: str = Field(min_length=1, max_length=64, description="Coupon code")


class CouponValidateResponse(BaseModel):
    """Result of a successful coupon check."""

    message: str = Field(default="Coupon is valid")
    code: str
    discount_percentage: int
    expiration_date: datetime
