"""Order Pydantic schemas for API request/response models."""

from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from src.schemas.common import Pagination

ShippingStatus = Literal["Pending", "Shipped", "Delivered", "Cancelled", "Refunded"]
RefundDecision = Literal["Approved", "Rejected"]


class OrderLineItemSchema(BaseModel):
    """Schema for a single line item in an order."""

    model_config = ConfigDict(from_attributes=True)

    product_id: str = Field(description="Product UUID")
    title: str = Field(description="Product title at purchase time")
    color: str | None = Field(default=None, description="Selected color")
    size: str | None = Field(default=None, description="Selected size")
    quantity: int = Field(ge=1, description="Quantity ordered")
    unit_price: int = Field(ge=0, description="Unit price in cents at purchase time")


class ShippingDetailsResponse(BaseModel):
    """Stored shipping destination."""

    name: str
    phone: str
    address: str


class RefundDetailsSchema(BaseModel):
    """Refund sub-state of an order."""

    model_config = ConfigDict(from_attributes=True)

    refunded: bool = Field(default=False, description="Whether money was returned")
    refund_amount: int = Field(default=0, description="Refunded amount in cents")
    admin_refund_approval: Literal["Pending", "Approved", "Rejected"] | None = Field(
        default=None, description="Admin decision on a refund request"
    )
    cancellation_fee: int = Field(default=0, description="Fee withheld on cancellation, in cents")
    refund_fee: int = Field(default=0, description="Fee withheld on refund, in cents")


class OrderResponse(BaseModel):
    """Schema for order API responses."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID = Field(description="Order unique identifier")
    buyer_id: UUID = Field(description="Purchasing user ID")
    email: str | None = Field(default=None, description="Email captured at checkout")
    line_items: list[OrderLineItemSchema] = Field(description="Order line items")
    total_amount: int = Field(ge=0, description="Charged amount in cents")
    currency: str = Field(default="USD", description="Currency code")
    shipping_details: ShippingDetailsResponse = Field(description="Shipping destination")
    coupon_code: str = Field(default="none", description="Redeemed coupon code")
    shipping_status: ShippingStatus = Field(description="Shipping status")
    payment_status: Literal["pending", "paid", "failed"] = Field(description="Payment status")
    refund_details: RefundDetailsSchema = Field(default_factory=RefundDetailsSchema)
    receipt_url: str | None = Field(default=None, description="Stripe receipt URL")
    created_at: datetime = Field(description="Creation timestamp")
    updated_at: datetime | None = Field(default=None, description="Last update timestamp")


class OrderListResponse(BaseModel):
    """Schema for paginated order list responses."""

    model_config = ConfigDict(from_attributes=True)

    items: list[OrderResponse] = Field(description="List of orders")
    pagination: Pagination


class RefundDecisionRequest(BaseModel):
    """Admin decision on a refund request."""

    decision: RefundDecision = Field(description="Approved or Rejected")


class ShippingStatusUpdate(BaseModel):
    """Admin shipping status override."""

    new_status: ShippingStatus = Field(description="New shipping status")


class OrderActionResponse(BaseModel):
    """Result of a lifecycle action on an order."""

    message: str = Field(description="Outcome message")
    order: OrderResponse
    refund_id: str | None = Field(default=None, description="Stripe refund ID when money moved")
    notification: dict[str, Any] | None = Field(default=None, description="Notification sent to the buyer")
