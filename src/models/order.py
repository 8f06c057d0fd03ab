"""Order model type definitions for database operations."""

from datetime import datetime
from typing import Literal, TypedDict, get_args
from uuid import UUID


# Shipping status enum values matching database enum
ShippingStatus = Literal["Pending", "Shipped", "Delivered", "Cancelled", "Refunded"]
SHIPPING_STATUSES: tuple[str, ...] = get_args(ShippingStatus)

PaymentStatus = Literal["pending", "paid", "failed"]

RefundApproval = Literal["Pending", "Approved", "Rejected"]
REFUND_DECISIONS: tuple[str, ...] = ("Approved", "Rejected")

# Stored in coupon_code when checkout used no coupon
NO_COUPON = "none"


class OrderLineItem(TypedDict):
    """Structure for a single line item in an order.

    Stored as part of the line_items JSONB array. Every field is a
    snapshot taken when the order is created.
    """

    product_id: str
    title: str
    color: str | None
    size: str | None
    quantity: int
    unit_price: int


class ShippingDetails(TypedDict):
    """Shipping destination captured at checkout."""

    name: str
    phone: str
    address: str


class RefundDetails(TypedDict):
    """Refund sub-state of an order."""

    refunded: bool
    refund_amount: int
    admin_refund_approval: RefundApproval | None
    cancellation_fee: int
    refund_fee: int


class Order(TypedDict):
    """Order table row representation.

    Represents an order stored in the orders table.
    Maps directly to the database schema.
    """

    id: UUID
    buyer_id: UUID
    email: str
    line_items: list[OrderLineItem]
    total_amount: int
    currency: str
    shipping_details: ShippingDetails
    coupon_code: str
    shipping_status: ShippingStatus
    payment_status: PaymentStatus
    refund_details: RefundDetails
    stripe_session_id: str
    payment_intent_id: str | None
    receipt_url: str | None
    revision: int
    created_at: datetime
    updated_at: datetime


class OrderCreate(TypedDict, total=False):
    """Data required to create a new order.

    Passed to the place_order database function when a payment completes.
    """

    buyer_id: str
    email: str | None
    line_items: list[OrderLineItem]
    total_amount: int
    currency: str
    shipping_details: ShippingDetails
    coupon_code: str
    stripe_session_id: str
    payment_intent_id: str | None
    receipt_url: str | None


class OrderUpdate(TypedDict, total=False):
    """Data that can be updated on an order by a lifecycle transition."""

    shipping_status: ShippingStatus
    refund_details: RefundDetails
    revision: int


def default_refund_details() -> RefundDetails:
    """Refund sub-state of a freshly placed order."""
    return {
        "refunded": False,
        "refund_amount": 0,
        "admin_refund_approval": None,
        "cancellation_fee": 0,
        "refund_fee": 0,
    }
