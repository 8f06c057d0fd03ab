"""Checkout Pydantic schemas for API request/response models."""

from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from src.schemas.order import OrderResponse


class CartLineSchema(BaseModel):
    """A product variant and quantity being purchased."""

    model_config = ConfigDict(from_attributes=True)

    product_id: UUID = Field(description="Product UUID")
    quantity: int = Field(ge=1, description="Quantity to purchase")
    color: str | None = Field(default=None, description="Selected color")
    size: str | None = Field(default=None, description="Selected size")


class ShippingDetailsSchema(BaseModel):
    """Shipping destination for an order.

    Fields default to empty so that missing ones are reported together by
    the checkout service rather than one at a time by request parsing.
    """

    model_config = ConfigDict(from_attributes=True)

    name: str = Field(default="", max_length=200, description="Recipient name")
    phone: str = Field(default="", max_length=50, description="Contact phone number")
    address: str = Field(default="", max_length=500, description="Delivery address")


class CheckoutSessionCreate(BaseModel):
    """Schema for creating a checkout session via POST /checkout/session."""

    model_config = ConfigDict(from_attributes=True)

    products: list[CartLineSchema] = Field(default_factory=list, description="Cart snapshot to purchase")
    shipping_details: ShippingDetailsSchema = Field(
        default_factory=ShippingDetailsSchema, description="Shipping destination"
    )
    coupon: str | None = Field(default=None, description="Optional coupon code owned by the buyer")


class CheckoutSessionResponse(BaseModel):
    """Schema for checkout session creation response."""

    model_config = ConfigDict(from_attributes=True)

    session_id: str = Field(description="Stripe Checkout Session ID")
    checkout_url: str = Field(description="Stripe Checkout URL to redirect to")


class VerifyOrderResponse(BaseModel):
    """Schema for the post-checkout order verification response."""

    model_config = ConfigDict(from_attributes=True)

    valid: bool = Field(description="Whether a paid order exists for the session")
    order: OrderResponse = Field(description="The placed order")
