"""Database model type definitions."""

from src.models.coupon import Coupon
from src.models.notification import ADMIN, AdminRecipient, Notification, Recipient, UserRecipient
from src.models.order import Order, OrderLineItem, RefundDetails, ShippingDetails
from src.models.product import CartItem, CartLine, Product

__all__ = [
    "ADMIN",
    "AdminRecipient",
    "CartItem",
    "CartLine",
    "Coupon",
    "Notification",
    "Order",
    "OrderLineItem",
    "Product",
    "Recipient",
    "RefundDetails",
    "ShippingDetails",
    "UserRecipient",
]
