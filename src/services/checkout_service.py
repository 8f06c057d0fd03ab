"""Checkout session creation and webhook-driven order placement."""

import json
import logging
from typing import Any
from uuid import UUID, uuid4

import stripe
from postgrest.exceptions import APIError as PostgrestAPIError

from src.api.middleware.error_handler import (
    AuthenticationError,
    ConflictError,
    InsufficientStockError,
    InternalError,
    NotFoundError,
    ValidationError,
)
from src.core.config import get_settings
from src.core.stripe import get_stripe
from src.core.supabase import UNIQUE_VIOLATION, get_supabase_client, raised_reason
from src.models.notification import ADMIN, UserRecipient
from src.models.order import NO_COUPON, Order, OrderCreate, OrderLineItem
from src.services.cart_service import CartService
from src.services.coupon_service import CouponService
from src.services.email_service import EmailService
from src.services.notification_service import NotificationService
from src.services.post_commit import PostCommitHooks
from src.services.product_service import ProductService, unit_price_cents

logger = logging.getLogger(__name__)

REQUIRED_SHIPPING_FIELDS = ("name", "phone", "address")

INSUFFICIENT_STOCK = "insufficient_stock"


def missing_shipping_fields(shipping_details: dict[str, Any] | None) -> list[str]:
    details = shipping_details or {}
    return [field for field in REQUIRED_SHIPPING_FIELDS if not details.get(field)]


class CheckoutService:
    """Service for Stripe checkout and order placement."""

    def __init__(
        self,
        cart_service: CartService | None = None,
        product_service: ProductService | None = None,
        coupon_service: CouponService | None = None,
        notification_service: NotificationService | None = None,
        email_service: EmailService | None = None,
    ) -> None:
        """Initialize checkout service with clients.

        Args:
            cart_service: Optional cart service for testing.
            product_service: Optional product service for testing.
            coupon_service: Optional coupon service for testing.
            notification_service: Optional notification service for testing.
            email_service: Optional email service for testing.
        """
        self.client = get_supabase_client()
        self.stripe = get_stripe()
        self.settings = get_settings()
        self.carts = cart_service or CartService(self.client)
        self.products = product_service or ProductService(self.client)
        self.coupons = coupon_service or CouponService(self.client)
        self.notifications = notification_service or NotificationService(self.client)
        self.emails = email_service or EmailService()

    async def create_checkout_session(
        self,
        buyer_id: UUID,
        buyer_email: str | None,
        cart_snapshot: list[dict[str, Any]],
        shipping_details: dict[str, Any],
        coupon_code: str | None = None,
    ) -> dict[str, Any]:
        """Create a Stripe Checkout Session for the buyer's cart.

        The buyer ID, serialized shipping details and coupon code travel as
        session metadata; the completion webhook rebuilds the order from
        them and the buyer's cart.

        Args:
            buyer_id: The purchasing user's ID.
            buyer_email: Email pre-filled on the hosted checkout page.
            cart_snapshot: Lines of {product_id, quantity, color, size}.
            shipping_details: Dict with name, phone and address.
            coupon_code: Optional coupon owned by the buyer.

        Returns:
            dict: Contains session_id and checkout_url.

        Raises:
            ValidationError: If the cart is empty or shipping fields are missing.
            NotFoundError: If a cart product no longer exists.
            InvalidCouponError: If the coupon cannot be redeemed.
            InternalError: If Stripe is not configured or rejects the request.
        """
        if not cart_snapshot:
            raise ValidationError("At least one product is required")

        missing = missing_shipping_fields(shipping_details)
        if missing:
            raise ValidationError(f"Missing shipping fields: {', '.join(missing)}")

        if any(int(line.get("quantity", 0)) < 1 for line in cart_snapshot):
            raise ValidationError("Quantities must be at least 1")

        if not self.settings.stripe_secret_key:
            raise InternalError("Stripe is not configured. Please set STRIPE_SECRET_KEY environment variable.")

        products = await self.products.get_products_by_ids([line["product_id"] for line in cart_snapshot])

        line_items: list[dict[str, Any]] = []
        total_cents = 0
        for line in cart_snapshot:
            product = products.get(str(line["product_id"]))
            if not product:
                raise NotFoundError(f"Product not found: {line['product_id']}")

            amount = unit_price_cents(product)
            quantity = int(line["quantity"])
            total_cents += amount * quantity
            line_items.append({
                "price_data": {
                    "currency": self.settings.currency,
                    "product_data": {
                        "name": product["title"],
                        "images": (product.get("images") or [])[:1],
                    },
                    "unit_amount": amount,
                },
                "quantity": quantity,
            })

        discounts: list[dict[str, str]] = []
        if coupon_code:
            coupon = await self.coupons.find_redeemable(coupon_code, buyer_id)
            discounts.append({"coupon": self._create_stripe_coupon(coupon["discount_percentage"])})

        checkout_params: dict[str, Any] = {
            "payment_method_types": ["card"],
            "mode": "payment",
            "line_items": line_items,
            "success_url": f"{self.settings.client_url}/order-success?session_id={{CHECKOUT_SESSION_ID}}",
            "cancel_url": f"{self.settings.client_url}/cart",
            "metadata": {
                "buyer_id": str(buyer_id),
                "shipping_details": json.dumps(
                    {field: shipping_details[field] for field in REQUIRED_SHIPPING_FIELDS}
                ),
                "coupon_code": coupon_code or NO_COUPON,
            },
            "payment_intent_data": {"metadata": {"idempotency_key": str(uuid4())}},
        }
        if buyer_email:
            checkout_params["customer_email"] = buyer_email
        if discounts:
            checkout_params["discounts"] = discounts

        try:
            stripe_session = self.stripe.checkout.Session.create(**checkout_params)
        except stripe.error.StripeError as e:
            logger.error("Stripe error creating checkout session: %s", str(e))
            raise InternalError("Failed to create checkout session") from e

        logger.info(
            "Checkout session %s created for user %s (%d cents before discounts)",
            stripe_session.id,
            buyer_id,
            total_cents,
        )

        # Loyalty reward is granted whether or not this checkout completes
        if total_cents > self.settings.loyalty_threshold_cents:
            try:
                await self.coupons.create_loyalty_coupon(buyer_id)
            except Exception as e:
                logger.error("Failed to create loyalty coupon for user %s: %s", buyer_id, str(e))

        return {
            "session_id": stripe_session.id,
            "checkout_url": stripe_session.url,
        }

    def _create_stripe_coupon(self, percent_off: int) -> str:
        """Register a one-shot percentage discount with Stripe."""
        try:
            coupon = self.stripe.Coupon.create(percent_off=percent_off, duration="once")
        except stripe.error.StripeError as e:
            logger.error("Error creating Stripe coupon: %s", str(e))
            raise InternalError("Failed to create Stripe coupon") from e
        return coupon.id

    def verify_webhook_signature(self, payload: bytes, sig_header: str) -> dict[str, Any]:
        """Verify Stripe webhook signature and return event.

        Args:
            payload: Raw webhook payload bytes.
            sig_header: Stripe-Signature header value.

        Returns:
            dict: Verified Stripe event.

        Raises:
            AuthenticationError: If signature is invalid or the secret is not configured.
        """
        if not self.settings.stripe_webhook_secret:
            raise AuthenticationError("Stripe webhook secret is not configured")

        try:
            return self.stripe.Webhook.construct_event(
                payload, sig_header, self.settings.stripe_webhook_secret
            )
        except (stripe.error.SignatureVerificationError, ValueError) as e:
            logger.warning("Invalid webhook signature: %s", str(e))
            raise AuthenticationError("Invalid webhook signature") from e

    async def handle_webhook_event(self, event: dict[str, Any]) -> Order | None:
        """Dispatch a verified Stripe event.

        Only checkout.session.completed creates state; other event types are
        acknowledged and ignored.
        """
        event_type = event.get("type", "")
        if event_type == "checkout.session.completed":
            return await self.handle_payment_completed(event)

        logger.debug("Unhandled webhook event type: %s", event_type)
        return None

    async def get_order_by_session(self, stripe_session_id: str) -> Order | None:
        """Get the order created for a Stripe Checkout Session, if any."""
        response = (
            self.client.table("orders")
            .select("*")
            .eq("stripe_session_id", stripe_session_id)
            .maybe_single()
            .execute()
        )
        return response.data if response and response.data else None

    async def handle_payment_completed(self, event: dict[str, Any]) -> Order | None:
        """Turn a completed Stripe Checkout Session into an order.

        Safe to call repeatedly for the same session: Stripe delivers
        webhooks at least once. Stock decrements, order insert and cart
        clear happen in one database transaction; notifications, email and
        coupon deactivation run afterwards and never undo the order.

        Args:
            event: Stripe checkout.session.completed event.

        Returns:
            Order | None: The placed order, or the existing one for a
                duplicate delivery.

        Raises:
            ValidationError: If metadata is missing or malformed.
            ConflictError: If the buyer's cart is empty.
            InsufficientStockError: If any line's stock ran out.
            InternalError: If Stripe or the database fails.
        """
        session = event["data"]["object"]
        stripe_session_id = session["id"]
        metadata = session.get("metadata") or {}

        raw_buyer_id = metadata.get("buyer_id")
        raw_shipping = metadata.get("shipping_details")
        if not raw_buyer_id or not raw_shipping:
            raise ValidationError("Invalid or incomplete checkout metadata")

        try:
            buyer_id = UUID(raw_buyer_id)
        except ValueError as e:
            raise ValidationError(f"Invalid buyer ID format: {raw_buyer_id}") from e

        try:
            shipping_details = json.loads(raw_shipping)
        except json.JSONDecodeError as e:
            raise ValidationError("Shipping details metadata is not valid JSON") from e
        if not isinstance(shipping_details, dict) or missing_shipping_fields(shipping_details):
            raise ValidationError("Shipping details metadata is incomplete")

        coupon_code = metadata.get("coupon_code") or NO_COUPON

        # Duplicate delivery: the cart was already cleared by the first one
        existing = await self.get_order_by_session(stripe_session_id)
        if existing:
            logger.info("Checkout session %s already processed as order %s", stripe_session_id, existing["id"])
            return existing

        cart = await self.carts.get_cart(buyer_id)
        if not cart:
            raise ConflictError(f"Cart is empty for user {buyer_id}")

        payment_intent_id, receipt_url, customer_email = self._retrieve_payment_details(session)

        line_items: list[OrderLineItem] = []
        for line in cart:
            product = line.get("product")
            if not product:
                raise NotFoundError(f"Product not found: {line['product_id']}")
            line_items.append({
                "product_id": str(line["product_id"]),
                "title": product["title"],
                "color": line.get("color"),
                "size": line.get("size"),
                "quantity": int(line["quantity"]),
                "unit_price": unit_price_cents(product),
            })

        order_data: OrderCreate = {
            "buyer_id": str(buyer_id),
            "email": customer_email,
            "line_items": line_items,
            # Stripe's charged amount is authoritative, not a local recomputation
            "total_amount": int(session.get("amount_total") or 0),
            "currency": (session.get("currency") or "usd").upper(),
            "shipping_details": {field: shipping_details[field] for field in REQUIRED_SHIPPING_FIELDS},
            "coupon_code": coupon_code,
            "stripe_session_id": stripe_session_id,
            "payment_intent_id": payment_intent_id,
            "receipt_url": receipt_url,
        }

        order = await self._place_order(order_data, line_items)
        if order is None:
            # Lost a race with a concurrent delivery of the same session
            return await self.get_order_by_session(stripe_session_id)

        logger.info("Order %s placed for user %s from session %s", order["id"], buyer_id, stripe_session_id)

        hooks = PostCommitHooks(f"order {order['id']}")
        if coupon_code != NO_COUPON:
            hooks.add("deactivate_coupon", lambda: self.coupons.deactivate(coupon_code, buyer_id))
        if order.get("email"):
            hooks.add(
                "order_confirmation_email",
                lambda: self.emails.send_order_confirmation_email(order["email"], str(order["id"]), receipt_url),
            )
        summary = {"total_amount": order["total_amount"], "currency": order["currency"]}
        hooks.add(
            "notify_admin",
            lambda: self.notifications.notify(
                ADMIN, order["id"], "New Order", f"New order placed by user {buyer_id}.", summary
            ),
        )
        hooks.add(
            "notify_buyer",
            lambda: self.notifications.notify(
                UserRecipient(buyer_id),
                order["id"],
                "Order Placed",
                "Your order has been successfully placed and is being processed.",
                summary,
            ),
        )
        await hooks.run()

        return order

    def _retrieve_payment_details(self, session: dict[str, Any]) -> tuple[str | None, str | None, str | None]:
        """Fetch payment intent ID, receipt URL and customer email for a session."""
        try:
            full_session = self.stripe.checkout.Session.retrieve(
                session["id"],
                expand=["payment_intent", "payment_intent.latest_charge"],
            )
        except stripe.error.StripeError as e:
            logger.error("Stripe error retrieving session %s: %s", session["id"], str(e))
            raise InternalError("Failed to retrieve checkout session") from e

        payment_intent = getattr(full_session, "payment_intent", None)
        if isinstance(payment_intent, str):
            payment_intent_id, receipt_url = payment_intent, None
        elif payment_intent is not None:
            payment_intent_id = payment_intent.id
            charge = getattr(payment_intent, "latest_charge", None)
            receipt_url = getattr(charge, "receipt_url", None) if charge and not isinstance(charge, str) else None
        else:
            payment_intent_id, receipt_url = None, None

        customer_email = getattr(full_session, "customer_email", None)
        if not customer_email:
            customer_email = (session.get("customer_details") or {}).get("email")

        return payment_intent_id, receipt_url, customer_email

    async def _place_order(self, order_data: OrderCreate, line_items: list[OrderLineItem]) -> Order | None:
        """Run the place_order transaction.

        Returns:
            Order | None: The new order, or None if the session was already
                recorded by a concurrent delivery.
        """
        params = {
            "p_order": order_data,
            "p_items": [
                {"product_id": item["product_id"], "quantity": item["quantity"]}
                for item in sorted(line_items, key=lambda line: str(line["product_id"]))
            ],
        }

        try:
            response = self.client.rpc("place_order", params).execute()
        except PostgrestAPIError as e:
            if e.code == UNIQUE_VIOLATION:
                logger.info("Order for session %s already exists", order_data["stripe_session_id"])
                return None
            reason = raised_reason(e)
            if reason and reason[0] == INSUFFICIENT_STOCK:
                logger.warning("Stock reservation failed for session %s: %s", order_data["stripe_session_id"], e.message)
                raise InsufficientStockError("Some products are out of stock") from e
            logger.error("place_order failed for session %s: %s", order_data["stripe_session_id"], e.message)
            raise InternalError("Failed to place order") from e

        data = response.data
        return data[0] if isinstance(data, list) else data

    async def verify_order(self, stripe_session_id: str, buyer_id: UUID) -> Order:
        """Get the paid order a buyer's checkout session produced.

        Raises:
            NotFoundError: If the webhook has not created the order yet or it
                belongs to another user.
        """
        response = (
            self.client.table("orders")
            .select("*")
            .eq("stripe_session_id", stripe_session_id)
            .eq("buyer_id", str(buyer_id))
            .eq("payment_status", "paid")
            .maybe_single()
            .execute()
        )
        if not response or not response.data:
            raise NotFoundError("Order not found")
        return response.data
