"""Order lifecycle: cancellation, refund approval workflow and shipping updates."""

import logging
import math
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Any
from uuid import UUID

import stripe

from src.api.middleware.error_handler import (
    ConflictError,
    InternalError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from src.core.config import get_settings
from src.core.stripe import get_stripe, refund_idempotency_key
from src.core.supabase import get_supabase_client
from src.models.notification import ADMIN, UserRecipient
from src.models.order import REFUND_DECISIONS, SHIPPING_STATUSES, Order, OrderUpdate
from src.services.email_service import EmailService
from src.services.notification_service import NotificationService
from src.services.post_commit import PostCommitHooks

logger = logging.getLogger(__name__)


def fee_for(amount: int, percent: int) -> int:
    """Percentage fee on a minor-unit amount, rounded half up."""
    fee = Decimal(amount) * Decimal(percent) / Decimal(100)
    return int(fee.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def short_id(order_id: Any) -> str:
    return str(order_id)[:8]


def format_cents(amount: int) -> str:
    return f"${amount / 100:.2f}"


class OrderService:
    """Service for order lifecycle transitions.

    Every transition is a compare-and-swap on the order's revision
    counter, so two concurrent admin actions on one order cannot both
    apply; the loser gets a ConflictError and should reload.
    """

    def __init__(
        self,
        notification_service: NotificationService | None = None,
        email_service: EmailService | None = None,
    ) -> None:
        """Initialize order service with clients.

        Args:
            notification_service: Optional notification service for testing.
            email_service: Optional email service for testing.
        """
        self.client = get_supabase_client()
        self.stripe = get_stripe()
        self.settings = get_settings()
        self.notifications = notification_service or NotificationService(self.client)
        self.emails = email_service or EmailService()

    async def _get_order(self, order_id: UUID, buyer_id: UUID | None = None) -> Order:
        query = self.client.table("orders").select("*").eq("id", str(order_id))
        if buyer_id is not None:
            query = query.eq("buyer_id", str(buyer_id))
        response = query.maybe_single().execute()

        if not response or not response.data:
            raise NotFoundError("Order not found")
        return response.data

    async def _transition(self, order: Order, changes: OrderUpdate) -> Order:
        """Apply changes only if nobody else modified the order meanwhile.

        Raises:
            ConflictError: If the stored revision moved on.
        """
        revision = order.get("revision", 0)
        update = {**changes, "revision": revision + 1}
        response = (
            self.client.table("orders")
            .update(update)
            .eq("id", str(order["id"]))
            .eq("revision", revision)
            .execute()
        )

        if not response.data:
            logger.warning("Concurrent modification of order %s at revision %d", order["id"], revision)
            raise ConflictError("Order was modified by another request. Reload and try again.")
        return response.data[0]

    def _refund(self, order: Order, amount: int, idempotency_key: str) -> Any:
        """Issue a Stripe refund for part of an order's payment.

        Nothing is sent to Stripe when there is no money to return, as for
        an order paid entirely with a coupon.

        Returns:
            The Stripe refund, or None when the amount is zero.

        Raises:
            ValidationError: If money is owed but the order has no payment on file.
        """
        if amount <= 0:
            return None
        if not order.get("payment_intent_id"):
            raise ValidationError("No payment transaction found for this order")

        try:
            return self.stripe.Refund.create(
                payment_intent=order["payment_intent_id"],
                amount=amount,
                idempotency_key=idempotency_key,
            )
        except stripe.error.StripeError as e:
            logger.error("Stripe refund failed for order %s: %s", order["id"], str(e))
            raise InternalError("Refund could not be issued by the payment provider") from e

    async def cancel_order(self, order_id: UUID, requesting_user_id: UUID) -> dict[str, Any]:
        """Cancel a pending order and refund it minus the cancellation fee.

        The refund is issued before anything is written. If Stripe fails,
        the order is untouched; the idempotency key makes a retry safe.

        Args:
            order_id: The order to cancel.
            requesting_user_id: The buyer asking for the cancellation.

        Returns:
            dict: The updated order and the Stripe refund (None for a free order).

        Raises:
            NotFoundError: If the buyer has no such order.
            InvalidStateError: If the order is no longer Pending.
            ValidationError: If money is owed but the order has no payment on file.
            ConflictError: If the order changed concurrently.
        """
        order = await self._get_order(order_id, requesting_user_id)
        if order["shipping_status"] != "Pending":
            raise InvalidStateError("Order cannot be cancelled at this stage")

        total = order["total_amount"]
        fee = fee_for(total, self.settings.cancellation_fee_percent)
        refund_amount = total - fee

        refund = self._refund(order, refund_amount, refund_idempotency_key("cancel", order["id"]))

        updated = await self._transition(order, {
            "shipping_status": "Cancelled",
            "refund_details": {
                **order["refund_details"],
                "refunded": True,
                "refund_amount": refund_amount,
                "cancellation_fee": fee,
            },
        })
        logger.info("Order %s cancelled, refunded %d (fee %d)", order["id"], refund_amount, fee)

        buyer = UserRecipient(UUID(str(order["buyer_id"])))
        hooks = PostCommitHooks(f"cancel order {order['id']}")
        hooks.add(
            "cancellation_email",
            lambda: self.emails.send_cancellation_confirmation_email(
                order["email"], str(order["id"]), self.settings.cancellation_fee_percent
            ),
        )
        hooks.add(
            "refund_email",
            lambda: self.emails.send_refund_update_email(order["email"], str(order["id"]), refund_amount),
        )
        hooks.add(
            "notify_admin",
            lambda: self.notifications.notify(
                ADMIN, order["id"], "Cancelled", f"User cancelled order #{short_id(order['id'])}."
            ),
        )
        hooks.add(
            "notify_buyer",
            lambda: self.notifications.notify(
                buyer,
                order["id"],
                "Cancelled",
                f"Order cancelled successfully. A {self.settings.cancellation_fee_percent}% fee of "
                f"{format_cents(fee)} was applied, so your refund amount is {format_cents(refund_amount)}.",
                {"refund_amount": refund_amount, "cancellation_fee": fee},
            ),
        )
        await hooks.run()

        return {"order": updated, "refund": refund}

    async def request_refund(self, order_id: UUID, requesting_user_id: UUID) -> Order:
        """Ask the admin to approve a refund for a delivered order.

        Raises:
            NotFoundError: If the buyer has no such order.
            InvalidStateError: If the order is not Delivered or a decision
                was already made.
        """
        order = await self._get_order(order_id, requesting_user_id)
        if order["shipping_status"] != "Delivered":
            raise InvalidStateError("Refund request is only available for delivered orders")
        if order["refund_details"].get("admin_refund_approval") in REFUND_DECISIONS:
            raise InvalidStateError("Refund request has already been processed")

        updated = await self._transition(order, {
            "refund_details": {**order["refund_details"], "admin_refund_approval": "Pending"},
        })
        logger.info("Refund requested for order %s", order["id"])

        hooks = PostCommitHooks(f"refund request {order['id']}")
        hooks.add(
            "notify_admin",
            lambda: self.notifications.notify(
                ADMIN,
                order["id"],
                "Refund Requested",
                f"User {order['buyer_id']} requested a refund for order #{short_id(order['id'])}.",
            ),
        )
        await hooks.run()

        return updated

    async def decide_refund(self, order_id: UUID, decision: str) -> Order:
        """Record the admin's decision on a pending refund request.

        Args:
            order_id: The order under review.
            decision: "Approved" or "Rejected".

        Returns:
            Order: The updated order. Approval also marks it Refunded.

        Raises:
            ValidationError: If the decision is not Approved/Rejected.
            NotFoundError: If the order does not exist.
            InvalidStateError: If no refund request is pending.
        """
        if decision not in REFUND_DECISIONS:
            raise ValidationError("Decision must be Approved or Rejected")

        order = await self._get_order(order_id)
        if order["refund_details"].get("admin_refund_approval") != "Pending":
            raise InvalidStateError("Refund request has already been processed")

        changes: OrderUpdate = {
            "refund_details": {**order["refund_details"], "admin_refund_approval": decision},
        }
        if decision == "Approved":
            changes["shipping_status"] = "Refunded"

        updated = await self._transition(order, changes)
        logger.info("Refund for order %s %s", order["id"], decision.lower())

        extra = {"refund_approval": decision}
        hooks = PostCommitHooks(f"refund decision {order['id']}")
        hooks.add(
            "notify_buyer",
            lambda: self.notifications.notify(
                UserRecipient(UUID(str(order["buyer_id"]))),
                order["id"],
                updated["shipping_status"],
                f"Your refund request has been {decision.lower()}.",
                extra,
            ),
        )
        hooks.add(
            "notify_admin",
            lambda: self.notifications.notify(
                ADMIN,
                order["id"],
                updated["shipping_status"],
                f"Refund request for order #{short_id(order['id'])} has been {decision.lower()}.",
                extra,
            ),
        )
        await hooks.run()

        return updated

    async def execute_refund(self, order_id: UUID) -> dict[str, Any]:
        """Pay out an approved refund minus the refund fee.

        Raises:
            NotFoundError: If the order does not exist.
            InvalidStateError: If the refund is not approved.
            ConflictError: If the order was already refunded or changed concurrently.
            ValidationError: If the order has no payment on file.
        """
        order = await self._get_order(order_id)
        refund_details = order["refund_details"]
        if refund_details.get("admin_refund_approval") != "Approved":
            raise InvalidStateError("Refund is not approved yet")
        if refund_details.get("refunded"):
            raise ConflictError("Order has already been refunded")

        total = order["total_amount"]
        fee = fee_for(total, self.settings.refund_fee_percent)
        refund_amount = total - fee

        refund = self._refund(order, refund_amount, refund_idempotency_key("refund", order["id"]))

        updated = await self._transition(order, {
            "shipping_status": "Refunded",
            "refund_details": {
                **refund_details,
                "refunded": True,
                "refund_amount": refund_amount,
                "refund_fee": fee,
            },
        })
        logger.info("Order %s refunded %d (fee %d)", order["id"], refund_amount, fee)

        hooks = PostCommitHooks(f"refund order {order['id']}")
        hooks.add(
            "refund_email",
            lambda: self.emails.send_refund_update_email(order["email"], str(order["id"]), refund_amount),
        )
        hooks.add(
            "notify_buyer",
            lambda: self.notifications.notify(
                UserRecipient(UUID(str(order["buyer_id"]))),
                order["id"],
                "Refunded",
                f"Refund processed successfully. A {self.settings.refund_fee_percent}% fee of "
                f"{format_cents(fee)} was applied, so your refund amount is {format_cents(refund_amount)}.",
                {"refund_amount": refund_amount, "refund_fee": fee},
            ),
        )
        await hooks.run()

        return {"order": updated, "refund": refund}

    async def update_shipping_status(self, order_id: UUID, new_status: str) -> dict[str, Any]:
        """Set an order's shipping status to any valid value (admin override).

        Returns:
            dict: The updated order and the buyer notification payload.

        Raises:
            ValidationError: If new_status is not a shipping status.
            NotFoundError: If the order does not exist.
        """
        if new_status not in SHIPPING_STATUSES:
            raise ValidationError("Invalid status")

        order = await self._get_order(order_id)
        updated = await self._transition(order, {"shipping_status": new_status})
        logger.info("Order %s status %s -> %s", order["id"], order["shipping_status"], new_status)

        notification: dict[str, Any] | None = None

        async def notify_buyer() -> dict[str, Any]:
            nonlocal notification
            notification = await self.notifications.notify(
                UserRecipient(UUID(str(order["buyer_id"]))),
                order["id"],
                new_status,
                f"Your order status has been updated to {new_status}.",
                {"timestamp": datetime.now(timezone.utc).isoformat()},
            )
            return notification

        hooks = PostCommitHooks(f"status update {order['id']}")
        hooks.add(
            "status_email",
            lambda: self.emails.send_status_update_email(order["email"], str(order["id"]), new_status),
        )
        hooks.add("notify_buyer", notify_buyer)
        await hooks.run()

        return {"order": updated, "notification": notification}

    async def get_order_for_buyer(self, order_id: UUID, buyer_id: UUID) -> Order:
        """Get one of the buyer's orders.

        Raises:
            NotFoundError: If the buyer has no such order.
        """
        return await self._get_order(order_id, buyer_id)

    async def list_orders_for_buyer(self, buyer_id: UUID, page: int = 1, limit: int = 10) -> dict[str, Any]:
        """Get a page of the buyer's orders, newest first."""
        query = (
            self.client.table("orders")
            .select("*", count="exact")
            .eq("buyer_id", str(buyer_id))
        )
        return self._paginate(query, page, limit)

    async def list_all_orders(
        self,
        page: int = 1,
        limit: int = 10,
        shipping_status: str | None = None,
    ) -> dict[str, Any]:
        """Get a page of all orders for the admin, optionally by status."""
        query = self.client.table("orders").select("*", count="exact")
        if shipping_status:
            if shipping_status not in SHIPPING_STATUSES:
                raise ValidationError("Invalid status")
            query = query.eq("shipping_status", shipping_status)
        return self._paginate(query, page, limit)

    def _paginate(self, query: Any, page: int, limit: int) -> dict[str, Any]:
        start = (page - 1) * limit
        response = query.order("created_at", desc=True).range(start, start + limit - 1).execute()
        total = response.count or 0
        return {
            "items": response.data or [],
            "total": total,
            "page": page,
            "limit": limit,
            "pages": math.ceil(total / limit) if limit else 0,
        }
