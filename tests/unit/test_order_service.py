"""Unit tests for OrderService lifecycle transitions."""

from unittest.mock import AsyncMock, MagicMock, patch
from uuid import UUID

import pytest
import stripe

from src.api.middleware.error_handler import (
    ConflictError,
    InternalError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from src.models.notification import ADMIN, UserRecipient
from src.models.order import default_refund_details
from src.services.order_service import OrderService, fee_for, format_cents

BUYER_ID = "550e8400-e29b-41d4-a716-446655440000"
ORDER_ID = "660e8400-e29b-41d4-a716-446655440000"


@pytest.fixture
def mock_supabase() -> MagicMock:
    return MagicMock()


@pytest.fixture
def mock_stripe() -> MagicMock:
    stripe_module = MagicMock()
    stripe_module.Refund.create.return_value = MagicMock(id="re_123")
    return stripe_module


@pytest.fixture
def mock_settings() -> MagicMock:
    settings = MagicMock()
    settings.cancellation_fee_percent = 5
    settings.refund_fee_percent = 10
    return settings


@pytest.fixture
def notifications() -> MagicMock:
    service = MagicMock()
    service.notify = AsyncMock(side_effect=lambda *args, **kwargs: {"id": "n1", "message": args[3]})
    return service


@pytest.fixture
def emails() -> MagicMock:
    service = MagicMock()
    service.send_cancellation_confirmation_email = AsyncMock(return_value={"success": True})
    service.send_refund_update_email = AsyncMock(return_value={"success": True})
    service.send_status_update_email = AsyncMock(return_value={"success": True})
    return service


@pytest.fixture
def order_service(
    mock_supabase: MagicMock,
    mock_stripe: MagicMock,
    mock_settings: MagicMock,
    notifications: MagicMock,
    emails: MagicMock,
) -> OrderService:
    with patch("src.services.order_service.get_supabase_client", return_value=mock_supabase), \
         patch("src.services.order_service.get_stripe", return_value=mock_stripe), \
         patch("src.services.order_service.get_settings", return_value=mock_settings):
        return OrderService(notification_service=notifications, email_service=emails)


def make_order(**overrides) -> dict:
    order = {
        "id": ORDER_ID,
        "buyer_id": BUYER_ID,
        "email": "buyer@example.com",
        "total_amount": 10000,
        "currency": "USD",
        "shipping_status": "Pending",
        "payment_status": "paid",
        "refund_details": default_refund_details(),
        "payment_intent_id": "pi_123",
        "revision": 3,
    }
    order.update(overrides)
    return order


def load_order(mock_supabase: MagicMock, order: dict | None) -> None:
    """Make _get_order find the given order with or without a buyer filter."""
    response = MagicMock(data=order)
    select = mock_supabase.table.return_value.select.return_value
    select.eq.return_value.maybe_single.return_value.execute.return_value = response
    select.eq.return_value.eq.return_value.maybe_single.return_value.execute.return_value = response


def accept_update(mock_supabase: MagicMock, order: dict) -> MagicMock:
    """Make the compare-and-swap update succeed, echoing the written fields onto order."""
    update = mock_supabase.table.return_value.update

    def _apply(changes):
        result = MagicMock()
        result.eq.return_value.eq.return_value.execute.return_value = MagicMock(
            data=[{**order, **changes}]
        )
        return result

    update.side_effect = _apply
    return update


def reject_update(mock_supabase: MagicMock) -> None:
    chain = mock_supabase.table.return_value.update.return_value.eq.return_value.eq.return_value
    chain.execute.return_value = MagicMock(data=[])


class TestFees:
    """Tests for fee arithmetic."""

    @pytest.mark.parametrize(
        "amount,percent,expected",
        [
            (10000, 5, 500),
            (10000, 10, 1000),
            (1010, 5, 51),  # 50.5 rounds half up
            (1030, 5, 52),  # 51.5 rounds half up
            (0, 10, 0),
        ],
    )
    def test_fee_for_rounds_half_up(self, amount: int, percent: int, expected: int) -> None:
        assert fee_for(amount, percent) == expected

    def test_format_cents(self) -> None:
        assert format_cents(9500) == "$95.00"


class TestCancelOrder:
    """Tests for cancel_order method."""

    @pytest.mark.asyncio
    async def test_cancels_pending_order_with_five_percent_fee(
        self,
        order_service: OrderService,
        mock_supabase: MagicMock,
        mock_stripe: MagicMock,
        notifications: MagicMock,
        emails: MagicMock,
    ) -> None:
        """Test that 10000 refunds 9500 and keeps a 500 fee."""
        order = make_order()
        load_order(mock_supabase, order)
        update = accept_update(mock_supabase, order)

        result = await order_service.cancel_order(UUID(ORDER_ID), UUID(BUYER_ID))

        mock_stripe.Refund.create.assert_called_once_with(
            payment_intent="pi_123",
            amount=9500,
            idempotency_key=f"cancel-{ORDER_ID}",
        )
        written = update.call_args.args[0]
        assert written["shipping_status"] == "Cancelled"
        assert written["revision"] == 4
        assert written["refund_details"]["refunded"] is True
        assert written["refund_details"]["refund_amount"] == 9500
        assert written["refund_details"]["cancellation_fee"] == 500

        assert result["order"]["shipping_status"] == "Cancelled"
        assert result["refund"].id == "re_123"

        emails.send_cancellation_confirmation_email.assert_awaited_once_with("buyer@example.com", ORDER_ID, 5)
        emails.send_refund_update_email.assert_awaited_once_with("buyer@example.com", ORDER_ID, 9500)
        recipients = [c.args[0] for c in notifications.notify.await_args_list]
        assert recipients == [ADMIN, UserRecipient(UUID(BUYER_ID))]
        buyer_message = notifications.notify.await_args_list[1].args[3]
        assert "$5.00" in buyer_message and "$95.00" in buyer_message

    @pytest.mark.asyncio
    async def test_rejects_non_pending_order(
        self, order_service: OrderService, mock_supabase: MagicMock, mock_stripe: MagicMock
    ) -> None:
        load_order(mock_supabase, make_order(shipping_status="Shipped"))

        with pytest.raises(InvalidStateError):
            await order_service.cancel_order(UUID(ORDER_ID), UUID(BUYER_ID))

        mock_stripe.Refund.create.assert_not_called()

    @pytest.mark.asyncio
    async def test_second_cancel_fails(
        self, order_service: OrderService, mock_supabase: MagicMock, mock_stripe: MagicMock
    ) -> None:
        load_order(mock_supabase, make_order(shipping_status="Cancelled"))

        with pytest.raises(InvalidStateError):
            await order_service.cancel_order(UUID(ORDER_ID), UUID(BUYER_ID))

        mock_stripe.Refund.create.assert_not_called()

    @pytest.mark.asyncio
    async def test_other_buyers_order_is_not_found(
        self, order_service: OrderService, mock_supabase: MagicMock
    ) -> None:
        load_order(mock_supabase, None)

        with pytest.raises(NotFoundError):
            await order_service.cancel_order(UUID(ORDER_ID), UUID(BUYER_ID))

    @pytest.mark.asyncio
    async def test_missing_payment_intent_raises_validation_error(
        self, order_service: OrderService, mock_supabase: MagicMock
    ) -> None:
        load_order(mock_supabase, make_order(payment_intent_id=None))

        with pytest.raises(ValidationError):
            await order_service.cancel_order(UUID(ORDER_ID), UUID(BUYER_ID))

    @pytest.mark.asyncio
    async def test_cancels_free_order_without_gateway_refund(
        self, order_service: OrderService, mock_supabase: MagicMock, mock_stripe: MagicMock
    ) -> None:
        """Test that an order paid fully by coupon is cancelled with nothing to refund."""
        order = make_order(total_amount=0, payment_intent_id=None)
        load_order(mock_supabase, order)
        update = accept_update(mock_supabase, order)

        result = await order_service.cancel_order(UUID(ORDER_ID), UUID(BUYER_ID))

        mock_stripe.Refund.create.assert_not_called()
        written = update.call_args.args[0]
        assert written["shipping_status"] == "Cancelled"
        assert written["refund_details"]["refunded"] is True
        assert written["refund_details"]["refund_amount"] == 0
        assert written["refund_details"]["cancellation_fee"] == 0
        assert result["refund"] is None
        assert result["order"]["shipping_status"] == "Cancelled"

    @pytest.mark.asyncio
    async def test_stripe_failure_leaves_order_untouched(
        self, order_service: OrderService, mock_supabase: MagicMock, mock_stripe: MagicMock
    ) -> None:
        load_order(mock_supabase, make_order())
        mock_stripe.Refund.create.side_effect = stripe.error.APIConnectionError("network down")

        with pytest.raises(InternalError):
            await order_service.cancel_order(UUID(ORDER_ID), UUID(BUYER_ID))

        mock_supabase.table.return_value.update.assert_not_called()

    @pytest.mark.asyncio
    async def test_lost_race_raises_conflict(
        self,
        order_service: OrderService,
        mock_supabase: MagicMock,
        notifications: MagicMock,
    ) -> None:
        load_order(mock_supabase, make_order())
        reject_update(mock_supabase)

        with pytest.raises(ConflictError):
            await order_service.cancel_order(UUID(ORDER_ID), UUID(BUYER_ID))

        notifications.notify.assert_not_awaited()


class TestRequestRefund:
    """Tests for request_refund method."""

    @pytest.mark.asyncio
    async def test_marks_delivered_order_pending_and_notifies_admin(
        self,
        order_service: OrderService,
        mock_supabase: MagicMock,
        notifications: MagicMock,
    ) -> None:
        order = make_order(shipping_status="Delivered")
        load_order(mock_supabase, order)
        update = accept_update(mock_supabase, order)

        order = await order_service.request_refund(UUID(ORDER_ID), UUID(BUYER_ID))

        assert update.call_args.args[0]["refund_details"]["admin_refund_approval"] == "Pending"
        assert order["refund_details"]["admin_refund_approval"] == "Pending"
        notifications.notify.assert_awaited_once()
        assert notifications.notify.await_args.args[0] == ADMIN
        assert notifications.notify.await_args.args[2] == "Refund Requested"

    @pytest.mark.asyncio
    async def test_rejects_undelivered_order(
        self, order_service: OrderService, mock_supabase: MagicMock
    ) -> None:
        load_order(mock_supabase, make_order(shipping_status="Shipped"))

        with pytest.raises(InvalidStateError):
            await order_service.request_refund(UUID(ORDER_ID), UUID(BUYER_ID))

    @pytest.mark.asyncio
    async def test_rejects_already_decided_request(
        self, order_service: OrderService, mock_supabase: MagicMock
    ) -> None:
        refund_details = {**default_refund_details(), "admin_refund_approval": "Rejected"}
        load_order(mock_supabase, make_order(shipping_status="Delivered", refund_details=refund_details))

        with pytest.raises(InvalidStateError):
            await order_service.request_refund(UUID(ORDER_ID), UUID(BUYER_ID))


class TestDecideRefund:
    """Tests for decide_refund method."""

    @pytest.fixture
    def pending_order(self) -> dict:
        refund_details = {**default_refund_details(), "admin_refund_approval": "Pending"}
        return make_order(shipping_status="Delivered", refund_details=refund_details)

    @pytest.mark.asyncio
    async def test_approval_marks_order_refunded(
        self,
        order_service: OrderService,
        mock_supabase: MagicMock,
        notifications: MagicMock,
        pending_order: dict,
    ) -> None:
        order = pending_order
        load_order(mock_supabase, order)
        accept_update(mock_supabase, order)

        order = await order_service.decide_refund(UUID(ORDER_ID), "Approved")

        assert order["shipping_status"] == "Refunded"
        assert order["refund_details"]["admin_refund_approval"] == "Approved"
        recipients = [c.args[0] for c in notifications.notify.await_args_list]
        assert recipients == [UserRecipient(UUID(BUYER_ID)), ADMIN]
        assert notifications.notify.await_args_list[0].args[4] == {"refund_approval": "Approved"}

    @pytest.mark.asyncio
    async def test_rejection_keeps_shipping_status(
        self,
        order_service: OrderService,
        mock_supabase: MagicMock,
        pending_order: dict,
    ) -> None:
        order = pending_order
        load_order(mock_supabase, order)
        update = accept_update(mock_supabase, order)

        order = await order_service.decide_refund(UUID(ORDER_ID), "Rejected")

        assert "shipping_status" not in update.call_args.args[0]
        assert order["shipping_status"] == "Delivered"
        assert order["refund_details"]["admin_refund_approval"] == "Rejected"

    @pytest.mark.asyncio
    async def test_second_decision_fails(
        self, order_service: OrderService, mock_supabase: MagicMock
    ) -> None:
        decided = {**default_refund_details(), "admin_refund_approval": "Approved"}
        load_order(mock_supabase, make_order(shipping_status="Refunded", refund_details=decided))

        with pytest.raises(InvalidStateError):
            await order_service.decide_refund(UUID(ORDER_ID), "Rejected")

    @pytest.mark.asyncio
    async def test_invalid_decision_raises_validation_error(
        self, order_service: OrderService, mock_supabase: MagicMock
    ) -> None:
        with pytest.raises(ValidationError):
            await order_service.decide_refund(UUID(ORDER_ID), "Maybe")

        mock_supabase.table.assert_not_called()


class TestExecuteRefund:
    """Tests for execute_refund method."""

    @pytest.fixture
    def approved_order(self) -> dict:
        refund_details = {**default_refund_details(), "admin_refund_approval": "Approved"}
        return make_order(shipping_status="Refunded", refund_details=refund_details, total_amount=10000)

    @pytest.mark.asyncio
    async def test_refunds_with_ten_percent_fee(
        self,
        order_service: OrderService,
        mock_supabase: MagicMock,
        mock_stripe: MagicMock,
        emails: MagicMock,
        notifications: MagicMock,
        approved_order: dict,
    ) -> None:
        """Test that 10000 refunds 9000 and keeps a 1000 fee."""
        order = approved_order
        load_order(mock_supabase, order)
        update = accept_update(mock_supabase, order)

        result = await order_service.execute_refund(UUID(ORDER_ID))

        mock_stripe.Refund.create.assert_called_once_with(
            payment_intent="pi_123",
            amount=9000,
            idempotency_key=f"refund-{ORDER_ID}",
        )
        refund_details = update.call_args.args[0]["refund_details"]
        assert refund_details["refunded"] is True
        assert refund_details["refund_amount"] == 9000
        assert refund_details["refund_fee"] == 1000
        assert result["order"]["shipping_status"] == "Refunded"
        emails.send_refund_update_email.assert_awaited_once_with("buyer@example.com", ORDER_ID, 9000)
        assert notifications.notify.await_args.args[4] == {"refund_amount": 9000, "refund_fee": 1000}

    @pytest.mark.asyncio
    async def test_requires_approval(self, order_service: OrderService, mock_supabase: MagicMock) -> None:
        pending = {**default_refund_details(), "admin_refund_approval": "Pending"}
        load_order(mock_supabase, make_order(shipping_status="Delivered", refund_details=pending))

        with pytest.raises(InvalidStateError):
            await order_service.execute_refund(UUID(ORDER_ID))

    @pytest.mark.asyncio
    async def test_already_refunded_raises_conflict(
        self,
        order_service: OrderService,
        mock_supabase: MagicMock,
        mock_stripe: MagicMock,
        approved_order: dict,
    ) -> None:
        approved_order["refund_details"]["refunded"] = True
        load_order(mock_supabase, approved_order)

        with pytest.raises(ConflictError):
            await order_service.execute_refund(UUID(ORDER_ID))

        mock_stripe.Refund.create.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_payment_intent_raises_validation_error(
        self, order_service: OrderService, mock_supabase: MagicMock, approved_order: dict
    ) -> None:
        approved_order["payment_intent_id"] = None
        load_order(mock_supabase, approved_order)

        with pytest.raises(ValidationError):
            await order_service.execute_refund(UUID(ORDER_ID))

    @pytest.mark.asyncio
    async def test_free_order_is_refunded_without_gateway_call(
        self,
        order_service: OrderService,
        mock_supabase: MagicMock,
        mock_stripe: MagicMock,
        approved_order: dict,
    ) -> None:
        approved_order.update(total_amount=0, payment_intent_id=None)
        load_order(mock_supabase, approved_order)
        update = accept_update(mock_supabase, approved_order)

        result = await order_service.execute_refund(UUID(ORDER_ID))

        mock_stripe.Refund.create.assert_not_called()
        assert update.call_args.args[0]["refund_details"]["refund_amount"] == 0
        assert result["refund"] is None


class TestUpdateShippingStatus:
    """Tests for update_shipping_status method."""

    @pytest.mark.asyncio
    async def test_updates_status_and_notifies_buyer(
        self,
        order_service: OrderService,
        mock_supabase: MagicMock,
        emails: MagicMock,
        notifications: MagicMock,
    ) -> None:
        order = make_order()
        load_order(mock_supabase, order)
        accept_update(mock_supabase, order)

        result = await order_service.update_shipping_status(UUID(ORDER_ID), "Shipped")

        assert result["order"]["shipping_status"] == "Shipped"
        assert result["notification"]["message"] == "Your order status has been updated to Shipped."
        emails.send_status_update_email.assert_awaited_once_with("buyer@example.com", ORDER_ID, "Shipped")
        assert notifications.notify.await_args.args[0] == UserRecipient(UUID(BUYER_ID))

    @pytest.mark.asyncio
    async def test_allows_any_valid_status_as_override(
        self, order_service: OrderService, mock_supabase: MagicMock
    ) -> None:
        order = make_order(shipping_status="Delivered")
        load_order(mock_supabase, order)
        accept_update(mock_supabase, order)

        result = await order_service.update_shipping_status(UUID(ORDER_ID), "Pending")

        assert result["order"]["shipping_status"] == "Pending"

    @pytest.mark.asyncio
    async def test_invalid_status_raises_validation_error(
        self, order_service: OrderService, mock_supabase: MagicMock
    ) -> None:
        with pytest.raises(ValidationError):
            await order_service.update_shipping_status(UUID(ORDER_ID), "Lost")

        mock_supabase.table.assert_not_called()

    @pytest.mark.asyncio
    async def test_notification_failure_still_returns_order(
        self,
        order_service: OrderService,
        mock_supabase: MagicMock,
        notifications: MagicMock,
    ) -> None:
        order = make_order()
        load_order(mock_supabase, order)
        accept_update(mock_supabase, order)
        notifications.notify.side_effect = RuntimeError("db down")

        result = await order_service.update_shipping_status(UUID(ORDER_ID), "Shipped")

        assert result["order"]["shipping_status"] == "Shipped"
        assert result["notification"] is None


class TestListOrders:
    """Tests for paginated order reads."""

    @pytest.mark.asyncio
    async def test_lists_buyer_orders_newest_first(
        self, order_service: OrderService, mock_supabase: MagicMock
    ) -> None:
        query = mock_supabase.table.return_value.select.return_value.eq.return_value
        query.order.return_value.range.return_value.execute.return_value = MagicMock(
            data=[make_order()], count=11
        )

        result = await order_service.list_orders_for_buyer(UUID(BUYER_ID), page=2, limit=5)

        query.order.assert_called_once_with("created_at", desc=True)
        query.order.return_value.range.assert_called_once_with(5, 9)
        assert result["total"] == 11
        assert result["pages"] == 3
        assert len(result["items"]) == 1

    @pytest.mark.asyncio
    async def test_admin_list_rejects_unknown_status(self, order_service: OrderService) -> None:
        with pytest.raises(ValidationError):
            await order_service.list_all_orders(shipping_status="Lost")
