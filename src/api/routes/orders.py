"""Order API routes for shoppers and store administrators."""

import logging
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Query

from src.api.deps import AdminUser, CurrentUser
from src.schemas.common import Pagination
from src.schemas.order import (
    OrderActionResponse,
    OrderListResponse,
    OrderResponse,
    RefundDecisionRequest,
    ShippingStatus,
    ShippingStatusUpdate,
)
from src.services.order_service import OrderService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/orders", tags=["orders"])
admin_router = APIRouter(prefix="/admin/orders", tags=["admin"])


def _order_list(result: dict[str, Any]) -> OrderListResponse:
    return OrderListResponse(
        items=[OrderResponse.model_validate(o) for o in result["items"]],
        pagination=Pagination(
            total=result["total"],
            page=result["page"],
            limit=result["limit"],
            pages=result["pages"],
        ),
    )


def _refund_id(refund: Any) -> str | None:
    return getattr(refund, "id", None) if refund is not None else None


# Shopper endpoints


@router.get(
    "",
    response_model=OrderListResponse,
    summary="List my orders",
    description="Returns the current user's orders, newest first.",
)
async def list_my_orders(
    user: CurrentUser,
    page: int = Query(default=1, ge=1, description="Page number"),
    limit: int = Query(default=10, ge=1, le=100, description="Page size"),
) -> OrderListResponse:
    """List the current user's orders."""
    service = OrderService()
    result = await service.list_orders_for_buyer(user.user_id, page=page, limit=limit)
    return _order_list(result)


@router.get(
    "/{order_id}",
    response_model=OrderResponse,
    summary="Get order",
    description="Returns one of the current user's orders.",
)
async def get_my_order(order_id: UUID, user: CurrentUser) -> OrderResponse:
    """Get an order owned by the current user."""
    service = OrderService()
    order = await service.get_order_for_buyer(order_id, user.user_id)
    return OrderResponse.model_validate(order)


@router.post(
    "/{order_id}/cancel",
    response_model=OrderActionResponse,
    summary="Cancel order",
    description="Cancels a Pending order and refunds the payment minus the cancellation fee.",
)
async def cancel_order(order_id: UUID, user: CurrentUser) -> OrderActionResponse:
    """Cancel one of the current user's orders.

    Args:
        order_id: The order to cancel.
        user: The buyer who owns the order.

    Returns:
        OrderActionResponse: The cancelled order and the Stripe refund ID.
    """
    service = OrderService()
    result = await service.cancel_order(order_id, user.user_id)

    return OrderActionResponse(
        message="Order cancelled successfully",
        order=OrderResponse.model_validate(result["order"]),
        refund_id=_refund_id(result["refund"]),
    )


@router.post(
    "/{order_id}/refund-request",
    response_model=OrderActionResponse,
    summary="Request refund",
    description="Asks the store to approve a refund for a Delivered order.",
)
async def request_refund(order_id: UUID, user: CurrentUser) -> OrderActionResponse:
    """Request a refund for one of the current user's delivered orders."""
    service = OrderService()
    order = await service.request_refund(order_id, user.user_id)

    return OrderActionResponse(
        message="Refund request submitted successfully",
        order=OrderResponse.model_validate(order),
    )


# Admin endpoints


@admin_router.get(
    "",
    response_model=OrderListResponse,
    summary="List all orders",
    description="Returns all orders, newest first, optionally filtered by shipping status.",
)
async def list_all_orders(
    admin: AdminUser,
    page: int = Query(default=1, ge=1, description="Page number"),
    limit: int = Query(default=10, ge=1, le=100, description="Page size"),
    status: ShippingStatus | None = Query(default=None, description="Filter by shipping status"),
) -> OrderListResponse:
    """List every order in the store."""
    service = OrderService()
    result = await service.list_all_orders(page=page, limit=limit, shipping_status=status)
    return _order_list(result)


@admin_router.put(
    "/{order_id}/refund-decision",
    response_model=OrderActionResponse,
    summary="Decide refund request",
    description="Approves or rejects a pending refund request.",
)
async def decide_refund(
    order_id: UUID,
    data: RefundDecisionRequest,
    admin: AdminUser,
) -> OrderActionResponse:
    """Record the admin decision on a refund request."""
    service = OrderService()
    order = await service.decide_refund(order_id, data.decision)
    logger.info("Admin %s %s refund for order %s", admin.user_id, data.decision.lower(), order_id)

    return OrderActionResponse(
        message=f"Refund request {data.decision.lower()}",
        order=OrderResponse.model_validate(order),
    )


@admin_router.post(
    "/{order_id}/refund",
    response_model=OrderActionResponse,
    summary="Execute refund",
    description="Pays out an approved refund minus the refund fee.",
)
async def execute_refund(order_id: UUID, admin: AdminUser) -> OrderActionResponse:
    """Issue the Stripe refund for an approved request."""
    service = OrderService()
    result = await service.execute_refund(order_id)

    return OrderActionResponse(
        message="Refund processed successfully",
        order=OrderResponse.model_validate(result["order"]),
        refund_id=_refund_id(result["refund"]),
    )


@admin_router.put(
    "/{order_id}/status",
    response_model=OrderActionResponse,
    summary="Update shipping status",
    description="Sets the order's shipping status and notifies the buyer.",
)
async def update_shipping_status(
    order_id: UUID,
    data: ShippingStatusUpdate,
    admin: AdminUser,
) -> OrderActionResponse:
    """Override an order's shipping status."""
    service = OrderService()
    result = await service.update_shipping_status(order_id, data.new_status)

    return OrderActionResponse(
        message="Order status updated",
        order=OrderResponse.model_validate(result["order"]),
        notification=result["notification"],
    )
