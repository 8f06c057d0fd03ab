"""Checkout API routes for Stripe integration."""

from fastapi import APIRouter, status

from src.api.deps import CurrentUser
from src.schemas.checkout import (
    CheckoutSessionCreate,
    CheckoutSessionResponse,
    VerifyOrderResponse,
)
from src.schemas.order import OrderResponse
from src.services.checkout_service import CheckoutService

router = APIRouter(prefix="/checkout", tags=["checkout"])


@router.post(
    "/session",
    response_model=CheckoutSessionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create Stripe Checkout Session",
    description="Creates a Stripe Checkout Session for the submitted cart, optionally applying a coupon.",
)
async def create_checkout_session(
    data: CheckoutSessionCreate,
    user: CurrentUser,
) -> CheckoutSessionResponse:
    """Create a Stripe Checkout Session for the buyer's cart.

    The frontend should redirect to the returned checkout_url. The order
    itself is created later by the Stripe webhook.

    Args:
        data: Cart snapshot, shipping details and optional coupon.
        user: The authenticated buyer.

    Returns:
        CheckoutSessionResponse: Contains checkout_url for redirect.
    """
    service = CheckoutService()
    result = await service.create_checkout_session(
        buyer_id=user.user_id,
        buyer_email=user.email,
        cart_snapshot=[line.model_dump(mode="json") for line in data.products],
        shipping_details=data.shipping_details.model_dump(),
        coupon_code=data.coupon,
    )

    return CheckoutSessionResponse(
        session_id=result["session_id"],
        checkout_url=result["checkout_url"],
    )


@router.get(
    "/verify/{session_id}",
    response_model=VerifyOrderResponse,
    summary="Verify a completed checkout",
    description="Returns the paid order created for a Stripe Checkout Session. 404 until the webhook has been processed.",
)
async def verify_order(session_id: str, user: CurrentUser) -> VerifyOrderResponse:
    """Look up the order placed from the buyer's checkout session."""
    service = CheckoutService()
    order = await service.verify_order(session_id, user.user_id)
    return VerifyOrderResponse(valid=True, order=OrderResponse.model_validate(order))
