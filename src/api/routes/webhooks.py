"""Webhook API routes for external service integrations."""

import logging

from fastapi import APIRouter, HTTPException, Request, status

from src.api.middleware.error_handler import APIError, AuthenticationError
from src.services.checkout_service import CheckoutService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.post(
    "/stripe",
    status_code=status.HTTP_200_OK,
    summary="Handle Stripe webhooks",
    description="Receives and processes Stripe webhook events. Requires valid signature.",
)
async def stripe_webhook(request: Request) -> dict[str, str]:
    """Handle Stripe webhook events.

    The raw body is read unparsed because the signature covers the exact
    bytes Stripe sent.

    Handles:
    - checkout.session.completed: Places the order, reserving stock

    Any processing failure is returned as a 500 so that Stripe redelivers
    the event; duplicates of an already placed order are acknowledged
    with 200.

    Args:
        request: FastAPI request object for reading raw body and headers.

    Returns:
        dict: Acknowledgment message.

    Raises:
        HTTPException: 400 if the signature header is missing or invalid,
            500 if the event could not be processed.
    """
    payload = await request.body()

    sig_header = request.headers.get("stripe-signature")
    if not sig_header:
        logger.error("Missing Stripe-Signature header in webhook request")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing Stripe-Signature header",
        )

    logger.debug("Webhook payload size: %d bytes", len(payload))

    service = CheckoutService()

    try:
        event = service.verify_webhook_signature(payload, sig_header)
    except AuthenticationError as e:
        logger.error("Invalid webhook signature: %s", e.message)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid signature",
        ) from e

    event_type = event.get("type", "")
    logger.info("Processing Stripe webhook event: %s", event_type)

    try:
        await service.handle_webhook_event(event)
    except APIError as e:
        logger.error("Webhook %s processing failed (%s): %s", event_type, e.error_type, e.message)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Webhook processing failed",
        ) from e

    return {"status": "received"}
