"""Stripe SDK setup for checkout sessions, refunds and payment webhooks."""

import logging
from uuid import UUID

import stripe

from src.core.config import get_settings

logger = logging.getLogger(__name__)


def configure_stripe() -> bool:
    """Configure the module-level Stripe SDK from settings.

    Called once at startup. Network retries apply to every request,
    including refunds, which carry idempotency keys so a retry never
    moves money twice.

    Returns:
        bool: True if a secret key was set and payments can be taken.
    """
    settings = get_settings()
    stripe.max_network_retries = settings.stripe_max_network_retries
    stripe.set_app_info(settings.app_name)

    if not settings.stripe_secret_key:
        logger.warning("Stripe secret key not configured. Checkout and refunds will not work.")
        return False

    stripe.api_key = settings.stripe_secret_key
    if not settings.stripe_webhook_secret:
        logger.warning("Stripe webhook secret not configured. Paid sessions will not become orders.")
    return True


def get_stripe() -> stripe:
    """Return the configured Stripe module.

    The SDK keeps its configuration on the module, so services hold the
    module itself; tests substitute a mock here.
    """
    return stripe


def refund_idempotency_key(action: str, order_id: UUID | str) -> str:
    """Idempotency key for the single refund an order action may issue."""
    return f"{action}-{order_id}"
