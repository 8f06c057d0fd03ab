"""Email service using Resend for transactional order emails."""

import logging
from typing import Any

import resend

from src.core.config import get_settings

logger = logging.getLogger(__name__)

BRAND_COLOR = "#10b981"


def _format_amount(amount_cents: int) -> str:
    return f"${amount_cents / 100:.2f}"


class EmailService:
    """Service for sending transactional emails via Resend.

    Every send is fire-and-forget from the caller's perspective: failures
    are logged and reported in the returned dict, never raised.
    """

    def __init__(self) -> None:
        """Initialize email service with Resend API key."""
        settings = get_settings()
        resend.api_key = settings.resend_api_key
        self.from_email = settings.email_from_address
        self.client_url = settings.client_url

    def _render(self, title: str, content: str, button: tuple[str, str] | None = None) -> str:
        """Wrap template content in the shared email layout."""
        button_html = ""
        if button:
            text, link = button
            button_html = f"""
        <div style="text-align: center; margin: 30px 0;">
            <a href="{link}" style="background: {BRAND_COLOR}; color: white; padding: 12px 28px; text-decoration: none; border-radius: 6px; font-weight: 600;">
                {text}
            </a>
        </div>"""

        return f"""
<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{title}</title>
</head>
<body style="font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; line-height: 1.6; color: #333; max-width: 600px; margin: 0 auto; padding: 20px;">
    <div style="background: {BRAND_COLOR}; padding: 24px; border-radius: 10px 10px 0 0; text-align: center;">
        <h1 style="color: white; margin: 0; font-size: 22px;">{title}</h1>
    </div>
    <div style="background: #f9fafb; padding: 30px; border: 1px solid #e5e7eb; border-top: none; border-radius: 0 0 10px 10px;">
        {content}{button_html}
    </div>
</body>
</html>
"""

    async def _send(self, template: str, to_email: str, subject: str, html: str) -> dict[str, Any]:
        try:
            response = resend.Emails.send({
                "from": self.from_email,
                "to": [to_email],
                "subject": subject,
                "html": html,
            })

            logger.info("%s email sent to %s, id: %s", template, to_email, response.get("id"))
            return {"success": True, "email_id": response.get("id")}

        except Exception as e:
            logger.error("Failed to send %s email to %s: %s", template, to_email, str(e))
            return {"success": False, "error": str(e)}

    async def send_order_confirmation_email(
        self,
        to_email: str,
        order_id: str,
        receipt_url: str | None = None,
    ) -> dict[str, Any]:
        """Send the order confirmation after a payment completes.

        Args:
            to_email: Recipient email address.
            order_id: The placed order's ID.
            receipt_url: Stripe receipt URL, when the charge exposes one.

        Returns:
            dict: Send result with success flag.
        """
        content = f"""
        <p>Thank you for your order!</p>
        <p>Your order number is <strong>{order_id}</strong>.</p>
        <p>We are processing your order and will notify you when it ships.</p>"""
        if receipt_url:
            content += f"""
        <p>Keep the receipt for your order: <a href="{receipt_url}">View Receipt</a></p>"""

        html = self._render(
            "Order Confirmation",
            content,
            button=("View Orders", f"{self.client_url}/orders"),
        )
        return await self._send("order_confirmation", to_email, "Order Confirmation", html)

    async def send_status_update_email(
        self,
        to_email: str,
        order_id: str,
        new_status: str,
    ) -> dict[str, Any]:
        """Send a shipping status update."""
        content = f"""
        <p>Your order (ID: <strong>{order_id}</strong>) status has been updated to:</p>
        <h3 style="color: {BRAND_COLOR}; margin: 15px 0;">{new_status}</h3>
        <p>Please check your account for more details.</p>"""
        html = self._render("Order Status Update", content)
        return await self._send("status_update", to_email, "Order Status Update", html)

    async def send_refund_update_email(
        self,
        to_email: str,
        order_id: str,
        refund_amount_cents: int,
    ) -> dict[str, Any]:
        """Send the refunded amount for an order.

        Args:
            to_email: Recipient email address.
            order_id: The refunded order's ID.
            refund_amount_cents: Amount returned to the buyer, in minor units.

        Returns:
            dict: Send result with success flag.
        """
        content = f"""
        <p>We have processed a refund for your order (ID: <strong>{order_id}</strong>).</p>
        <p style="font-size: 18px; margin: 15px 0;">
            Refund amount: <strong>{_format_amount(refund_amount_cents)}</strong>
        </p>
        <p>The refund should reflect in your account within 3-5 business days.</p>"""
        html = self._render("Refund Processed", content)
        return await self._send("refund_update", to_email, "Refund Processed", html)

    async def send_cancellation_confirmation_email(
        self,
        to_email: str,
        order_id: str,
        cancellation_fee_percent: int,
    ) -> dict[str, Any]:
        """Send the cancellation confirmation."""
        content = f"""
        <p>Your order (ID: <strong>{order_id}</strong>) has been cancelled.</p>
        <p>Your payment will be returned within a few days, less a {cancellation_fee_percent}% cancellation fee.</p>
        <p>If you have any questions, please contact our support team.</p>"""
        html = self._render("Order Cancelled", content)
        return await self._send(
            "cancellation_confirmation", to_email, "Order Cancellation Confirmation", html
        )
