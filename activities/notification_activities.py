from temporalio import activity
from temporalio.exceptions import ApplicationError
from datetime import datetime
from decimal import Decimal
from html import escape
from typing import Optional, Tuple
import logging

import httpx

logger = logging.getLogger(__name__)

_CURRENCY_SYMBOLS = {"NGN": "₦"}


def format_money(amount, currency: str) -> str:
    symbol = _CURRENCY_SYMBOLS.get(currency, f"{currency} ")
    return f"{symbol}{Decimal(str(amount)):,.2f}"


def render_order_confirmation(payload: dict) -> Tuple[str, str]:
    """Subject and HTML body of the order confirmation email."""
    order_number = escape(payload["order_number"])
    currency = payload.get("currency", "NGN")
    items_html = "".join(
        f"<li>{escape(item['product_name'])} × {item['quantity']} - "
        f"{format_money(item['unit_price'], currency)}</li>"
        for item in payload.get("items", [])
    )
    track_url = escape(payload.get("track_url", ""), quote=True)
    store_name = escape(payload.get("store_name", ""))

    subject = f"Order Confirmed - {payload['order_number']}"
    html = (
        "<h1>Thank you for your order!</h1>"
        f"<p>Your order <strong>{order_number}</strong> has been confirmed.</p>"
        "<h3>Order Items:</h3>"
        f"<ul>{items_html}</ul>"
        f"<p><strong>Total:</strong> {format_money(payload['total'], currency)}</p>"
        "<p>We'll notify you when your order ships.</p>"
        f'<p><a href="{track_url}">Track Your Order</a></p>'
        f"<p>The {store_name} Team</p>"
    )
    return subject, html


class EmailSender:
    """Delivers mail through the Resend HTTP API, or only logs it when no key is set."""

    RESEND_URL = "https://api.resend.com/emails"

    def __init__(self, api_key: Optional[str], sender: str, client: Optional[httpx.AsyncClient] = None):
        self._api_key = api_key
        self._sender = sender
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=10.0)

    async def send(self, to: str, subject: str, html: str) -> bool:
        if not self._api_key:
            logger.info(f"Email delivery not configured, skipping '{subject}' to {to}")
            return False

        payload = {"from": self._sender, "to": [to], "subject": subject, "html": html}
        headers = {"Authorization": f"Bearer {self._api_key}"}
        response = await self._client.post(self.RESEND_URL, json=payload, headers=headers)
        response.raise_for_status()
        logger.info(f"Email sent to {to}: {subject}")
        return True

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


class NotificationActivities:
    def __init__(self, email_sender: EmailSender):
        self._email_sender = email_sender

    @activity.defn
    async def send_order_confirmation(self, payload: dict) -> dict:
        """Send the order confirmation email for a freshly created order."""
        order_number = payload.get("order_number")
        recipient = payload.get("email")
        activity.logger.info(f"Sending order confirmation for order {order_number}")

        if not recipient:
            activity.logger.error(f"Order {order_number} has no recipient email")
            raise ApplicationError(f"Order {order_number} has no recipient email", non_retryable=True)

        subject, html = render_order_confirmation(payload)
        delivered = await self._email_sender.send(recipient, subject, html)

        activity.logger.info(f"Order confirmation for {order_number} processed (delivered={delivered})")
        return {
            "order_number": order_number,
            "recipient": recipient,
            "delivered": delivered,
            "sent_at": datetime.now().isoformat(),
        }
