import logging
from decimal import Decimal
from urllib.parse import quote

from models.payment import PaymentInitResult, PaymentProviderName, PaymentVerifyResult
from providers.base import PaymentProvider, to_minor_units

logger = logging.getLogger(__name__)


class PaystackProvider(PaymentProvider):
    """Paystack standard checkout; the client carries `Authorization: Bearer <secret key>`."""

    name = PaymentProviderName.PAYSTACK

    async def initialize(self, amount: Decimal, email: str, order_id: str, callback_url: str) -> PaymentInitResult:
        reference = self.make_reference(order_id)
        payload = {
            "amount": to_minor_units(amount),
            "email": email,
            "currency": self._currency,
            "reference": reference,
            "callback_url": callback_url,
            "metadata": {
                "orderId": order_id,
                "custom_fields": [
                    {"display_name": "Order ID", "variable_name": "order_id", "value": order_id},
                ],
            },
        }
        logger.info(f"Initializing Paystack transaction {reference} for order {order_id}")
        result = await self._request("POST", "/transaction/initialize", json=payload)
        data = result.get("data") or {}

        return PaymentInitResult(
            success=bool(result.get("status")),
            payment_url=data.get("authorization_url"),
            reference=data.get("reference") or reference,
            provider=self.name,
        )

    async def verify(self, reference: str) -> PaymentVerifyResult:
        result = await self._request("GET", f"/transaction/verify/{quote(reference, safe='')}")
        data = result.get("data") or {}
        status = data.get("status")
        return PaymentVerifyResult(
            success=bool(result.get("status")) and status == "success",
            status=status,
            reference=reference,
            provider=self.name,
        )
