import logging
from decimal import Decimal

from models.payment import PaymentInitResult, PaymentProviderName, PaymentVerifyResult
from providers.base import PaymentProvider, to_minor_units

logger = logging.getLogger(__name__)

OPAY_SUCCESS_CODE = "00000"


class OpayProvider(PaymentProvider):
    """OPay cashier checkout; the client carries the public key and `MerchantId` headers."""

    name = PaymentProviderName.OPAY

    def __init__(self, client, store_name: str = "JFS Wears", **kwargs):
        super().__init__(client, **kwargs)
        self._store_name = store_name

    async def initialize(self, amount: Decimal, email: str, order_id: str, callback_url: str) -> PaymentInitResult:
        reference = self.make_reference(order_id)
        payload = {
            "amount": {"total": to_minor_units(amount), "currency": self._currency},
            "product": {
                "name": f"{self._store_name} Order #{order_id}",
                "description": f"Purchase from {self._store_name}",
            },
            "reference": reference,
            "callbackUrl": callback_url,
            "cancelUrl": f"{callback_url}?cancelled=true",
            "userInfo": {"userEmail": email},
            "payMethod": "BankCard",
        }
        logger.info(f"Initializing OPay cashier {reference} for order {order_id}")
        result = await self._request("POST", "/api/v1/international/cashier/create", json=payload)
        data = result.get("data") or {}

        return PaymentInitResult(
            success=result.get("code") == OPAY_SUCCESS_CODE,
            payment_url=data.get("cashierUrl"),
            reference=reference,
            provider=self.name,
        )

    async def verify(self, reference: str) -> PaymentVerifyResult:
        result = await self._request("POST", "/api/v1/international/cashier/status", json={"reference": reference})
        data = result.get("data") or {}
        status = data.get("status")
        return PaymentVerifyResult(
            success=result.get("code") == OPAY_SUCCESS_CODE and status == "SUCCESS",
            status=status,
            reference=reference,
            provider=self.name,
        )
