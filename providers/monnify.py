import asyncio
import base64
import logging
import time
from decimal import Decimal
from typing import Optional
from urllib.parse import quote

from models.payment import PaymentInitResult, PaymentProviderName, PaymentVerifyResult
from providers.base import PaymentProvider
from services.errors import ProviderError

logger = logging.getLogger(__name__)

# Refresh the access token this many seconds before Monnify expires it
TOKEN_EXPIRY_MARGIN = 60


class MonnifyProvider(PaymentProvider):
    """Monnify checkout; every call carries a bearer token obtained via Basic-auth login."""

    name = PaymentProviderName.MONNIFY

    def __init__(self, client, api_key: str = "", secret_key: str = "", contract_code: str = "",
                 store_name: str = "JFS Wears", **kwargs):
        super().__init__(client, **kwargs)
        self._api_key = api_key
        self._secret_key = secret_key
        self._contract_code = contract_code
        self._store_name = store_name
        self._token: Optional[str] = None
        self._token_expires_at = 0.0
        self._token_lock = asyncio.Lock()

    async def _get_access_token(self) -> str:
        async with self._token_lock:
            if self._token and time.monotonic() < self._token_expires_at:
                return self._token

            credentials = base64.b64encode(f"{self._api_key}:{self._secret_key}".encode()).decode()
            result = await self._request(
                "POST", "/api/v1/auth/login", headers={"Authorization": f"Basic {credentials}"}
            )
            body = result.get("responseBody") or {}
            token = body.get("accessToken")
            if not result.get("requestSuccessful") or not token:
                logger.error(f"Monnify login rejected: {result.get('responseMessage')}")
                raise ProviderError(self.name.value, "authentication failed")

            expires_in = float(body.get("expiresIn") or 0)
            self._token = token
            self._token_expires_at = time.monotonic() + max(expires_in - TOKEN_EXPIRY_MARGIN, 0)
            return token

    async def initialize(self, amount: Decimal, email: str, order_id: str, callback_url: str) -> PaymentInitResult:
        token = await self._get_access_token()
        reference = self.make_reference(order_id)
        payload = {
            "amount": float(amount),
            "customerName": f"{self._store_name} Customer",
            "customerEmail": email,
            "paymentReference": reference,
            "paymentDescription": f"{self._store_name} Order #{order_id}",
            "currencyCode": self._currency,
            "contractCode": self._contract_code,
            "redirectUrl": callback_url,
            "paymentMethods": ["CARD", "ACCOUNT_TRANSFER"],
            "metaData": {"orderId": order_id},
        }
        logger.info(f"Initializing Monnify transaction {reference} for order {order_id}")
        result = await self._request(
            "POST",
            "/api/v1/merchant/transactions/init-transaction",
            json=payload,
            headers={"Authorization": f"Bearer {token}"},
        )
        body = result.get("responseBody") or {}

        return PaymentInitResult(
            success=bool(result.get("requestSuccessful")),
            payment_url=body.get("checkoutUrl"),
            reference=reference,
            provider=self.name,
        )

    async def verify(self, reference: str) -> PaymentVerifyResult:
        token = await self._get_access_token()
        result = await self._request(
            "GET",
            f"/api/v2/transactions/{quote(reference, safe='')}",
            headers={"Authorization": f"Bearer {token}"},
        )
        body = result.get("responseBody") or {}
        status = body.get("paymentStatus")
        return PaymentVerifyResult(
            success=bool(result.get("requestSuccessful")) and status == "PAID",
            status=status,
            reference=reference,
            provider=self.name,
        )
