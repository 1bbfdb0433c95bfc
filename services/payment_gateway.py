"""
Payment gateway routing and the checkout-facing payment operations.
"""

import logging
from decimal import Decimal
from typing import Dict, Mapping, Union

import httpx

from models.order import PaymentStatus
from models.payment import (
    InitializePaymentRequest,
    PaymentInitResult,
    PaymentProviderName,
    PaymentVerifyResult,
)
from models.tables import OrderRow
from providers.base import PaymentProvider
from providers.monnify import MonnifyProvider
from providers.opay import OpayProvider
from providers.paystack import PaystackProvider
from services.errors import ConflictError, InvalidPaymentProviderError, OrderNotFoundError, ValidationError
from utils.config import Settings
from utils.database import Database

logger = logging.getLogger(__name__)


class PaymentGatewayRouter:
    """Dispatches payment calls to the adapter registered for each provider."""

    def __init__(self, providers: Mapping[PaymentProviderName, PaymentProvider]):
        missing = [name.value for name in PaymentProviderName if name not in providers]
        if missing:
            raise ValueError(f"No payment adapter registered for: {', '.join(missing)}")
        self._providers: Dict[PaymentProviderName, PaymentProvider] = dict(providers)

    @staticmethod
    def resolve(provider: Union[PaymentProviderName, str, None]) -> PaymentProviderName:
        if isinstance(provider, PaymentProviderName):
            return provider
        if isinstance(provider, str):
            try:
                return PaymentProviderName(provider.strip().upper())
            except ValueError:
                pass
        raise InvalidPaymentProviderError(provider)

    def adapter(self, provider: Union[PaymentProviderName, str]) -> PaymentProvider:
        return self._providers[self.resolve(provider)]

    async def initialize(self, provider: Union[PaymentProviderName, str], amount: Decimal, email: str,
                         order_id: str, callback_url: str) -> PaymentInitResult:
        return await self.adapter(provider).initialize(amount, email, order_id, callback_url)

    async def verify(self, provider: Union[PaymentProviderName, str], reference: str) -> PaymentVerifyResult:
        return await self.adapter(provider).verify(reference)

    async def aclose(self) -> None:
        for adapter in self._providers.values():
            await adapter.aclose()


class PaymentService:
    def __init__(self, database: Database, router: PaymentGatewayRouter, callback_url: str):
        self._database = database
        self._router = router
        self._callback_url = callback_url

    async def initialize_payment(self, request: InitializePaymentRequest) -> PaymentInitResult:
        """
        Start a hosted checkout for an unpaid order. The order is only read;
        its payment status changes when the provider's webhook arrives.

        Raises:
            InvalidPaymentProviderError: provider is not one of the supported names
            OrderNotFoundError: no order with that id
            ConflictError: the order is already paid or refunded
            ValidationError: amount differs from the order total
            ProviderError: the provider could not be reached or answered garbage
        """
        provider = self._router.resolve(request.provider)

        async with self._database.transaction() as session:
            row = await session.get(OrderRow, request.order_id)
            if row is None:
                raise OrderNotFoundError(request.order_id)
            payment_status = PaymentStatus(row.payment_status)
            total = row.total
            order_number = row.order_number

        if payment_status in (PaymentStatus.PAID, PaymentStatus.REFUNDED):
            raise ConflictError(f"Order {order_number} is already {payment_status.value.lower()}")
        if Decimal(str(request.amount)) != total:
            logger.warning(f"Payment amount {request.amount} does not match order {order_number} total {total}")
            raise ValidationError("Payment amount does not match the order total")

        result = await self._router.initialize(
            provider, request.amount, str(request.email), request.order_id, self._callback_url
        )
        if result.success:
            logger.info(f"{provider.value} checkout {result.reference} opened for order {order_number}")
        else:
            logger.warning(f"{provider.value} declined to open a checkout for order {order_number}")
        return result

    async def verify_payment(self, provider: Union[PaymentProviderName, str], reference: str) -> PaymentVerifyResult:
        """Read-only status lookup; settlement is driven by webhooks."""
        return await self._router.verify(provider, reference)

    async def aclose(self) -> None:
        await self._router.aclose()


def build_payment_gateway(settings: Settings) -> PaymentGatewayRouter:
    """One long-lived HTTP client per provider, configured once at startup."""
    timeout = httpx.Timeout(settings.payment_timeout_seconds)
    common = dict(
        reference_prefix=settings.order_number_prefix,
        currency=settings.currency,
        max_retries=settings.payment_max_retries,
        retry_delay=settings.payment_retry_delay,
    )

    paystack = PaystackProvider(
        httpx.AsyncClient(
            base_url=settings.paystack_base_url,
            headers={"Authorization": f"Bearer {settings.paystack_secret_key or ''}"},
            timeout=timeout,
        ),
        **common,
    )
    opay = OpayProvider(
        httpx.AsyncClient(
            base_url=settings.opay_base_url,
            headers={
                "Authorization": f"Bearer {settings.opay_public_key or ''}",
                "MerchantId": settings.opay_merchant_id or "",
            },
            timeout=timeout,
        ),
        store_name=settings.store_name,
        **common,
    )
    monnify = MonnifyProvider(
        httpx.AsyncClient(base_url=settings.monnify_base_url, timeout=timeout),
        api_key=settings.monnify_api_key or "",
        secret_key=settings.monnify_secret_key or "",
        contract_code=settings.monnify_contract_code or "",
        store_name=settings.store_name,
        **common,
    )

    for name, configured in (
        ("PAYSTACK", settings.paystack_secret_key),
        ("OPAY", settings.opay_public_key and settings.opay_merchant_id),
        ("MONNIFY", settings.monnify_api_key and settings.monnify_secret_key),
    ):
        if not configured:
            logger.warning(f"{name} credentials are not configured; calls to it will be rejected upstream")

    return PaymentGatewayRouter({
        PaymentProviderName.PAYSTACK: paystack,
        PaymentProviderName.OPAY: opay,
        PaymentProviderName.MONNIFY: monnify,
    })
