"""
Common plumbing for payment provider adapters.

Adapters receive a long-lived httpx.AsyncClient (base URL, auth headers and
timeout already configured) and share a tenacity retry policy with exponential
backoff for transport errors and 5xx answers.
"""

import logging
import time
from abc import ABC, abstractmethod
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict

import httpx
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from models.payment import PaymentInitResult, PaymentProviderName, PaymentVerifyResult
from services.errors import ProviderError

logger = logging.getLogger(__name__)


def to_minor_units(amount: Decimal) -> int:
    """Major currency units to minor units (Naira to kobo)."""
    return int((Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class PaymentProvider(ABC):
    name: PaymentProviderName

    def __init__(self, client: httpx.AsyncClient, reference_prefix: str = "JFS", currency: str = "NGN",
                 max_retries: int = 3, retry_delay: float = 0.5):
        self._client = client
        self._reference_prefix = reference_prefix
        self._currency = currency
        self._max_retries = max(1, max_retries)
        self._retry_delay = retry_delay

    @abstractmethod
    async def initialize(self, amount: Decimal, email: str, order_id: str, callback_url: str) -> PaymentInitResult:
        """Create a hosted checkout for the order and return where to send the customer."""

    @abstractmethod
    async def verify(self, reference: str) -> PaymentVerifyResult:
        """Ask the provider for the current state of a transaction."""

    def make_reference(self, order_id: str) -> str:
        # Traceability only; providers do not enforce it as an idempotency key.
        return f"{self._reference_prefix}-{order_id}-{int(time.time() * 1000)}"

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _send(self, method: str, url: str, **kwargs) -> httpx.Response:
        response = await self._client.request(method, url, **kwargs)
        if response.status_code >= 500:
            raise httpx.HTTPStatusError(
                f"{self.name.value} answered {response.status_code}",
                request=response.request,
                response=response,
            )
        return response

    async def _request(self, method: str, url: str, **kwargs) -> Dict[str, Any]:
        provider = self.name.value
        retrying = AsyncRetrying(
            retry=retry_if_exception_type((httpx.TransportError, httpx.HTTPStatusError)),
            stop=stop_after_attempt(self._max_retries),
            wait=wait_exponential(multiplier=self._retry_delay),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        try:
            response = await retrying(self._send, method, url, **kwargs)
        except (httpx.TransportError, httpx.HTTPStatusError) as e:
            logger.error(f"{provider} {method} {url} failed after {self._max_retries} attempts: {e!r}")
            raise ProviderError(provider, "payment provider unavailable") from e

        try:
            return response.json()
        except ValueError as e:
            logger.error(f"{provider} returned a non-JSON body (HTTP {response.status_code})")
            raise ProviderError(provider, "unreadable provider response") from e
