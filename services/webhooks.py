"""
Webhook ingestion: signature verification, event parsing and reconciliation.

Signatures are HMAC-SHA512 hex digests of the exact request bytes. Nothing
is parsed or applied before the signature checks out.
"""

import hashlib
import hmac
import json
import logging
from dataclasses import dataclass
from typing import Mapping, Optional

from models.payment import PaymentOutcome, PaymentProviderName
from services.errors import OrderServiceError, UnauthorizedError
from services.reconciliation import ReconciliationService

logger = logging.getLogger(__name__)

_INVALID_SIGNATURE = "Invalid webhook signature"


@dataclass(frozen=True)
class WebhookEvent:
    provider: PaymentProviderName
    outcome: PaymentOutcome
    order_id: Optional[str]
    reference: Optional[str]
    event_type: Optional[str] = None


def compute_signature(secret: str, raw_body: bytes) -> str:
    return hmac.new(secret.encode(), raw_body, hashlib.sha512).hexdigest()


def extract_signature(provider: PaymentProviderName, headers: Mapping[str, str]) -> Optional[str]:
    """Where each provider puts its signature; header lookup is case-insensitive."""
    lowered = {key.lower(): value for key, value in headers.items()}
    if provider == PaymentProviderName.OPAY:
        authorization = lowered.get("authorization", "")
        scheme, _, token = authorization.partition(" ")
        if scheme.lower() != "bearer":
            return None
        return token.strip() or None
    if provider == PaymentProviderName.MONNIFY:
        return lowered.get("monnify-signature") or None
    return lowered.get("x-paystack-signature") or None


def verify_signature(provider: PaymentProviderName, secret: Optional[str], raw_body: bytes,
                     headers: Mapping[str, str]) -> None:
    if not secret:
        logger.error(f"Rejecting {provider.value} webhook: no secret configured")
        raise UnauthorizedError(_INVALID_SIGNATURE)

    signature = extract_signature(provider, headers)
    if not signature:
        logger.warning(f"Rejecting {provider.value} webhook: signature missing")
        raise UnauthorizedError(_INVALID_SIGNATURE)

    expected = compute_signature(secret, raw_body)
    if not hmac.compare_digest(expected.lower(), signature.strip().lower()):
        logger.warning(f"Rejecting {provider.value} webhook: signature mismatch")
        raise UnauthorizedError(_INVALID_SIGNATURE)


def _as_dict(value) -> dict:
    return value if isinstance(value, dict) else {}


def parse_event(provider: PaymentProviderName, payload: dict) -> WebhookEvent:
    if provider == PaymentProviderName.OPAY:
        status = payload.get("status")
        outcome = {"SUCCESS": PaymentOutcome.SUCCESS, "FAILED": PaymentOutcome.FAILURE}.get(
            status, PaymentOutcome.IGNORED
        )
        return WebhookEvent(provider, outcome, payload.get("orderId"), payload.get("reference"), status)

    if provider == PaymentProviderName.MONNIFY:
        event_type = payload.get("eventType")
        data = _as_dict(payload.get("eventData")) or payload
        outcome = {
            "SUCCESSFUL_TRANSACTION": PaymentOutcome.SUCCESS,
            "FAILED_TRANSACTION": PaymentOutcome.FAILURE,
        }.get(event_type, PaymentOutcome.IGNORED)
        # product.reference echoes our paymentReference; the order id travels in metaData
        order_id = _as_dict(data.get("metaData")).get("orderId") or _as_dict(data.get("product")).get("reference")
        return WebhookEvent(provider, outcome, order_id, data.get("transactionReference"), event_type)

    event_type = payload.get("event")
    data = _as_dict(payload.get("data"))
    outcome = {"charge.success": PaymentOutcome.SUCCESS, "charge.failed": PaymentOutcome.FAILURE}.get(
        event_type, PaymentOutcome.IGNORED
    )
    order_id = _as_dict(data.get("metadata")).get("orderId")
    return WebhookEvent(provider, outcome, order_id, data.get("reference"), event_type)


class WebhookProcessor:
    def __init__(self, secrets: Mapping[PaymentProviderName, Optional[str]], reconciliation: ReconciliationService):
        self._secrets = dict(secrets)
        self._reconciliation = reconciliation

    async def handle(self, provider: PaymentProviderName, raw_body: bytes, headers: Mapping[str, str]) -> None:
        """
        Verify and apply one delivery.

        Raises UnauthorizedError on a bad signature. Everything after the
        signature check is acknowledged, so providers do not redeliver events
        that can never be applied.
        """
        verify_signature(provider, self._secrets.get(provider), raw_body, headers)

        try:
            payload = json.loads(raw_body)
        except ValueError:
            logger.error(f"{provider.value} webhook carried a valid signature but malformed JSON")
            return
        if not isinstance(payload, dict):
            logger.error(f"{provider.value} webhook payload is not a JSON object")
            return

        event = parse_event(provider, payload)
        if event.outcome == PaymentOutcome.IGNORED:
            logger.info(f"Ignoring {provider.value} webhook event {event.event_type!r}")
            return
        if not event.order_id:
            logger.warning(f"{provider.value} {event.event_type} webhook without an order id, ignoring")
            return

        logger.info(
            f"{provider.value} webhook {event.event_type} for order {event.order_id} (reference {event.reference})"
        )
        try:
            if event.outcome == PaymentOutcome.SUCCESS:
                await self._reconciliation.apply_success(event.order_id, event.reference or "")
            else:
                await self._reconciliation.apply_failure(event.order_id, event.reference)
        except OrderServiceError as e:
            logger.error(f"Could not reconcile {provider.value} event for order {event.order_id}: {e.message}")
        except Exception:
            logger.exception(f"Unexpected error reconciling {provider.value} event for order {event.order_id}")
