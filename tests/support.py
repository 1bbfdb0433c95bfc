"""Helpers shared by test modules (plain functions and fakes, no fixtures)."""

import hashlib
import hmac
import json
from typing import Callable, List, Optional

import httpx

from models.order import CreateOrderRequest, Order
from models.payment import PaymentProviderName
from models.tables import ProductVariantRow
from providers.monnify import MonnifyProvider
from providers.opay import OpayProvider
from providers.paystack import PaystackProvider
from services.payment_gateway import PaymentGatewayRouter
from utils.database import Database

STAFF_TOKEN = "staff-test-token"
PAYSTACK_SECRET = "sk_test_paystack"
OPAY_SECRET = "opay-secret"
MONNIFY_SECRET = "monnify-secret"

SHIPPING_ADDRESS = {
    "firstName": "Ada",
    "lastName": "Obi",
    "email": "ada@example.com",
    "phone": "+2348012345678",
    "address": "12 Marina Road",
    "city": "Lagos",
    "state": "Lagos",
}


async def get_stock(database: Database, variant_id: str) -> int:
    async with database.transaction() as session:
        variant = await session.get(ProductVariantRow, variant_id, populate_existing=True)
        return variant.stock


def order_request(lines, zone_id: str = "zone_lagos", **address_overrides) -> CreateOrderRequest:
    return CreateOrderRequest.model_validate({
        "items": [{"variantId": variant_id, "quantity": quantity} for variant_id, quantity in lines],
        "shippingZoneId": zone_id,
        "shippingAddress": {**SHIPPING_ADDRESS, **address_overrides},
    })


def sign(secret: str, body: bytes) -> str:
    return hmac.new(secret.encode(), body, hashlib.sha512).hexdigest()


def json_bytes(payload: dict) -> bytes:
    return json.dumps(payload).encode()


class RecordingNotifier:
    """Collects confirmed orders instead of starting workflows."""

    def __init__(self):
        self.orders: List[Order] = []

    async def order_confirmed(self, order: Order) -> None:
        self.orders.append(order)


def mock_client(handler: Callable[[httpx.Request], httpx.Response],
                headers: Optional[dict] = None) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        transport=httpx.MockTransport(handler),
        base_url="https://provider.test",
        headers=headers,
    )


def default_provider_handler(request: httpx.Request) -> httpx.Response:
    """Answers every provider endpoint with a successful, well-formed response."""
    path = request.url.path
    if path == "/transaction/initialize":
        body = json.loads(request.content)
        return httpx.Response(200, json={
            "status": True,
            "data": {"authorization_url": "https://checkout.paystack.test/abc", "reference": body["reference"]},
        })
    if path.startswith("/transaction/verify/"):
        return httpx.Response(200, json={"status": True, "data": {"status": "success"}})
    if path == "/api/v1/international/cashier/create":
        return httpx.Response(200, json={"code": "00000", "data": {"cashierUrl": "https://cashier.opay.test/x"}})
    if path == "/api/v1/international/cashier/status":
        return httpx.Response(200, json={"code": "00000", "data": {"status": "SUCCESS"}})
    if path == "/api/v1/auth/login":
        return httpx.Response(200, json={
            "requestSuccessful": True,
            "responseBody": {"accessToken": "token-1", "expiresIn": 3600},
        })
    if path == "/api/v1/merchant/transactions/init-transaction":
        return httpx.Response(200, json={
            "requestSuccessful": True,
            "responseBody": {"checkoutUrl": "https://checkout.monnify.test/y"},
        })
    if path.startswith("/api/v2/transactions/"):
        return httpx.Response(200, json={"requestSuccessful": True, "responseBody": {"paymentStatus": "PAID"}})
    return httpx.Response(404, json={"message": "not found"})


def make_gateway(handler: Callable[[httpx.Request], httpx.Response] = default_provider_handler,
                 **provider_kwargs) -> PaymentGatewayRouter:
    provider_kwargs.setdefault("retry_delay", 0)
    return PaymentGatewayRouter({
        PaymentProviderName.PAYSTACK: PaystackProvider(mock_client(handler), **provider_kwargs),
        PaymentProviderName.OPAY: OpayProvider(mock_client(handler), **provider_kwargs),
        PaymentProviderName.MONNIFY: MonnifyProvider(mock_client(handler), api_key="mk", secret_key="ms",
                                                     contract_code="C-1", **provider_kwargs),
    })
