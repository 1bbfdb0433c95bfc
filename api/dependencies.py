import hmac
import logging
from typing import Optional

from fastapi import Header, Request

from models.payment import PaymentProviderName
from services.errors import UnauthorizedError
from services.inventory import InventoryAccessor, InventoryService
from services.notifications import OrderNotifier, TemporalOrderNotifier
from services.order_service import OrderService
from services.payment_gateway import PaymentGatewayRouter, PaymentService, build_payment_gateway
from services.reconciliation import ReconciliationService
from services.settings_service import StoreSettings
from services.webhooks import WebhookProcessor
from utils.config import Settings
from utils.database import Database
from utils.temporal import TemporalConnection

logger = logging.getLogger(__name__)


class ServiceContainer:
    """Everything the routers need, wired once per application."""

    def __init__(
        self,
        settings: Settings,
        database: Database,
        payment_gateway: PaymentGatewayRouter,
        notifier: Optional[OrderNotifier] = None,
        temporal: Optional[TemporalConnection] = None,
    ):
        self.settings = settings
        self.database = database
        self.temporal = temporal

        accessor = InventoryAccessor()
        self.store_settings = StoreSettings(database, currency=settings.currency)
        self.inventory = InventoryService(database, accessor)
        self.orders = OrderService(
            database,
            accessor,
            self.store_settings,
            notifier=notifier,
            order_number_prefix=settings.order_number_prefix,
            order_number_attempts=settings.order_number_attempts,
            notification_timeout=settings.notification_timeout_seconds,
            strict_status_transitions=settings.order_status_strict,
        )
        self.reconciliation = ReconciliationService(database)
        self.payments = PaymentService(database, payment_gateway, settings.checkout_callback_url)
        self.webhooks = WebhookProcessor(
            {
                PaymentProviderName.OPAY: settings.opay_secret_key,
                PaymentProviderName.MONNIFY: settings.monnify_secret_key,
                PaymentProviderName.PAYSTACK: settings.paystack_secret_key,
            },
            self.reconciliation,
        )

    async def aclose(self) -> None:
        await self.payments.aclose()
        await self.database.dispose()


def build_services(settings: Settings) -> ServiceContainer:
    temporal = TemporalConnection(settings)
    notifier = TemporalOrderNotifier(
        lambda: temporal.client,
        task_queue=settings.notification_task_queue,
        app_url=settings.app_url,
        store_name=settings.store_name,
    )
    return ServiceContainer(
        settings,
        Database.from_url(settings.database_url, echo=settings.db_echo),
        build_payment_gateway(settings),
        notifier=notifier,
        temporal=temporal,
    )


def get_services(request: Request) -> ServiceContainer:
    return request.app.state.services


async def require_staff(request: Request, authorization: Optional[str] = Header(None)) -> None:
    """Bearer staff token check; with no token configured every staff call is refused."""
    expected = get_services(request).settings.staff_api_token
    scheme, _, token = (authorization or "").partition(" ")
    if not expected or scheme.lower() != "bearer" or not hmac.compare_digest(token.strip().encode(), expected.encode()):
        logger.warning(f"Rejected staff request to {request.url.path}")
        raise UnauthorizedError("Staff authentication required")
