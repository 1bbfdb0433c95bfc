"""
Shared pytest fixtures.

Every test gets its own SQLite file database under tmp_path, so tests run
against a real SQL engine (and real transactions) without external services.
"""

from decimal import Decimal
from typing import AsyncGenerator

import httpx
import pytest
import pytest_asyncio

from api.dependencies import ServiceContainer
from api.main import create_app
from models.tables import ProductRow, ProductVariantRow, ShippingZoneRow
from services.inventory import InventoryAccessor
from services.order_service import OrderService
from services.reconciliation import ReconciliationService
from services.settings_service import StoreSettings
from support import (
    MONNIFY_SECRET,
    OPAY_SECRET,
    PAYSTACK_SECRET,
    STAFF_TOKEN,
    RecordingNotifier,
    make_gateway,
)
from utils.config import Settings
from utils.database import Database


# ============================================================================
# CONFIGURATION & DATABASE
# ============================================================================


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'orders.db'}",
        staff_api_token=STAFF_TOKEN,
        paystack_secret_key=PAYSTACK_SECRET,
        opay_secret_key=OPAY_SECRET,
        monnify_secret_key=MONNIFY_SECRET,
        payment_retry_delay=0,
        app_url="https://shop.test",
    )


@pytest_asyncio.fixture
async def database(settings) -> AsyncGenerator[Database, None]:
    db = Database.from_url(settings.database_url)
    await db.create_all()
    yield db
    await db.dispose()


@pytest_asyncio.fixture
async def catalog(database) -> Database:
    """
    Small catalog:
      VAR-A     Ankara Shirt  M/Blue          5,000  stock 10
      VAR-B     Kufi Cap      One Size/Black  3,000  stock 5   (2,500 + 500 adjustment)
      VAR-LAST  Agbada        XL/White       45,000  stock 1
    """
    async with database.transaction() as session:
        session.add_all([
            ShippingZoneRow(id="zone_lagos", name="Lagos", fee=Decimal("2500.00"), states=["Lagos"]),
            ShippingZoneRow(id="zone_abuja", name="Abuja", fee=Decimal("5000.00"), states=["FCT"]),
            ShippingZoneRow(id="zone_closed", name="Closed", fee=Decimal("1000.00"), states=["Kano"],
                            is_active=False),
            ProductRow(id="PROD-A", name="Ankara Shirt", base_price=Decimal("5000.00")),
            ProductRow(id="PROD-B", name="Kufi Cap", base_price=Decimal("2500.00")),
            ProductRow(id="PROD-C", name="Agbada", base_price=Decimal("45000.00")),
        ])
        await session.flush()
        session.add_all([
            ProductVariantRow(id="VAR-A", product_id="PROD-A", size="M", color="Blue", stock=10,
                              price_adjustment=Decimal("0")),
            ProductVariantRow(id="VAR-B", product_id="PROD-B", size="One Size", color="Black", stock=5,
                              price_adjustment=Decimal("500.00")),
            ProductVariantRow(id="VAR-LAST", product_id="PROD-C", size="XL", color="White", stock=1,
                              price_adjustment=Decimal("0")),
        ])
    return database


# ============================================================================
# SERVICES
# ============================================================================


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def order_service(catalog, notifier) -> OrderService:
    return OrderService(catalog, InventoryAccessor(), StoreSettings(catalog), notifier=notifier)


@pytest.fixture
def reconciliation(catalog) -> ReconciliationService:
    return ReconciliationService(catalog)


# ============================================================================
# HTTP API
# ============================================================================


@pytest.fixture
def services(settings, catalog, notifier) -> ServiceContainer:
    return ServiceContainer(settings, catalog, make_gateway(), notifier=notifier)


@pytest_asyncio.fixture
async def api_client(settings, services) -> AsyncGenerator[httpx.AsyncClient, None]:
    app = create_app(settings, services)
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    await services.payments.aclose()


@pytest.fixture
def staff_headers() -> dict:
    return {"Authorization": f"Bearer {STAFF_TOKEN}"}
