"""Order placement: pricing, atomic stock reservation and its side effects."""

import asyncio
from datetime import datetime, timezone
from decimal import Decimal

import pytest
from sqlalchemy import func, select

import services.order_service as order_service_module
from models.order import OrderStatus, PaymentStatus
from models.tables import OrderRow
from services.errors import (
    ConflictError,
    InsufficientStockError,
    ShippingZoneNotFoundError,
    ValidationError,
    VariantNotFoundError,
)
from services.inventory import InventoryAccessor
from services.order_service import OrderService, generate_order_number
from services.settings_service import StoreSettings
from support import get_stock, order_request


async def count_orders(database) -> int:
    async with database.transaction() as session:
        return await session.scalar(select(func.count()).select_from(OrderRow))


class TestCreateOrder:
    """Successful checkouts."""

    @pytest.mark.asyncio
    async def test_prices_lines_and_totals(self, order_service, catalog):
        order = await order_service.create(None, order_request([("VAR-A", 2), ("VAR-B", 1)]))

        assert order.subtotal == Decimal("13000.00")
        assert order.shipping_fee == Decimal("2500.00")
        assert order.discount == Decimal("0")
        assert order.total == Decimal("15500.00")
        assert order.status == OrderStatus.PENDING
        assert order.payment_status == PaymentStatus.PENDING
        assert order.payment_reference is None
        assert order.currency == "NGN"

    @pytest.mark.asyncio
    async def test_items_snapshot_catalog_data(self, order_service, catalog):
        order = await order_service.create(None, order_request([("VAR-A", 2), ("VAR-B", 1)]))

        first, second = order.items
        assert (first.variant_id, first.product_id, first.product_name) == ("VAR-A", "PROD-A", "Ankara Shirt")
        assert (first.variant_size, first.variant_color) == ("M", "Blue")
        assert first.unit_price == Decimal("5000.00")
        assert first.total == Decimal("10000.00")
        assert second.unit_price == Decimal("3000.00")
        assert sum(item.total for item in order.items) == order.subtotal

    @pytest.mark.asyncio
    async def test_decrements_stock(self, order_service, catalog):
        await order_service.create(None, order_request([("VAR-A", 2), ("VAR-B", 1)]))

        assert await get_stock(catalog, "VAR-A") == 8
        assert await get_stock(catalog, "VAR-B") == 4

    @pytest.mark.asyncio
    async def test_repeated_variant_lines_share_stock(self, order_service, catalog):
        """Two lines for the same variant are checked against the combined quantity."""
        with pytest.raises(InsufficientStockError):
            await order_service.create(None, order_request([("VAR-B", 3), ("VAR-B", 3)]))
        assert await get_stock(catalog, "VAR-B") == 5

        order = await order_service.create(None, order_request([("VAR-B", 2), ("VAR-B", 3)]))
        assert len(order.items) == 2
        assert await get_stock(catalog, "VAR-B") == 0

    @pytest.mark.asyncio
    async def test_order_number_format(self, order_service, catalog):
        order = await order_service.create(None, order_request([("VAR-A", 1)]))

        prefix, date_part, suffix = order.order_number.split("-")
        assert prefix == "JFS"
        assert len(date_part) == 8 and date_part.isdigit()
        assert len(suffix) == 6 and suffix.isalnum() and suffix.upper() == suffix

    @pytest.mark.asyncio
    async def test_order_can_be_read_back(self, order_service, catalog):
        created = await order_service.create("user-1", order_request([("VAR-A", 1)]))

        assert (await order_service.get(created.id)).order_number == created.order_number
        assert (await order_service.get_by_order_number(created.order_number)).id == created.id
        assert [o.id for o in await order_service.list_for_user("user-1")] == [created.id]

    @pytest.mark.asyncio
    async def test_notifies_after_commit(self, order_service, notifier, catalog):
        order = await order_service.create(None, order_request([("VAR-A", 1)]))

        assert [o.id for o in notifier.orders] == [order.id]


class TestCreateOrderRollback:
    """A checkout either reserves every line or nothing."""

    @pytest.mark.asyncio
    async def test_missing_variant_leaves_stock_untouched(self, order_service, notifier, catalog):
        with pytest.raises(VariantNotFoundError) as excinfo:
            await order_service.create(None, order_request([("VAR-A", 2), ("VAR-MISSING", 1)]))

        assert excinfo.value.status_code == 404
        assert "VAR-MISSING" in excinfo.value.message
        assert await get_stock(catalog, "VAR-A") == 10
        assert await count_orders(catalog) == 0
        assert notifier.orders == []

    @pytest.mark.asyncio
    async def test_insufficient_stock_on_later_line_rolls_back_earlier_lines(self, order_service, catalog):
        with pytest.raises(InsufficientStockError) as excinfo:
            await order_service.create(None, order_request([("VAR-A", 3), ("VAR-LAST", 2)]))

        assert excinfo.value.status_code == 400
        assert excinfo.value.message == "Insufficient stock for Agbada (XL/White)"
        assert excinfo.value.available == 1
        assert await get_stock(catalog, "VAR-A") == 10
        assert await get_stock(catalog, "VAR-LAST") == 1
        assert await count_orders(catalog) == 0

    @pytest.mark.asyncio
    async def test_unknown_zone(self, order_service, catalog):
        with pytest.raises(ShippingZoneNotFoundError):
            await order_service.create(None, order_request([("VAR-A", 1)], zone_id="zone_mars"))
        assert await get_stock(catalog, "VAR-A") == 10

    @pytest.mark.asyncio
    async def test_inactive_zone(self, order_service, catalog):
        with pytest.raises(ShippingZoneNotFoundError):
            await order_service.create(None, order_request([("VAR-A", 1)], zone_id="zone_closed"))


class TestShippingAddressSanitizing:

    @pytest.mark.asyncio
    async def test_markup_is_stripped(self, order_service, catalog):
        order = await order_service.create(None, order_request(
            [("VAR-A", 1)],
            firstName="<b>Ada</b>",
            address="12 Marina <script>alert(1)</script>Road",
            landmark="<i>Near</i> the bridge",
            email="ADA@Example.com",
        ))

        address = order.shipping_address
        assert address["firstName"] == "Ada"
        assert "<" not in address["address"] and "alert" not in address["address"]
        assert address["landmark"] == "Near the bridge"
        assert address["email"] == "ada@example.com"

    @pytest.mark.asyncio
    async def test_field_emptied_by_sanitizing_is_rejected(self, order_service, catalog):
        with pytest.raises(ValidationError) as excinfo:
            await order_service.create(None, order_request([("VAR-A", 1)], city="<script>Lagos</script>"))

        assert "city" in excinfo.value.message
        assert await get_stock(catalog, "VAR-A") == 10


class TestOrderNumberAllocation:

    def test_generate_order_number_uses_date_and_prefix(self):
        number = generate_order_number("ABC", now=datetime(2024, 3, 5, tzinfo=timezone.utc))
        assert number.startswith("ABC-20240305-")

    @pytest.mark.asyncio
    async def test_collision_is_retried(self, order_service, catalog, monkeypatch):
        first = await order_service.create(None, order_request([("VAR-A", 1)]))

        numbers = iter([first.order_number, "JFS-20240101-FRESH1"])
        monkeypatch.setattr(order_service_module, "generate_order_number", lambda prefix: next(numbers))

        second = await order_service.create(None, order_request([("VAR-A", 2)]))

        assert second.order_number == "JFS-20240101-FRESH1"
        # The failed attempt must not have consumed stock.
        assert await get_stock(catalog, "VAR-A") == 7

    @pytest.mark.asyncio
    async def test_exhausted_attempts_raise_conflict(self, catalog, monkeypatch):
        service = OrderService(catalog, InventoryAccessor(), StoreSettings(catalog), order_number_attempts=2)
        taken = (await service.create(None, order_request([("VAR-A", 1)]))).order_number
        monkeypatch.setattr(order_service_module, "generate_order_number", lambda prefix: taken)

        with pytest.raises(ConflictError):
            await service.create(None, order_request([("VAR-A", 1)]))
        assert await get_stock(catalog, "VAR-A") == 9


class FailingNotifier:
    async def order_confirmed(self, order):
        raise RuntimeError("temporal is down")


class SlowNotifier:
    async def order_confirmed(self, order):
        await asyncio.sleep(10)


class TestNotificationIsolation:
    """Notification problems never fail or roll back a committed order."""

    @pytest.mark.asyncio
    async def test_failing_notifier(self, catalog):
        service = OrderService(catalog, InventoryAccessor(), StoreSettings(catalog), notifier=FailingNotifier())

        order = await service.create(None, order_request([("VAR-A", 1)]))

        assert (await service.get(order.id)).id == order.id
        assert await get_stock(catalog, "VAR-A") == 9

    @pytest.mark.asyncio
    async def test_slow_notifier_times_out(self, catalog):
        service = OrderService(catalog, InventoryAccessor(), StoreSettings(catalog),
                               notifier=SlowNotifier(), notification_timeout=0.05)

        order = await asyncio.wait_for(service.create(None, order_request([("VAR-A", 1)])), timeout=5)

        assert order.status == OrderStatus.PENDING
