"""
Concurrent checkouts against the same variants.

Each checkout runs in its own session and connection, so these exercise the
database's write serialization rather than in-process ordering.
"""

import asyncio

import pytest
from sqlalchemy import func, select

from models.tables import OrderItemRow
from services.errors import InsufficientStockError
from support import get_stock, order_request


async def place(order_service, lines):
    try:
        return await order_service.create(None, order_request(lines))
    except InsufficientStockError as e:
        return e


class TestConcurrentCheckout:

    @pytest.mark.asyncio
    async def test_last_unit_is_sold_once(self, order_service, catalog):
        results = await asyncio.gather(
            place(order_service, [("VAR-LAST", 1)]),
            place(order_service, [("VAR-LAST", 1)]),
        )

        failures = [r for r in results if isinstance(r, InsufficientStockError)]
        orders = [r for r in results if not isinstance(r, Exception)]
        assert len(orders) == 1
        assert len(failures) == 1
        assert await get_stock(catalog, "VAR-LAST") == 0

    @pytest.mark.asyncio
    async def test_never_oversells_under_contention(self, order_service, catalog):
        """Units sold plus units left always equals the starting stock."""
        carts = [[("VAR-B", 2)], [("VAR-B", 1), ("VAR-A", 1)], [("VAR-A", 3), ("VAR-B", 2)],
                 [("VAR-B", 1)], [("VAR-B", 3)], [("VAR-A", 1), ("VAR-B", 1)]]

        results = await asyncio.gather(*(place(order_service, cart) for cart in carts))

        async with catalog.transaction() as session:
            sold_b = await session.scalar(
                select(func.coalesce(func.sum(OrderItemRow.quantity), 0)).where(OrderItemRow.variant_id == "VAR-B")
            )
            sold_a = await session.scalar(
                select(func.coalesce(func.sum(OrderItemRow.quantity), 0)).where(OrderItemRow.variant_id == "VAR-A")
            )

        remaining_b = await get_stock(catalog, "VAR-B")
        remaining_a = await get_stock(catalog, "VAR-A")
        assert remaining_b >= 0 and remaining_a >= 0
        assert sold_b + remaining_b == 5
        assert sold_a + remaining_a == 10
        assert any(isinstance(r, InsufficientStockError) for r in results)
