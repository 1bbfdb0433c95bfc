import logging
from typing import Dict, Iterable, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from models.inventory import (
    InventoryCheckLine,
    InventoryCheckRequest,
    InventoryCheckResponse,
    VariantStock,
)
from models.tables import ProductVariantRow
from services.errors import InsufficientStockError, VariantNotFoundError
from utils.database import Database

logger = logging.getLogger(__name__)


class InventoryAccessor:
    """Reads variants and mutates their stock column inside the caller's transaction."""

    async def get_variant(self, session: AsyncSession, variant_id: str) -> Optional[ProductVariantRow]:
        return await session.get(ProductVariantRow, variant_id)

    async def lock_variants(self, session: AsyncSession,
                            variant_ids: Iterable[str]) -> Dict[str, ProductVariantRow]:
        """
        Row-lock the given variants for the rest of the transaction.

        Rows are locked in id order so two carts touching the same variants in
        different orders cannot deadlock.
        """
        ids = sorted(set(variant_ids))
        if not ids:
            return {}
        result = await session.execute(
            select(ProductVariantRow)
            .where(ProductVariantRow.id.in_(ids))
            .order_by(ProductVariantRow.id)
            .with_for_update(of=ProductVariantRow)
            .execution_options(populate_existing=True)
        )
        return {variant.id: variant for variant in result.scalars().unique()}

    async def decrement_stock(self, session: AsyncSession, variant: ProductVariantRow, quantity: int) -> None:
        """Take `quantity` units; never lets stock go below zero."""
        result = await session.execute(
            update(ProductVariantRow)
            .where(ProductVariantRow.id == variant.id, ProductVariantRow.stock >= quantity)
            .values(stock=ProductVariantRow.stock - quantity)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            logger.warning(f"Guarded stock decrement rejected for variant {variant.id}, quantity {quantity}")
            raise InsufficientStockError(variant.product.name, variant.size, variant.color,
                                         requested=quantity, available=variant.stock)


def to_variant_stock(variant: ProductVariantRow) -> VariantStock:
    return VariantStock(
        variant_id=variant.id,
        product_id=variant.product_id,
        product_name=variant.product.name,
        size=variant.size,
        color=variant.color,
        stock=variant.stock,
        unit_price=variant.unit_price,
    )


class InventoryService:
    """Read-only stock lookups for the storefront."""

    def __init__(self, database: Database, accessor: InventoryAccessor):
        self._database = database
        self._accessor = accessor

    async def get_variant(self, variant_id: str) -> VariantStock:
        async with self._database.transaction() as session:
            variant = await self._accessor.get_variant(session, variant_id)
            if variant is None:
                raise VariantNotFoundError(variant_id)
            return to_variant_stock(variant)

    async def check(self, request: InventoryCheckRequest) -> InventoryCheckResponse:
        requested: Dict[str, int] = {}
        for item in request.items:
            requested[item.variant_id] = requested.get(item.variant_id, 0) + item.quantity

        lines = []
        async with self._database.transaction() as session:
            for variant_id, quantity in requested.items():
                variant = await self._accessor.get_variant(session, variant_id)
                if variant is None:
                    raise VariantNotFoundError(variant_id)
                lines.append(InventoryCheckLine(
                    variant_id=variant_id,
                    requested=quantity,
                    stock=variant.stock,
                    available=variant.stock >= quantity,
                ))
        return InventoryCheckResponse(available=all(line.available for line in lines), items=lines)
