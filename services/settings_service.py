import logging
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from models.inventory import ShippingQuote, ShippingZone
from models.tables import ShippingZoneRow
from services.errors import ShippingZoneNotFoundError
from utils.database import Database

logger = logging.getLogger(__name__)


class StoreSettings:
    """Store-wide settings: currency and shipping zones."""

    def __init__(self, database: Database, currency: str = "NGN"):
        self._database = database
        self.currency = currency

    async def get_shipping_zone(self, session: AsyncSession, zone_id: str) -> ShippingZoneRow:
        zone = await session.get(ShippingZoneRow, zone_id)
        if zone is None or not zone.is_active:
            raise ShippingZoneNotFoundError(zone_id)
        return zone

    async def list_shipping_zones(self) -> List[ShippingZone]:
        async with self._database.transaction() as session:
            result = await session.execute(
                select(ShippingZoneRow)
                .where(ShippingZoneRow.is_active.is_(True))
                .order_by(ShippingZoneRow.fee)
            )
            return [ShippingZone.model_validate(zone) for zone in result.scalars()]

    async def find_zone_for_state(self, state: str) -> Optional[ShippingZone]:
        wanted = state.strip().lower()
        for zone in await self.list_shipping_zones():
            if any(s.lower() == wanted for s in zone.states):
                return zone
        return None

    async def calculate_shipping(self, state: str) -> ShippingQuote:
        zone = await self.find_zone_for_state(state)
        if zone is None:
            logger.info(f"No shipping zone covers state '{state}'")
        return ShippingQuote(zone=zone, fee=zone.fee if zone else Decimal("0"))
