import logging
from contextlib import asynccontextmanager
from decimal import Decimal
from typing import AsyncIterator

from sqlalchemy import event, select
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from models.tables import Base, ProductRow, ProductVariantRow, ShippingZoneRow

logger = logging.getLogger(__name__)


def create_engine_for_url(database_url: str, echo: bool = False) -> AsyncEngine:
    """
    Build the async engine with an explicit isolation strategy.

    PostgreSQL: READ COMMITTED plus row locks (SELECT ... FOR UPDATE) taken by
    the order service on every variant it reserves.
    SQLite: every transaction starts with BEGIN IMMEDIATE, so writers are
    serialized by the database lock.
    """
    url = make_url(database_url)

    if url.get_backend_name() == "sqlite":
        engine = create_async_engine(
            database_url,
            echo=echo,
            connect_args={"timeout": 30},
        )

        @event.listens_for(engine.sync_engine, "connect")
        def _disable_driver_transactions(dbapi_connection, connection_record):
            # Let the "begin" hook below emit the BEGIN statement.
            dbapi_connection.isolation_level = None

        @event.listens_for(engine.sync_engine, "begin")
        def _begin_immediate(conn):
            conn.exec_driver_sql("BEGIN IMMEDIATE")

        logger.info("Created SQLite engine (BEGIN IMMEDIATE transactions)")
        return engine

    engine = create_async_engine(
        database_url,
        echo=echo,
        pool_pre_ping=True,
        isolation_level="READ COMMITTED",
    )
    logger.info(f"Created {url.get_backend_name()} engine (READ COMMITTED + row locks)")
    return engine


class Database:
    """Owns the engine and hands out sessions and transactions."""

    def __init__(self, engine: AsyncEngine):
        self.engine = engine
        self.session_factory = async_sessionmaker(
            engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

    @classmethod
    def from_url(cls, database_url: str, echo: bool = False) -> "Database":
        return cls(create_engine_for_url(database_url, echo=echo))

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[AsyncSession]:
        """Session inside a single transaction; commits on success, rolls back on error."""
        async with self.session_factory() as session:
            async with session.begin():
                yield session

    async def create_all(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self) -> None:
        await self.engine.dispose()


# Demo catalog for local development
_DEMO_ZONES = [
    ("zone_lagos_island", "Lagos Island", Decimal("2500.00"), ["Lagos"]),
    ("zone_south_west", "South West", Decimal("4000.00"), ["Ogun", "Oyo", "Osun", "Ondo", "Ekiti"]),
    ("zone_abuja", "Abuja", Decimal("5000.00"), ["FCT"]),
]

_DEMO_PRODUCTS = [
    ("PROD-001", "Classic Agbada", Decimal("45000.00"), [
        ("VAR-001-M", "M", "White", 20, Decimal("0")),
        ("VAR-001-XL", "XL", "White", 8, Decimal("2500.00")),
    ]),
    ("PROD-002", "Ankara Shirt", Decimal("15000.00"), [
        ("VAR-002-S", "S", "Blue", 30, Decimal("0")),
        ("VAR-002-L", "L", "Red", 12, Decimal("0")),
    ]),
    ("PROD-003", "Senator Kaftan", Decimal("32000.00"), [
        ("VAR-003-M", "M", "Black", 5, Decimal("0")),
    ]),
]


async def seed_demo_catalog(database: Database) -> None:
    async with database.transaction() as session:
        existing = await session.scalar(select(ProductRow.id).limit(1))
        if existing is not None:
            logger.info("Catalog already present, skipping demo seed")
            return

        for zone_id, name, fee, states in _DEMO_ZONES:
            session.add(ShippingZoneRow(id=zone_id, name=name, fee=fee, states=list(states)))
        for product_id, name, base_price, variants in _DEMO_PRODUCTS:
            session.add(ProductRow(id=product_id, name=name, base_price=base_price))
            for variant_id, size, color, stock, adjustment in variants:
                session.add(ProductVariantRow(id=variant_id, product_id=product_id, size=size,
                                              color=color, stock=stock, price_adjustment=adjustment))
    logger.info(f"Seeded demo catalog with {len(_DEMO_PRODUCTS)} products")
