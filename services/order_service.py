"""
Order placement: atomic stock reservation, pricing and order persistence.

Stock checks, stock decrements and the order insert run in a single
transaction; a checkout either reserves every line or nothing.
"""

import asyncio
import logging
import math
import secrets
import string
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from models.order import (
    CreateOrderRequest,
    Order,
    OrderPage,
    OrderStatus,
    PaymentStatus,
    ShippingAddress,
    can_transition,
)
from models.tables import OrderItemRow, OrderRow
from services.errors import (
    ConflictError,
    InsufficientStockError,
    OrderNotFoundError,
    ValidationError,
    VariantNotFoundError,
)
from services.inventory import InventoryAccessor
from services.notifications import OrderNotifier
from services.settings_service import StoreSettings
from utils.database import Database
from utils.sanitize import sanitize_email, sanitize_text

logger = logging.getLogger(__name__)

_SUFFIX_ALPHABET = string.ascii_uppercase + string.digits
_REQUIRED_ADDRESS_FIELDS = ("first_name", "last_name", "phone", "address", "city", "state")


def generate_order_number(prefix: str, suffix_length: int = 6, now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    suffix = "".join(secrets.choice(_SUFFIX_ALPHABET) for _ in range(suffix_length))
    return f"{prefix}-{now:%Y%m%d}-{suffix}"


def sanitize_shipping_address(address: ShippingAddress) -> dict:
    """Plain-text snapshot of the address; raises if a required field is emptied."""
    cleaned = {field: sanitize_text(value) for field, value in address.model_dump().items()
               if field != "email"}
    cleaned["email"] = sanitize_email(address.email)

    missing = [field for field in _REQUIRED_ADDRESS_FIELDS if not cleaned[field]]
    if not cleaned["email"]:
        missing.append("email")
    if missing:
        raise ValidationError(f"Invalid shipping address fields: {', '.join(missing)}")

    if not cleaned.get("landmark"):
        cleaned.pop("landmark", None)
    return ShippingAddress(**cleaned).to_dict()


class _OrderNumberTaken(Exception):
    pass


class OrderService:
    def __init__(
        self,
        database: Database,
        inventory: InventoryAccessor,
        settings: StoreSettings,
        notifier: Optional[OrderNotifier] = None,
        order_number_prefix: str = "JFS",
        order_number_attempts: int = 5,
        notification_timeout: float = 5.0,
        strict_status_transitions: bool = True,
    ):
        self._database = database
        self._inventory = inventory
        self._settings = settings
        self._notifier = notifier
        self._prefix = order_number_prefix
        self._attempts = order_number_attempts
        self._notification_timeout = notification_timeout
        self._strict_status_transitions = strict_status_transitions

    async def create(self, customer_id: Optional[str], request: CreateOrderRequest) -> Order:
        """
        Reserve stock and create the order with all its items.

        Raises:
            ShippingZoneNotFoundError: unknown or inactive shipping zone
            VariantNotFoundError: a line references a missing variant
            InsufficientStockError: a line asks for more than is in stock
            ValidationError: the shipping address is empty after sanitizing
            ConflictError: no unique order number could be allocated
        """
        address = sanitize_shipping_address(request.shipping_address)

        order = None
        for attempt in range(1, self._attempts + 1):
            order_number = generate_order_number(self._prefix)
            try:
                order = await self._create_in_transaction(customer_id, request, address, order_number)
                break
            except _OrderNumberTaken:
                logger.warning(f"Order number {order_number} already taken (attempt {attempt}/{self._attempts})")

        if order is None:
            raise ConflictError("Could not allocate a unique order number, please retry")

        logger.info(f"Created order {order.order_number} ({len(order.items)} items, total {order.total})")
        await self._notify_order_confirmed(order)
        return order

    async def _create_in_transaction(self, customer_id: Optional[str], request: CreateOrderRequest,
                                     address: dict, order_number: str) -> Order:
        try:
            async with self._database.transaction() as session:
                zone = await self._settings.get_shipping_zone(session, request.shipping_zone_id)
                variants = await self._inventory.lock_variants(
                    session, [line.variant_id for line in request.items]
                )

                remaining = {}
                items: List[OrderItemRow] = []
                subtotal = Decimal("0")
                for position, line in enumerate(request.items):
                    variant = variants.get(line.variant_id)
                    if variant is None:
                        raise VariantNotFoundError(line.variant_id)

                    available = remaining.get(variant.id, variant.stock)
                    if available < line.quantity:
                        logger.info(
                            f"Rejecting checkout: variant {variant.id} has {available}, requested {line.quantity}"
                        )
                        raise InsufficientStockError(variant.product.name, variant.size, variant.color,
                                                     requested=line.quantity, available=available)
                    remaining[variant.id] = available - line.quantity
                    await self._inventory.decrement_stock(session, variant, line.quantity)

                    unit_price = variant.unit_price
                    line_total = unit_price * line.quantity
                    subtotal += line_total
                    items.append(OrderItemRow(
                        position=position,
                        variant_id=variant.id,
                        product_id=variant.product_id,
                        quantity=line.quantity,
                        unit_price=unit_price,
                        total=line_total,
                        product_name=variant.product.name,
                        variant_size=variant.size,
                        variant_color=variant.color,
                    ))

                discount = Decimal("0")
                shipping_fee = zone.fee
                row = OrderRow(
                    order_number=order_number,
                    user_id=customer_id,
                    status=OrderStatus.PENDING.value,
                    payment_status=PaymentStatus.PENDING.value,
                    currency=self._settings.currency,
                    subtotal=subtotal,
                    shipping_fee=shipping_fee,
                    discount=discount,
                    total=subtotal - discount + shipping_fee,
                    shipping_zone_id=zone.id,
                    shipping_address=address,
                    items=items,
                )
                session.add(row)
                await session.flush()
                return Order.model_validate(row)
        except IntegrityError as e:
            # Stock and quantity are checked above, so the unique order number is the
            # only constraint this insert can still violate.
            raise _OrderNumberTaken(order_number) from e

    async def _notify_order_confirmed(self, order: Order) -> None:
        if self._notifier is None:
            return
        try:
            await asyncio.wait_for(self._notifier.order_confirmed(order), timeout=self._notification_timeout)
        except Exception as e:
            logger.error(f"Failed to queue order confirmation for {order.order_number}: {e!r}")

    async def get(self, order_id: str) -> Order:
        async with self._database.transaction() as session:
            row = await session.get(OrderRow, order_id)
            if row is None:
                raise OrderNotFoundError(order_id)
            return Order.model_validate(row)

    async def get_by_order_number(self, order_number: str) -> Order:
        async with self._database.transaction() as session:
            row = await session.scalar(select(OrderRow).where(OrderRow.order_number == order_number))
            if row is None:
                raise OrderNotFoundError(order_number)
            return Order.model_validate(row)

    async def list_orders(self, status: Optional[OrderStatus] = None, page: int = 1, limit: int = 20) -> OrderPage:
        page = max(page, 1)
        limit = min(max(limit, 1), 100)
        query = select(OrderRow)
        count_query = select(func.count()).select_from(OrderRow)
        if status is not None:
            query = query.where(OrderRow.status == status.value)
            count_query = count_query.where(OrderRow.status == status.value)

        async with self._database.transaction() as session:
            total = await session.scalar(count_query) or 0
            result = await session.execute(
                query.order_by(OrderRow.created_at.desc()).offset((page - 1) * limit).limit(limit)
            )
            orders = [Order.model_validate(row) for row in result.scalars()]

        return OrderPage(items=orders, total=total, page=page, limit=limit,
                         total_pages=math.ceil(total / limit))

    async def list_for_user(self, user_id: str) -> List[Order]:
        async with self._database.transaction() as session:
            result = await session.execute(
                select(OrderRow).where(OrderRow.user_id == user_id).order_by(OrderRow.created_at.desc())
            )
            return [Order.model_validate(row) for row in result.scalars()]

    async def update_status(self, order_id: str, status: OrderStatus) -> Order:
        """Staff fulfilment update; payment status is left untouched."""
        async with self._database.transaction() as session:
            row = await session.get(OrderRow, order_id, with_for_update=True)
            if row is None:
                raise OrderNotFoundError(order_id)

            current = OrderStatus(row.status)
            if self._strict_status_transitions and not can_transition(current, status):
                raise ConflictError(f"Cannot change order status from {current.value} to {status.value}")

            if current != status:
                logger.info(f"Updating order {row.order_number} status from {current.value} to {status.value}")
                row.status = status.value
                await session.flush()
            return Order.model_validate(row)

    async def update_tracking(self, order_id: str, tracking_number: str) -> Order:
        tracking_number = sanitize_text(tracking_number)
        if not tracking_number:
            raise ValidationError("Tracking number is required")

        async with self._database.transaction() as session:
            row = await session.get(OrderRow, order_id, with_for_update=True)
            if row is None:
                raise OrderNotFoundError(order_id)
            row.tracking_number = tracking_number
            await session.flush()
            return Order.model_validate(row)
