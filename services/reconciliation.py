"""
Applies verified payment outcomes to orders.

Every transition is a single conditional UPDATE, so duplicate or racing
webhook deliveries collapse into one state change without explicit locks.
Fulfilment status is never touched here.
"""

import logging
from typing import Iterable, Optional

from sqlalchemy import update

from models.order import Order, PaymentStatus
from models.tables import OrderRow
from services.errors import ConflictError, OrderNotFoundError
from utils.database import Database

logger = logging.getLogger(__name__)


class ReconciliationService:
    def __init__(self, database: Database):
        self._database = database

    async def apply_success(self, order_id: str, provider_reference: str) -> Order:
        """Mark the order PAID; an already PAID (or REFUNDED) order is returned unchanged."""
        order, applied = await self._transition(
            order_id,
            target=PaymentStatus.PAID,
            allowed_from=(PaymentStatus.PENDING, PaymentStatus.FAILED),
            provider_reference=provider_reference,
        )
        if applied:
            logger.info(f"Order {order.order_number} marked PAID (reference {provider_reference})")
        else:
            logger.info(
                f"Duplicate or late success event for order {order.order_number} "
                f"(payment status {order.payment_status.value}), ignoring"
            )
        return order

    async def apply_failure(self, order_id: str, provider_reference: Optional[str] = None) -> Order:
        """Mark the order FAILED unless it has already been paid or refunded."""
        order, applied = await self._transition(
            order_id,
            target=PaymentStatus.FAILED,
            allowed_from=(PaymentStatus.PENDING, PaymentStatus.FAILED),
            provider_reference=provider_reference,
        )
        if applied:
            logger.info(f"Order {order.order_number} payment marked FAILED")
        else:
            logger.info(
                f"Failure event for order {order.order_number} ignored "
                f"(payment status {order.payment_status.value})"
            )
        return order

    async def apply_refund(self, order_id: str) -> Order:
        """Flag a settled payment as refunded. Moving money back is out of scope."""
        order, applied = await self._transition(
            order_id,
            target=PaymentStatus.REFUNDED,
            allowed_from=(PaymentStatus.PAID, PaymentStatus.FAILED),
        )
        if applied:
            logger.info(f"Order {order.order_number} payment flagged REFUNDED")
        elif order.payment_status == PaymentStatus.PENDING:
            raise ConflictError(f"Order {order.order_number} has no settled payment to refund")
        return order

    async def _transition(self, order_id: str, target: PaymentStatus, allowed_from: Iterable[PaymentStatus],
                          provider_reference: Optional[str] = None):
        values = {"payment_status": target.value}
        if provider_reference:
            values["payment_reference"] = provider_reference

        async with self._database.transaction() as session:
            result = await session.execute(
                update(OrderRow)
                .where(
                    OrderRow.id == order_id,
                    OrderRow.payment_status.in_([status.value for status in allowed_from]),
                )
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            applied = result.rowcount == 1

            row = await session.get(OrderRow, order_id, populate_existing=True)
            if row is None:
                logger.warning(
                    f"Payment event for unknown order {order_id}: orphaned webhook data "
                    f"or wrong reference used as order id"
                )
                raise OrderNotFoundError(order_id)
            return Order.model_validate(row), applied
