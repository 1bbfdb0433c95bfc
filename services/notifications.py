import logging
from typing import Callable, Optional, Protocol

from temporalio.client import Client

from models.order import Order
from workflows.notification_workflow import OrderConfirmationWorkflow

logger = logging.getLogger(__name__)


class OrderNotifier(Protocol):
    async def order_confirmed(self, order: Order) -> None:
        ...


def build_confirmation_payload(order: Order, app_url: str, store_name: str) -> dict:
    """JSON-safe workflow input describing a confirmed order."""
    return {
        "order_id": order.id,
        "order_number": order.order_number,
        "email": order.shipping_address.get("email"),
        "currency": order.currency,
        "total": str(order.total),
        "items": [
            {
                "product_name": item.product_name,
                "quantity": item.quantity,
                "unit_price": str(item.unit_price),
            }
            for item in order.items
        ],
        "track_url": f"{app_url.rstrip('/')}/track?order={order.order_number}",
        "store_name": store_name,
    }


class TemporalOrderNotifier:
    """Starts the confirmation workflow and returns without waiting for it."""

    def __init__(self, client_provider: Callable[[], Optional[Client]], task_queue: str,
                 app_url: str, store_name: str):
        self._client_provider = client_provider
        self._task_queue = task_queue
        self._app_url = app_url
        self._store_name = store_name

    async def order_confirmed(self, order: Order) -> None:
        client = self._client_provider()
        if client is None:
            logger.warning(f"Temporal unavailable, no confirmation queued for order {order.order_number}")
            return

        workflow_id = f"order-confirmation-{order.id}"
        await client.start_workflow(
            OrderConfirmationWorkflow.run,
            build_confirmation_payload(order, self._app_url, self._store_name),
            id=workflow_id,
            task_queue=self._task_queue,
        )
        logger.info(f"Queued order confirmation workflow {workflow_id}")
