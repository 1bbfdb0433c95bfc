import asyncio
import logging

from temporalio.worker import Worker

from activities.notification_activities import EmailSender, NotificationActivities
from utils.config import get_settings
from utils.temporal import get_temporal_client
from workflows.notification_workflow import OrderConfirmationWorkflow

logger = logging.getLogger(__name__)


async def main():
    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    logger.info(f"Connecting to Temporal at {settings.temporal_address} (namespace {settings.temporal_namespace})...")
    client = await get_temporal_client(settings)

    email_sender = EmailSender(settings.resend_api_key, settings.email_from)
    activities = NotificationActivities(email_sender)
    worker = Worker(
        client,
        task_queue=settings.notification_task_queue,
        workflows=[OrderConfirmationWorkflow],
        activities=[activities.send_order_confirmation],
        max_concurrent_activities=50,
    )
    logger.info(f"Notification worker listening on task queue: {settings.notification_task_queue}")

    try:
        await worker.run()
    finally:
        await email_sender.aclose()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Worker shutdown complete")
