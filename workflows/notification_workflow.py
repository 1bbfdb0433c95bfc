from temporalio import workflow
from temporalio.common import RetryPolicy
from temporalio.exceptions import ActivityError
from datetime import timedelta

with workflow.unsafe.imports_passed_through():
    from activities.notification_activities import NotificationActivities


@workflow.defn(name="OrderConfirmationWorkflow")
class OrderConfirmationWorkflow:
    def __init__(self):
        self._status = "PENDING"
        self._retry_policy = RetryPolicy(
            initial_interval=timedelta(seconds=2),
            backoff_coefficient=2.0,
            maximum_interval=timedelta(seconds=30),
            maximum_attempts=3,
            non_retryable_error_types=["ApplicationError"],
        )

    @workflow.run
    async def run(self, payload: dict) -> dict:
        order_number = payload.get("order_number")
        workflow.logger.info(f"Starting OrderConfirmationWorkflow for order {order_number}")
        self._status = "SENDING"

        try:
            result = await workflow.start_activity_method(
                NotificationActivities.send_order_confirmation,
                payload,
                retry_policy=self._retry_policy,
                start_to_close_timeout=timedelta(seconds=30),
            )
        except ActivityError as e:
            # Notification failures never affect the order itself.
            workflow.logger.error(f"Order confirmation for {order_number} failed: {e}")
            self._status = "FAILED"
            return {"order_number": order_number, "status": self._status}

        self._status = "SENT"
        workflow.logger.info(f"Order confirmation for {order_number} finished")
        return {**result, "status": self._status}

    @workflow.query
    def get_status(self) -> str:
        return self._status
