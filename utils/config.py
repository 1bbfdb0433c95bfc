import os
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Settings(BaseModel):
    """Runtime configuration gathered from the environment (.env supported)."""

    database_url: str = "sqlite+aiosqlite:///./orders.db"
    db_echo: bool = False
    seed_demo_data: bool = False

    temporal_host: str = "localhost"
    temporal_port: str = "7233"
    temporal_namespace: str = "default"
    notification_task_queue: str = "notification-task-queue"
    notification_timeout_seconds: float = 5.0

    app_url: str = "http://localhost:3000"
    api_host: str = "localhost"
    api_port: int = 8000
    log_level: str = "INFO"

    order_number_prefix: str = "JFS"
    order_number_attempts: int = 5
    currency: str = "NGN"
    order_status_strict: bool = True
    staff_api_token: Optional[str] = None

    payment_timeout_seconds: float = 8.0
    payment_max_retries: int = 3
    payment_retry_delay: float = 0.5

    paystack_base_url: str = "https://api.paystack.co"
    paystack_secret_key: Optional[str] = None

    opay_base_url: str = "https://sandboxapi.opaycheckout.com"
    opay_merchant_id: Optional[str] = None
    opay_public_key: Optional[str] = None
    opay_secret_key: Optional[str] = None

    monnify_base_url: str = "https://sandbox.monnify.com"
    monnify_api_key: Optional[str] = None
    monnify_secret_key: Optional[str] = None
    monnify_contract_code: Optional[str] = None

    resend_api_key: Optional[str] = None
    email_from: str = "JFS Wears <noreply@jfswears.com>"
    store_name: str = "JFS Wears"

    @property
    def temporal_address(self) -> str:
        return f"{self.temporal_host}:{self.temporal_port}"

    @property
    def checkout_callback_url(self) -> str:
        return self.app_url.rstrip("/") + "/checkout/callback"


def load_settings() -> Settings:
    load_dotenv()
    defaults = Settings()
    return Settings(
        database_url=os.getenv("DATABASE_URL", defaults.database_url),
        db_echo=_env_bool("DB_ECHO", defaults.db_echo),
        seed_demo_data=_env_bool("SEED_DEMO_DATA", defaults.seed_demo_data),
        temporal_host=os.getenv("TEMPORAL_HOST", defaults.temporal_host),
        temporal_port=os.getenv("TEMPORAL_PORT", defaults.temporal_port),
        temporal_namespace=os.getenv("TEMPORAL_NAMESPACE", defaults.temporal_namespace),
        notification_task_queue=os.getenv("NOTIFICATION_TASK_QUEUE", defaults.notification_task_queue),
        notification_timeout_seconds=float(
            os.getenv("NOTIFICATION_TIMEOUT_SECONDS", defaults.notification_timeout_seconds)
        ),
        app_url=os.getenv("APP_URL", defaults.app_url),
        api_host=os.getenv("API_HOST", defaults.api_host),
        api_port=int(os.getenv("API_PORT", defaults.api_port)),
        log_level=os.getenv("LOG_LEVEL", defaults.log_level),
        order_number_prefix=os.getenv("ORDER_NUMBER_PREFIX", defaults.order_number_prefix),
        order_number_attempts=int(os.getenv("ORDER_NUMBER_ATTEMPTS", defaults.order_number_attempts)),
        currency=os.getenv("CURRENCY", defaults.currency),
        order_status_strict=_env_bool("ORDER_STATUS_STRICT", defaults.order_status_strict),
        staff_api_token=os.getenv("STAFF_API_TOKEN") or None,
        payment_timeout_seconds=float(os.getenv("PAYMENT_TIMEOUT_SECONDS", defaults.payment_timeout_seconds)),
        payment_max_retries=int(os.getenv("PAYMENT_MAX_RETRIES", defaults.payment_max_retries)),
        payment_retry_delay=float(os.getenv("PAYMENT_RETRY_DELAY", defaults.payment_retry_delay)),
        paystack_base_url=os.getenv("PAYSTACK_BASE_URL", defaults.paystack_base_url),
        paystack_secret_key=os.getenv("PAYSTACK_SECRET_KEY") or None,
        opay_base_url=os.getenv("OPAY_BASE_URL", defaults.opay_base_url),
        opay_merchant_id=os.getenv("OPAY_MERCHANT_ID") or None,
        opay_public_key=os.getenv("OPAY_PUBLIC_KEY") or None,
        opay_secret_key=os.getenv("OPAY_SECRET_KEY") or None,
        monnify_base_url=os.getenv("MONNIFY_BASE_URL", defaults.monnify_base_url),
        monnify_api_key=os.getenv("MONNIFY_API_KEY") or None,
        monnify_secret_key=os.getenv("MONNIFY_SECRET_KEY") or None,
        monnify_contract_code=os.getenv("MONNIFY_CONTRACT_CODE") or None,
        resend_api_key=os.getenv("RESEND_API_KEY") or None,
        email_from=os.getenv("EMAIL_FROM", defaults.email_from),
        store_name=os.getenv("STORE_NAME", defaults.store_name),
    )


@lru_cache
def get_settings() -> Settings:
    """Cached settings for the running process."""
    return load_settings()
