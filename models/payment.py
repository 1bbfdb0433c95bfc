from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import EmailStr, Field

from models.common import ApiModel


class PaymentProviderName(str, Enum):
    OPAY = "OPAY"
    MONNIFY = "MONNIFY"
    PAYSTACK = "PAYSTACK"


class PaymentOutcome(str, Enum):
    SUCCESS = "SUCCESS"
    FAILURE = "FAILURE"
    IGNORED = "IGNORED"


class InitializePaymentRequest(ApiModel):
    amount: Decimal = Field(..., gt=0, description="Amount in major units (e.g. Naira)")
    email: EmailStr
    order_id: str = Field(..., min_length=1)
    # Validated by the gateway router so an unknown provider is a domain error.
    provider: str = Field(..., min_length=1)


class PaymentInitResult(ApiModel):
    success: bool
    payment_url: Optional[str] = None
    reference: str
    provider: PaymentProviderName


class PaymentVerifyResult(ApiModel):
    success: bool
    status: Optional[str] = None
    reference: str
    provider: PaymentProviderName


class WebhookAck(ApiModel):
    received: bool = True
