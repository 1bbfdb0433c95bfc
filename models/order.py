from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import EmailStr, Field

from models.common import ApiModel


class OrderStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    PROCESSING = "PROCESSING"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"
    REFUNDED = "REFUNDED"


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"


# Staff-driven fulfilment transitions; same-status updates are always no-ops.
ORDER_STATUS_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.CONFIRMED, OrderStatus.CANCELLED},
    OrderStatus.CONFIRMED: {OrderStatus.PROCESSING, OrderStatus.CANCELLED},
    OrderStatus.PROCESSING: {OrderStatus.SHIPPED, OrderStatus.CANCELLED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED},
    OrderStatus.DELIVERED: {OrderStatus.REFUNDED},
    OrderStatus.CANCELLED: {OrderStatus.REFUNDED},
    OrderStatus.REFUNDED: set(),
}


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    return current == target or target in ORDER_STATUS_TRANSITIONS[current]


class ShippingAddress(ApiModel):
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    phone: str = Field(..., min_length=1, max_length=32)
    address: str = Field(..., min_length=1, max_length=500)
    city: str = Field(..., min_length=1, max_length=100)
    state: str = Field(..., min_length=1, max_length=100)
    landmark: Optional[str] = Field(None, max_length=200)


class OrderLineRequest(ApiModel):
    variant_id: str = Field(..., min_length=1)
    quantity: int = Field(..., gt=0)


class CreateOrderRequest(ApiModel):
    items: List[OrderLineRequest] = Field(..., min_length=1)
    shipping_zone_id: str = Field(..., min_length=1)
    shipping_address: ShippingAddress


class UpdateOrderStatusRequest(ApiModel):
    status: OrderStatus


class UpdateTrackingRequest(ApiModel):
    tracking_number: str = Field(..., min_length=1, max_length=128)


class OrderItem(ApiModel):
    variant_id: str
    product_id: str
    quantity: int
    unit_price: Decimal
    total: Decimal
    product_name: str
    variant_size: Optional[str] = None
    variant_color: Optional[str] = None


class Order(ApiModel):
    id: str
    order_number: str
    user_id: Optional[str] = None
    status: OrderStatus
    payment_status: PaymentStatus
    payment_reference: Optional[str] = None
    currency: str
    subtotal: Decimal
    shipping_fee: Decimal
    discount: Decimal
    total: Decimal
    shipping_zone_id: str
    shipping_address: dict
    tracking_number: Optional[str] = None
    items: List[OrderItem]
    created_at: datetime
    updated_at: datetime


class OrderPage(ApiModel):
    items: List[Order]
    total: int
    page: int
    limit: int
    total_pages: int
