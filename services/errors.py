from typing import Optional


class OrderServiceError(Exception):
    """Base class for errors that map onto an HTTP response."""

    status_code = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class NotFoundError(OrderServiceError):
    status_code = 404


class OrderNotFoundError(NotFoundError):
    def __init__(self, order_ref: str):
        self.order_ref = order_ref
        super().__init__(f"Order not found: {order_ref}")


class VariantNotFoundError(NotFoundError):
    def __init__(self, variant_id: str):
        self.variant_id = variant_id
        super().__init__(f"Product variant not found: {variant_id}")


class ShippingZoneNotFoundError(NotFoundError):
    def __init__(self, zone_id: str):
        self.zone_id = zone_id
        super().__init__(f"Shipping zone not found: {zone_id}")


class ValidationError(OrderServiceError):
    status_code = 400


class InsufficientStockError(ValidationError):
    def __init__(self, product_name: str, size: Optional[str], color: Optional[str],
                 requested: int, available: int):
        self.product_name = product_name
        self.size = size
        self.color = color
        self.requested = requested
        self.available = available
        super().__init__(f"Insufficient stock for {product_name} ({size or '-'}/{color or '-'})")


class InvalidPaymentProviderError(ValidationError):
    def __init__(self, provider: object):
        self.provider = provider
        super().__init__("Invalid payment provider")


class UnauthorizedError(OrderServiceError):
    status_code = 401


class ConflictError(OrderServiceError):
    status_code = 409


class ProviderError(OrderServiceError):
    """Upstream payment API failure, timeout or unreadable response."""

    status_code = 502

    def __init__(self, provider: str, message: str):
        self.provider = provider
        super().__init__(f"{provider}: {message}")
