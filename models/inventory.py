from decimal import Decimal
from typing import List, Optional

from pydantic import Field

from models.common import ApiModel


class VariantStock(ApiModel):
    variant_id: str
    product_id: str
    product_name: str
    size: Optional[str] = None
    color: Optional[str] = None
    stock: int
    unit_price: Decimal


class InventoryCheckItem(ApiModel):
    variant_id: str = Field(..., min_length=1)
    quantity: int = Field(..., gt=0)


class InventoryCheckRequest(ApiModel):
    items: List[InventoryCheckItem] = Field(..., min_length=1)


class InventoryCheckLine(ApiModel):
    variant_id: str
    requested: int
    stock: int
    available: bool


class InventoryCheckResponse(ApiModel):
    available: bool
    items: List[InventoryCheckLine]


class ShippingZone(ApiModel):
    id: str
    name: str
    fee: Decimal
    states: List[str]


class ShippingQuote(ApiModel):
    zone: Optional[ShippingZone] = None
    fee: Decimal
