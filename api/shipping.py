from typing import List

from fastapi import APIRouter, Depends, Query

from api.dependencies import ServiceContainer, get_services
from models.inventory import ShippingQuote, ShippingZone

router = APIRouter()


@router.get("/zones", response_model=List[ShippingZone])
async def list_zones(services: ServiceContainer = Depends(get_services)):
    return await services.store_settings.list_shipping_zones()


@router.get("/calculate", response_model=ShippingQuote)
async def calculate_shipping(state: str = Query(..., min_length=1),
                             services: ServiceContainer = Depends(get_services)):
    """Shipping fee for a delivery state; fee is 0 when no zone covers it."""
    return await services.store_settings.calculate_shipping(state)
