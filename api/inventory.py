from fastapi import APIRouter, Depends

from api.dependencies import ServiceContainer, get_services
from models.inventory import InventoryCheckRequest, InventoryCheckResponse, VariantStock

router = APIRouter()


@router.get("/variants/{variant_id}", response_model=VariantStock)
async def get_variant(variant_id: str, services: ServiceContainer = Depends(get_services)):
    return await services.inventory.get_variant(variant_id)


@router.post("/check", response_model=InventoryCheckResponse)
async def check_inventory(request: InventoryCheckRequest, services: ServiceContainer = Depends(get_services)):
    """Cart availability check; nothing is reserved."""
    return await services.inventory.check(request)
