from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from api.dependencies import ServiceContainer, get_services, require_staff
from models.order import (
    CreateOrderRequest,
    Order,
    OrderPage,
    OrderStatus,
    UpdateOrderStatusRequest,
    UpdateTrackingRequest,
)

router = APIRouter()


@router.post("", response_model=Order, status_code=status.HTTP_201_CREATED)
async def create_order(request: CreateOrderRequest, services: ServiceContainer = Depends(get_services)):
    """Guest checkout: reserve stock and create the order in one step."""
    return await services.orders.create(None, request)


@router.get("", response_model=OrderPage, dependencies=[Depends(require_staff)])
async def list_orders(
    order_status: Optional[OrderStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    services: ServiceContainer = Depends(get_services),
):
    return await services.orders.list_orders(order_status, page=page, limit=limit)


@router.get("/track/{order_number}", response_model=Order)
async def track_order(order_number: str, services: ServiceContainer = Depends(get_services)):
    """Public order tracking by order number."""
    return await services.orders.get_by_order_number(order_number)


@router.get("/{order_id}", response_model=Order, dependencies=[Depends(require_staff)])
async def get_order(order_id: str, services: ServiceContainer = Depends(get_services)):
    return await services.orders.get(order_id)


@router.put("/{order_id}/status", response_model=Order, dependencies=[Depends(require_staff)])
async def update_order_status(order_id: str, request: UpdateOrderStatusRequest,
                              services: ServiceContainer = Depends(get_services)):
    return await services.orders.update_status(order_id, request.status)


@router.put("/{order_id}/tracking", response_model=Order, dependencies=[Depends(require_staff)])
async def update_tracking(order_id: str, request: UpdateTrackingRequest,
                          services: ServiceContainer = Depends(get_services)):
    return await services.orders.update_tracking(order_id, request.tracking_number)


@router.post("/{order_id}/refund", response_model=Order, dependencies=[Depends(require_staff)])
async def refund_order(order_id: str, services: ServiceContainer = Depends(get_services)):
    """Flag the payment as refunded; the money itself moves outside this service."""
    return await services.reconciliation.apply_refund(order_id)
