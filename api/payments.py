from fastapi import APIRouter, Depends, HTTPException, Request, status

from api.dependencies import ServiceContainer, get_services
from models.payment import (
    InitializePaymentRequest,
    PaymentInitResult,
    PaymentProviderName,
    PaymentVerifyResult,
    WebhookAck,
)

router = APIRouter()


@router.post("/initialize", response_model=PaymentInitResult)
async def initialize_payment(request: InitializePaymentRequest, services: ServiceContainer = Depends(get_services)):
    """Open a hosted checkout with the chosen provider."""
    return await services.payments.initialize_payment(request)


@router.get("/verify/{provider}/{reference}", response_model=PaymentVerifyResult)
async def verify_payment(provider: str, reference: str, services: ServiceContainer = Depends(get_services)):
    return await services.payments.verify_payment(provider, reference)


@router.post("/webhook/{provider}", response_model=WebhookAck)
async def payment_webhook(provider: str, request: Request, services: ServiceContainer = Depends(get_services)):
    """
    Provider callback. The signature is checked against the raw request bytes,
    so the body must not be parsed before it reaches the webhook processor.
    """
    try:
        provider_name = PaymentProviderName(provider.upper())
    except ValueError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not Found")

    raw_body = await request.body()
    await services.webhooks.handle(provider_name, raw_body, request.headers)
    return WebhookAck()
