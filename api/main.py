import logging
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from api.dependencies import ServiceContainer, build_services
from api.inventory import router as inventory_router
from api.orders import router as orders_router
from api.payments import router as payments_router
from api.shipping import router as shipping_router
from services.errors import OrderServiceError
from utils.config import Settings, get_settings
from utils.database import seed_demo_catalog

logger = logging.getLogger(__name__)


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    )


def _error_body(status_code: int, message: str, **extra) -> dict:
    return {"error": True, "message": message, "status_code": status_code, **extra}


def create_app(settings: Optional[Settings] = None, services: Optional[ServiceContainer] = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.log_level)
    services = services or build_services(settings)

    app = FastAPI(title=f"{settings.store_name} Orders API")
    app.state.services = services

    app.include_router(orders_router, prefix="/orders", tags=["orders"])
    app.include_router(payments_router, prefix="/payments", tags=["payments"])
    app.include_router(inventory_router, prefix="/inventory", tags=["inventory"])
    app.include_router(shipping_router, prefix="/shipping", tags=["shipping"])

    @app.on_event("startup")
    async def startup_event():
        await services.database.create_all()
        if settings.seed_demo_data:
            await seed_demo_catalog(services.database)
        if services.temporal is not None:
            await services.temporal.connect()

    @app.on_event("shutdown")
    async def shutdown_event():
        await services.aclose()

    @app.exception_handler(OrderServiceError)
    async def service_error_handler(request: Request, exc: OrderServiceError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
            message = "Payment provider error, please try again" if exc.status_code == 502 else "Internal server error"
        else:
            message = exc.message
        return JSONResponse(status_code=exc.status_code, content=_error_body(exc.status_code, message))

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        code = 422
        return JSONResponse(
            status_code=code,
            content=_error_body(code, "Invalid request", details=jsonable_encoder(exc.errors())),
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        code = status.HTTP_500_INTERNAL_SERVER_ERROR
        return JSONResponse(status_code=code, content=_error_body(code, "Internal server error"))

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app


def main() -> None:
    import uvicorn

    settings = get_settings()
    uvicorn.run(create_app(settings), host=settings.api_host, port=settings.api_port)


if __name__ == "__main__":
    main()
