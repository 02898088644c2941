"""FastAPI application for the Store Service."""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from libs.common.cache import build_cache
from libs.common.config import get_settings
from libs.common.errors import register_error_handlers
from libs.common.middleware import add_observability_middleware
from services.store_service.routers import (
    admin_coupons_router,
    admin_orders_router,
    admin_users_router,
    coupons_router,
    orders_router,
    webhooks_router,
)


def create_app() -> FastAPI:
    """Create and configure the Store Service FastAPI app."""
    settings = get_settings()
    app = FastAPI(
        title="InterioWale Store Service",
        version="0.1.0",
        description="Orders, coupons and fulfilment for the InterioWale store.",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.FRONTEND_URL],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Add observability (structured logging + request tracing)
    add_observability_middleware(app)

    # Structured {"detail", "code"} error responses
    register_error_handlers(app)

    app.state.cache = build_cache(settings)

    @app.get("/health", tags=["system"])
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "ok", "service": "store"}

    # Public store routes (checkout, orders, coupons, payment webhooks)
    app.include_router(orders_router, prefix="/store")
    app.include_router(coupons_router, prefix="/store")
    app.include_router(webhooks_router, prefix="/store")

    # Admin routes (order fulfilment, coupon management, roles)
    app.include_router(admin_orders_router, prefix="/admin/store")
    app.include_router(admin_coupons_router, prefix="/admin/store")
    app.include_router(admin_users_router, prefix="/admin/store")

    return app


app = create_app()
