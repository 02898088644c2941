"""Store service routers package."""

from services.store_service.routers.admin_coupons import router as admin_coupons_router
from services.store_service.routers.admin_orders import router as admin_orders_router
from services.store_service.routers.admin_users import router as admin_users_router
from services.store_service.routers.coupons import router as coupons_router
from services.store_service.routers.orders import router as orders_router
from services.store_service.routers.webhooks import router as webhooks_router

__all__ = [
    "admin_coupons_router",
    "admin_orders_router",
    "admin_users_router",
    "coupons_router",
    "orders_router",
    "webhooks_router",
]
