"""Store Service models package."""

from services.store_service.models.accounts import UserProfile
from services.store_service.models.catalog import Product, ProductVariant
from services.store_service.models.commerce import (
    Coupon,
    EmailSubscriber,
    Order,
    OrderItem,
    OrderUpdate,
    OutboxEvent,
    StoreAuditLog,
)
from services.store_service.models.enums import (
    AuditEntityType,
    CourierService,
    DiscountType,
    OrderStatus,
    OutboxStatus,
    PaymentMethod,
)

__all__ = [
    "AuditEntityType",
    "Coupon",
    "CourierService",
    "DiscountType",
    "EmailSubscriber",
    "Order",
    "OrderItem",
    "OrderStatus",
    "OrderUpdate",
    "OutboxEvent",
    "OutboxStatus",
    "PaymentMethod",
    "Product",
    "ProductVariant",
    "StoreAuditLog",
    "UserProfile",
]
