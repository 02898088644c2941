"""Pydantic schemas for store service."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from libs.auth.access import Role
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from services.store_service.models import (
    CourierService,
    DiscountType,
    OrderStatus,
    PaymentMethod,
)

# ============================================================================
# COUPON SCHEMAS
# ============================================================================


class CouponValidateRequest(BaseModel):
    code: str = Field(..., min_length=1, max_length=50)
    cart_total: Decimal = Field(..., ge=0)
    user_id: Optional[str] = None


class CouponSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    code: str
    title: str
    discount_type: DiscountType
    discount_value: Decimal
    max_discount: Optional[Decimal] = None
    badge: Optional[str] = None


class CouponValidateResponse(BaseModel):
    valid: bool
    message: str
    discount: Decimal = Decimal("0.00")
    final_total: Optional[Decimal] = None
    coupon: Optional[CouponSummary] = None


class CouponBase(BaseModel):
    title: str = Field(..., max_length=255)
    description: Optional[str] = None
    discount_type: DiscountType = DiscountType.PERCENTAGE
    discount_value: Decimal = Field(..., ge=0)
    min_order_value: Optional[Decimal] = Field(None, ge=0)
    max_discount: Optional[Decimal] = Field(None, ge=0)
    max_usage_count: int = 0  # 0 = unlimited
    max_usage_per_user: int = 1  # 0 = unlimited
    valid_from: datetime
    valid_until: datetime
    is_active: bool = True
    badge: Optional[str] = Field(None, max_length=50)


class CouponCreate(CouponBase):
    code: str = Field(..., min_length=1, max_length=50)

    @field_validator("code")
    @classmethod
    def normalize_code(cls, value: str) -> str:
        return value.strip().upper()


class CouponUpdate(BaseModel):
    title: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = None
    discount_type: Optional[DiscountType] = None
    discount_value: Optional[Decimal] = Field(None, ge=0)
    min_order_value: Optional[Decimal] = Field(None, ge=0)
    max_discount: Optional[Decimal] = Field(None, ge=0)
    max_usage_count: Optional[int] = None
    max_usage_per_user: Optional[int] = None
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None
    is_active: Optional[bool] = None
    badge: Optional[str] = Field(None, max_length=50)


class CouponResponse(CouponBase):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    code: str
    current_usage_count: int
    created_at: datetime
    updated_at: datetime


class CouponAnalytics(BaseModel):
    coupon_id: uuid.UUID
    code: str
    title: str
    redemptions: int
    max_usage_count: int
    orders: int
    discount_total: Decimal
    revenue: Decimal


# ============================================================================
# ORDER SCHEMAS
# ============================================================================


class DeliveryAddress(BaseModel):
    full_name: str = Field(..., min_length=1, max_length=255)
    phone: str = Field(..., min_length=1, max_length=50)
    address: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1, max_length=100)
    state: Optional[str] = Field(None, max_length=100)
    zip_code: Optional[str] = Field(None, max_length=20)
    country: str = Field("Bangladesh", max_length=100)


class OrderItemCreate(BaseModel):
    product_id: uuid.UUID
    variant_id: Optional[uuid.UUID] = None
    quantity: int = Field(1, ge=1, le=100)


class OrderCreateRequest(BaseModel):
    customer_name: str = Field(..., min_length=1, max_length=255)
    customer_email: EmailStr
    customer_phone: Optional[str] = Field(None, max_length=50)
    items: list[OrderItemCreate] = Field(..., min_length=1)
    delivery_address: DeliveryAddress
    payment_method: PaymentMethod = PaymentMethod.COD
    coupon_code: Optional[str] = Field(None, max_length=50)
    notes: Optional[str] = None
    subscribe_newsletter: bool = False


class OrderCreateResponse(BaseModel):
    order_id: uuid.UUID
    order_number: str
    status: OrderStatus
    estimated_delivery: datetime
    subtotal: Decimal
    discount_amount: Decimal
    total_price: Decimal
    currency: str
    checkout_url: Optional[str] = None


class OrderItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    product_id: uuid.UUID
    variant_id: Optional[uuid.UUID] = None
    product_name: str
    size: Optional[str] = None
    height: Optional[str] = None
    quantity: int
    unit_price: Decimal
    line_total: Decimal


class OrderUpdateResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    sequence: int
    status: OrderStatus
    message: str
    location: Optional[str] = None
    timestamp: datetime


class OrderResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    order_number: str
    member_auth_id: Optional[str] = None
    customer_name: str
    customer_email: str
    customer_phone: Optional[str] = None
    currency: str
    subtotal: Decimal
    discount_amount: Decimal
    total_price: Decimal
    coupon_code: Optional[str] = None
    payment_method: PaymentMethod
    payment_session_id: Optional[str] = None
    paid_at: Optional[datetime] = None
    delivery_address: Optional[dict] = None
    estimated_delivery: Optional[datetime] = None
    tracking_number: Optional[str] = None
    courier_service: Optional[str] = None
    status: OrderStatus
    notes: Optional[str] = None
    order_date: datetime
    updated_at: datetime
    items: list[OrderItemResponse] = []
    updates: list[OrderUpdateResponse] = []


class OrderListResponse(BaseModel):
    items: list[OrderResponse]
    total: int
    page: int
    page_size: int


class OrderStatsResponse(BaseModel):
    total: int
    by_status: dict[str, int]


class ShipOrderRequest(BaseModel):
    # Emptiness is checked by ship_order so it gets its own error code
    tracking_number: Optional[str] = None
    courier_service: CourierService = CourierService.STEADFAST
    notes: Optional[str] = None
    status: Optional[OrderStatus] = None
    estimated_delivery: Optional[datetime] = None


class OrderStatusUpdate(BaseModel):
    status: OrderStatus
    message: Optional[str] = None
    location: Optional[str] = Field(None, max_length=255)


class OrderDeleteResponse(BaseModel):
    deleted: bool
    order_number: str


# ============================================================================
# USER ROLE SCHEMAS
# ============================================================================


class UserRoleUpdate(BaseModel):
    role: Role


class UserProfileResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    auth_id: str
    email: Optional[str] = None
    full_name: Optional[str] = None
    role: Role
    updated_at: datetime
