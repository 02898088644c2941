"""Store commerce models: coupons, orders, status log, outbox, subscribers, audit."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.db.base import Base
from libs.db.types import JSONType, UTCDateTime
from services.store_service.models.enums import (
    AuditEntityType,
    DiscountType,
    OrderStatus,
    OutboxStatus,
    PaymentMethod,
    enum_values,
)
from sqlalchemy import Boolean, CheckConstraint
from sqlalchemy import Enum as SAEnum
from sqlalchemy import (
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    true,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

# ============================================================================
# COUPON MODEL
# ============================================================================


class Coupon(Base):
    """Discount rule redeemable with a code (a "sale" in the CMS)."""

    __tablename__ = "store_coupons"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Always stored uppercase
    code: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)

    discount_type: Mapped[DiscountType] = mapped_column(
        SAEnum(
            DiscountType,
            values_callable=enum_values,
            name="store_discount_type_enum",
        ),
        default=DiscountType.PERCENTAGE,
        nullable=False,
    )
    discount_value: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    min_order_value: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(12, 2), nullable=True
    )
    # Percentage coupons only
    max_discount: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(12, 2), nullable=True
    )

    # 0 = unlimited
    max_usage_count: Mapped[int] = mapped_column(
        Integer, default=0, server_default="0"
    )
    max_usage_per_user: Mapped[int] = mapped_column(
        Integer, default=1, server_default="1"
    )
    current_usage_count: Mapped[int] = mapped_column(
        Integer, default=0, server_default="0"
    )

    valid_from: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    valid_until: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, server_default=true())

    badge: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), default=utc_now, onupdate=utc_now
    )

    __table_args__ = (
        CheckConstraint("discount_value >= 0", name="coupon_non_negative_value"),
        CheckConstraint("current_usage_count >= 0", name="coupon_non_negative_usage"),
    )

    def __repr__(self):
        return f"<Coupon {self.code}>"


# ============================================================================
# ORDER MODELS
# ============================================================================


class Order(Base):
    """Customer orders.

    ``status`` always equals the status of the last entry in ``updates``; both
    change together through ``state_machine.apply_transition``.
    """

    __tablename__ = "store_orders"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    order_number: Mapped[str] = mapped_column(
        String(32), unique=True, nullable=False, index=True
    )

    # Customer (member_auth_id is null for guest orders)
    member_auth_id: Mapped[Optional[str]] = mapped_column(
        String(255), index=True, nullable=True
    )
    customer_name: Mapped[str] = mapped_column(String(255), nullable=False)
    customer_email: Mapped[str] = mapped_column(String(255), nullable=False)
    customer_phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    # Pricing
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="BDT")
    subtotal: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    discount_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), default=Decimal("0"), server_default="0"
    )
    total_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    # Coupon applied
    coupon_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("store_coupons.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    coupon_code: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    # Payment
    payment_method: Mapped[PaymentMethod] = mapped_column(
        SAEnum(
            PaymentMethod,
            values_callable=enum_values,
            name="store_payment_method_enum",
        ),
        default=PaymentMethod.COD,
        nullable=False,
    )
    payment_session_id: Mapped[Optional[str]] = mapped_column(
        String(255), index=True, nullable=True
    )
    payment_intent_id: Mapped[Optional[str]] = mapped_column(
        String(255), nullable=True
    )
    paid_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime(), nullable=True)

    # Delivery
    # {"full_name", "phone", "address", "city", "state", "zip_code", "country"}
    delivery_address: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)
    estimated_delivery: Mapped[Optional[datetime]] = mapped_column(
        UTCDateTime(), nullable=True
    )
    tracking_number: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    courier_service: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    status: Mapped[OrderStatus] = mapped_column(
        SAEnum(
            OrderStatus,
            values_callable=enum_values,
            name="store_order_status_enum",
        ),
        default=OrderStatus.PENDING,
        nullable=False,
    )

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Optimistic concurrency token, managed by the mapper
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    order_date: Mapped[datetime] = mapped_column(UTCDateTime(), default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), default=utc_now, onupdate=utc_now
    )

    __table_args__ = (
        CheckConstraint("subtotal >= 0", name="order_non_negative_subtotal"),
        CheckConstraint("discount_amount >= 0", name="order_non_negative_discount"),
        CheckConstraint("discount_amount <= subtotal", name="order_discount_le_subtotal"),
        CheckConstraint("total_price >= 0", name="order_non_negative_total"),
        Index("ix_store_orders_status_order_date", "status", "order_date"),
    )
    __mapper_args__ = {"version_id_col": version}

    # Relationships
    items = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    updates = relationship(
        "OrderUpdate",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderUpdate.sequence",
        lazy="selectin",
    )

    def __repr__(self):
        return f"<Order {self.order_number} status={self.status}>"


class OrderItem(Base):
    """Order line items (price snapshot at order time)."""

    __tablename__ = "store_order_items"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    order_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("store_orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    product_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("store_products.id"),
        nullable=False,
    )
    variant_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("store_product_variants.id", ondelete="SET NULL"),
        nullable=True,
    )

    product_name: Mapped[str] = mapped_column(String(255), nullable=False)
    size: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    height: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    line_total: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    __table_args__ = (CheckConstraint("quantity > 0", name="order_item_positive_qty"),)

    order = relationship("Order", back_populates="items")

    def __repr__(self):
        return f"<OrderItem {self.product_name} qty={self.quantity}>"


class OrderUpdate(Base):
    """Append-only status history entry of an order."""

    __tablename__ = "store_order_updates"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    order_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("store_orders.id", ondelete="CASCADE"),
        nullable=False,
    )
    # 0-based position in the log
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)

    status: Mapped[OrderStatus] = mapped_column(
        SAEnum(
            OrderStatus,
            values_callable=enum_values,
            name="store_order_status_enum",
        ),
        nullable=False,
    )
    message: Mapped[str] = mapped_column(Text, nullable=False)
    location: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    timestamp: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    performed_by: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    __table_args__ = (
        UniqueConstraint("order_id", "sequence", name="unique_order_update_sequence"),
    )

    order = relationship("Order", back_populates="updates")

    def __repr__(self):
        return f"<OrderUpdate #{self.sequence} {self.status}>"


# ============================================================================
# NEWSLETTER SUBSCRIBERS
# ============================================================================


class EmailSubscriber(Base):
    """Newsletter subscriber captured at checkout."""

    __tablename__ = "store_email_subscribers"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    customer_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    source: Mapped[str] = mapped_column(String(50), nullable=False)
    order_number: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    status: Mapped[str] = mapped_column(String(20), default="active")
    subscriber_metadata: Mapped[Optional[dict]] = mapped_column(
        "metadata", JSONType, nullable=True
    )
    subscribed_at: Mapped[datetime] = mapped_column(UTCDateTime(), default=utc_now)

    def __repr__(self):
        return f"<EmailSubscriber {self.email}>"


# ============================================================================
# NOTIFICATION OUTBOX
# ============================================================================


class OutboxEvent(Base):
    """Customer notification queued in the same transaction as the order change.

    The worker delivers pending events; delivery never affects the order.
    """

    __tablename__ = "store_outbox_events"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    event_type: Mapped[str] = mapped_column(String(50), nullable=False)
    aggregate_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    payload: Mapped[dict] = mapped_column(JSONType, nullable=False)

    status: Mapped[OutboxStatus] = mapped_column(
        SAEnum(
            OutboxStatus,
            values_callable=enum_values,
            name="store_outbox_status_enum",
        ),
        default=OutboxStatus.PENDING,
        nullable=False,
    )
    attempts: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    last_error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), default=utc_now)
    sent_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime(), nullable=True)

    __table_args__ = (
        Index("ix_store_outbox_events_status_created_at", "status", "created_at"),
    )

    def __repr__(self):
        return f"<OutboxEvent {self.event_type} {self.status}>"


# ============================================================================
# AUDIT LOG MODEL
# ============================================================================


class StoreAuditLog(Base):
    """Audit log for staff actions on orders, coupons and roles."""

    __tablename__ = "store_audit_logs"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    entity_type: Mapped[AuditEntityType] = mapped_column(
        SAEnum(
            AuditEntityType,
            values_callable=enum_values,
            name="store_audit_entity_type_enum",
        ),
        nullable=False,
    )
    # Not a FK: audit rows outlive deleted orders
    entity_id: Mapped[str] = mapped_column(String(64), nullable=False)

    action: Mapped[str] = mapped_column(String(50), nullable=False)  # "order_shipped"

    old_value: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)
    new_value: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)

    performed_by: Mapped[str] = mapped_column(String(255), nullable=False)
    performed_at: Mapped[datetime] = mapped_column(UTCDateTime(), default=utc_now)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    __table_args__ = (
        Index("ix_store_audit_logs_entity", "entity_type", "entity_id"),
        Index("ix_store_audit_logs_performed_at", "performed_at"),
    )

    def __repr__(self):
        return f"<StoreAuditLog {self.entity_type}:{self.entity_id} {self.action}>"
