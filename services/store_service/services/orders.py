"""Order creation and order queries.

``create_order`` re-prices the cart from the catalogue, applies an optional
coupon and writes the order, its items, the first status entry and the
confirmation notification in a single transaction. Nothing is written unless
every item has a price.
"""

import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from libs.common.config import get_settings
from libs.common.datetime_utils import utc_now
from libs.common.errors import (
    OperationalFailure,
    ResourceNotFound,
    StateConflict,
    StoreError,
    ValidationFailed,
)
from libs.common.logging import get_logger
from services.store_service.models import (
    EmailSubscriber,
    Order,
    OrderItem,
    OrderStatus,
    PaymentMethod,
    Product,
)
from services.store_service.order_utils import (
    calculate_estimated_delivery,
    generate_order_number,
)
from services.store_service.payment_gateway import (
    PaymentGatewayClient,
    PaymentGatewayError,
)
from services.store_service.schemas import OrderCreateRequest, OrderItemCreate
from services.store_service.services.coupons import (
    claim_coupon_redemption,
    to_money,
    validate_coupon,
)
from services.store_service.services.notifications import enqueue_order_confirmation
from services.store_service.state_machine import new_update_entry
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

ORDER_PLACED_MESSAGE = "Order placed successfully"


@dataclass
class PricedItem:
    product: Product
    variant_id: Optional[uuid.UUID]
    size: Optional[str]
    height: Optional[str]
    quantity: int
    unit_price: Decimal

    @property
    def line_total(self) -> Decimal:
        return to_money(self.unit_price * self.quantity)


@dataclass
class CreatedOrder:
    order: Order
    checkout_url: Optional[str] = None


# ============================================================================
# PRICING
# ============================================================================


async def price_items(db: AsyncSession, items: list[OrderItemCreate]) -> list[PricedItem]:
    """Resolve server-side prices for every cart line.

    Raises ``ValidationFailed`` with ``UNKNOWN_PRODUCT`` or
    ``ITEM_WITHOUT_PRICE``; no line is accepted unless all lines are.
    """
    product_ids = {item.product_id for item in items}
    try:
        result = await db.execute(select(Product).where(Product.id.in_(product_ids)))
    except SQLAlchemyError as e:
        raise OperationalFailure("load_products") from e
    products = {product.id: product for product in result.scalars().all()}

    priced: list[PricedItem] = []
    missing_price: list[str] = []
    for item in items:
        product = products.get(item.product_id)
        if product is None or not product.is_active:
            raise ValidationFailed(
                f"Unknown product: {item.product_id}", code="UNKNOWN_PRODUCT"
            )

        variant = None
        if item.variant_id is not None:
            variant = next((v for v in product.variants if v.id == item.variant_id), None)
            if variant is None:
                raise ValidationFailed(
                    f"Unknown variant {item.variant_id} for {product.name}",
                    code="UNKNOWN_PRODUCT",
                )

        unit_price = product.price
        if variant is not None and variant.price is not None:
            unit_price = variant.price
        if unit_price is None:
            missing_price.append(
                f"{product.name} ({variant.label})" if variant and variant.label else product.name
            )
            continue

        priced.append(
            PricedItem(
                product=product,
                variant_id=variant.id if variant else None,
                size=variant.size if variant else None,
                height=variant.height if variant else None,
                quantity=item.quantity,
                unit_price=Decimal(unit_price),
            )
        )

    if missing_price:
        raise ValidationFailed(
            f"Item without price: {', '.join(missing_price)}",
            code="ITEM_WITHOUT_PRICE",
        )
    return priced


# ============================================================================
# ORDER CREATION
# ============================================================================


async def create_order(
    db: AsyncSession,
    request: OrderCreateRequest,
    user_id: Optional[str] = None,
    gateway: Optional[PaymentGatewayClient] = None,
) -> CreatedOrder:
    """Create an order for a guest (``user_id`` None) or a signed-in customer."""
    settings = get_settings()
    priced = await price_items(db, request.items)
    subtotal = to_money(sum((line.line_total for line in priced), Decimal("0")))

    coupon = None
    discount = Decimal("0.00")
    if request.coupon_code and request.coupon_code.strip():
        validation = await validate_coupon(db, request.coupon_code, subtotal, user_id)
        if not validation.valid:
            raise ValidationFailed(validation.message, code="COUPON_REJECTED")
        coupon = validation.coupon
        discount = validation.discount

    now = utc_now()
    address = request.delivery_address
    order = Order(
        order_number=generate_order_number(now),
        member_auth_id=user_id,
        customer_name=request.customer_name.strip(),
        customer_email=str(request.customer_email).lower(),
        customer_phone=request.customer_phone or address.phone,
        currency=settings.STORE_CURRENCY,
        subtotal=subtotal,
        discount_amount=discount,
        total_price=to_money(subtotal - discount),
        coupon_id=coupon.id if coupon else None,
        coupon_code=coupon.code if coupon else None,
        payment_method=request.payment_method,
        payment_session_id=None,
        payment_intent_id=None,
        delivery_address=address.model_dump(),
        estimated_delivery=calculate_estimated_delivery(
            now, address.city, settings.DEFAULT_DELIVERY_DAYS
        ),
        status=OrderStatus.PENDING,
        notes=request.notes,
        order_date=now,
    )
    order.items = [
        OrderItem(
            product_id=line.product.id,
            variant_id=line.variant_id,
            product_name=line.product.name,
            size=line.size,
            height=line.height,
            quantity=line.quantity,
            unit_price=line.unit_price,
            line_total=line.line_total,
        )
        for line in priced
    ]
    order.updates = [
        new_update_entry(
            sequence=0,
            status=OrderStatus.PENDING,
            message=ORDER_PLACED_MESSAGE,
            location=settings.WAREHOUSE_LOCATION,
            timestamp=now,
        )
    ]

    checkout_url = None
    try:
        if coupon is not None and not await claim_coupon_redemption(db, coupon.id):
            raise StateConflict(
                "This coupon has reached its usage limit", code="COUPON_EXHAUSTED"
            )

        db.add(order)
        await db.flush()
        enqueue_order_confirmation(db, order)

        if order.payment_method == PaymentMethod.CARD:
            if gateway is None:
                raise PaymentGatewayError("No payment gateway configured")
            session = await gateway.create_checkout_session(order)
            order.payment_session_id = session.session_id
            checkout_url = session.url

        await db.commit()
    except StoreError:
        await db.rollback()
        raise
    except PaymentGatewayError as e:
        await db.rollback()
        logger.error(f"Checkout session failed for {order.order_number}: {e.message}")
        raise OperationalFailure("create_checkout_session", order.order_number) from e
    except SQLAlchemyError as e:
        await db.rollback()
        raise OperationalFailure("create_order", order.order_number) from e

    logger.info(
        "Created order %s (%d items, total=%s %s, coupon=%s)",
        order.order_number,
        len(priced),
        order.total_price,
        order.currency,
        order.coupon_code,
    )
    return CreatedOrder(order=order, checkout_url=checkout_url)


async def subscribe_to_newsletter(
    db: AsyncSession,
    email: str,
    customer_name: Optional[str],
    order_number: str,
) -> bool:
    """Record a checkout newsletter opt-in. Failures are logged and ignored."""
    try:
        existing = await db.execute(
            select(EmailSubscriber.id).where(EmailSubscriber.email == email)
        )
        if existing.scalar_one_or_none() is not None:
            return False
        db.add(
            EmailSubscriber(
                email=email,
                customer_name=customer_name,
                source="checkout",
                order_number=order_number,
                status="active",
                subscriber_metadata={"subscribed_from": "order_checkout"},
            )
        )
        await db.commit()
        return True
    except SQLAlchemyError as e:
        await db.rollback()
        logger.warning(f"Newsletter signup failed for order {order_number}: {e}")
        return False


# ============================================================================
# QUERIES
# ============================================================================


async def get_order(db: AsyncSession, order_id: uuid.UUID) -> Order:
    try:
        order = await db.get(Order, order_id)
    except SQLAlchemyError as e:
        raise OperationalFailure("get_order", order_id) from e
    if order is None:
        raise ResourceNotFound("Order not found", code="ORDER_NOT_FOUND")
    return order


async def get_customer_order(
    db: AsyncSession, order_number: str, user_id: str
) -> Order:
    """Return one of the caller's own orders; other customers' orders are not found."""
    try:
        result = await db.execute(
            select(Order).where(
                Order.order_number == order_number,
                Order.member_auth_id == user_id,
            )
        )
    except SQLAlchemyError as e:
        raise OperationalFailure("get_customer_order", order_number) from e
    order = result.scalar_one_or_none()
    if order is None:
        raise ResourceNotFound("Order not found", code="ORDER_NOT_FOUND")
    return order


async def list_orders(
    db: AsyncSession,
    *,
    user_id: Optional[str] = None,
    status: Optional[OrderStatus] = None,
    page: int = 1,
    page_size: int = 20,
) -> tuple[list[Order], int]:
    """Newest orders first, optionally limited to one customer or one status."""
    query = select(Order)
    count_query = select(func.count(Order.id))
    if user_id is not None:
        query = query.where(Order.member_auth_id == user_id)
        count_query = count_query.where(Order.member_auth_id == user_id)
    if status is not None:
        query = query.where(Order.status == status)
        count_query = count_query.where(Order.status == status)

    query = (
        query.order_by(Order.order_date.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    try:
        total = (await db.execute(count_query)).scalar_one()
        orders = list((await db.execute(query)).scalars().all())
    except SQLAlchemyError as e:
        raise OperationalFailure("list_orders") from e
    return orders, total


async def order_status_counts(db: AsyncSession) -> dict[str, int]:
    try:
        result = await db.execute(
            select(Order.status, func.count(Order.id)).group_by(Order.status)
        )
    except SQLAlchemyError as e:
        raise OperationalFailure("order_status_counts") from e
    counts = {status.value: 0 for status in OrderStatus}
    for status, count in result.all():
        counts[OrderStatus(status).value] = count
    return counts
