"""Coupon validation, redemption claims and analytics.

Validation is a read-only sequential gate: the first failing check decides
the rejection message. Rejections are returned, not raised; only database
failures raise (``OperationalFailure``).

The global usage counter is only ever changed by ``claim_coupon_redemption``,
a single conditional UPDATE, so concurrent orders can never push a coupon past
its cap.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from libs.common.datetime_utils import as_utc, utc_now
from libs.common.errors import OperationalFailure
from libs.common.logging import get_logger
from services.store_service.models import Coupon, DiscountType, Order, OrderStatus
from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

CENT = Decimal("0.01")

INVALID_CODE = "Invalid coupon code"
INACTIVE = "This coupon is no longer active"
EXPIRED = "This coupon has expired"
USAGE_LIMIT_REACHED = "This coupon has reached its usage limit"
USER_LIMIT_REACHED = "You have already used this coupon the maximum number of times"


@dataclass
class CouponValidation:
    valid: bool
    message: str
    discount: Decimal = Decimal("0.00")
    coupon: Optional[Coupon] = None


def normalize_code(code: str) -> str:
    return (code or "").strip().upper()


def to_money(value) -> Decimal:
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def format_amount(value: Decimal) -> str:
    """Render 200.00 as "200" and 199.5 as "199.50"."""
    value = Decimal(value)
    if value == value.to_integral_value():
        return str(int(value))
    return str(value.quantize(CENT, rounding=ROUND_HALF_UP))


def compute_discount(coupon: Coupon, cart_total: Decimal) -> Decimal:
    """Discount for ``cart_total``, capped by ``max_discount`` and the total itself."""
    cart_total = Decimal(cart_total)
    value = Decimal(coupon.discount_value)

    if coupon.discount_type == DiscountType.PERCENTAGE:
        discount = cart_total * value / Decimal(100)
        if coupon.max_discount is not None and coupon.max_discount > 0:
            discount = min(discount, Decimal(coupon.max_discount))
    else:
        discount = value

    discount = max(min(discount, cart_total), Decimal(0))
    return to_money(discount)


def check_coupon_rules(
    coupon: Optional[Coupon],
    cart_total: Decimal,
    now: datetime,
    user_usage: Optional[int] = None,
) -> CouponValidation:
    """Run the validation gate on an already fetched coupon.

    ``user_usage`` is the caller's prior redemption count, or None for
    anonymous callers.
    """
    if coupon is None:
        return CouponValidation(valid=False, message=INVALID_CODE)

    if not coupon.is_active:
        return CouponValidation(valid=False, message=INACTIVE)

    valid_from = as_utc(coupon.valid_from)
    valid_until = as_utc(coupon.valid_until)
    if now < valid_from:
        return CouponValidation(
            valid=False,
            message=f"This coupon will be valid from {valid_from:%Y-%m-%d}",
        )
    if now > valid_until:
        return CouponValidation(valid=False, message=EXPIRED)

    if coupon.min_order_value is not None and cart_total < coupon.min_order_value:
        return CouponValidation(
            valid=False,
            message=f"Minimum order value of {format_amount(coupon.min_order_value)} required",
        )

    if (
        coupon.max_usage_count > 0
        and coupon.current_usage_count >= coupon.max_usage_count
    ):
        return CouponValidation(valid=False, message=USAGE_LIMIT_REACHED)

    if (
        user_usage is not None
        and coupon.max_usage_per_user > 0
        and user_usage >= coupon.max_usage_per_user
    ):
        return CouponValidation(valid=False, message=USER_LIMIT_REACHED)

    discount = compute_discount(coupon, cart_total)
    if coupon.discount_type == DiscountType.PERCENTAGE:
        message = f"{format_amount(coupon.discount_value)}% discount applied"
    else:
        message = f"{format_amount(discount)} discount applied"
    return CouponValidation(valid=True, message=message, discount=discount, coupon=coupon)


async def get_coupon_by_code(db: AsyncSession, code: str) -> Optional[Coupon]:
    result = await db.execute(select(Coupon).where(Coupon.code == normalize_code(code)))
    return result.scalar_one_or_none()


async def count_user_redemptions(
    db: AsyncSession, coupon_id: uuid.UUID, user_id: str
) -> int:
    """Orders by ``user_id`` using the coupon, cancelled orders excluded."""
    result = await db.execute(
        select(func.count(Order.id)).where(
            Order.coupon_id == coupon_id,
            Order.member_auth_id == user_id,
            Order.status != OrderStatus.CANCELLED,
        )
    )
    return result.scalar_one()


async def validate_coupon(
    db: AsyncSession,
    code: str,
    cart_total: Decimal,
    user_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> CouponValidation:
    """Validate ``code`` against ``cart_total`` without redeeming it."""
    now = now or utc_now()
    cart_total = Decimal(cart_total)
    try:
        coupon = await get_coupon_by_code(db, code)
        user_usage = None
        if (
            coupon is not None
            and user_id
            and coupon.is_active
            and coupon.max_usage_per_user > 0
        ):
            user_usage = await count_user_redemptions(db, coupon.id, user_id)
    except SQLAlchemyError as e:
        raise OperationalFailure("validate_coupon", normalize_code(code)) from e

    return check_coupon_rules(coupon, cart_total, now, user_usage)


async def claim_coupon_redemption(db: AsyncSession, coupon_id: uuid.UUID) -> bool:
    """Atomically take one redemption of the coupon.

    Returns False when the coupon was deactivated or its cap was reached by a
    concurrent order. Runs inside the caller's transaction, so a rollback
    releases the claim.
    """
    stmt = (
        update(Coupon)
        .where(
            Coupon.id == coupon_id,
            Coupon.is_active.is_(True),
            or_(
                Coupon.max_usage_count <= 0,
                Coupon.current_usage_count < Coupon.max_usage_count,
            ),
        )
        .values(current_usage_count=Coupon.current_usage_count + 1)
        .execution_options(synchronize_session=False)
    )
    result = await db.execute(stmt)
    claimed = result.rowcount == 1
    if not claimed:
        logger.info("Coupon %s redemption refused: limit reached or inactive", coupon_id)
    return claimed


async def coupon_analytics(
    db: AsyncSession, coupon_id: Optional[uuid.UUID] = None
) -> list[dict]:
    """Redemptions, discount granted and revenue per coupon (cancelled orders excluded)."""
    stmt = (
        select(
            Coupon.id,
            Coupon.code,
            Coupon.title,
            Coupon.current_usage_count,
            Coupon.max_usage_count,
            func.count(Order.id).label("orders"),
            func.coalesce(func.sum(Order.discount_amount), 0).label("discount_total"),
            func.coalesce(func.sum(Order.total_price), 0).label("revenue"),
        )
        .outerjoin(
            Order,
            (Order.coupon_id == Coupon.id) & (Order.status != OrderStatus.CANCELLED),
        )
        .group_by(
            Coupon.id,
            Coupon.code,
            Coupon.title,
            Coupon.current_usage_count,
            Coupon.max_usage_count,
        )
        .order_by(Coupon.code)
    )
    if coupon_id is not None:
        stmt = stmt.where(Coupon.id == coupon_id)

    try:
        rows = (await db.execute(stmt)).all()
    except SQLAlchemyError as e:
        raise OperationalFailure("coupon_analytics", coupon_id) from e

    return [
        {
            "coupon_id": row.id,
            "code": row.code,
            "title": row.title,
            "redemptions": row.current_usage_count,
            "max_usage_count": row.max_usage_count,
            "orders": row.orders,
            "discount_total": to_money(row.discount_total),
            "revenue": to_money(row.revenue),
        }
        for row in rows
    ]
