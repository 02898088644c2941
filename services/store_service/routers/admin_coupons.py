"""Admin coupon management and coupon analytics."""

import uuid

from fastapi import APIRouter, Depends
from libs.common.datetime_utils import as_utc
from libs.common.errors import ResourceNotFound, StateConflict, ValidationFailed
from libs.common.logging import get_logger
from libs.db.session import get_async_db
from services.store_service.access import Caller, require_operation
from services.store_service.models import AuditEntityType, Coupon
from services.store_service.schemas import (
    CouponAnalytics,
    CouponCreate,
    CouponResponse,
    CouponUpdate,
)
from services.store_service.services.audit import log_audit
from services.store_service.services.coupons import coupon_analytics, normalize_code
from sqlalchemy import desc, select
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(tags=["admin-store"])
logger = get_logger(__name__)

# Columns a PATCH may change but never clear
NON_NULLABLE_FIELDS = frozenset(
    {
        "title",
        "discount_type",
        "discount_value",
        "max_usage_count",
        "max_usage_per_user",
        "valid_from",
        "valid_until",
        "is_active",
    }
)


async def _get_coupon(db: AsyncSession, coupon_ref: str) -> Coupon:
    """Find a coupon by id, falling back to its code."""
    try:
        uid = uuid.UUID(coupon_ref)
        result = await db.execute(select(Coupon).where(Coupon.id == uid))
    except ValueError:
        result = await db.execute(
            select(Coupon).where(Coupon.code == normalize_code(coupon_ref))
        )

    coupon = result.scalar_one_or_none()
    if not coupon:
        raise ResourceNotFound("Coupon not found", code="COUPON_NOT_FOUND")
    return coupon


def _check_window(valid_from, valid_until) -> None:
    valid_from, valid_until = as_utc(valid_from), as_utc(valid_until)
    if valid_from and valid_until and valid_until < valid_from:
        raise ValidationFailed(
            "valid_until must not be before valid_from", code="INVALID_VALIDITY_WINDOW"
        )


def _audit_values(coupon: Coupon) -> dict:
    return {
        "code": coupon.code,
        "discount_type": coupon.discount_type.value,
        "discount_value": str(coupon.discount_value),
        "max_usage_count": coupon.max_usage_count,
        "is_active": coupon.is_active,
    }


@router.get("/coupons", response_model=list[CouponResponse])
async def list_coupons(
    caller: Caller = Depends(require_operation("coupons.read")),
    db: AsyncSession = Depends(get_async_db),
):
    """List all coupons, newest first."""
    result = await db.execute(select(Coupon).order_by(desc(Coupon.created_at)))
    return result.scalars().all()


@router.post("/coupons", response_model=CouponResponse, status_code=201)
async def create_coupon(
    payload: CouponCreate,
    caller: Caller = Depends(require_operation("coupons.write")),
    db: AsyncSession = Depends(get_async_db),
):
    """Create a coupon. Codes are stored uppercase and must be unique."""
    _check_window(payload.valid_from, payload.valid_until)

    existing = await db.execute(select(Coupon.id).where(Coupon.code == payload.code))
    if existing.scalar_one_or_none():
        raise StateConflict(
            f"Coupon code '{payload.code}' already exists", code="DUPLICATE_COUPON"
        )

    coupon = Coupon(**payload.model_dump(), current_usage_count=0)
    db.add(coupon)
    await db.flush()
    log_audit(
        db,
        AuditEntityType.COUPON,
        coupon.id,
        "coupon_created",
        caller.user_id,
        new_value=_audit_values(coupon),
    )
    await db.commit()
    await db.refresh(coupon)

    logger.info("Coupon %s created by %s", coupon.code, caller.user_id)
    return coupon


@router.get("/coupons/analytics", response_model=list[CouponAnalytics])
async def get_all_coupon_analytics(
    caller: Caller = Depends(require_operation("coupons.analytics")),
    db: AsyncSession = Depends(get_async_db),
):
    """Redemptions, discount granted and revenue for every coupon."""
    return await coupon_analytics(db)


@router.get("/coupons/{coupon_ref}", response_model=CouponResponse)
async def get_coupon(
    coupon_ref: str,
    caller: Caller = Depends(require_operation("coupons.read")),
    db: AsyncSession = Depends(get_async_db),
):
    """Get a coupon by id or code."""
    return await _get_coupon(db, coupon_ref)


@router.get("/coupons/{coupon_ref}/analytics", response_model=CouponAnalytics)
async def get_coupon_analytics(
    coupon_ref: str,
    caller: Caller = Depends(require_operation("coupons.analytics")),
    db: AsyncSession = Depends(get_async_db),
):
    coupon = await _get_coupon(db, coupon_ref)
    rows = await coupon_analytics(db, coupon.id)
    return rows[0]


@router.patch("/coupons/{coupon_ref}", response_model=CouponResponse)
async def update_coupon(
    coupon_ref: str,
    payload: CouponUpdate,
    caller: Caller = Depends(require_operation("coupons.write")),
    db: AsyncSession = Depends(get_async_db),
):
    """Update a coupon. The code and usage counter cannot be edited."""
    coupon = await _get_coupon(db, coupon_ref)
    old_values = _audit_values(coupon)

    update_data = payload.model_dump(exclude_unset=True)
    cleared = sorted(
        field
        for field in NON_NULLABLE_FIELDS
        if field in update_data and update_data[field] is None
    )
    if cleared:
        raise ValidationFailed(f"Fields cannot be null: {', '.join(cleared)}")
    _check_window(
        update_data.get("valid_from", coupon.valid_from),
        update_data.get("valid_until", coupon.valid_until),
    )
    for field, value in update_data.items():
        setattr(coupon, field, value)

    log_audit(
        db,
        AuditEntityType.COUPON,
        coupon.id,
        "coupon_updated",
        caller.user_id,
        old_value=old_values,
        new_value=_audit_values(coupon),
    )
    await db.commit()
    await db.refresh(coupon)
    return coupon


@router.delete("/coupons/{coupon_ref}")
async def delete_coupon(
    coupon_ref: str,
    caller: Caller = Depends(require_operation("coupons.write")),
    db: AsyncSession = Depends(get_async_db),
):
    """Delete a coupon. Orders keep their coupon code."""
    coupon = await _get_coupon(db, coupon_ref)
    log_audit(
        db,
        AuditEntityType.COUPON,
        coupon.id,
        "coupon_deleted",
        caller.user_id,
        old_value=_audit_values(coupon),
    )
    await db.delete(coupon)
    await db.commit()
    return {"deleted": True}
