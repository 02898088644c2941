"""Public coupon validation endpoint."""

from typing import Optional

from fastapi import APIRouter, Depends
from libs.auth.dependencies import get_optional_user
from libs.auth.models import AuthUser
from libs.db.session import get_async_db
from services.store_service.schemas import (
    CouponSummary,
    CouponValidateRequest,
    CouponValidateResponse,
)
from services.store_service.services.coupons import to_money, validate_coupon
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(tags=["store"])


@router.post("/coupons/validate", response_model=CouponValidateResponse)
async def validate_coupon_code(
    payload: CouponValidateRequest,
    current_user: Optional[AuthUser] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_async_db),
):
    """
    Check a coupon against a cart total and preview the discount.
    Does NOT redeem the coupon.
    """
    user_id = current_user.user_id if current_user else payload.user_id
    result = await validate_coupon(db, payload.code, payload.cart_total, user_id)
    if not result.valid:
        return CouponValidateResponse(valid=False, message=result.message)

    return CouponValidateResponse(
        valid=True,
        message=result.message,
        discount=result.discount,
        final_total=to_money(payload.cart_total - result.discount),
        coupon=CouponSummary.model_validate(result.coupon),
    )
