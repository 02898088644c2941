"""Store orders router: checkout and the customer's own orders."""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from libs.auth.dependencies import get_current_user
from libs.auth.models import AuthUser
from libs.common.cache import Cache, get_cache
from libs.db.session import get_async_db
from services.store_service.payment_gateway import (
    PaymentGatewayClient,
    get_payment_gateway,
)
from services.store_service.routers._helpers import invalidate_order_cache
from services.store_service.schemas import (
    OrderCreateRequest,
    OrderCreateResponse,
    OrderListResponse,
    OrderResponse,
)
from services.store_service.services.orders import (
    create_order,
    get_customer_order,
    list_orders,
    subscribe_to_newsletter,
)
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(tags=["store"])


async def _place_order(
    payload: OrderCreateRequest,
    user_id: Optional[str],
    db: AsyncSession,
    gateway: PaymentGatewayClient,
    cache: Cache,
) -> OrderCreateResponse:
    created = await create_order(db, payload, user_id=user_id, gateway=gateway)
    order = created.order
    response = OrderCreateResponse(
        order_id=order.id,
        order_number=order.order_number,
        status=order.status,
        estimated_delivery=order.estimated_delivery,
        subtotal=order.subtotal,
        discount_amount=order.discount_amount,
        total_price=order.total_price,
        currency=order.currency,
        checkout_url=created.checkout_url,
    )
    await invalidate_order_cache(cache)

    if payload.subscribe_newsletter:
        await subscribe_to_newsletter(
            db,
            email=str(payload.customer_email).lower(),
            customer_name=payload.customer_name,
            order_number=response.order_number,
        )
    return response


# ============================================================================
# CHECKOUT
# ============================================================================


@router.post(
    "/orders", response_model=OrderCreateResponse, status_code=status.HTTP_201_CREATED
)
async def place_order(
    payload: OrderCreateRequest,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
    gateway: PaymentGatewayClient = Depends(get_payment_gateway),
    cache: Cache = Depends(get_cache),
):
    """Place an order as the signed-in customer."""
    return await _place_order(payload, current_user.user_id, db, gateway, cache)


@router.post(
    "/orders/guest",
    response_model=OrderCreateResponse,
    status_code=status.HTTP_201_CREATED,
)
async def place_guest_order(
    payload: OrderCreateRequest,
    db: AsyncSession = Depends(get_async_db),
    gateway: PaymentGatewayClient = Depends(get_payment_gateway),
    cache: Cache = Depends(get_cache),
):
    """Place an order without an account."""
    return await _place_order(payload, None, db, gateway, cache)


# ============================================================================
# ORDER HISTORY
# ============================================================================


@router.get("/orders", response_model=OrderListResponse)
async def list_my_orders(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """List the caller's orders, newest first."""
    orders, total = await list_orders(
        db, user_id=current_user.user_id, page=page, page_size=page_size
    )
    return OrderListResponse(
        items=[OrderResponse.model_validate(o) for o in orders],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get("/orders/{order_number}", response_model=OrderResponse)
async def get_my_order(
    order_number: str,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Get one of the caller's orders by order number."""
    return await get_customer_order(db, order_number, current_user.user_id)
