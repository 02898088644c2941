"""Admin order management: listing, stats, shipping, status changes, deletion."""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from libs.common.cache import Cache, get_cache
from libs.db.session import get_async_db
from services.store_service.access import Caller, require_operation
from services.store_service.models import OrderStatus
from services.store_service.routers._helpers import (
    ORDER_STATS_KEY,
    invalidate_order_cache,
)
from services.store_service.schemas import (
    OrderDeleteResponse,
    OrderListResponse,
    OrderResponse,
    OrderStatsResponse,
    OrderStatusUpdate,
    ShipOrderRequest,
)
from services.store_service.services.fulfillment import (
    delete_order,
    ship_order,
    update_order_status,
)
from services.store_service.services.orders import (
    get_order,
    list_orders,
    order_status_counts,
)
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(tags=["admin-store"])


@router.get("/orders", response_model=OrderListResponse)
async def list_all_orders(
    status_filter: Optional[OrderStatus] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    caller: Caller = Depends(require_operation("orders.list")),
    db: AsyncSession = Depends(get_async_db),
):
    """List all orders, newest first."""
    orders, total = await list_orders(
        db, status=status_filter, page=page, page_size=page_size
    )
    return OrderListResponse(
        items=[OrderResponse.model_validate(o) for o in orders],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get("/orders/stats", response_model=OrderStatsResponse)
async def get_order_stats(
    caller: Caller = Depends(require_operation("orders.stats")),
    db: AsyncSession = Depends(get_async_db),
    cache: Cache = Depends(get_cache),
):
    """Order counts per status."""
    cached = await cache.get(ORDER_STATS_KEY)
    if cached is not None:
        return cached

    counts = await order_status_counts(db)
    stats = {"total": sum(counts.values()), "by_status": counts}
    await cache.set(ORDER_STATS_KEY, stats, ttl=60)
    return stats


@router.get("/orders/{order_id}", response_model=OrderResponse)
async def get_order_admin(
    order_id: uuid.UUID,
    caller: Caller = Depends(require_operation("orders.read")),
    db: AsyncSession = Depends(get_async_db),
):
    """Get order detail with its full status history."""
    return await get_order(db, order_id)


@router.patch("/orders/{order_id}/ship", response_model=OrderResponse)
async def ship_order_admin(
    order_id: uuid.UUID,
    payload: ShipOrderRequest,
    caller: Caller = Depends(require_operation("orders.ship")),
    db: AsyncSession = Depends(get_async_db),
    cache: Cache = Depends(get_cache),
):
    """Hand an order to the courier with a tracking number."""
    order = await ship_order(
        db,
        order_id,
        tracking_number=payload.tracking_number,
        performed_by=caller.user_id,
        courier_service=payload.courier_service,
        notes=payload.notes,
        status=payload.status,
        estimated_delivery=payload.estimated_delivery,
    )
    await invalidate_order_cache(cache)
    return order


@router.patch("/orders/{order_id}/status", response_model=OrderResponse)
async def update_order_status_admin(
    order_id: uuid.UUID,
    payload: OrderStatusUpdate,
    caller: Caller = Depends(require_operation("orders.update_status")),
    db: AsyncSession = Depends(get_async_db),
    cache: Cache = Depends(get_cache),
):
    """Move an order forward (or cancel it)."""
    order = await update_order_status(
        db,
        order_id,
        status=payload.status,
        performed_by=caller.user_id,
        message=payload.message,
        location=payload.location,
    )
    await invalidate_order_cache(cache)
    return order


@router.delete("/orders/{order_id}", response_model=OrderDeleteResponse)
async def delete_order_admin(
    order_id: uuid.UUID,
    caller: Caller = Depends(require_operation("orders.delete")),
    db: AsyncSession = Depends(get_async_db),
    cache: Cache = Depends(get_cache),
):
    """Delete an order that is not being processed or delivered."""
    order_number = await delete_order(db, order_id, performed_by=caller.user_id)
    await invalidate_order_cache(cache)
    return OrderDeleteResponse(deleted=True, order_number=order_number)
