"""Post-creation order changes: shipping, status updates, payment, deletion.

Every function here:
- validates the change with ``state_machine`` before touching the order,
- appends exactly one status entry through ``apply_transition`` (deletion
  appends nothing),
- adds an audit row and, for customer-visible changes, an outbox
  notification in the same transaction,
- commits with the order's version check, so a concurrent change made after
  the order was loaded fails with 409 ``ORDER_STATE_CHANGED``.
"""

import uuid
from datetime import datetime
from typing import Optional

from libs.common.config import get_settings
from libs.common.datetime_utils import utc_now
from libs.common.errors import (
    OperationalFailure,
    StateConflict,
    ValidationFailed,
)
from libs.common.logging import get_logger
from services.store_service.models import (
    AuditEntityType,
    CourierService,
    Order,
    OrderStatus,
)
from services.store_service.order_utils import get_order_status_text
from services.store_service.services.audit import log_audit
from services.store_service.services.notifications import (
    enqueue_order_shipped,
    enqueue_status_changed,
)
from services.store_service.services.orders import get_order
from services.store_service.state_machine import (
    OrderAction,
    apply_transition,
    check_transition,
    is_transition_allowed,
)
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

logger = get_logger(__name__)

SYSTEM_ACTOR = "payment_gateway"
ADMIN_LOCATION = "Admin Panel"

# Status changes the customer is told about
NOTIFY_ON = frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED})

ACTION_FOR_TARGET = {
    OrderStatus.CONFIRMED: OrderAction.CONFIRM,
    OrderStatus.PAID: OrderAction.MARK_PAID,
    OrderStatus.CANCELLED: OrderAction.CANCEL,
}


def _snapshot(order: Order) -> dict:
    return {
        "status": order.status.value,
        "tracking_number": order.tracking_number,
        "courier_service": order.courier_service,
    }


async def _commit_order_change(db: AsyncSession, order_id, operation: str) -> None:
    try:
        await db.commit()
    except (StaleDataError, IntegrityError) as e:
        await db.rollback()
        logger.info("Concurrent change detected during %s on order %s", operation, order_id)
        raise StateConflict(
            "Order state changed, please refresh and retry",
            code="ORDER_STATE_CHANGED",
        ) from e
    except SQLAlchemyError as e:
        await db.rollback()
        raise OperationalFailure(operation, order_id) from e


# ============================================================================
# SHIPPING
# ============================================================================


async def ship_order(
    db: AsyncSession,
    order_id: uuid.UUID,
    *,
    tracking_number: Optional[str],
    performed_by: str,
    courier_service: CourierService | str = CourierService.STEADFAST,
    notes: Optional[str] = None,
    status: Optional[OrderStatus] = None,
    estimated_delivery: Optional[datetime] = None,
) -> Order:
    """Hand an order to a courier.

    Allowed once, from pending, confirmed or paid. ``status`` may override the
    resulting status with processing or out_for_delivery.
    """
    tracking_number = (tracking_number or "").strip()
    if not tracking_number:
        raise ValidationFailed(
            "Tracking number is required", code="MISSING_TRACKING_NUMBER"
        )

    order = await get_order(db, order_id)
    old_value = _snapshot(order)
    courier = CourierService(courier_service).value

    message = f"Order shipped via {courier} with tracking number {tracking_number}"
    if notes:
        message = f"{message}. {notes}"

    apply_transition(
        order,
        OrderAction.SHIP,
        message=message,
        location=get_settings().WAREHOUSE_LOCATION,
        target=status,
        performed_by=performed_by,
    )
    order.tracking_number = tracking_number
    order.courier_service = courier
    if estimated_delivery is not None:
        order.estimated_delivery = estimated_delivery

    log_audit(
        db,
        AuditEntityType.ORDER,
        order.id,
        "order_shipped",
        performed_by,
        old_value=old_value,
        new_value=_snapshot(order),
        notes=notes,
    )
    enqueue_order_shipped(db, order)
    await _commit_order_change(db, order_id, "ship_order")

    logger.info(
        "Order %s shipped via %s (tracking %s) by %s",
        order.order_number,
        courier,
        tracking_number,
        performed_by,
    )
    return order


# ============================================================================
# STATUS UPDATES
# ============================================================================


async def update_order_status(
    db: AsyncSession,
    order_id: uuid.UUID,
    *,
    status: OrderStatus,
    performed_by: str,
    message: Optional[str] = None,
    location: Optional[str] = None,
) -> Order:
    """Move an order to ``status`` if the state graph allows it."""
    order = await get_order(db, order_id)
    old_value = _snapshot(order)
    action = ACTION_FOR_TARGET.get(status, OrderAction.SET_STATUS)
    status_text = get_order_status_text(status)
    message = message or f"Order status updated to {status_text}"

    apply_transition(
        order,
        action,
        message=message,
        location=location or ADMIN_LOCATION,
        target=status,
        performed_by=performed_by,
    )
    if status == OrderStatus.PAID and order.paid_at is None:
        order.paid_at = utc_now()

    log_audit(
        db,
        AuditEntityType.ORDER,
        order.id,
        f"status_{status.value}",
        performed_by,
        old_value=old_value,
        new_value=_snapshot(order),
    )
    if status in NOTIFY_ON:
        enqueue_status_changed(db, order, message)
    await _commit_order_change(db, order_id, "update_order_status")

    logger.info(
        "Order %s moved %s -> %s by %s",
        order.order_number,
        old_value["status"],
        status.value,
        performed_by,
    )
    return order


# ============================================================================
# DELETION
# ============================================================================


async def delete_order(
    db: AsyncSession, order_id: uuid.UUID, *, performed_by: str
) -> str:
    """Permanently delete an order that no courier holds. Returns its number."""
    order = await get_order(db, order_id)
    check_transition(order.status, OrderAction.DELETE)

    order_number = order.order_number
    log_audit(
        db,
        AuditEntityType.ORDER,
        order.id,
        "order_deleted",
        performed_by,
        old_value={**_snapshot(order), "order_number": order_number},
    )
    await db.delete(order)
    await _commit_order_change(db, order_id, "delete_order")

    logger.info("Order %s deleted by %s", order_number, performed_by)
    return order_number


# ============================================================================
# PAYMENT
# ============================================================================


async def mark_order_paid(
    db: AsyncSession,
    *,
    session_id: str,
    payment_intent_id: Optional[str] = None,
    shipping_address: Optional[dict] = None,
) -> Optional[Order]:
    """Record a completed card payment for the order owning ``session_id``.

    Repeated deliveries of the same payment change nothing. Returns None
    when no order matches.
    """
    try:
        result = await db.execute(
            select(Order).where(Order.payment_session_id == session_id)
        )
    except SQLAlchemyError as e:
        raise OperationalFailure("find_order_by_session", session_id) from e
    order = result.scalar_one_or_none()
    if order is None:
        logger.warning("Payment received for unknown checkout session %s", session_id)
        return None

    if order.paid_at is not None:
        logger.info("Order %s already marked paid; ignoring", order.order_number)
        return order

    old_value = _snapshot(order)
    order.paid_at = utc_now()
    order.payment_intent_id = payment_intent_id
    if not order.delivery_address and shipping_address:
        order.delivery_address = shipping_address

    if is_transition_allowed(order.status, OrderAction.MARK_PAID):
        apply_transition(
            order,
            OrderAction.MARK_PAID,
            message="Payment received",
            location=None,
            performed_by=SYSTEM_ACTOR,
        )
    else:
        # Payment recorded without moving an order that is already further along
        logger.warning(
            "Order %s paid while %s; status left unchanged",
            order.order_number,
            order.status.value,
        )

    log_audit(
        db,
        AuditEntityType.ORDER,
        order.id,
        "order_paid",
        SYSTEM_ACTOR,
        old_value=old_value,
        new_value={**_snapshot(order), "payment_intent_id": payment_intent_id},
    )
    await _commit_order_change(db, order.id, "mark_order_paid")
    return order

