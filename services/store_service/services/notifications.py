"""Customer notification outbox.

Order changes call ``enqueue_*`` inside their own transaction, which only
adds an ``OutboxEvent`` row. The worker later calls
``dispatch_pending_notifications`` to deliver them, so an unreachable
Communications Service never fails or delays an order operation.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from libs.common.config import get_settings
from libs.common.datetime_utils import utc_now
from libs.common.emails import store as store_emails
from libs.common.emails.client import EmailClient
from libs.common.logging import get_logger
from services.store_service.models import Order, OutboxEvent, OutboxStatus
from services.store_service.order_utils import get_order_status_text
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

ORDER_CONFIRMATION = "order_confirmation"
ORDER_SHIPPED = "order_shipped"
ORDER_STATUS_CHANGED = "order_status_changed"


def enqueue_notification(
    db: AsyncSession,
    event_type: str,
    order: Order,
    subject: str,
    body: str,
) -> OutboxEvent:
    event = OutboxEvent(
        event_type=event_type,
        aggregate_id=order.id,
        payload={
            "to_email": order.customer_email,
            "order_number": order.order_number,
            "subject": subject,
            "body": body,
        },
        status=OutboxStatus.PENDING,
        attempts=0,
    )
    db.add(event)
    return event


def enqueue_order_confirmation(db: AsyncSession, order: Order) -> OutboxEvent:
    items = [
        {
            "name": _item_name(item),
            "quantity": item.quantity,
            "line_total": item.line_total,
        }
        for item in order.items
    ]
    subject, body = store_emails.order_confirmation(
        customer_name=order.customer_name,
        order_number=order.order_number,
        items=items,
        subtotal=order.subtotal,
        discount=order.discount_amount or Decimal("0"),
        total=order.total_price,
        currency=order.currency,
        payment_method=order.payment_method.value,
        estimated_delivery=order.estimated_delivery,
    )
    return enqueue_notification(db, ORDER_CONFIRMATION, order, subject, body)


def enqueue_order_shipped(db: AsyncSession, order: Order) -> OutboxEvent:
    subject, body = store_emails.order_shipped(
        customer_name=order.customer_name,
        order_number=order.order_number,
        tracking_number=order.tracking_number or "",
        courier_service=order.courier_service or "our courier",
        estimated_delivery=order.estimated_delivery,
    )
    return enqueue_notification(db, ORDER_SHIPPED, order, subject, body)


def enqueue_status_changed(
    db: AsyncSession, order: Order, message: str
) -> OutboxEvent:
    subject, body = store_emails.order_status_changed(
        customer_name=order.customer_name,
        order_number=order.order_number,
        status_text=get_order_status_text(order.status),
        message=message,
    )
    return enqueue_notification(db, ORDER_STATUS_CHANGED, order, subject, body)


def _item_name(item) -> str:
    variant = " / ".join(part for part in (item.size, item.height) if part)
    return f"{item.product_name} ({variant})" if variant else item.product_name


async def dispatch_pending_notifications(
    db: AsyncSession,
    client: EmailClient,
    batch_size: Optional[int] = None,
    max_attempts: Optional[int] = None,
    now: Optional[datetime] = None,
) -> dict[str, int]:
    """Deliver up to ``batch_size`` pending events, oldest first.

    Events that keep failing are marked ``failed`` after ``max_attempts``.
    """
    settings = get_settings()
    batch_size = batch_size or settings.OUTBOX_BATCH_SIZE
    max_attempts = max_attempts or settings.OUTBOX_MAX_ATTEMPTS

    result = await db.execute(
        select(OutboxEvent)
        .where(OutboxEvent.status == OutboxStatus.PENDING)
        .order_by(OutboxEvent.created_at.asc())
        .limit(batch_size)
        .with_for_update(skip_locked=True)
    )
    events = list(result.scalars().all())

    counts = {"sent": 0, "retrying": 0, "failed": 0}
    for event in events:
        payload = event.payload or {}
        event.attempts += 1
        delivered = await client.send(
            to_email=payload.get("to_email", ""),
            subject=payload.get("subject", ""),
            body=payload.get("body", ""),
        )
        if delivered:
            event.status = OutboxStatus.SENT
            event.sent_at = now or utc_now()
            event.last_error = None
            counts["sent"] += 1
        elif event.attempts >= max_attempts:
            event.status = OutboxStatus.FAILED
            event.last_error = "Delivery failed after max attempts"
            counts["failed"] += 1
            logger.error(
                "Giving up on %s notification %s for order %s",
                event.event_type,
                event.id,
                payload.get("order_number"),
            )
        else:
            event.last_error = "Communications Service rejected or unreachable"
            counts["retrying"] += 1

    await db.commit()

    if events:
        logger.info(
            "Outbox dispatch: %d sent, %d retrying, %d failed",
            counts["sent"],
            counts["retrying"],
            counts["failed"],
        )
    return counts
