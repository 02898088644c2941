"""Payment gateway webhook handler."""

import json
from typing import Optional

from fastapi import APIRouter, Depends, Request
from libs.common.cache import Cache, get_cache
from libs.common.errors import Unauthenticated, ValidationFailed
from libs.common.logging import get_logger
from libs.db.session import get_async_db
from services.store_service.payment_gateway import verify_webhook_signature
from services.store_service.routers._helpers import invalidate_order_cache
from services.store_service.services.fulfillment import mark_order_paid
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(tags=["store"])
logger = get_logger(__name__)

SIGNATURE_HEADER = "X-Gateway-Signature"
CHECKOUT_COMPLETED = "checkout.session.completed"


def _shipping_address(session: dict) -> Optional[dict]:
    """Delivery address in order format from the session's shipping details."""
    shipping = session.get("shipping_details") or {}
    address = shipping.get("address") or {}
    if not address:
        return None
    customer = session.get("customer_details") or {}
    street = ", ".join(
        part for part in (address.get("line1"), address.get("line2")) if part
    )
    return {
        "full_name": shipping.get("name") or customer.get("name") or "",
        "phone": customer.get("phone") or "",
        "address": street,
        "city": address.get("city") or "",
        "state": address.get("state"),
        "zip_code": address.get("postal_code"),
        "country": address.get("country") or "",
    }


@router.post("/webhooks/payments")
async def payment_webhook(
    request: Request,
    db: AsyncSession = Depends(get_async_db),
    cache: Cache = Depends(get_cache),
):
    """
    Gateway webhook endpoint (no auth; verified by X-Gateway-Signature).
    """
    raw = await request.body()
    if not verify_webhook_signature(raw, request.headers.get(SIGNATURE_HEADER)):
        raise Unauthenticated("Invalid signature", code="INVALID_SIGNATURE")

    try:
        payload = json.loads(raw.decode("utf-8") or "{}")
    except ValueError:
        raise ValidationFailed("Malformed webhook payload", code="INVALID_PAYLOAD")
    if not isinstance(payload, dict):
        raise ValidationFailed("Webhook payload must be an object", code="INVALID_PAYLOAD")

    event_type = payload.get("type")
    session = (payload.get("data") or {}).get("object") or {}
    if event_type != CHECKOUT_COMPLETED:
        logger.info(f"Ignoring gateway event {event_type}")
        return {"received": True}

    if session.get("payment_status") != "paid" or not session.get("id"):
        logger.info(
            f"Checkout session {session.get('id')} completed without payment"
        )
        return {"received": True}

    order = await mark_order_paid(
        db,
        session_id=session["id"],
        payment_intent_id=session.get("payment_intent"),
        shipping_address=_shipping_address(session),
    )
    if order is not None:
        await invalidate_order_cache(cache)
    return {"received": True}
