"""Background tasks for the store service."""

from libs.common.emails.client import get_email_client
from libs.db.config import AsyncSessionLocal
from services.store_service.services.notifications import (
    dispatch_pending_notifications,
)


async def dispatch_outbox() -> dict[str, int]:
    """Deliver queued customer notifications."""
    async with AsyncSessionLocal() as db:
        return await dispatch_pending_notifications(db, get_email_client())
