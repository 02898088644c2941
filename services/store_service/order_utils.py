"""Order numbering, tracking numbers and delivery estimates."""

import secrets
import string
from datetime import datetime, timedelta, timezone
from typing import Optional

from libs.common.datetime_utils import utc_now
from services.store_service.models.enums import OrderStatus

ORDER_NUMBER_PREFIX = "IW"
TRACKING_NUMBER_PREFIX = "TR"
DEFAULT_DELIVERY_DAYS = 5

# Lead time in days from the warehouse, keyed by lowercase city name
DELIVERY_DAYS_BY_CITY: dict[str, int] = {
    "dhaka": 1,
    "chittagong": 2,
    "mymensingh": 2,
    "sylhet": 3,
    "rajshahi": 3,
    "khulna": 3,
    "barisal": 4,
    "rangpur": 4,
}

STATUS_TEXT: dict[OrderStatus, str] = {
    OrderStatus.PENDING: "Pending",
    OrderStatus.CONFIRMED: "Confirmed",
    OrderStatus.PAID: "Paid",
    OrderStatus.PROCESSING: "Processing",
    OrderStatus.SHIPPED: "Shipped",
    OrderStatus.OUT_FOR_DELIVERY: "Out for Delivery",
    OrderStatus.DELIVERED: "Delivered",
    OrderStatus.COD_COLLECTED: "Payment Collected",
    OrderStatus.CANCELLED: "Cancelled",
}

_BASE36 = string.digits + string.ascii_uppercase


def _to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def generate_order_number(now: Optional[datetime] = None) -> str:
    """Generate an order number like IW-20261018-0F2KQW-9F8E7D.

    Date, then the millisecond of the day in base 36, then three random
    bytes. Needs no counter or lock, so any number of request handlers can
    call it concurrently.
    """
    now = (now or utc_now()).astimezone(timezone.utc)
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
    ms_of_day = int((now - midnight).total_seconds() * 1000)
    time_part = _to_base36(ms_of_day).rjust(6, "0")
    random_part = secrets.token_hex(3).upper()
    return f"{ORDER_NUMBER_PREFIX}-{now:%Y%m%d}-{time_part}-{random_part}"


def generate_tracking_number(now: Optional[datetime] = None) -> str:
    """Generate a tracking number like TR-4821937512."""
    now = now or utc_now()
    timestamp = str(int(now.timestamp() * 1000))
    random_part = f"{secrets.randbelow(1000):03d}"
    return f"{TRACKING_NUMBER_PREFIX}-{timestamp[-7:]}{random_part}"


def calculate_estimated_delivery(
    order_date: datetime,
    city: Optional[str] = "",
    default_days: int = DEFAULT_DELIVERY_DAYS,
) -> datetime:
    """Estimate delivery from the order date and destination city.

    Unknown or missing cities get ``default_days``.
    """
    key = (city or "").strip().lower()
    days = DELIVERY_DAYS_BY_CITY.get(key, default_days)
    return order_date + timedelta(days=days)


def get_order_status_text(status: OrderStatus | str) -> str:
    try:
        return STATUS_TEXT[OrderStatus(status)]
    except ValueError:
        return str(status)
