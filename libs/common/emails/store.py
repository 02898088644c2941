"""
Store notification templates.

Each builder returns ``(subject, body)`` ready for ``EmailClient.send``.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional


def _money(amount: Decimal | float, currency: str) -> str:
    return f"{currency} {Decimal(str(amount)):,.2f}"


def order_confirmation(
    customer_name: str,
    order_number: str,
    items: list[dict],  # [{"name": str, "quantity": int, "line_total": Decimal}]
    subtotal: Decimal,
    discount: Decimal,
    total: Decimal,
    currency: str,
    payment_method: str,
    estimated_delivery: Optional[datetime] = None,
) -> tuple[str, str]:
    subject = f"Order Confirmation - {order_number}"
    items_text = "\n".join(
        f"  - {item['name']} x{item['quantity']} - {_money(item['line_total'], currency)}"
        for item in items
    )
    payment_line = (
        "Payment: Cash on delivery. Please keep the exact amount ready."
        if payment_method == "cod"
        else "Payment: Card"
    )
    eta_line = (
        f"Estimated delivery: {estimated_delivery:%d %B %Y}"
        if estimated_delivery
        else ""
    )
    discount_line = f"Discount: -{_money(discount, currency)}" if discount > 0 else ""

    body = f"""Hi {customer_name},

Thank you for your order! We have received it and will confirm it shortly.

Order {order_number}

Items:
{items_text}

Subtotal: {_money(subtotal, currency)}
{discount_line}
Total: {_money(total, currency)}

{payment_line}
{eta_line}

Thank you for shopping with InterioWale!
"""
    return subject, body


def order_shipped(
    customer_name: str,
    order_number: str,
    tracking_number: str,
    courier_service: str,
    estimated_delivery: Optional[datetime] = None,
) -> tuple[str, str]:
    subject = f"Your order {order_number} is on its way"
    eta_line = (
        f"Expected delivery: {estimated_delivery:%d %B %Y}\n"
        if estimated_delivery
        else ""
    )
    body = f"""Hi {customer_name},

Good news! Order {order_number} has been handed to {courier_service}.

Tracking number: {tracking_number}
{eta_line}
Thank you for shopping with InterioWale!
"""
    return subject, body


def order_status_changed(
    customer_name: str,
    order_number: str,
    status_text: str,
    message: str,
) -> tuple[str, str]:
    subject = f"Order {order_number}: {status_text}"
    body = f"""Hi {customer_name},

{message}

Current status: {status_text}

Thank you for shopping with InterioWale!
"""
    return subject, body
