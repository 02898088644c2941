"""
Hosted checkout gateway client and webhook signature check.

Card orders get a checkout session before the order is committed; the
customer is redirected to the session URL and the gateway later calls
``POST /store/webhooks/payments`` with the outcome.
"""

import hashlib
import hmac
from dataclasses import dataclass
from typing import Optional

import httpx
from libs.common.config import get_settings
from libs.common.logging import get_logger
from services.store_service.models import Order

logger = get_logger(__name__)


@dataclass
class CheckoutSession:
    """Session created by the gateway for one order."""

    session_id: str
    url: str


class PaymentGatewayError(Exception):
    """The gateway rejected the request or could not be reached."""

    def __init__(
        self, message: str, status_code: int = None, response_data: dict = None
    ):
        self.message = message
        self.status_code = status_code
        self.response_data = response_data or {}
        super().__init__(message)


def _minor_units(amount) -> int:
    return int((amount * 100).to_integral_value())


class PaymentGatewayClient:
    """Async client for the gateway's checkout-session API."""

    def __init__(
        self,
        secret_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        settings = get_settings()
        self.secret_key = secret_key or settings.PAYMENT_GATEWAY_SECRET_KEY
        self.base_url = base_url or settings.PAYMENT_GATEWAY_URL
        self.frontend_url = settings.FRONTEND_URL
        self.timeout = timeout
        self._transport = transport

    async def create_checkout_session(self, order: Order) -> CheckoutSession:
        if not self.secret_key:
            raise PaymentGatewayError("PAYMENT_GATEWAY_SECRET_KEY is not configured")

        form = {
            "mode": "payment",
            "client_reference_id": order.order_number,
            "customer_email": order.customer_email,
            "success_url": f"{self.frontend_url}/order-success?order={order.order_number}",
            "cancel_url": f"{self.frontend_url}/checkout?cancelled=1",
            "metadata[order_id]": str(order.id),
            "metadata[order_number]": order.order_number,
        }
        for index, item in enumerate(order.items):
            prefix = f"line_items[{index}]"
            form[f"{prefix}[quantity]"] = str(item.quantity)
            form[f"{prefix}[price_data][currency]"] = order.currency.lower()
            form[f"{prefix}[price_data][unit_amount]"] = str(
                _minor_units(item.unit_price)
            )
            form[f"{prefix}[price_data][product_data][name]"] = item.product_name
        if order.discount_amount and order.discount_amount > 0:
            form["metadata[discount_amount]"] = str(order.discount_amount)

        data = await self._request("POST", "/v1/checkout/sessions", data=form)
        session_id, url = data.get("id"), data.get("url")
        if not session_id or not url:
            raise PaymentGatewayError(
                "Gateway response is missing the session id or url", response_data=data
            )
        return CheckoutSession(session_id=session_id, url=url)

    async def _request(self, method: str, endpoint: str, data: dict = None) -> dict:
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
            ) as client:
                response = await client.request(
                    method,
                    endpoint,
                    data=data,
                    headers={"Authorization": f"Bearer {self.secret_key}"},
                )
        except httpx.HTTPError as e:
            raise PaymentGatewayError(f"Gateway unreachable: {e}") from e

        try:
            payload = response.json()
        except ValueError:
            payload = {}

        if not response.is_success:
            logger.error(
                f"Payment gateway error: {response.status_code} - {payload}"
            )
            error = payload.get("error") or {}
            raise PaymentGatewayError(
                message=error.get("message", "Payment gateway request failed"),
                status_code=response.status_code,
                response_data=payload,
            )
        return payload


def sign_payload(raw: bytes, secret: Optional[str] = None) -> str:
    secret = secret or get_settings().PAYMENT_WEBHOOK_SECRET
    return hmac.new(secret.encode("utf-8"), raw, hashlib.sha256).hexdigest()


def verify_webhook_signature(
    raw: bytes, signature: Optional[str], secret: Optional[str] = None
) -> bool:
    if not signature:
        return False
    return hmac.compare_digest(sign_payload(raw, secret), signature)


_gateway: Optional[PaymentGatewayClient] = None


def get_payment_gateway() -> PaymentGatewayClient:
    """FastAPI dependency returning the shared gateway client."""
    global _gateway
    if _gateway is None:
        _gateway = PaymentGatewayClient()
    return _gateway
