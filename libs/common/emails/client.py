"""
Notification client for the Communications Service.

All customer email traffic goes through the Communications Service
HTTP API. The client authenticates with a short-lived service-role JWT and
never raises: a failed delivery is logged and reported as ``False`` so callers
can decide whether to retry later.

Usage:
    from libs.common.emails.client import get_email_client

    email_client = get_email_client()
    await email_client.send(
        to_email="customer@example.com",
        subject="Order Confirmation - IW-20261018-1A2B3C-9F8E7D",
        body="Plain text body",
    )
"""

from datetime import timedelta
from typing import Any, Optional

import httpx
from jose import jwt

from libs.common.config import get_settings
from libs.common.datetime_utils import utc_now
from libs.common.logging import get_logger

logger = get_logger(__name__)


def service_role_token(calling_service: str, ttl_seconds: int = 60) -> str:
    """Sign a short-lived token the Communications Service accepts."""
    settings = get_settings()
    now = utc_now()
    claims = {
        "sub": f"service:{calling_service}",
        "role": "service_role",
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(seconds=ttl_seconds)).timestamp()),
    }
    return jwt.encode(claims, settings.AUTH_JWT_SECRET, algorithm="HS256")


class EmailClient:
    """
    HTTP client for sending email through the Communications Service.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        settings = get_settings()
        self.base_url = base_url or settings.COMMUNICATIONS_SERVICE_URL
        self.timeout = timeout
        self._transport = transport

    def _get_auth_headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {service_role_token('store')}"}

    async def _post(self, path: str, payload: dict[str, Any]) -> bool:
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
            ) as client:
                response = await client.post(
                    path, json=payload, headers=self._get_auth_headers()
                )
        except httpx.HTTPError as e:
            logger.error(f"Failed to reach Communications Service ({path}): {e}")
            return False

        if response.status_code != 200:
            logger.error(
                f"Communications API {path} returned {response.status_code}: {response.text}"
            )
            return False
        try:
            return bool(response.json().get("success", False))
        except ValueError:
            logger.error(f"Communications API {path} returned a non-JSON body")
            return False

    async def send(
        self,
        to_email: str,
        subject: str,
        body: str,
        html_body: Optional[str] = None,
    ) -> bool:
        """
        Send a single email.

        Returns:
            True if the Communications Service accepted the email.
        """
        payload: dict[str, Any] = {
            "to_email": to_email,
            "subject": subject,
            "body": body,
        }
        if html_body:
            payload["html_body"] = html_body
        return await self._post("/email/send", payload)


_email_client: Optional[EmailClient] = None


def get_email_client() -> EmailClient:
    """Get or create the shared EmailClient instance."""
    global _email_client
    if _email_client is None:
        _email_client = EmailClient()
    return _email_client
