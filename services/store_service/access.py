"""Access gate for store operations.

Each protected operation declares the roles allowed to call it in
``OPERATION_ROLES``. Routers depend on ``require_operation("<name>")``, which
authenticates the caller, looks up the caller's role in ``UserProfile`` and
checks membership with ``libs.auth.access.authorize``.
"""

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends
from libs.auth.access import Role, authorize
from libs.auth.dependencies import get_current_user
from libs.auth.models import AuthUser
from libs.common.errors import AuthorizationDenied, OperationalFailure
from libs.common.logging import get_logger
from libs.db.session import get_async_db
from services.store_service.models import UserProfile
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

ORDER_STAFF = frozenset({Role.ADMIN, Role.SUPER_ADMIN})
COUPON_READERS = frozenset({Role.ADMIN, Role.SUPER_ADMIN, Role.CONTENT_MODERATOR})

OPERATION_ROLES: dict[str, frozenset[Role]] = {
    "orders.list": ORDER_STAFF,
    "orders.read": ORDER_STAFF,
    "orders.stats": ORDER_STAFF,
    "orders.ship": ORDER_STAFF,
    "orders.update_status": ORDER_STAFF,
    "orders.delete": ORDER_STAFF,
    "coupons.read": COUPON_READERS,
    "coupons.analytics": COUPON_READERS,
    "coupons.write": ORDER_STAFF,
    "users.set_role": ORDER_STAFF,
}


@dataclass
class Caller:
    """Authenticated caller with the role resolved from its profile."""

    user_id: str
    email: Optional[str]
    role: Role


async def get_caller_role(db: AsyncSession, auth_id: str) -> Role:
    """Return the stored role for ``auth_id``; users without a profile are customers."""
    try:
        result = await db.execute(
            select(UserProfile.role).where(UserProfile.auth_id == auth_id)
        )
    except SQLAlchemyError as e:
        raise OperationalFailure("lookup_user_role", auth_id) from e
    role = result.scalar_one_or_none()
    return role if role is not None else Role.CUSTOMER


def require_operation(operation: str):
    """Dependency factory guarding a route with the roles of ``operation``."""
    if operation not in OPERATION_ROLES:
        raise KeyError(f"Unknown protected operation: {operation}")
    allowed = OPERATION_ROLES[operation]

    async def dependency(
        current_user: AuthUser = Depends(get_current_user),
        db: AsyncSession = Depends(get_async_db),
    ) -> Caller:
        role = await get_caller_role(db, current_user.user_id)
        if not authorize(role, allowed):
            logger.info(
                "Denied %s for user %s with role %s",
                operation,
                current_user.user_id,
                role.value,
            )
            raise AuthorizationDenied(
                "You do not have permission to perform this action"
            )
        return Caller(user_id=current_user.user_id, email=current_user.email, role=role)

    return dependency
