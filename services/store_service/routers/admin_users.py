"""Admin role management for store users."""

from fastapi import APIRouter, Depends
from libs.auth.access import STAFF_ROLES, Role
from libs.common.errors import AuthorizationDenied
from libs.common.logging import get_logger
from libs.db.session import get_async_db
from services.store_service.access import Caller, require_operation
from services.store_service.models import AuditEntityType, UserProfile
from services.store_service.schemas import UserProfileResponse, UserRoleUpdate
from services.store_service.services.audit import log_audit
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(tags=["admin-store"])
logger = get_logger(__name__)


@router.patch("/users/{auth_id}/role", response_model=UserProfileResponse)
async def set_user_role(
    auth_id: str,
    payload: UserRoleUpdate,
    caller: Caller = Depends(require_operation("users.set_role")),
    db: AsyncSession = Depends(get_async_db),
):
    """
    Change a user's role.

    Nobody may change their own role, and only super admins may grant or
    revoke admin roles.
    """
    if auth_id == caller.user_id:
        raise AuthorizationDenied(
            "You cannot change your own role", code="SELF_MODIFICATION"
        )

    result = await db.execute(select(UserProfile).where(UserProfile.auth_id == auth_id))
    profile = result.scalar_one_or_none()
    old_role = profile.role if profile else Role.CUSTOMER

    touches_staff = payload.role in STAFF_ROLES or old_role in STAFF_ROLES
    if touches_staff and caller.role != Role.SUPER_ADMIN:
        raise AuthorizationDenied(
            "Only super admins can grant or revoke admin roles",
            code="INSUFFICIENT_ROLE",
        )

    if profile is None:
        profile = UserProfile(auth_id=auth_id, role=payload.role)
        db.add(profile)
    else:
        profile.role = payload.role

    log_audit(
        db,
        AuditEntityType.USER_PROFILE,
        auth_id,
        "role_changed",
        caller.user_id,
        old_value={"role": old_role.value},
        new_value={"role": payload.role.value},
    )
    await db.commit()
    await db.refresh(profile)

    logger.info(
        "User %s role changed %s -> %s by %s",
        auth_id,
        old_role.value,
        payload.role.value,
        caller.user_id,
    )
    return profile
