"""Unit tests for the role check and the operation table."""

import pytest
from libs.auth.access import Role, authorize, parse_role
from libs.common.errors import AuthorizationDenied
from services.store_service.access import (
    OPERATION_ROLES,
    get_caller_role,
    require_operation,
)
from libs.auth.models import AuthUser
from tests.factories import UserProfileFactory

# ---------------------------------------------------------------------------
# authorize
# ---------------------------------------------------------------------------


@pytest.mark.unit
def test_authorize_is_plain_membership():
    assert authorize(Role.ADMIN, {Role.ADMIN, Role.SUPER_ADMIN})
    assert authorize("super_admin", [Role.SUPER_ADMIN])
    # No hierarchy: super_admin is not implied to be admin
    assert not authorize(Role.SUPER_ADMIN, {Role.ADMIN})


@pytest.mark.unit
def test_authorize_rejects_missing_or_unknown_roles():
    assert not authorize(None, {Role.ADMIN})
    assert not authorize("root", {Role.ADMIN})
    assert not authorize(Role.ADMIN, [])


@pytest.mark.unit
def test_parse_role():
    assert parse_role("content_moderator") is Role.CONTENT_MODERATOR
    assert parse_role("ADMIN") is None
    assert parse_role(None) is None


# ---------------------------------------------------------------------------
# Operation table
# ---------------------------------------------------------------------------


@pytest.mark.unit
def test_order_operations_are_staff_only():
    for name, roles in OPERATION_ROLES.items():
        if name.startswith("orders."):
            assert roles == {Role.ADMIN, Role.SUPER_ADMIN}, name


@pytest.mark.unit
def test_content_moderator_can_read_but_not_write_coupons():
    assert authorize(Role.CONTENT_MODERATOR, OPERATION_ROLES["coupons.read"])
    assert authorize(Role.CONTENT_MODERATOR, OPERATION_ROLES["coupons.analytics"])
    assert not authorize(Role.CONTENT_MODERATOR, OPERATION_ROLES["coupons.write"])


@pytest.mark.unit
@pytest.mark.parametrize("role", [Role.CUSTOMER, Role.SELLER, Role.ARCHITECT])
def test_non_staff_roles_are_denied_everything(role):
    for roles in OPERATION_ROLES.values():
        assert not authorize(role, roles)


@pytest.mark.unit
def test_unknown_operation_fails_at_wiring_time():
    with pytest.raises(KeyError):
        require_operation("orders.refund")


# ---------------------------------------------------------------------------
# Role lookup and the dependency
# ---------------------------------------------------------------------------


@pytest.mark.unit
@pytest.mark.asyncio
async def test_caller_without_profile_is_a_customer(db_session):
    assert await get_caller_role(db_session, "nobody") is Role.CUSTOMER


@pytest.mark.unit
@pytest.mark.asyncio
async def test_require_operation_returns_caller(db_session):
    db_session.add(UserProfileFactory.create(auth_id="admin-1", role=Role.ADMIN))
    await db_session.commit()

    dependency = require_operation("orders.ship")
    caller = await dependency(
        current_user=AuthUser(sub="admin-1", email="admin@example.com"),
        db=db_session,
    )
    assert caller.user_id == "admin-1"
    assert caller.role is Role.ADMIN


@pytest.mark.unit
@pytest.mark.asyncio
async def test_require_operation_denies_other_roles(db_session):
    db_session.add(
        UserProfileFactory.create(auth_id="mod-1", role=Role.CONTENT_MODERATOR)
    )
    await db_session.commit()

    dependency = require_operation("coupons.write")
    with pytest.raises(AuthorizationDenied) as exc:
        await dependency(current_user=AuthUser(sub="mod-1"), db=db_session)
    assert exc.value.status_code == 403
    assert exc.value.code == "FORBIDDEN"
