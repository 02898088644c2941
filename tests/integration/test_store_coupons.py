"""Integration tests for coupon validation and coupon administration."""

from datetime import timedelta
from decimal import Decimal

import pytest
from libs.auth.access import Role
from libs.common.datetime_utils import utc_now
from services.store_service.models import (
    Coupon,
    DiscountType,
    OrderStatus,
    StoreAuditLog,
)
from sqlalchemy import select
from tests.factories import CouponFactory, OrderFactory, ProductFactory


def _coupon_payload(**overrides):
    now = utc_now()
    payload = {
        "code": "summer25",
        "title": "Summer sale",
        "discount_type": "percentage",
        "discount_value": "25",
        "max_discount": "500",
        "max_usage_count": 100,
        "valid_from": (now - timedelta(days=1)).isoformat(),
        "valid_until": (now + timedelta(days=30)).isoformat(),
    }
    payload.update(overrides)
    return payload


# ---------------------------------------------------------------------------
# Public validation
# ---------------------------------------------------------------------------


@pytest.mark.integration
@pytest.mark.asyncio
async def test_validate_percentage_coupon(client, persist, session_factory):
    (coupon,) = await persist(
        CouponFactory.create(code="SAVE10", discount_value=Decimal("10"))
    )

    response = await client.post(
        "/store/coupons/validate", json={"code": "save10", "cart_total": "500.00"}
    )

    assert response.status_code == 200
    body = response.json()
    assert body["valid"] is True
    assert body["message"] == "10% discount applied"
    assert Decimal(body["discount"]) == Decimal("50.00")
    assert Decimal(body["final_total"]) == Decimal("450.00")
    assert body["coupon"]["code"] == "SAVE10"

    # Validation never redeems
    async with session_factory() as session:
        assert (await session.get(Coupon, coupon.id)).current_usage_count == 0


@pytest.mark.integration
@pytest.mark.asyncio
async def test_validate_reports_minimum_order(client, persist):
    await persist(
        CouponFactory.create(
            code="FLAT100",
            discount_type=DiscountType.FIXED,
            discount_value=Decimal("100"),
            min_order_value=Decimal("200"),
        )
    )

    response = await client.post(
        "/store/coupons/validate", json={"code": "FLAT100", "cart_total": "150.00"}
    )

    assert response.status_code == 200
    body = response.json()
    assert body["valid"] is False
    assert body["message"] == "Minimum order value of 200 required"
    assert Decimal(body["discount"]) == Decimal("0")
    assert body["final_total"] is None
    assert body["coupon"] is None


@pytest.mark.integration
@pytest.mark.asyncio
async def test_validate_unknown_code(client):
    response = await client.post(
        "/store/coupons/validate", json={"code": "NOPE", "cart_total": "100"}
    )

    assert response.json() == {
        "valid": False,
        "message": "Invalid coupon code",
        "discount": "0.00",
        "final_total": None,
        "coupon": None,
    }


@pytest.mark.integration
@pytest.mark.asyncio
async def test_validate_counts_signed_in_users_prior_orders(client, login, persist):
    product = ProductFactory.create()
    coupon = CouponFactory.create(code="ONCE", max_usage_per_user=1)
    cancelled = OrderFactory.create(
        product.id,
        status=OrderStatus.CANCELLED,
        member_auth_id="customer-1",
        coupon_id=coupon.id,
        coupon_code="ONCE",
    )
    await persist(product, coupon)
    await persist(cancelled)
    login("customer-1")
    request = {"code": "ONCE", "cart_total": "500"}

    # Cancelled orders do not count
    assert (await client.post("/store/coupons/validate", json=request)).json()["valid"]

    await persist(
        OrderFactory.create(
            product.id,
            member_auth_id="customer-1",
            coupon_id=coupon.id,
            coupon_code="ONCE",
        )
    )
    body = (await client.post("/store/coupons/validate", json=request)).json()
    assert body["valid"] is False
    assert body["message"] == (
        "You have already used this coupon the maximum number of times"
    )


@pytest.mark.integration
@pytest.mark.asyncio
async def test_validate_uses_payload_user_for_anonymous_callers(client, persist):
    product = ProductFactory.create()
    coupon = CouponFactory.create(code="ONCE", max_usage_per_user=1)
    used = OrderFactory.create(
        product.id, member_auth_id="customer-7", coupon_id=coupon.id
    )
    await persist(product, coupon)
    await persist(used)

    anonymous = await client.post(
        "/store/coupons/validate", json={"code": "ONCE", "cart_total": "500"}
    )
    named = await client.post(
        "/store/coupons/validate",
        json={"code": "ONCE", "cart_total": "500", "user_id": "customer-7"},
    )

    assert anonymous.json()["valid"] is True
    assert named.json()["valid"] is False


@pytest.mark.integration
@pytest.mark.asyncio
async def test_validate_rejects_negative_cart_total(client):
    response = await client.post(
        "/store/coupons/validate", json={"code": "SAVE10", "cart_total": "-1"}
    )

    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"


# ---------------------------------------------------------------------------
# Admin CRUD
# ---------------------------------------------------------------------------


@pytest.mark.integration
@pytest.mark.asyncio
async def test_coupon_lifecycle(client, login, staff, session_factory):
    await staff("admin-1", Role.ADMIN)
    login("admin-1")

    created = await client.post("/admin/store/coupons", json=_coupon_payload())
    assert created.status_code == 201, created.text
    coupon = created.json()
    assert coupon["code"] == "SUMMER25"
    assert coupon["current_usage_count"] == 0

    duplicate = await client.post(
        "/admin/store/coupons", json=_coupon_payload(code="Summer25")
    )
    assert duplicate.status_code == 409
    assert duplicate.json()["code"] == "DUPLICATE_COUPON"

    by_code = await client.get("/admin/store/coupons/summer25")
    assert by_code.status_code == 200
    assert by_code.json()["id"] == coupon["id"]

    updated = await client.patch(
        f"/admin/store/coupons/{coupon['id']}", json={"is_active": False}
    )
    assert updated.status_code == 200
    assert updated.json()["is_active"] is False

    validation = await client.post(
        "/store/coupons/validate", json={"code": "SUMMER25", "cart_total": "1000"}
    )
    assert validation.json()["message"] == "This coupon is no longer active"

    listing = await client.get("/admin/store/coupons")
    assert [c["code"] for c in listing.json()] == ["SUMMER25"]

    deleted = await client.delete(f"/admin/store/coupons/{coupon['id']}")
    assert deleted.json() == {"deleted": True}
    missing = await client.get(f"/admin/store/coupons/{coupon['id']}")
    assert missing.status_code == 404
    assert missing.json()["code"] == "COUPON_NOT_FOUND"

    async with session_factory() as session:
        actions = (
            await session.execute(
                select(StoreAuditLog.action).order_by(StoreAuditLog.performed_at)
            )
        ).scalars().all()
    assert actions == ["coupon_created", "coupon_updated", "coupon_deleted"]


@pytest.mark.integration
@pytest.mark.asyncio
async def test_coupon_window_must_not_be_inverted(client, login, staff):
    await staff("admin-1", Role.ADMIN)
    login("admin-1")
    now = utc_now()

    response = await client.post(
        "/admin/store/coupons",
        json=_coupon_payload(
            valid_from=now.isoformat(),
            valid_until=(now - timedelta(days=1)).isoformat(),
        ),
    )

    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_VALIDITY_WINDOW"


@pytest.mark.integration
@pytest.mark.asyncio
@pytest.mark.parametrize(
    "field", ["valid_until", "discount_value", "title", "max_usage_count"]
)
async def test_update_cannot_clear_required_fields(
    client, login, staff, persist, session_factory, field
):
    (coupon,) = await persist(CouponFactory.create(code="KEEP10"))
    await staff("admin-1", Role.ADMIN)
    login("admin-1")

    response = await client.patch(
        f"/admin/store/coupons/{coupon.id}", json={field: None}
    )

    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"
    assert field in response.json()["detail"]
    async with session_factory() as session:
        stored = await session.get(Coupon, coupon.id)
        assert getattr(stored, field) is not None


@pytest.mark.integration
@pytest.mark.asyncio
async def test_content_moderator_reads_but_cannot_write(client, login, staff, persist):
    await persist(CouponFactory.create(code="READONLY"))
    await staff("mod-1", Role.CONTENT_MODERATOR)
    login("mod-1")

    assert (await client.get("/admin/store/coupons")).status_code == 200
    assert (await client.get("/admin/store/coupons/READONLY")).status_code == 200
    assert (await client.get("/admin/store/coupons/analytics")).status_code == 200

    created = await client.post("/admin/store/coupons", json=_coupon_payload())
    assert created.status_code == 403
    assert created.json()["code"] == "FORBIDDEN"
    deleted = await client.delete("/admin/store/coupons/READONLY")
    assert deleted.status_code == 403


@pytest.mark.integration
@pytest.mark.asyncio
async def test_customers_cannot_see_coupon_admin(client, login):
    login("customer-1")

    response = await client.get("/admin/store/coupons")

    assert response.status_code == 403


# ---------------------------------------------------------------------------
# Analytics
# ---------------------------------------------------------------------------


@pytest.mark.integration
@pytest.mark.asyncio
async def test_coupon_analytics(client, login, staff, persist):
    product = ProductFactory.create()
    coupon = CouponFactory.create(code="SAVE50", current_usage_count=2)
    unused = CouponFactory.create(code="IDLE")
    kept = OrderFactory.create(
        product.id,
        coupon_id=coupon.id,
        subtotal=Decimal("500.00"),
        discount_amount=Decimal("50.00"),
        total_price=Decimal("450.00"),
    )
    cancelled = OrderFactory.create(
        product.id,
        status=OrderStatus.CANCELLED,
        coupon_id=coupon.id,
        subtotal=Decimal("300.00"),
        discount_amount=Decimal("30.00"),
        total_price=Decimal("270.00"),
    )
    await persist(product, coupon, unused)
    await persist(kept, cancelled)
    await staff("admin-1", Role.ADMIN)
    login("admin-1")

    response = await client.get("/admin/store/coupons/SAVE50/analytics")

    assert response.status_code == 200
    body = response.json()
    assert body["redemptions"] == 2
    assert body["orders"] == 1
    assert Decimal(body["discount_total"]) == Decimal("50.00")
    assert Decimal(body["revenue"]) == Decimal("450.00")

    everything = (await client.get("/admin/store/coupons/analytics")).json()
    assert [(row["code"], row["orders"]) for row in everything] == [
        ("IDLE", 0),
        ("SAVE50", 1),
    ]
    assert Decimal(everything[0]["revenue"]) == Decimal("0")
