"""Integration tests for the payment gateway webhook."""

import json

import pytest
from services.store_service.models import Order, OrderStatus, PaymentMethod, StoreAuditLog
from services.store_service.payment_gateway import sign_payload
from sqlalchemy import select
from tests.factories import OrderFactory, ProductFactory

WEBHOOK_URL = "/store/webhooks/payments"


def _checkout_completed(session_id, payment_status="paid", **session_fields):
    session = {
        "id": session_id,
        "payment_status": payment_status,
        "payment_intent": "pi_test_1",
        **session_fields,
    }
    return {"type": "checkout.session.completed", "data": {"object": session}}


async def _post_signed(client, event):
    raw = json.dumps(event).encode("utf-8")
    return await client.post(
        WEBHOOK_URL,
        content=raw,
        headers={
            "Content-Type": "application/json",
            "X-Gateway-Signature": sign_payload(raw),
        },
    )


@pytest.fixture
def card_order(persist):
    async def _seed(status=OrderStatus.PENDING, **overrides):
        (product,) = await persist(ProductFactory.create())
        (order,) = await persist(
            OrderFactory.create(
                product.id,
                status=status,
                payment_method=PaymentMethod.CARD,
                payment_session_id="cs_test_1",
                **overrides,
            )
        )
        return order

    return _seed


async def _load(session_factory, order_id) -> Order:
    async with session_factory() as session:
        return await session.get(Order, order_id)


@pytest.mark.integration
@pytest.mark.asyncio
async def test_completed_checkout_marks_order_paid(client, card_order, session_factory):
    order = await card_order()

    response = await _post_signed(client, _checkout_completed("cs_test_1"))

    assert response.status_code == 200
    assert response.json() == {"received": True}
    stored = await _load(session_factory, order.id)
    assert stored.status == OrderStatus.PAID
    assert stored.paid_at is not None
    assert stored.payment_intent_id == "pi_test_1"
    assert [u.status for u in stored.updates] == [OrderStatus.PENDING, OrderStatus.PAID]
    assert stored.updates[-1].performed_by == "payment_gateway"


@pytest.mark.integration
@pytest.mark.asyncio
async def test_repeated_delivery_is_idempotent(client, card_order, session_factory):
    order = await card_order()
    event = _checkout_completed("cs_test_1")

    await _post_signed(client, event)
    first = await _load(session_factory, order.id)
    response = await _post_signed(client, event)

    assert response.status_code == 200
    stored = await _load(session_factory, order.id)
    assert len(stored.updates) == 2
    assert stored.paid_at == first.paid_at
    async with session_factory() as session:
        audits = (await session.execute(select(StoreAuditLog))).scalars().all()
    assert [a.action for a in audits] == ["order_paid"]


@pytest.mark.integration
@pytest.mark.asyncio
async def test_payment_for_shipped_order_keeps_status(client, card_order, session_factory):
    order = await card_order(OrderStatus.SHIPPED)

    response = await _post_signed(client, _checkout_completed("cs_test_1"))

    assert response.status_code == 200
    stored = await _load(session_factory, order.id)
    assert stored.status == OrderStatus.SHIPPED
    assert stored.paid_at is not None
    assert len(stored.updates) == 1


@pytest.mark.integration
@pytest.mark.asyncio
async def test_shipping_details_fill_missing_address(client, card_order, session_factory):
    order = await card_order(delivery_address=None)
    event = _checkout_completed(
        "cs_test_1",
        customer_details={"name": "Rahim Uddin", "phone": "+8801700000000"},
        shipping_details={
            "name": "Rahim Uddin",
            "address": {
                "line1": "House 12",
                "line2": "Road 5",
                "city": "Dhaka",
                "postal_code": "1207",
                "country": "BD",
            },
        },
    )

    await _post_signed(client, event)

    stored = await _load(session_factory, order.id)
    assert stored.delivery_address == {
        "full_name": "Rahim Uddin",
        "phone": "+8801700000000",
        "address": "House 12, Road 5",
        "city": "Dhaka",
        "state": None,
        "zip_code": "1207",
        "country": "BD",
    }


@pytest.mark.integration
@pytest.mark.asyncio
async def test_unpaid_or_other_events_are_ignored(client, card_order, session_factory):
    order = await card_order()

    unpaid = await _post_signed(
        client, _checkout_completed("cs_test_1", payment_status="unpaid")
    )
    other = await _post_signed(
        client, {"type": "checkout.session.expired", "data": {"object": {"id": "cs_test_1"}}}
    )
    unknown = await _post_signed(client, _checkout_completed("cs_unknown"))

    assert [r.status_code for r in (unpaid, other, unknown)] == [200, 200, 200]
    stored = await _load(session_factory, order.id)
    assert stored.status == OrderStatus.PENDING
    assert stored.paid_at is None


@pytest.mark.integration
@pytest.mark.asyncio
@pytest.mark.parametrize("signature", ["deadbeef", None])
async def test_bad_signature_is_rejected(client, card_order, session_factory, signature):
    order = await card_order()
    raw = json.dumps(_checkout_completed("cs_test_1")).encode("utf-8")
    headers = {"Content-Type": "application/json"}
    if signature:
        headers["X-Gateway-Signature"] = signature

    response = await client.post(WEBHOOK_URL, content=raw, headers=headers)

    assert response.status_code == 401
    assert response.json()["code"] == "INVALID_SIGNATURE"
    assert (await _load(session_factory, order.id)).status == OrderStatus.PENDING


@pytest.mark.integration
@pytest.mark.asyncio
async def test_malformed_body_is_rejected(client):
    raw = b"{not json"

    response = await client.post(
        WEBHOOK_URL, content=raw, headers={"X-Gateway-Signature": sign_payload(raw)}
    )

    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_PAYLOAD"


@pytest.mark.integration
@pytest.mark.asyncio
@pytest.mark.parametrize("raw", [b"[]", b'"checkout.session.completed"', b"42"])
async def test_non_object_body_is_rejected(client, raw):
    response = await client.post(
        WEBHOOK_URL, content=raw, headers={"X-Gateway-Signature": sign_payload(raw)}
    )

    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_PAYLOAD"
