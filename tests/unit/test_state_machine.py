"""Unit tests for the order status state machine."""

from datetime import timedelta

import pytest
from libs.common.datetime_utils import utc_now
from services.store_service.models import OrderStatus
from services.store_service.state_machine import (
    ALLOWED_TRANSITIONS,
    IN_FLIGHT,
    TERMINAL_STATES,
    IllegalTransition,
    OrderAction,
    apply_transition,
    check_transition,
    is_transition_allowed,
)
from tests.factories import OrderFactory

S = OrderStatus


def _order(status=S.PENDING):
    return OrderFactory.create(product_id=None, status=status)


# ---------------------------------------------------------------------------
# Graph shape
# ---------------------------------------------------------------------------


@pytest.mark.unit
def test_every_status_has_an_entry():
    assert set(ALLOWED_TRANSITIONS) == set(OrderStatus)


@pytest.mark.unit
def test_terminal_states_have_no_exits():
    for status in TERMINAL_STATES:
        assert ALLOWED_TRANSITIONS[status] == frozenset()


@pytest.mark.unit
def test_every_non_terminal_state_can_be_cancelled():
    for status in set(OrderStatus) - TERMINAL_STATES:
        assert S.CANCELLED in ALLOWED_TRANSITIONS[status]


@pytest.mark.unit
def test_graph_never_moves_backwards():
    assert S.PENDING not in ALLOWED_TRANSITIONS[S.CONFIRMED]
    assert S.CONFIRMED not in ALLOWED_TRANSITIONS[S.PAID]
    assert S.PAID not in ALLOWED_TRANSITIONS[S.SHIPPED]
    assert S.SHIPPED not in ALLOWED_TRANSITIONS[S.OUT_FOR_DELIVERY]


# ---------------------------------------------------------------------------
# check_transition
# ---------------------------------------------------------------------------


@pytest.mark.unit
@pytest.mark.parametrize("source", [S.PENDING, S.CONFIRMED, S.PAID])
def test_ship_from_pre_delivery_states(source):
    assert check_transition(source, OrderAction.SHIP) == S.SHIPPED


@pytest.mark.unit
@pytest.mark.parametrize("target", [S.PROCESSING, S.SHIPPED, S.OUT_FOR_DELIVERY])
def test_ship_accepts_delivery_phase_override(target):
    assert check_transition(S.PAID, OrderAction.SHIP, target) == target


@pytest.mark.unit
def test_ship_rejects_non_delivery_override():
    with pytest.raises(IllegalTransition) as exc:
        check_transition(S.PENDING, OrderAction.SHIP, S.DELIVERED)
    assert exc.value.code == "ILLEGAL_TRANSITION"


@pytest.mark.unit
@pytest.mark.parametrize(
    "source",
    [S.PROCESSING, S.SHIPPED, S.OUT_FOR_DELIVERY, S.DELIVERED, S.COD_COLLECTED],
)
def test_ship_twice_is_already_shipped(source):
    with pytest.raises(IllegalTransition) as exc:
        check_transition(source, OrderAction.SHIP)
    assert exc.value.status_code == 409
    assert exc.value.code == "ORDER_ALREADY_SHIPPED"
    assert exc.value.detail == "Order is already in delivery phase"


@pytest.mark.unit
def test_ship_cancelled_order_is_illegal_not_already_shipped():
    with pytest.raises(IllegalTransition) as exc:
        check_transition(S.CANCELLED, OrderAction.SHIP)
    assert exc.value.code == "ILLEGAL_TRANSITION"
    assert exc.value.detail == "Cannot ship an order that is cancelled"


@pytest.mark.unit
def test_confirm_only_from_pending():
    assert check_transition(S.PENDING, OrderAction.CONFIRM) == S.CONFIRMED
    with pytest.raises(IllegalTransition):
        check_transition(S.PAID, OrderAction.CONFIRM)


@pytest.mark.unit
def test_mark_paid_sources():
    assert check_transition(S.PENDING, OrderAction.MARK_PAID) == S.PAID
    assert check_transition(S.CONFIRMED, OrderAction.MARK_PAID) == S.PAID
    assert not is_transition_allowed(S.SHIPPED, OrderAction.MARK_PAID)


@pytest.mark.unit
def test_set_status_requires_a_target():
    with pytest.raises(IllegalTransition) as exc:
        check_transition(S.PENDING, OrderAction.SET_STATUS)
    assert exc.value.code == "MISSING_STATUS"


@pytest.mark.unit
def test_set_status_follows_the_graph():
    assert check_transition(S.SHIPPED, OrderAction.SET_STATUS, S.DELIVERED) == S.DELIVERED
    assert (
        check_transition(S.OUT_FOR_DELIVERY, OrderAction.SET_STATUS, "cod_collected")
        == S.COD_COLLECTED
    )

    with pytest.raises(IllegalTransition) as exc:
        check_transition(S.SHIPPED, OrderAction.SET_STATUS, S.PENDING)
    assert exc.value.detail == "Cannot change order status from shipped to pending"


@pytest.mark.unit
@pytest.mark.parametrize("terminal", sorted(TERMINAL_STATES, key=lambda s: s.value))
def test_terminal_states_reject_every_status_change(terminal):
    for target in OrderStatus:
        assert not is_transition_allowed(terminal, OrderAction.SET_STATUS, target)
    assert not is_transition_allowed(terminal, OrderAction.CANCEL)


@pytest.mark.unit
def test_cancel_from_shipped():
    assert check_transition(S.SHIPPED, OrderAction.CANCEL) == S.CANCELLED


@pytest.mark.unit
@pytest.mark.parametrize("status", sorted(IN_FLIGHT, key=lambda s: s.value))
def test_delete_blocked_while_in_flight(status):
    with pytest.raises(IllegalTransition) as exc:
        check_transition(status, OrderAction.DELETE)
    assert exc.value.code == "ORDER_BEING_PROCESSED"
    assert exc.value.detail == "Cannot delete order that is being processed"


@pytest.mark.unit
@pytest.mark.parametrize("status", [S.PENDING, S.PAID, S.DELIVERED, S.CANCELLED])
def test_delete_allowed_outside_delivery(status):
    assert check_transition(status, OrderAction.DELETE) is None


# ---------------------------------------------------------------------------
# apply_transition
# ---------------------------------------------------------------------------


@pytest.mark.unit
def test_apply_transition_appends_one_entry_and_sets_status():
    order = _order()
    entry = apply_transition(
        order,
        OrderAction.SHIP,
        message="Order shipped",
        location="In transit",
        performed_by="admin-1",
    )

    assert order.status == S.SHIPPED
    assert len(order.updates) == 2
    assert order.updates[-1] is entry
    assert entry.sequence == 1
    assert entry.status == S.SHIPPED
    assert entry.performed_by == "admin-1"


@pytest.mark.unit
def test_apply_transition_keeps_timestamps_monotonic():
    order = _order()
    future = utc_now() + timedelta(minutes=5)
    order.updates[0].timestamp = future

    entry = apply_transition(order, OrderAction.CANCEL, message="x", location=None)
    assert entry.timestamp == future


@pytest.mark.unit
def test_rejected_transition_leaves_order_untouched():
    order = _order(S.DELIVERED)
    with pytest.raises(IllegalTransition):
        apply_transition(order, OrderAction.CANCEL, message="x", location=None)
    assert order.status == S.DELIVERED
    assert len(order.updates) == 1


@pytest.mark.unit
def test_apply_delete_is_rejected():
    order = _order()
    with pytest.raises(IllegalTransition):
        apply_transition(order, OrderAction.DELETE, message="x", location=None)
    assert len(order.updates) == 1
