"""Order status state machine.

All order status changes go through this module:

- ``ALLOWED_TRANSITIONS`` is the state graph. It only moves forward; every
  non-terminal state may also move to ``cancelled``.
- ``ACTION_RULES`` says, per staff/system action, which states the action
  may start from and which targets it may produce.
- ``check_transition`` is the single legality predicate, and
  ``apply_transition`` is the single mutation: it appends a status-log entry
  and sets ``Order.status`` to the same value.

Deletion is modelled as the pseudo-action ``DELETE`` with no target state.
"""

import enum
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.common.errors import StateConflict
from services.store_service.models import Order, OrderStatus, OrderUpdate

S = OrderStatus

TERMINAL_STATES = frozenset({S.DELIVERED, S.COD_COLLECTED, S.CANCELLED})

# Orders a courier holds or is about to hold; these cannot be deleted
IN_FLIGHT = frozenset({S.PROCESSING, S.SHIPPED, S.OUT_FOR_DELIVERY})

ALLOWED_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    S.PENDING: frozenset(
        {S.CONFIRMED, S.PAID, S.PROCESSING, S.SHIPPED, S.OUT_FOR_DELIVERY, S.CANCELLED}
    ),
    S.CONFIRMED: frozenset(
        {S.PAID, S.PROCESSING, S.SHIPPED, S.OUT_FOR_DELIVERY, S.CANCELLED}
    ),
    S.PAID: frozenset({S.PROCESSING, S.SHIPPED, S.OUT_FOR_DELIVERY, S.CANCELLED}),
    S.PROCESSING: frozenset({S.SHIPPED, S.OUT_FOR_DELIVERY, S.CANCELLED}),
    S.SHIPPED: frozenset(
        {S.OUT_FOR_DELIVERY, S.DELIVERED, S.COD_COLLECTED, S.CANCELLED}
    ),
    S.OUT_FOR_DELIVERY: frozenset({S.DELIVERED, S.COD_COLLECTED, S.CANCELLED}),
    S.DELIVERED: frozenset(),
    S.COD_COLLECTED: frozenset(),
    S.CANCELLED: frozenset(),
}


class OrderAction(str, enum.Enum):
    CONFIRM = "confirm"
    MARK_PAID = "mark_paid"
    SHIP = "ship"
    SET_STATUS = "set_status"
    CANCEL = "cancel"
    DELETE = "delete"


@dataclass(frozen=True)
class ActionRule:
    sources: frozenset[OrderStatus]
    default_target: Optional[OrderStatus]
    targets: frozenset[OrderStatus]
    conflict_code: str
    conflict_message: str
    # Sources outside `sources` that get conflict_code; others get ILLEGAL_TRANSITION
    conflict_states: Optional[frozenset[OrderStatus]] = None


_NON_TERMINAL = frozenset(set(OrderStatus) - TERMINAL_STATES)

ACTION_RULES: dict[OrderAction, ActionRule] = {
    OrderAction.CONFIRM: ActionRule(
        sources=frozenset({S.PENDING}),
        default_target=S.CONFIRMED,
        targets=frozenset({S.CONFIRMED}),
        conflict_code="ILLEGAL_TRANSITION",
        conflict_message="Only pending orders can be confirmed",
    ),
    OrderAction.MARK_PAID: ActionRule(
        sources=frozenset({S.PENDING, S.CONFIRMED}),
        default_target=S.PAID,
        targets=frozenset({S.PAID}),
        conflict_code="ILLEGAL_TRANSITION",
        conflict_message="Order can no longer be marked as paid",
    ),
    OrderAction.SHIP: ActionRule(
        sources=frozenset({S.PENDING, S.CONFIRMED, S.PAID}),
        default_target=S.SHIPPED,
        targets=frozenset({S.PROCESSING, S.SHIPPED, S.OUT_FOR_DELIVERY}),
        conflict_code="ORDER_ALREADY_SHIPPED",
        conflict_message="Order is already in delivery phase",
        conflict_states=frozenset(
            {S.PROCESSING, S.SHIPPED, S.OUT_FOR_DELIVERY, S.DELIVERED, S.COD_COLLECTED}
        ),
    ),
    OrderAction.SET_STATUS: ActionRule(
        sources=_NON_TERMINAL,
        default_target=None,
        targets=frozenset(OrderStatus),
        conflict_code="ILLEGAL_TRANSITION",
        conflict_message="Order status cannot move backwards or leave a final state",
    ),
    OrderAction.CANCEL: ActionRule(
        sources=_NON_TERMINAL,
        default_target=S.CANCELLED,
        targets=frozenset({S.CANCELLED}),
        conflict_code="ILLEGAL_TRANSITION",
        conflict_message="Order is already completed or cancelled",
    ),
    OrderAction.DELETE: ActionRule(
        sources=frozenset(set(OrderStatus) - IN_FLIGHT),
        default_target=None,
        targets=frozenset(),
        conflict_code="ORDER_BEING_PROCESSED",
        conflict_message="Cannot delete order that is being processed",
    ),
}


class IllegalTransition(StateConflict):
    code = "ILLEGAL_TRANSITION"


def check_transition(
    current: OrderStatus,
    action: OrderAction,
    target: Optional[OrderStatus] = None,
) -> Optional[OrderStatus]:
    """Return the resulting status of ``action`` on an order in ``current``.

    Raises ``IllegalTransition`` when the action is not allowed. ``DELETE``
    returns None.
    """
    rule = ACTION_RULES[action]
    current = OrderStatus(current)

    if current not in rule.sources:
        if rule.conflict_states is None or current in rule.conflict_states:
            raise IllegalTransition(rule.conflict_message, code=rule.conflict_code)
        raise IllegalTransition(
            f"Cannot {action.value.replace('_', ' ')} an order that is {current.value}",
            code="ILLEGAL_TRANSITION",
        )

    if action is OrderAction.DELETE:
        return None

    resolved = OrderStatus(target) if target is not None else rule.default_target
    if resolved is None:
        raise IllegalTransition("A target status is required", code="MISSING_STATUS")
    if resolved not in rule.targets or resolved not in ALLOWED_TRANSITIONS[current]:
        raise IllegalTransition(
            f"Cannot change order status from {current.value} to {resolved.value}",
            code="ILLEGAL_TRANSITION",
        )
    return resolved


def is_transition_allowed(
    current: OrderStatus,
    action: OrderAction,
    target: Optional[OrderStatus] = None,
) -> bool:
    try:
        check_transition(current, action, target)
    except IllegalTransition:
        return False
    return True


def new_update_entry(
    sequence: int,
    status: OrderStatus,
    message: str,
    location: Optional[str],
    timestamp: Optional[datetime] = None,
    performed_by: Optional[str] = None,
) -> OrderUpdate:
    return OrderUpdate(
        sequence=sequence,
        status=status,
        message=message,
        location=location,
        timestamp=timestamp or utc_now(),
        performed_by=performed_by,
    )


def apply_transition(
    order: Order,
    action: OrderAction,
    *,
    message: str,
    location: Optional[str],
    target: Optional[OrderStatus] = None,
    performed_by: Optional[str] = None,
) -> OrderUpdate:
    """Validate and apply ``action`` to ``order``, appending one log entry.

    The new entry's timestamp is never earlier than the previous entry's.
    """
    new_status = check_transition(order.status, action, target)
    if new_status is None:
        raise IllegalTransition(
            f"{action.value} does not produce a status", code="ILLEGAL_TRANSITION"
        )

    now = utc_now()
    last = order.updates[-1] if order.updates else None
    if last is not None and last.timestamp > now:
        now = last.timestamp

    entry = new_update_entry(
        sequence=(last.sequence + 1) if last is not None else 0,
        status=new_status,
        message=message,
        location=location,
        timestamp=now,
        performed_by=performed_by,
    )
    order.updates.append(entry)
    order.status = new_status
    return entry
