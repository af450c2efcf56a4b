"""Finite-state machine for the order delivery lifecycle."""

from __future__ import annotations

from typing import Dict, FrozenSet

from models.order import OrderStatus
from tailor_app.errors import InvalidStatusTransition

TERMINAL_STATUSES: FrozenSet[OrderStatus] = frozenset(
    {OrderStatus.DELIVERED, OrderStatus.CANCELLED}
)

# Forward-only, one step at a time; cancellation from any non-terminal status.
TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.CONFIRMED: frozenset({OrderStatus.IN_STITCHING, OrderStatus.CANCELLED}),
    OrderStatus.IN_STITCHING: frozenset({OrderStatus.SHIPPED, OrderStatus.CANCELLED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

PROGRESS_PERCENT: Dict[OrderStatus, int] = {
    OrderStatus.CONFIRMED: 25,
    OrderStatus.IN_STITCHING: 50,
    OrderStatus.SHIPPED: 75,
    OrderStatus.DELIVERED: 100,
    OrderStatus.CANCELLED: 0,
}


def can_transition(current: OrderStatus, target: OrderStatus, strict: bool = True) -> bool:
    if not strict:
        return current != target
    return target in TRANSITIONS[current]


def check_transition(current: OrderStatus, target: OrderStatus, strict: bool = True) -> None:
    """Raise :class:`InvalidStatusTransition` unless ``current -> target`` is legal."""

    if can_transition(current, target, strict=strict):
        return
    if current in TERMINAL_STATUSES:
        reason = f"order is already {current.value}"
    else:
        allowed = sorted(status.value for status in TRANSITIONS[current]) if strict else []
        reason = f"allowed next statuses: {allowed}" if allowed else "status is unchanged"
    raise InvalidStatusTransition(
        f"Cannot move order from {current.value} to {target.value}: {reason}",
        {"status": reason},
    )


def progress_percent(status: OrderStatus) -> int:
    return PROGRESS_PERCENT[status]


__all__ = [
    "TERMINAL_STATUSES",
    "TRANSITIONS",
    "can_transition",
    "check_transition",
    "progress_percent",
]
