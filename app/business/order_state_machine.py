# ==== ORDER STATE MACHINE ==== #

"""
Allowed status transitions for daily meal orders.

Every mutation consults this table before touching ``Order.status``. The only
caller allowed to move an order to COMPLETED is the daily settlement, so the
ledger debit always flows through one place.
"""

from typing import Dict, FrozenSet

from app.business.enums import OrderStatus, display_label
from app.business.errors import BusinessRuleError, ErrorCode


# ==== TRANSITION TABLE ==== #

ALLOWED_TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.ACTIVE: frozenset({
        OrderStatus.PAUSED,
        OrderStatus.FROZEN,
        OrderStatus.COMPLETED,
        OrderStatus.CANCELLED,
    }),
    OrderStatus.PAUSED: frozenset({OrderStatus.ACTIVE, OrderStatus.CANCELLED}),
    # Leaving FROZEN for ACTIVE goes through transition(..., unfreeze=True)
    OrderStatus.FROZEN: frozenset({OrderStatus.CANCELLED}),
    OrderStatus.COMPLETED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

TERMINAL_STATUSES: FrozenSet[OrderStatus] = frozenset({
    OrderStatus.COMPLETED,
    OrderStatus.CANCELLED,
})


# ==== LOOKUPS ==== #


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    """Check if moving from ``current`` to ``target`` is allowed."""
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


def get_allowed_transitions(current: OrderStatus) -> FrozenSet[OrderStatus]:
    """Statuses reachable from ``current`` in one step."""
    return ALLOWED_TRANSITIONS.get(current, frozenset())


def is_terminal(status: OrderStatus) -> bool:
    return status in TERMINAL_STATUSES


def can_modify(status: OrderStatus) -> bool:
    """Non-terminal orders may still be paused, frozen or re-priced."""
    return not is_terminal(status)


def describe_allowed_transitions(current: OrderStatus) -> str:
    """
    Human-readable summary of the next possible statuses.

    Used as the skip reason when a bulk action hits a disallowed transition.
    """
    allowed = get_allowed_transitions(current)
    if not allowed:
        return f"'{display_label(current)}' is a final status, no further transitions are possible"

    names = ", ".join(
        display_label(status) for status in sorted(allowed, key=lambda s: s.value)
    )
    return f"allowed transitions from '{display_label(current)}': {names}"


def can_refund(status: OrderStatus) -> bool:
    """Completed orders were debited and can be cancelled only with a refund."""
    return status == OrderStatus.COMPLETED


def transition(
    current: OrderStatus,
    target: OrderStatus,
    settlement: bool = False,
    refund: bool = False,
    unfreeze: bool = False
) -> OrderStatus:
    """
    Validate a transition and return the target status.

    Args:
        current (OrderStatus): Status the order is in
        target (OrderStatus): Requested status
        settlement (bool): True only when called by the daily settlement
        refund (bool): True when a cancellation is paired with a refund,
            which is the only way out of COMPLETED
        unfreeze (bool): True only when called by the unfreeze operation,
            which also drops the replacement order and the subscription
            extension

    Returns:
        OrderStatus: ``target`` when the move is allowed

    Raises:
        BusinessRuleError: When the move is not in the table, or when a
            non-settlement caller asks for COMPLETED
    """
    if refund and can_refund(current) and target == OrderStatus.CANCELLED:
        return target

    if unfreeze and current == OrderStatus.FROZEN and target == OrderStatus.ACTIVE:
        return target

    if target == OrderStatus.COMPLETED and not settlement:
        raise BusinessRuleError(
            ErrorCode.ORDER_INVALID_TRANSITION,
            "Orders are completed only by the daily settlement",
            {"from": current.value, "to": target.value},
        )

    if not can_transition(current, target):
        raise BusinessRuleError(
            ErrorCode.ORDER_INVALID_TRANSITION,
            f"Cannot move order from '{display_label(current)}' to "
            f"'{display_label(target)}': {describe_allowed_transitions(current)}",
            {
                "from": current.value,
                "to": target.value,
                "allowed": sorted(s.value for s in get_allowed_transitions(current)),
            },
        )

    return target
