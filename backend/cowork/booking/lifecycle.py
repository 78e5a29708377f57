"""Booking lifecycle state machine.

``pending_payment -> confirmed -> checked_in -> completed``, with
``checked_in -> extended -> completed`` when checkout incurs overtime, and
``cancelled`` / ``no_show`` as terminal states reachable before check-in.
"""

from cowork.booking.errors import InvalidTransitionError

# operation -> statuses it may start from
ALLOWED_FROM: dict[str, frozenset[str]] = {
    "confirm": frozenset({"pending_payment"}),
    "update": frozenset({"pending_payment", "confirmed"}),
    "cancel": frozenset({"pending_payment", "confirmed"}),
    "check_in": frozenset({"confirmed"}),
    "check_out": frozenset({"checked_in", "extended"}),
    "settle_overtime": frozenset({"extended"}),
    "mark_no_show": frozenset({"pending_payment", "confirmed"}),
}

TERMINAL_STATUSES = frozenset({"completed", "cancelled", "no_show"})


def can_transition(current_status: str, operation: str) -> bool:
    return current_status in ALLOWED_FROM[operation]


def require_transition(current_status: str, operation: str) -> None:
    """Raise ``InvalidTransitionError`` unless ``operation`` is allowed from ``current_status``."""
    if not can_transition(current_status, operation):
        raise InvalidTransitionError(current_status, operation)


def checkout_status(overtime_amount) -> str:
    """Status after checkout: ``extended`` while overtime is owed, else ``completed``."""
    return "extended" if overtime_amount > 0 else "completed"


def refund_payment_status(refund_amount, total_amount) -> str | None:
    """Payment status after a refund, or ``None`` when nothing is refunded."""
    if refund_amount <= 0:
        return None
    return "refunded" if refund_amount >= total_amount else "partially_refunded"
