"""Booking status state machine.

Every status change goes through :func:`ensure_transition`; call sites never
compare status strings to decide what is allowed.
"""

from __future__ import annotations

from typing import Any

from leavepool.common.constants import BookingStatus
from leavepool.common.exceptions import InvalidBookingState

# Creation never yields anything but pending or waitlisted.
INITIAL_STATUSES: frozenset[BookingStatus] = frozenset({
    BookingStatus.pending,
    BookingStatus.waitlisted,
})

TERMINAL_STATUSES: frozenset[BookingStatus] = frozenset({
    BookingStatus.denied,
    BookingStatus.cancelled,
})

TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = {
    BookingStatus.pending: frozenset({
        BookingStatus.approved,
        BookingStatus.denied,
        BookingStatus.cancelled,
        BookingStatus.cancellation_pending,
    }),
    # promotion off the waitlist, or withdrawal
    BookingStatus.waitlisted: frozenset({
        BookingStatus.approved,
        BookingStatus.cancelled,
    }),
    BookingStatus.approved: frozenset({
        BookingStatus.cancellation_pending,
    }),
    # confirmed, or cancellation refused and the approval reinstated
    BookingStatus.cancellation_pending: frozenset({
        BookingStatus.cancelled,
        BookingStatus.approved,
    }),
    BookingStatus.denied: frozenset(),
    BookingStatus.cancelled: frozenset(),
}

# What a member's own cancel request turns each status into.
CANCEL_OUTCOMES: dict[BookingStatus, BookingStatus] = {
    BookingStatus.waitlisted: BookingStatus.cancelled,
    BookingStatus.pending: BookingStatus.cancelled,
    BookingStatus.approved: BookingStatus.cancellation_pending,
}


def can_transition(current: BookingStatus, target: BookingStatus) -> bool:
    return target in TRANSITIONS.get(current, frozenset())


def ensure_transition(
    booking_id: Any,
    current: BookingStatus,
    target: BookingStatus,
) -> None:
    """Raise :class:`InvalidBookingState` unless ``current -> target`` is legal."""
    if not can_transition(current, target):
        raise InvalidBookingState(booking_id, current.value, target.value)


def cancel_outcome(booking_id: Any, current: BookingStatus) -> BookingStatus:
    """Status a member-initiated cancellation moves *current* to."""
    target = CANCEL_OUTCOMES.get(current)
    if target is None:
        raise InvalidBookingState(booking_id, current.value, BookingStatus.cancelled.value)
    ensure_transition(booking_id, current, target)
    return target
