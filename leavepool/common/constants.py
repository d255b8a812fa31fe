"""Enums and constants for leavepool — matching PostgreSQL ENUM types."""

from __future__ import annotations

import enum


# ── Leave ───────────────────────────────────────────────────────────

class LeaveType(str, enum.Enum):
    PLD = "PLD"
    SDV = "SDV"


class BookingStatus(str, enum.Enum):
    pending = "pending"
    approved = "approved"
    denied = "denied"
    waitlisted = "waitlisted"
    cancellation_pending = "cancellation_pending"
    cancelled = "cancelled"


class Availability(str, enum.Enum):
    unavailable = "unavailable"
    available = "available"
    limited = "limited"
    full = "full"


class WindowReason(str, enum.Enum):
    normal = "normal"
    advance = "advance"
    too_soon = "too_soon"
    too_far = "too_far"


# Statuses that hold a member's claim on a date and draw down entitlement.
CONSUMING_STATUSES: frozenset[BookingStatus] = frozenset({
    BookingStatus.pending,
    BookingStatus.approved,
    BookingStatus.waitlisted,
    BookingStatus.cancellation_pending,
})

# Statuses counted against a date when classifying availability.
DISPLAY_ACTIVE_STATUSES: frozenset[BookingStatus] = frozenset({
    BookingStatus.approved,
    BookingStatus.pending,
    BookingStatus.waitlisted,
})

# Statuses occupying a seat when deciding pending vs. waitlisted.
SEAT_HOLDING_STATUSES: frozenset[BookingStatus] = frozenset({
    BookingStatus.approved,
    BookingStatus.pending,
})


# ── Auth / Roles ────────────────────────────────────────────────────

class UserRole(str, enum.Enum):
    member = "member"
    calendar_admin = "calendar_admin"
    system_admin = "system_admin"


# ── Misc constants ──────────────────────────────────────────────────

MAX_PAGE_SIZE = 100
DEFAULT_PAGE_SIZE = 50
MAX_RANGE_DAYS = 400
