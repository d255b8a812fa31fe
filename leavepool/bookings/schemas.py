"""Booking Pydantic v2 schemas — request / response validation.

Naming conventions:
  - *Create / *Request  → request bodies (write)
  - *Out                → response bodies (read)
  - *Brief              → compact embedded representations
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from leavepool.common.constants import (
    Availability,
    BookingStatus,
    LeaveType,
    WindowReason,
)


# ═════════════════════════════════════════════════════════════════════
# Embedded / shared
# ═════════════════════════════════════════════════════════════════════


class MemberBrief(BaseModel):
    """Minimal member info embedded in per-date booking lists."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    pin_number: int
    display_name: str


# ═════════════════════════════════════════════════════════════════════
# Booking
# ═════════════════════════════════════════════════════════════════════


class BookingCreate(BaseModel):
    """Payload for requesting a single leave day."""

    request_date: date = Field(..., description="Requested leave day")
    leave_type: LeaveType
    paid_in_lieu: bool = Field(
        default=False,
        description="Sell the day back instead of taking it off",
    )


class BookingOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    member_id: uuid.UUID
    calendar_id: uuid.UUID
    request_date: date
    leave_type: LeaveType
    status: BookingStatus
    waitlist_position: Optional[int] = None
    paid_in_lieu: bool = False
    requested_at: datetime
    responded_at: Optional[datetime] = None
    responded_by: Optional[uuid.UUID] = None
    denial_comment: Optional[str] = None
    cancelled_at: Optional[datetime] = None


class DateBookingOut(BookingOut):
    """Booking as listed on a calendar day, with the requesting member."""

    member: Optional[MemberBrief] = None


class BookingCancelOut(BaseModel):
    id: uuid.UUID
    previous_status: BookingStatus
    status: BookingStatus


class BookingDenyRequest(BaseModel):
    comment: Optional[str] = Field(None, max_length=1000)


# ═════════════════════════════════════════════════════════════════════
# Availability
# ═════════════════════════════════════════════════════════════════════


class DateAvailabilityOut(BaseModel):
    """Classification of one calendar day plus the figures behind it."""

    date: date
    availability: Availability
    selectable: bool
    eligible: bool
    is_advance_request: bool
    reason: WindowReason
    max_allotment: int
    active_count: int
