"""Booking routers — availability, submit/cancel, per-date lists, admin decisions.

All endpoints require authentication. Admin endpoints enforce role checks and
calendar scope.
"""


import uuid
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from leavepool.auth.dependencies import (
    ensure_calendar_access,
    get_current_member,
    require_role,
)
from leavepool.bookings.availability import AvailabilityService
from leavepool.bookings.schemas import (
    BookingCancelOut,
    BookingCreate,
    BookingDenyRequest,
    BookingOut,
    DateAvailabilityOut,
    DateBookingOut,
)
from leavepool.bookings.service import AdminBookingService, BookingService
from leavepool.common.constants import BookingStatus, UserRole
from leavepool.common.exceptions import NotFoundException
from leavepool.common.pagination import PaginationParams
from leavepool.database import get_db
from leavepool.members.models import Member

router = APIRouter(prefix="", tags=["bookings"])
calendar_router = APIRouter(prefix="", tags=["calendar"])
admin_router = APIRouter(prefix="", tags=["admin"])

_admin = require_role(UserRole.calendar_admin, UserRole.system_admin)


async def _calendar_of(db: AsyncSession, booking_id: uuid.UUID) -> uuid.UUID:
    return (await BookingService.get(db, booking_id)).calendar_id


# ── POST / ──────────────────────────────────────────────────────────

@router.post("", response_model=BookingOut, status_code=201)
async def submit_booking(
    body: BookingCreate,
    member: Member = Depends(get_current_member),
    db: AsyncSession = Depends(get_db),
):
    """Request a leave day. Created pending, or waitlisted when the date is full."""
    return await BookingService.submit(
        db, member.id, body.request_date, body.leave_type,
        paid_in_lieu=body.paid_in_lieu,
    )


# ── GET /mine ───────────────────────────────────────────────────────

@router.get("/mine")
async def my_bookings(
    status: Optional[BookingStatus] = Query(None),
    year: Optional[int] = Query(None, ge=2000, le=2100),
    params: PaginationParams = Depends(),
    member: Member = Depends(get_current_member),
    db: AsyncSession = Depends(get_db),
):
    """The authenticated member's bookings, newest date first."""
    return await BookingService.list_mine(
        db, member.id, params, status=status, year=year,
    )


# ── POST /{id}/cancel ───────────────────────────────────────────────

@router.post("/{booking_id}/cancel", response_model=BookingCancelOut)
async def cancel_booking(
    booking_id: uuid.UUID,
    member: Member = Depends(get_current_member),
    db: AsyncSession = Depends(get_db),
):
    """Cancel a booking. Approved bookings need admin confirmation."""
    return await BookingService.cancel(db, booking_id, member.id)


# ═════════════════════════════════════════════════════════════════════
# Calendar views
# ═════════════════════════════════════════════════════════════════════


@calendar_router.get(
    "/{calendar_id}/availability",
    response_model=list[DateAvailabilityOut],
)
async def availability_range(
    request: Request,
    calendar_id: uuid.UUID,
    start: date = Query(...),
    end: date = Query(...),
    member: Member = Depends(get_current_member),
    db: AsyncSession = Depends(get_db),
):
    """Classify every date in ``start..end``."""
    ensure_calendar_access(request, member, calendar_id)
    return await AvailabilityService.classify_range(db, calendar_id, start, end)


@calendar_router.get(
    "/{calendar_id}/availability/{target}",
    response_model=DateAvailabilityOut,
)
async def availability_for_date(
    request: Request,
    calendar_id: uuid.UUID,
    target: date,
    member: Member = Depends(get_current_member),
    db: AsyncSession = Depends(get_db),
):
    ensure_calendar_access(request, member, calendar_id)
    return await AvailabilityService.classify(db, calendar_id, target)


@calendar_router.get(
    "/{calendar_id}/bookings/{target}",
    response_model=list[DateBookingOut],
)
async def bookings_for_date(
    request: Request,
    calendar_id: uuid.UUID,
    target: date,
    include_inactive: bool = Query(False),
    member: Member = Depends(get_current_member),
    db: AsyncSession = Depends(get_db),
):
    """Bookings on a day: seats first, then the waitlist in queue order."""
    ensure_calendar_access(request, member, calendar_id)
    return await BookingService.list_for_date(
        db, calendar_id, target, include_inactive=include_inactive,
    )


# ═════════════════════════════════════════════════════════════════════
# Admin decisions
# ═════════════════════════════════════════════════════════════════════


@admin_router.put("/bookings/{booking_id}/approve", response_model=BookingOut)
async def approve_booking(
    request: Request,
    booking_id: uuid.UUID,
    admin: Member = Depends(_admin),
    db: AsyncSession = Depends(get_db),
):
    ensure_calendar_access(request, admin, await _calendar_of(db, booking_id))
    return await AdminBookingService.approve(db, booking_id, admin.id)


@admin_router.put("/bookings/{booking_id}/deny", response_model=BookingOut)
async def deny_booking(
    request: Request,
    booking_id: uuid.UUID,
    body: BookingDenyRequest,
    admin: Member = Depends(_admin),
    db: AsyncSession = Depends(get_db),
):
    ensure_calendar_access(request, admin, await _calendar_of(db, booking_id))
    return await AdminBookingService.deny(
        db, booking_id, admin.id, comment=body.comment,
    )


@admin_router.put(
    "/bookings/{booking_id}/confirm-cancellation",
    response_model=BookingOut,
)
async def confirm_cancellation(
    request: Request,
    booking_id: uuid.UUID,
    admin: Member = Depends(_admin),
    db: AsyncSession = Depends(get_db),
):
    """Free the seat of an approved booking the member cancelled."""
    ensure_calendar_access(request, admin, await _calendar_of(db, booking_id))
    return await AdminBookingService.confirm_cancellation(db, booking_id, admin.id)


@admin_router.put(
    "/bookings/{booking_id}/reject-cancellation",
    response_model=BookingOut,
)
async def reject_cancellation(
    request: Request,
    booking_id: uuid.UUID,
    body: BookingDenyRequest,
    admin: Member = Depends(_admin),
    db: AsyncSession = Depends(get_db),
):
    ensure_calendar_access(request, admin, await _calendar_of(db, booking_id))
    return await AdminBookingService.reject_cancellation(
        db, booking_id, admin.id, comment=body.comment,
    )


@admin_router.get(
    "/calendar/{calendar_id}/waitlist/{target}/next",
    response_model=BookingOut,
)
async def next_waitlisted(
    request: Request,
    calendar_id: uuid.UUID,
    target: date,
    admin: Member = Depends(_admin),
    db: AsyncSession = Depends(get_db),
):
    """Head of the date's waitlist, for promotion once a seat frees."""
    ensure_calendar_access(request, admin, calendar_id)
    booking = await BookingService.next_waitlisted(db, calendar_id, target)
    if booking is None:
        raise NotFoundException("Waitlisted booking", f"{calendar_id}/{target.isoformat()}")
    return booking
