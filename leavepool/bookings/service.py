"""Booking service layer — submission, waitlist placement, cancellation, approvals.

Business logic:
  - Submit a single leave day: window check, capacity, entitlement, uniqueness
  - Pending vs. waitlisted decided once, at creation, inside a locked savepoint
  - Member cancellation through the central transition table
  - Administrative approve / deny / confirm / reject on the same table
  - Per-date booking lists and the head of each date's waitlist
"""

from __future__ import annotations

import logging
import uuid
from datetime import date, datetime, timezone
from typing import Optional

import sqlalchemy as sa
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from leavepool.allotments.service import AllotmentService
from leavepool.advance.service import AdvanceRequestService
from leavepool.bookings.availability import count_bookings, has_consuming_booking
from leavepool.bookings.models import Booking
from leavepool.bookings.schemas import BookingCancelOut, BookingOut, DateBookingOut
from leavepool.bookings.transitions import cancel_outcome, ensure_transition
from leavepool.common.audit import create_audit_entry
from leavepool.common.constants import (
    CONSUMING_STATUSES,
    SEAT_HOLDING_STATUSES,
    BookingStatus,
    LeaveType,
)
from leavepool.common.exceptions import (
    ConcurrentCapacityConflict,
    DuplicateBooking,
    ForbiddenException,
    IneligibleDate,
    InsufficientEntitlement,
    InvalidBookingState,
    NotFoundException,
    ZeroCapacity,
)
from leavepool.common.pagination import PaginatedResponse, PaginationParams, paginate
from leavepool.entitlements.service import EntitlementService
from leavepool.members.service import MemberService
from leavepool.scheduling.policy import evaluate, local_today

logger = logging.getLogger(__name__)

# Display order on a calendar day: seats first, then the queue.
_STATUS_ORDER = sa.case(
    (Booking.status == BookingStatus.approved, 0),
    (Booking.status == BookingStatus.cancellation_pending, 1),
    (Booking.status == BookingStatus.pending, 2),
    (Booking.status == BookingStatus.waitlisted, 3),
    else_=4,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


async def _lock_date(db: AsyncSession, calendar_id: uuid.UUID, target: date) -> None:
    """Serialize capacity decisions for one (calendar, date) until commit.

    Only PostgreSQL has transaction-scoped advisory locks; other backends
    rely on the unique indexes alone.
    """
    if db.get_bind().dialect.name != "postgresql":
        return
    await db.execute(
        sa.text("SELECT pg_advisory_xact_lock(hashtext(:key))"),
        {"key": f"{calendar_id}:{target.isoformat()}"},
    )


# ═════════════════════════════════════════════════════════════════════
# BookingService
# ═════════════════════════════════════════════════════════════════════


class BookingService:
    """Async member-facing booking operations."""

    # ─────────────────────────────────────────────────────────────────
    # Helpers
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def _get(
        db: AsyncSession,
        booking_id: uuid.UUID,
        *,
        for_update: bool = False,
    ) -> Booking:
        query = select(Booking).where(Booking.id == booking_id)
        if for_update:
            query = query.with_for_update().execution_options(populate_existing=True)
        result = await db.execute(query)
        booking = result.scalars().first()
        if booking is None:
            raise NotFoundException("Booking", str(booking_id))
        return booking

    @staticmethod
    async def _next_waitlist_position(
        db: AsyncSession,
        calendar_id: uuid.UUID,
        request_date: date,
    ) -> int:
        """One past the highest position ever issued for the date.

        Cancelled rows keep their positions, so a freed number is never
        handed out again.
        """
        result = await db.execute(
            select(func.max(Booking.waitlist_position)).where(
                Booking.calendar_id == calendar_id,
                Booking.request_date == request_date,
            )
        )
        return (result.scalar() or 0) + 1

    @staticmethod
    async def _place(
        db: AsyncSession,
        *,
        member_id: uuid.UUID,
        calendar_id: uuid.UUID,
        request_date: date,
        leave_type: LeaveType,
        paid_in_lieu: bool,
        now: datetime,
        force_waitlist: bool,
    ) -> Booking:
        """Decide pending vs. waitlisted and insert, as one atomic unit.

        Raises :class:`ConcurrentCapacityConflict` when a concurrent writer
        took the last seat or the same waitlist position; the savepoint is
        rolled back and nothing is left behind.
        """
        async with db.begin_nested():
            await _lock_date(db, calendar_id, request_date)
            cap = await AllotmentService.max_allotment(db, calendar_id, request_date)
            seated = await count_bookings(
                db, calendar_id, request_date, SEAT_HOLDING_STATUSES,
            )

            if force_waitlist or seated >= cap:
                status = BookingStatus.waitlisted
                position: Optional[int] = await BookingService._next_waitlist_position(
                    db, calendar_id, request_date,
                )
            else:
                status = BookingStatus.pending
                position = None

            booking = Booking(
                member_id=member_id,
                calendar_id=calendar_id,
                request_date=request_date,
                leave_type=leave_type,
                status=status,
                waitlist_position=position,
                paid_in_lieu=paid_in_lieu,
                requested_at=now,
                updated_at=now,
            )
            db.add(booking)
            try:
                await db.flush()
            except IntegrityError as exc:
                if "waitlist_position" in str(exc.orig):
                    raise ConcurrentCapacityConflict(request_date, leave_type.value)
                raise DuplicateBooking(request_date, leave_type.value)

            if status == BookingStatus.pending:
                seated = await count_bookings(
                    db, calendar_id, request_date, SEAT_HOLDING_STATUSES,
                )
                if seated > cap:
                    raise ConcurrentCapacityConflict(request_date, leave_type.value)

        return booking

    # ─────────────────────────────────────────────────────────────────
    # Submit
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def submit(
        db: AsyncSession,
        member_id: uuid.UUID,
        request_date: date,
        leave_type: LeaveType,
        *,
        paid_in_lieu: bool = False,
        now: Optional[datetime] = None,
    ) -> BookingOut:
        """Request one leave day.

        The booking is created ``pending`` while approved + pending bookings
        are below the date's allotment, otherwise ``waitlisted`` at the next
        queue position.  A lost capacity race is retried once straight onto
        the waitlist.
        """
        now = now or _utcnow()
        today = local_today(now)
        member = await MemberService.get_active_member(db, member_id)
        calendar_id = MemberService.require_calendar(member)

        # 1. Window and selectability
        window = evaluate(today, request_date)
        if not window.eligible:
            logger.debug(
                "Booking for %s by %s refused: %s",
                request_date, member_id, window.reason.value,
            )
            raise IneligibleDate(request_date, leave_type.value, window.reason.value)

        if not window.is_advance_request:
            cap = await AllotmentService.max_allotment(db, calendar_id, request_date)
            if cap <= 0:
                logger.debug("Booking for %s refused: no allotment", request_date)
                raise ZeroCapacity(request_date, leave_type.value)

        # 2. Entitlement
        available = await EntitlementService.get_available(
            db, member_id, request_date.year, leave_type, today=today,
        )
        if available <= 0:
            raise InsufficientEntitlement(request_date, leave_type.value, available)

        # 3. One claim per member per day, six-month requests included
        if not paid_in_lieu and (
            await has_consuming_booking(db, member_id, request_date)
            or await AdvanceRequestService.has_advance_request(db, member_id, request_date)
        ):
            raise DuplicateBooking(request_date, leave_type.value)

        # 4. Placement
        placement = dict(
            member_id=member_id,
            calendar_id=calendar_id,
            request_date=request_date,
            leave_type=leave_type,
            paid_in_lieu=paid_in_lieu,
            now=now,
        )
        try:
            booking = await BookingService._place(db, force_waitlist=False, **placement)
        except ConcurrentCapacityConflict:
            logger.warning(
                "Capacity race on %s for calendar %s; retrying as waitlist",
                request_date, calendar_id,
            )
            booking = await BookingService._place(db, force_waitlist=True, **placement)

        await create_audit_entry(
            db,
            action="submit",
            entity_type="booking",
            entity_id=booking.id,
            actor_id=member_id,
            calendar_id=calendar_id,
            new_values={
                "date": request_date.isoformat(),
                "leave_type": leave_type.value,
                "status": booking.status.value,
                "waitlist_position": booking.waitlist_position,
                "paid_in_lieu": paid_in_lieu,
            },
        )
        logger.info(
            "Booking %s: %s %s for member %s is %s",
            booking.id, leave_type.value, request_date, member_id, booking.status.value,
        )
        return BookingOut.model_validate(booking)

    # ─────────────────────────────────────────────────────────────────
    # Cancel
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def cancel(
        db: AsyncSession,
        booking_id: uuid.UUID,
        member_id: uuid.UUID,
        *,
        now: Optional[datetime] = None,
    ) -> BookingCancelOut:
        """Member-initiated cancellation.

        Waitlisted and pending bookings are cancelled outright; approved ones
        move to ``cancellation_pending`` until an administrator confirms.
        Nothing is promoted off the waitlist here, and the remaining queue
        keeps its stored positions.
        """
        now = now or _utcnow()
        booking = await BookingService._get(db, booking_id)
        if booking.member_id != member_id:
            raise ForbiddenException("You can only cancel your own bookings.")

        async with db.begin_nested():
            await _lock_date(db, booking.calendar_id, booking.request_date)
            booking = await BookingService._get(db, booking_id, for_update=True)
            previous = booking.status
            target = cancel_outcome(booking.id, previous)

            booking.status = target
            booking.updated_at = now
            if target == BookingStatus.cancelled:
                booking.cancelled_at = now
            await db.flush()

        await create_audit_entry(
            db,
            action="cancel",
            entity_type="booking",
            entity_id=booking.id,
            actor_id=member_id,
            calendar_id=booking.calendar_id,
            old_values={"status": previous.value},
            new_values={"status": target.value},
        )
        logger.info(
            "Booking %s cancelled by member %s: %s -> %s",
            booking.id, member_id, previous.value, target.value,
        )
        return BookingCancelOut(id=booking.id, previous_status=previous, status=target)

    # ─────────────────────────────────────────────────────────────────
    # Queries
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def get(db: AsyncSession, booking_id: uuid.UUID) -> Booking:
        return await BookingService._get(db, booking_id)

    @staticmethod
    async def list_mine(
        db: AsyncSession,
        member_id: uuid.UUID,
        params: PaginationParams,
        *,
        status: Optional[BookingStatus] = None,
        year: Optional[int] = None,
    ) -> PaginatedResponse:
        query = select(Booking).where(Booking.member_id == member_id)
        if status is not None:
            query = query.where(Booking.status == status)
        if year is not None:
            query = query.where(
                Booking.request_date >= date(year, 1, 1),
                Booking.request_date <= date(year, 12, 31),
            )
        query = query.order_by(Booking.request_date.desc(), Booking.requested_at.desc())
        return await paginate(db, query, params, transform=BookingOut.model_validate)

    @staticmethod
    async def list_for_date(
        db: AsyncSession,
        calendar_id: uuid.UUID,
        target: date,
        *,
        include_inactive: bool = False,
    ) -> list[DateBookingOut]:
        """Bookings on one calendar day: seats first, then the waitlist in
        original queue order."""
        query = (
            select(Booking)
            .where(Booking.calendar_id == calendar_id, Booking.request_date == target)
            .options(selectinload(Booking.member))
            .order_by(_STATUS_ORDER, Booking.waitlist_position, Booking.requested_at)
        )
        if not include_inactive:
            query = query.where(Booking.status.in_(list(CONSUMING_STATUSES)))
        result = await db.execute(query)
        return [DateBookingOut.model_validate(b) for b in result.scalars().all()]

    @staticmethod
    async def next_waitlisted(
        db: AsyncSession,
        calendar_id: uuid.UUID,
        target: date,
    ) -> Optional[BookingOut]:
        """The waitlisted booking first in line for a freed seat, if any."""
        result = await db.execute(
            select(Booking)
            .where(
                Booking.calendar_id == calendar_id,
                Booking.request_date == target,
                Booking.status == BookingStatus.waitlisted,
            )
            .order_by(Booking.waitlist_position, Booking.requested_at)
            .limit(1)
        )
        booking = result.scalars().first()
        return BookingOut.model_validate(booking) if booking else None


# ═════════════════════════════════════════════════════════════════════
# AdminBookingService
# ═════════════════════════════════════════════════════════════════════


class AdminBookingService:
    """Administrator decisions on bookings, all through the transition table."""

    @staticmethod
    async def _ensure_free_seat(db: AsyncSession, booking: Booking) -> None:
        """Promotion off the waitlist needs a seat below the date's allotment."""
        cap = await AllotmentService.max_allotment(
            db, booking.calendar_id, booking.request_date,
        )
        seated = await count_bookings(
            db, booking.calendar_id, booking.request_date, SEAT_HOLDING_STATUSES,
        )
        if seated >= cap:
            raise ConcurrentCapacityConflict(
                booking.request_date,
                booking.leave_type.value,
                reason="no_free_seat",
                detail="Every seat on this date is taken; nothing can be promoted yet.",
                extra={"seated": seated, "max_allotment": cap},
            )

    @staticmethod
    async def _respond(
        db: AsyncSession,
        booking_id: uuid.UUID,
        target: BookingStatus,
        actor_id: uuid.UUID,
        *,
        allowed_from: frozenset[BookingStatus],
        action: str,
        comment: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> BookingOut:
        now = now or _utcnow()
        booking = await BookingService._get(db, booking_id)

        async with db.begin_nested():
            await _lock_date(db, booking.calendar_id, booking.request_date)
            booking = await BookingService._get(db, booking_id, for_update=True)
            previous = booking.status
            if previous not in allowed_from:
                raise InvalidBookingState(booking.id, previous.value, target.value)
            ensure_transition(booking.id, previous, target)
            if previous == BookingStatus.waitlisted:
                await AdminBookingService._ensure_free_seat(db, booking)

            booking.status = target
            booking.responded_at = now
            booking.responded_by = actor_id
            booking.updated_at = now
            if target == BookingStatus.denied:
                booking.denial_comment = comment
            if target == BookingStatus.cancelled:
                booking.cancelled_at = now
            await db.flush()

        await create_audit_entry(
            db,
            action=action,
            entity_type="booking",
            entity_id=booking.id,
            actor_id=actor_id,
            calendar_id=booking.calendar_id,
            old_values={"status": previous.value},
            new_values={"status": target.value, "comment": comment},
        )
        logger.info(
            "Booking %s %s by %s: %s -> %s",
            booking.id, action, actor_id, previous.value, target.value,
        )
        return BookingOut.model_validate(booking)

    @staticmethod
    async def approve(
        db: AsyncSession,
        booking_id: uuid.UUID,
        actor_id: uuid.UUID,
        *,
        now: Optional[datetime] = None,
    ) -> BookingOut:
        """Approve a pending booking, or promote a waitlisted one into a free seat."""
        return await AdminBookingService._respond(
            db, booking_id, BookingStatus.approved, actor_id,
            allowed_from=frozenset({BookingStatus.pending, BookingStatus.waitlisted}),
            action="approve",
            now=now,
        )

    @staticmethod
    async def deny(
        db: AsyncSession,
        booking_id: uuid.UUID,
        actor_id: uuid.UUID,
        *,
        comment: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> BookingOut:
        return await AdminBookingService._respond(
            db, booking_id, BookingStatus.denied, actor_id,
            allowed_from=frozenset({BookingStatus.pending}),
            action="deny",
            comment=comment,
            now=now,
        )

    @staticmethod
    async def confirm_cancellation(
        db: AsyncSession,
        booking_id: uuid.UUID,
        actor_id: uuid.UUID,
        *,
        now: Optional[datetime] = None,
    ) -> BookingOut:
        """Free the seat held by an approved booking the member cancelled."""
        return await AdminBookingService._respond(
            db, booking_id, BookingStatus.cancelled, actor_id,
            allowed_from=frozenset({BookingStatus.cancellation_pending}),
            action="confirm_cancellation",
            now=now,
        )

    @staticmethod
    async def reject_cancellation(
        db: AsyncSession,
        booking_id: uuid.UUID,
        actor_id: uuid.UUID,
        *,
        comment: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> BookingOut:
        """Refuse a cancellation; the booking goes back to approved."""
        return await AdminBookingService._respond(
            db, booking_id, BookingStatus.approved, actor_id,
            allowed_from=frozenset({BookingStatus.cancellation_pending}),
            action="reject_cancellation",
            comment=comment,
            now=now,
        )
