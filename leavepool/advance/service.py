"""Six-month advance requests.

Requests for the date six months out are not placed on the calendar; they
wait in their own table until the seniority run (outside this service) turns
each one into a booking or discards it.  Which dates count as "the six-month
date" is decided by the same window rules the availability classifier uses,
so the two never disagree at month end.
"""

from __future__ import annotations

import logging
import uuid
from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from leavepool.advance.models import AdvanceRequest
from leavepool.advance.schemas import (
    AdvanceDatesOut,
    AdvanceQueueEntry,
    AdvanceRequestOut,
)
from leavepool.bookings.availability import has_consuming_booking
from leavepool.common.audit import create_audit_entry
from leavepool.common.constants import LeaveType
from leavepool.common.exceptions import (
    DuplicateAdvanceRequest,
    DuplicateBooking,
    ForbiddenException,
    IneligibleDate,
    InsufficientEntitlement,
    NotFoundException,
    ValidationException,
)
from leavepool.entitlements.service import EntitlementService
from leavepool.members.models import Member
from leavepool.members.service import MemberService
from leavepool.scheduling.policy import current_advance_dates, evaluate, local_today

logger = logging.getLogger(__name__)

UNRANKED_SENIORITY = 999999


class AdvanceRequestService:
    """Async intake and bookkeeping for the six-month request queue."""

    # ─────────────────────────────────────────────────────────────────
    # Helpers
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def _find_unprocessed(
        db: AsyncSession,
        member_id: uuid.UUID,
        request_date: date,
        leave_type: Optional[LeaveType] = None,
    ) -> Optional[AdvanceRequest]:
        query = select(AdvanceRequest).where(
            AdvanceRequest.member_id == member_id,
            AdvanceRequest.request_date == request_date,
            AdvanceRequest.processed.is_(False),
        )
        if leave_type is not None:
            query = query.where(AdvanceRequest.leave_type == leave_type)
        result = await db.execute(query.limit(1))
        return result.scalars().first()

    @staticmethod
    async def _get(db: AsyncSession, request_id: uuid.UUID) -> AdvanceRequest:
        result = await db.execute(
            select(AdvanceRequest).where(AdvanceRequest.id == request_id)
        )
        request = result.scalars().first()
        if request is None:
            raise NotFoundException("AdvanceRequest", str(request_id))
        return request

    # ─────────────────────────────────────────────────────────────────
    # Intake
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def submit_advance(
        db: AsyncSession,
        member_id: uuid.UUID,
        request_date: date,
        leave_type: LeaveType,
        *,
        now: Optional[datetime] = None,
    ) -> AdvanceRequestOut:
        """Queue a request for the current six-month date.

        Checks, in order: the date is an advance date, the member has days
        left, no unprocessed request of the same type already exists, and
        no booking already claims the date.
        """
        today = local_today(now)
        member = await MemberService.get_active_member(db, member_id)
        calendar_id = MemberService.require_calendar(member)

        window = evaluate(today, request_date)
        if not window.is_advance_request:
            reason = window.reason.value if not window.eligible else "not_advance_date"
            logger.debug(
                "Advance request for %s by %s refused: %s", request_date, member_id, reason,
            )
            raise IneligibleDate(request_date, leave_type.value, reason)

        available = await EntitlementService.get_available(
            db, member_id, request_date.year, leave_type, today=today,
        )
        if available <= 0:
            raise InsufficientEntitlement(request_date, leave_type.value, available)

        existing = await AdvanceRequestService._find_unprocessed(
            db, member_id, request_date, leave_type,
        )
        if existing is not None:
            raise DuplicateAdvanceRequest(request_date, leave_type.value)
        if await has_consuming_booking(db, member_id, request_date):
            raise DuplicateBooking(request_date, leave_type.value)

        request = AdvanceRequest(
            member_id=member_id,
            calendar_id=calendar_id,
            request_date=request_date,
            leave_type=leave_type,
            processed=False,
            requested_at=now or datetime.now(timezone.utc),
        )
        try:
            async with db.begin_nested():
                db.add(request)
                await db.flush()
        except IntegrityError:
            raise DuplicateAdvanceRequest(request_date, leave_type.value)

        await create_audit_entry(
            db,
            action="submit",
            entity_type="advance_request",
            entity_id=request.id,
            actor_id=member_id,
            calendar_id=calendar_id,
            new_values={
                "date": request_date.isoformat(),
                "leave_type": leave_type.value,
            },
        )
        logger.info(
            "Advance %s request queued for %s by member %s",
            leave_type.value, request_date, member_id,
        )
        return AdvanceRequestOut.model_validate(request)

    @staticmethod
    async def has_advance_request(
        db: AsyncSession,
        member_id: uuid.UUID,
        request_date: date,
    ) -> bool:
        """Whether the member has an unprocessed request for the date."""
        existing = await AdvanceRequestService._find_unprocessed(
            db, member_id, request_date,
        )
        return existing is not None

    @staticmethod
    def advance_dates(*, now: Optional[datetime] = None) -> AdvanceDatesOut:
        today = local_today(now)
        dates = current_advance_dates(today)
        return AdvanceDatesOut(today=today, advance_date=dates[0], dates=dates)

    @staticmethod
    async def list_mine(
        db: AsyncSession,
        member_id: uuid.UUID,
        *,
        include_processed: bool = False,
    ) -> list[AdvanceRequestOut]:
        query = (
            select(AdvanceRequest)
            .where(AdvanceRequest.member_id == member_id)
            .order_by(AdvanceRequest.request_date, AdvanceRequest.requested_at)
        )
        if not include_processed:
            query = query.where(AdvanceRequest.processed.is_(False))
        result = await db.execute(query)
        return [AdvanceRequestOut.model_validate(r) for r in result.scalars().all()]

    # ─────────────────────────────────────────────────────────────────
    # Withdrawal
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def cancel_advance(
        db: AsyncSession,
        request_id: uuid.UUID,
        member_id: uuid.UUID,
    ) -> None:
        """Withdraw an unprocessed request; it is deleted outright."""
        request = await AdvanceRequestService._get(db, request_id)
        if request.member_id != member_id:
            raise ForbiddenException("You can only withdraw your own requests.")
        if request.processed:
            raise ValidationException(
                {"processed": ["This request has already been processed."]}
            )

        await db.delete(request)
        await db.flush()
        await create_audit_entry(
            db,
            action="cancel",
            entity_type="advance_request",
            entity_id=request_id,
            actor_id=member_id,
            calendar_id=request.calendar_id,
            old_values={
                "date": request.request_date.isoformat(),
                "leave_type": request.leave_type.value,
            },
        )
        logger.info("Advance request %s withdrawn by member %s", request_id, member_id)

    # ─────────────────────────────────────────────────────────────────
    # Seniority-run support
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def list_unprocessed(
        db: AsyncSession,
        calendar_id: uuid.UUID,
        *,
        request_date: Optional[date] = None,
    ) -> list[AdvanceQueueEntry]:
        """Unprocessed requests in the order the seniority run consumes them:
        by date, then seniority rank (unranked last), then submission time."""
        query = (
            select(AdvanceRequest, Member)
            .join(Member, AdvanceRequest.member_id == Member.id)
            .where(
                AdvanceRequest.calendar_id == calendar_id,
                AdvanceRequest.processed.is_(False),
            )
            .order_by(
                AdvanceRequest.request_date,
                func.coalesce(Member.seniority_rank, UNRANKED_SENIORITY),
                AdvanceRequest.requested_at,
            )
        )
        if request_date is not None:
            query = query.where(AdvanceRequest.request_date == request_date)

        result = await db.execute(query)
        entries: list[AdvanceQueueEntry] = []
        for request, member in result.all():
            entry = AdvanceQueueEntry.model_validate(request)
            entry.pin_number = member.pin_number
            entry.member_name = member.display_name
            entries.append(entry)
        return entries

    @staticmethod
    async def mark_processed(
        db: AsyncSession,
        request_id: uuid.UUID,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> AdvanceRequestOut:
        """Record that the seniority run has converted or discarded a request."""
        request = await AdvanceRequestService._get(db, request_id)
        if request.processed:
            raise ValidationException(
                {"processed": ["This request has already been processed."]}
            )

        request.processed = True
        request.processed_at = datetime.now(timezone.utc)
        await db.flush()

        await create_audit_entry(
            db,
            action="process",
            entity_type="advance_request",
            entity_id=request.id,
            actor_id=actor_id,
            calendar_id=request.calendar_id,
            old_values={"processed": False},
            new_values={"processed": True},
        )
        return AdvanceRequestOut.model_validate(request)
