"""Entitlement accounting — how many PLD/SDV days a member has left.

Balances are derived from the member's yearly entitlement and every booking
and unprocessed six-month request for that year.  They are recomputed on
every call; the booking engines re-read them after each state change rather
than carrying a figure between operations.

Counting rules:
  - paid-in-lieu bookings count when pending or approved
  - pending and cancellation_pending count as requested
  - waitlisted bookings hold their day until withdrawn
  - denied and cancelled bookings count for nothing
  - unprocessed six-month requests count as requested
  - rolled-over PLDs only apply to the current year
"""

from __future__ import annotations

import uuid
from datetime import date
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from leavepool.advance.models import AdvanceRequest
from leavepool.bookings.models import Booking
from leavepool.common.constants import BookingStatus, LeaveType
from leavepool.entitlements.schemas import EntitlementSummaryOut, LeaveBalanceOut
from leavepool.members.models import Member
from leavepool.members.service import MemberService
from leavepool.scheduling.policy import local_today

_PAID_IN_LIEU_STATUSES = (BookingStatus.approved, BookingStatus.pending)


def _year_bounds(year: int) -> tuple[date, date]:
    return date(year, 1, 1), date(year, 12, 31)


class EntitlementService:
    """Async balance computation per member, year and leave type."""

    @staticmethod
    def _totals(member: Member, year: int, current_year: int) -> dict[LeaveType, tuple[int, int]]:
        """(total, rolled_over) per leave type."""
        rolled_over = (member.pld_rolled_over or 0) if year == current_year else 0
        return {
            LeaveType.PLD: ((member.max_plds or 0) + rolled_over, rolled_over),
            LeaveType.SDV: (member.sdv_entitlement or 0, 0),
        }

    @staticmethod
    async def get_summary(
        db: AsyncSession,
        member_id: uuid.UUID,
        year: int,
        *,
        today: Optional[date] = None,
    ) -> EntitlementSummaryOut:
        """Full breakdown for both leave types."""
        member = await MemberService.get_active_member(db, member_id)
        today = today or local_today()
        start, end = _year_bounds(year)

        booking_rows = await db.execute(
            select(
                Booking.leave_type,
                Booking.status,
                Booking.paid_in_lieu,
                func.count(),
            )
            .where(
                Booking.member_id == member_id,
                Booking.request_date >= start,
                Booking.request_date <= end,
            )
            .group_by(Booking.leave_type, Booking.status, Booking.paid_in_lieu)
        )
        advance_rows = await db.execute(
            select(AdvanceRequest.leave_type, func.count())
            .where(
                AdvanceRequest.member_id == member_id,
                AdvanceRequest.processed.is_(False),
                AdvanceRequest.request_date >= start,
                AdvanceRequest.request_date <= end,
            )
            .group_by(AdvanceRequest.leave_type)
        )

        buckets: dict[LeaveType, dict[str, int]] = {
            lt: {"approved": 0, "requested": 0, "waitlisted": 0, "paid_in_lieu": 0}
            for lt in LeaveType
        }
        for leave_type, status, paid_in_lieu, count in booking_rows.all():
            bucket = buckets[leave_type]
            if paid_in_lieu:
                if status in _PAID_IN_LIEU_STATUSES:
                    bucket["paid_in_lieu"] += count
            elif status in (BookingStatus.pending, BookingStatus.cancellation_pending):
                bucket["requested"] += count
            elif status == BookingStatus.waitlisted:
                bucket["waitlisted"] += count
            elif status == BookingStatus.approved:
                bucket["approved"] += count
        for leave_type, count in advance_rows.all():
            buckets[leave_type]["requested"] += count

        totals = EntitlementService._totals(member, year, today.year)
        balances: list[LeaveBalanceOut] = []
        for leave_type in LeaveType:
            total, rolled_over = totals[leave_type]
            bucket = buckets[leave_type]
            used = sum(bucket.values())
            balances.append(
                LeaveBalanceOut(
                    leave_type=leave_type,
                    year=year,
                    total=total,
                    rolled_over=rolled_over,
                    used=used,
                    available=max(0, total - used),
                    **bucket,
                )
            )
        return EntitlementSummaryOut(member_id=member_id, year=year, balances=balances)

    @staticmethod
    async def get_balance(
        db: AsyncSession,
        member_id: uuid.UUID,
        year: int,
        leave_type: LeaveType,
        *,
        today: Optional[date] = None,
    ) -> LeaveBalanceOut:
        summary = await EntitlementService.get_summary(db, member_id, year, today=today)
        return next(b for b in summary.balances if b.leave_type == leave_type)

    @staticmethod
    async def get_available(
        db: AsyncSession,
        member_id: uuid.UUID,
        year: int,
        leave_type: LeaveType,
        *,
        today: Optional[date] = None,
    ) -> int:
        balance = await EntitlementService.get_balance(
            db, member_id, year, leave_type, today=today,
        )
        return balance.available
