"""Availability classifier: what a calendar day looks like to a member.

Combines the request window, the date's allotment and the number of
bookings already on it.  Computed on demand from the current rows; nothing
is cached between calls.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Iterable, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from leavepool.allotments.service import AllotmentService, resolve_allotment
from leavepool.bookings.models import Booking
from leavepool.bookings.schemas import DateAvailabilityOut
from leavepool.common.constants import (
    CONSUMING_STATUSES,
    DISPLAY_ACTIVE_STATUSES,
    MAX_RANGE_DAYS,
    Availability,
    BookingStatus,
)
from leavepool.common.exceptions import ValidationException
from leavepool.config import settings
from leavepool.scheduling.policy import evaluate, local_today
from leavepool.scheduling.window import WindowEvaluation

SELECTABLE: frozenset[Availability] = frozenset({
    Availability.available,
    Availability.limited,
    Availability.full,
})


def classify_availability(
    window: WindowEvaluation,
    max_allotment: int,
    active_count: int,
    limited_threshold: float = 0.7,
) -> Availability:
    """Pure classification of one date.

    Advance-window dates always show as available: their requests are queued
    for the seniority run rather than placed against capacity.
    """
    if not window.eligible:
        return Availability.unavailable
    if window.is_advance_request:
        return Availability.available
    if max_allotment <= 0:
        return Availability.unavailable
    if active_count >= max_allotment:
        return Availability.full
    if Decimal(active_count) >= Decimal(str(limited_threshold)) * max_allotment:
        return Availability.limited
    return Availability.available


def is_selectable(availability: Availability) -> bool:
    """Full dates stay selectable so members can join the waitlist."""
    return availability in SELECTABLE


async def count_bookings(
    db: AsyncSession,
    calendar_id: uuid.UUID,
    target: date,
    statuses: Iterable[BookingStatus],
) -> int:
    result = await db.execute(
        select(func.count()).select_from(Booking).where(
            Booking.calendar_id == calendar_id,
            Booking.request_date == target,
            Booking.status.in_(list(statuses)),
        )
    )
    return result.scalar_one()


async def has_consuming_booking(
    db: AsyncSession,
    member_id: uuid.UUID,
    request_date: date,
) -> bool:
    """Whether the member already holds a claim on the date.

    Paid-in-lieu bookings never count.
    """
    result = await db.execute(
        select(Booking.id)
        .where(
            Booking.member_id == member_id,
            Booking.request_date == request_date,
            Booking.status.in_(list(CONSUMING_STATUSES)),
            Booking.paid_in_lieu.is_(False),
        )
        .limit(1)
    )
    return result.first() is not None


class AvailabilityService:
    """Async availability lookups over current bookings and allotments."""

    @staticmethod
    async def classify(
        db: AsyncSession,
        calendar_id: uuid.UUID,
        target: date,
        *,
        now: Optional[datetime] = None,
        today: Optional[date] = None,
    ) -> DateAvailabilityOut:
        """Classify a single date, returning the inputs alongside the result."""
        today = today or local_today(now)
        window = evaluate(today, target)
        cap = await AllotmentService.max_allotment(db, calendar_id, target)
        active = await count_bookings(db, calendar_id, target, DISPLAY_ACTIVE_STATUSES)
        availability = classify_availability(
            window, cap, active, settings.LIMITED_THRESHOLD,
        )
        return DateAvailabilityOut(
            date=target,
            availability=availability,
            selectable=is_selectable(availability),
            eligible=window.eligible,
            is_advance_request=window.is_advance_request,
            reason=window.reason,
            max_allotment=cap,
            active_count=active,
        )

    @staticmethod
    async def is_selectable(
        db: AsyncSession,
        calendar_id: uuid.UUID,
        target: date,
        *,
        now: Optional[datetime] = None,
        today: Optional[date] = None,
    ) -> bool:
        out = await AvailabilityService.classify(
            db, calendar_id, target, now=now, today=today,
        )
        return out.selectable

    @staticmethod
    async def classify_range(
        db: AsyncSession,
        calendar_id: uuid.UUID,
        start: date,
        end: date,
        *,
        now: Optional[datetime] = None,
    ) -> list[DateAvailabilityOut]:
        """Classify every date in ``start..end`` with two queries."""
        if end < start:
            raise ValidationException({"end": ["End date must not be before start date."]})
        if (end - start).days + 1 > MAX_RANGE_DAYS:
            raise ValidationException(
                {"end": [f"Range may span at most {MAX_RANGE_DAYS} days."]}
            )

        today = local_today(now)
        overrides, year_defaults = await AllotmentService.load_range(
            db, calendar_id, start, end,
        )
        result = await db.execute(
            select(Booking.request_date, func.count())
            .where(
                Booking.calendar_id == calendar_id,
                Booking.request_date >= start,
                Booking.request_date <= end,
                Booking.status.in_(list(DISPLAY_ACTIVE_STATUSES)),
            )
            .group_by(Booking.request_date)
        )
        counts: dict[date, int] = {row[0]: row[1] for row in result.all()}

        output: list[DateAvailabilityOut] = []
        current = start
        while current <= end:
            window = evaluate(today, current)
            cap = resolve_allotment(current, overrides, year_defaults)
            active = counts.get(current, 0)
            availability = classify_availability(
                window, cap, active, settings.LIMITED_THRESHOLD,
            )
            output.append(
                DateAvailabilityOut(
                    date=current,
                    availability=availability,
                    selectable=is_selectable(availability),
                    eligible=window.eligible,
                    is_advance_request=window.is_advance_request,
                    reason=window.reason,
                    max_allotment=cap,
                    active_count=active,
                )
            )
            current += timedelta(days=1)
        return output
