"""Allotment service — the capacity ledger.

Capacity for a date is the date override when one exists, otherwise the
calendar's default for that year, otherwise zero.  Nothing here ever falls
back to a nonzero value: a date with no allotment rows cannot be booked.
"""

from __future__ import annotations

import logging
import uuid
from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from leavepool.allotments.models import Allotment
from leavepool.allotments.schemas import (
    AllotmentOut,
    AllotmentRemovedOut,
    CalendarAllotmentsOut,
)
from leavepool.common.audit import create_audit_entry
from leavepool.common.exceptions import NotFoundException, ValidationException
from leavepool.members.models import Calendar

logger = logging.getLogger(__name__)


def resolve_allotment(
    target: date,
    overrides: dict[date, int],
    year_defaults: dict[int, int],
) -> int:
    """Apply override-over-year-default precedence to preloaded rows."""
    if target in overrides:
        return overrides[target]
    return year_defaults.get(target.year, 0)


class AllotmentService:
    """Async reads and writes of date overrides and year defaults."""

    # ─────────────────────────────────────────────────────────────────
    # Helpers
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def _ensure_calendar(db: AsyncSession, calendar_id: uuid.UUID) -> None:
        result = await db.execute(
            select(Calendar.id).where(Calendar.id == calendar_id)
        )
        if result.scalar() is None:
            raise NotFoundException("Calendar", str(calendar_id))

    @staticmethod
    def _validate_value(max_allotment: int) -> None:
        if max_allotment < 0:
            raise ValidationException(
                {"max_allotment": ["Allotment cannot be negative."]}
            )

    @staticmethod
    async def _get_override(
        db: AsyncSession,
        calendar_id: uuid.UUID,
        target: date,
    ) -> Optional[Allotment]:
        result = await db.execute(
            select(Allotment).where(
                Allotment.calendar_id == calendar_id,
                Allotment.allotment_date == target,
            )
        )
        return result.scalars().first()

    @staticmethod
    async def _get_year_default(
        db: AsyncSession,
        calendar_id: uuid.UUID,
        year: int,
    ) -> Optional[Allotment]:
        result = await db.execute(
            select(Allotment).where(
                Allotment.calendar_id == calendar_id,
                Allotment.year == year,
            )
        )
        return result.scalars().first()

    # ─────────────────────────────────────────────────────────────────
    # Reads
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def max_allotment(
        db: AsyncSession,
        calendar_id: uuid.UUID,
        target: date,
    ) -> int:
        """Effective capacity for one date (0 when nothing is configured)."""
        override = await AllotmentService._get_override(db, calendar_id, target)
        if override is not None:
            return override.max_allotment
        default = await AllotmentService._get_year_default(
            db, calendar_id, target.year,
        )
        return default.max_allotment if default is not None else 0

    @staticmethod
    async def load_range(
        db: AsyncSession,
        calendar_id: uuid.UUID,
        start: date,
        end: date,
    ) -> tuple[dict[date, int], dict[int, int]]:
        """Fetch the overrides and year defaults covering ``start..end``."""
        result = await db.execute(
            select(Allotment).where(
                Allotment.calendar_id == calendar_id,
                (
                    and_(
                        Allotment.allotment_date >= start,
                        Allotment.allotment_date <= end,
                    )
                    | Allotment.year.between(start.year, end.year)
                ),
            )
        )
        overrides: dict[date, int] = {}
        year_defaults: dict[int, int] = {}
        for row in result.scalars().all():
            if row.allotment_date is not None:
                overrides[row.allotment_date] = row.max_allotment
            elif row.year is not None:
                year_defaults[row.year] = row.max_allotment
        return overrides, year_defaults

    @staticmethod
    async def get_allotments(
        db: AsyncSession,
        calendar_id: uuid.UUID,
        year: int,
    ) -> CalendarAllotmentsOut:
        """Year default plus all overrides for the year, date-ordered."""
        await AllotmentService._ensure_calendar(db, calendar_id)

        default = await AllotmentService._get_year_default(db, calendar_id, year)
        result = await db.execute(
            select(Allotment)
            .where(
                Allotment.calendar_id == calendar_id,
                Allotment.allotment_date >= date(year, 1, 1),
                Allotment.allotment_date <= date(year, 12, 31),
            )
            .order_by(Allotment.allotment_date)
        )
        return CalendarAllotmentsOut(
            calendar_id=calendar_id,
            year=year,
            year_default=default.max_allotment if default else None,
            overrides=[AllotmentOut.model_validate(a) for a in result.scalars().all()],
        )

    # ─────────────────────────────────────────────────────────────────
    # Writes
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def apply_override(
        db: AsyncSession,
        calendar_id: uuid.UUID,
        target: date,
        max_allotment: int,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> AllotmentOut:
        """Create or replace the override for a single date."""
        AllotmentService._validate_value(max_allotment)
        await AllotmentService._ensure_calendar(db, calendar_id)

        now = datetime.now(timezone.utc)
        row = await AllotmentService._get_override(db, calendar_id, target)
        old_value = row.max_allotment if row else None
        if row is None:
            row = Allotment(
                calendar_id=calendar_id,
                allotment_date=target,
                max_allotment=max_allotment,
                updated_by=actor_id,
            )
            db.add(row)
        else:
            row.max_allotment = max_allotment
            row.updated_by = actor_id
            row.updated_at = now
        await db.flush()

        await create_audit_entry(
            db,
            action="set_override",
            entity_type="allotment",
            entity_id=row.id,
            actor_id=actor_id,
            calendar_id=calendar_id,
            old_values={"max_allotment": old_value} if old_value is not None else None,
            new_values={"date": target.isoformat(), "max_allotment": max_allotment},
        )
        logger.info(
            "Allotment override %s on calendar %s: %s -> %s",
            target, calendar_id, old_value, max_allotment,
        )
        return AllotmentOut.model_validate(row)

    @staticmethod
    async def remove_override(
        db: AsyncSession,
        calendar_id: uuid.UUID,
        target: date,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> AllotmentRemovedOut:
        """Delete a date override; the date reverts to the year default or 0."""
        row = await AllotmentService._get_override(db, calendar_id, target)
        if row is None:
            raise NotFoundException("Allotment", f"{calendar_id}/{target.isoformat()}")

        removed_value = row.max_allotment
        row_id = row.id
        await db.delete(row)
        await db.flush()

        effective = await AllotmentService.max_allotment(db, calendar_id, target)

        await create_audit_entry(
            db,
            action="remove_override",
            entity_type="allotment",
            entity_id=row_id,
            actor_id=actor_id,
            calendar_id=calendar_id,
            old_values={"date": target.isoformat(), "max_allotment": removed_value},
            new_values={"effective_max_allotment": effective},
        )
        logger.info(
            "Allotment override %s removed on calendar %s; reverts to %s",
            target, calendar_id, effective,
        )
        return AllotmentRemovedOut(
            calendar_id=calendar_id,
            allotment_date=target,
            removed_value=removed_value,
            effective_max_allotment=effective,
        )

    @staticmethod
    async def set_year_default(
        db: AsyncSession,
        calendar_id: uuid.UUID,
        year: int,
        max_allotment: int,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> AllotmentOut:
        """Create or replace the default capacity for every date in *year*."""
        AllotmentService._validate_value(max_allotment)
        await AllotmentService._ensure_calendar(db, calendar_id)

        now = datetime.now(timezone.utc)
        row = await AllotmentService._get_year_default(db, calendar_id, year)
        old_value = row.max_allotment if row else None
        if row is None:
            row = Allotment(
                calendar_id=calendar_id,
                year=year,
                max_allotment=max_allotment,
                updated_by=actor_id,
            )
            db.add(row)
        else:
            row.max_allotment = max_allotment
            row.updated_by = actor_id
            row.updated_at = now
        await db.flush()

        await create_audit_entry(
            db,
            action="set_year_default",
            entity_type="allotment",
            entity_id=row.id,
            actor_id=actor_id,
            calendar_id=calendar_id,
            old_values={"max_allotment": old_value} if old_value is not None else None,
            new_values={"year": year, "max_allotment": max_allotment},
        )
        logger.info(
            "Year default %s on calendar %s: %s -> %s",
            year, calendar_id, old_value, max_allotment,
        )
        return AllotmentOut.model_validate(row)
