"""Allotment ORM model: per-date overrides and per-year defaults."""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from leavepool.database import Base


class Allotment(Base):
    """Maximum concurrent bookings for a calendar.

    Exactly one of ``allotment_date`` / ``year`` is set: a year row is the
    default for every date of that year, a date row overrides it.
    """

    __tablename__ = "allotments"
    __table_args__ = (
        sa.CheckConstraint(
            "(date IS NULL AND year IS NOT NULL) OR (date IS NOT NULL AND year IS NULL)",
            name="ck_allotment_scope",
        ),
        sa.CheckConstraint("max_allotment >= 0", name="ck_allotment_non_negative"),
        sa.UniqueConstraint("calendar_id", "date", name="uq_allotment_calendar_date"),
        sa.UniqueConstraint("calendar_id", "year", name="uq_allotment_calendar_year"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    calendar_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("calendars.id"), nullable=False
    )
    allotment_date: Mapped[Optional[date]] = mapped_column("date", sa.Date)
    year: Mapped[Optional[int]] = mapped_column(sa.Integer)
    max_allotment: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    updated_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("members.id")
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        server_default=sa.func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        server_default=sa.func.now(),
    )

    @property
    def is_year_default(self) -> bool:
        return self.allotment_date is None
