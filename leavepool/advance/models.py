"""AdvanceRequest ORM model: a queued request for the six-month date."""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from leavepool.common.constants import LeaveType
from leavepool.database import Base
from leavepool.members.models import Member


class AdvanceRequest(Base):
    """Held outside the booking pool until the seniority run converts or
    discards it; counts against entitlement while unprocessed."""

    __tablename__ = "advance_requests"
    __table_args__ = (
        sa.Index("ix_advance_requests_date", "calendar_id", "request_date"),
        sa.Index(
            "uq_advance_requests_unprocessed",
            "member_id",
            "request_date",
            "leave_type",
            unique=True,
            postgresql_where=sa.text("processed = false"),
            sqlite_where=sa.text("processed = false"),
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    member_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("members.id"), nullable=False
    )
    calendar_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("calendars.id"), nullable=False
    )
    request_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    leave_type: Mapped[LeaveType] = mapped_column(
        sa.Enum(LeaveType, name="leave_type", create_type=False), nullable=False
    )
    processed: Mapped[bool] = mapped_column(
        sa.Boolean, nullable=False, default=False, server_default=sa.false()
    )
    requested_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        server_default=sa.func.now(),
    )
    processed_at: Mapped[Optional[datetime]] = mapped_column(
        sa.DateTime(timezone=True)
    )

    # Relationships
    member: Mapped[Member] = relationship(foreign_keys=[member_id])
