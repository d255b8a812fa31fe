"""Booking ORM model: one member's request for one leave day."""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from leavepool.common.constants import CONSUMING_STATUSES, BookingStatus, LeaveType
from leavepool.database import Base
from leavepool.members.models import Member

_CONSUMING_PREDICATE = sa.text(
    "status IN ('pending', 'approved', 'waitlisted', 'cancellation_pending') "
    "AND paid_in_lieu = false"
)


class Booking(Base):
    __tablename__ = "bookings"
    __table_args__ = (
        sa.Index("ix_bookings_calendar_date", "calendar_id", "request_date"),
        sa.Index("ix_bookings_member_date", "member_id", "request_date"),
        # Positions are never reused within a (calendar, date) queue.
        sa.Index(
            "uq_bookings_waitlist_position",
            "calendar_id",
            "request_date",
            "waitlist_position",
            unique=True,
        ),
        # At most one consuming booking per member per day.
        sa.Index(
            "uq_bookings_member_date_consuming",
            "member_id",
            "request_date",
            unique=True,
            postgresql_where=_CONSUMING_PREDICATE,
            sqlite_where=_CONSUMING_PREDICATE,
        ),
        sa.CheckConstraint(
            "waitlist_position IS NULL OR waitlist_position > 0",
            name="ck_bookings_waitlist_position_positive",
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
    status: Mapped[BookingStatus] = mapped_column(
        sa.Enum(BookingStatus, name="booking_status", create_type=False),
        nullable=False,
        default=BookingStatus.pending,
        server_default="pending",
    )
    waitlist_position: Mapped[Optional[int]] = mapped_column(sa.Integer)
    paid_in_lieu: Mapped[bool] = mapped_column(
        sa.Boolean, nullable=False, default=False, server_default=sa.false()
    )
    requested_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        server_default=sa.func.now(),
    )
    responded_at: Mapped[Optional[datetime]] = mapped_column(
        sa.DateTime(timezone=True)
    )
    responded_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("members.id")
    )
    denial_comment: Mapped[Optional[str]] = mapped_column(sa.Text)
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(
        sa.DateTime(timezone=True)
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        server_default=sa.func.now(),
    )

    # Relationships
    member: Mapped[Member] = relationship(foreign_keys=[member_id])

    @property
    def consumes_entitlement(self) -> bool:
        return self.status in CONSUMING_STATUSES and not self.paid_in_lieu

    def __repr__(self) -> str:
        return (
            f"<Booking {self.leave_type.value} {self.request_date} "
            f"{self.status.value} member={self.member_id}>"
        )
