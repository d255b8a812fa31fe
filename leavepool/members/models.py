"""Member and Calendar ORM models.

Both tables are owned by the membership system; the scheduling services only
read them (entitlement fields and calendar assignment) and never write.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from leavepool.database import Base


class Calendar(Base):
    __tablename__ = "calendars"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    name: Mapped[str] = mapped_column(sa.String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(sa.Text)
    is_active: Mapped[bool] = mapped_column(sa.Boolean, default=True, server_default=sa.true())
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        server_default=sa.func.now(),
    )

    # Relationships
    members: Mapped[list[Member]] = relationship(back_populates="calendar")


class Member(Base):
    __tablename__ = "members"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    pin_number: Mapped[int] = mapped_column(sa.BigInteger, unique=True, nullable=False)
    first_name: Mapped[Optional[str]] = mapped_column(sa.String(100))
    last_name: Mapped[Optional[str]] = mapped_column(sa.String(100))
    calendar_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("calendars.id")
    )
    company_hire_date: Mapped[Optional[date]] = mapped_column(sa.Date)
    # Lower rank is more senior; unranked members sort last
    seniority_rank: Mapped[Optional[int]] = mapped_column(sa.Integer)
    # Yearly entitlements, maintained by the membership system
    max_plds: Mapped[int] = mapped_column(sa.Integer, default=0, server_default=sa.text("0"))
    pld_rolled_over: Mapped[int] = mapped_column(sa.Integer, default=0, server_default=sa.text("0"))
    sdv_entitlement: Mapped[int] = mapped_column(sa.Integer, default=0, server_default=sa.text("0"))
    is_active: Mapped[bool] = mapped_column(sa.Boolean, default=True, server_default=sa.true())
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        server_default=sa.func.now(),
    )

    # Relationships
    calendar: Mapped[Optional[Calendar]] = relationship(back_populates="members")

    @property
    def display_name(self) -> str:
        parts = [p for p in (self.first_name, self.last_name) if p]
        return " ".join(parts) if parts else f"#{self.pin_number}"
