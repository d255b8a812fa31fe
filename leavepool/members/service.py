"""Read-only member lookups shared by the scheduling services."""

from __future__ import annotations

import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from leavepool.common.exceptions import NotFoundException, ValidationException
from leavepool.members.models import Member


class MemberService:

    @staticmethod
    async def get_active_member(db: AsyncSession, member_id: uuid.UUID) -> Member:
        result = await db.execute(
            select(Member).where(Member.id == member_id, Member.is_active.is_(True))
        )
        member = result.scalars().first()
        if member is None:
            raise NotFoundException("Member", str(member_id))
        return member

    @staticmethod
    def require_calendar(member: Member) -> uuid.UUID:
        """The member's assigned capacity pool; booking without one is refused."""
        if member.calendar_id is None:
            raise ValidationException(
                {"calendar_id": ["Member is not assigned to a calendar."]}
            )
        return member.calendar_id
