"""Entitlement router — the member's PLD/SDV balances."""


from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from leavepool.auth.dependencies import get_current_member
from leavepool.database import get_db
from leavepool.entitlements.schemas import EntitlementSummaryOut
from leavepool.entitlements.service import EntitlementService
from leavepool.members.models import Member
from leavepool.scheduling.policy import local_today

router = APIRouter(prefix="", tags=["entitlements"])


@router.get("/me", response_model=EntitlementSummaryOut)
async def my_entitlements(
    year: Optional[int] = Query(None, ge=2000, le=2100),
    member: Member = Depends(get_current_member),
    db: AsyncSession = Depends(get_db),
):
    """Balance breakdown per leave type (current year by default)."""
    today = local_today()
    return await EntitlementService.get_summary(
        db, member.id, year or today.year, today=today,
    )
