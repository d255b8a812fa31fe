"""Allotment routers — read capacity; admins set overrides and year defaults."""


import uuid
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from leavepool.allotments.schemas import (
    AllotmentOut,
    AllotmentRemovedOut,
    AllotmentUpdate,
    CalendarAllotmentsOut,
)
from leavepool.allotments.service import AllotmentService
from leavepool.auth.dependencies import (
    ensure_calendar_access,
    get_current_member,
    require_role,
)
from leavepool.common.constants import UserRole
from leavepool.database import get_db
from leavepool.members.models import Member
from leavepool.scheduling.policy import local_today

router = APIRouter(prefix="", tags=["allotments"])
admin_router = APIRouter(prefix="", tags=["admin"])

_admin = require_role(UserRole.calendar_admin, UserRole.system_admin)


@router.get("/{calendar_id}", response_model=CalendarAllotmentsOut)
async def get_allotments(
    request: Request,
    calendar_id: uuid.UUID,
    year: Optional[int] = Query(None, ge=2000, le=2100),
    member: Member = Depends(get_current_member),
    db: AsyncSession = Depends(get_db),
):
    """Year default and per-date overrides (current year by default)."""
    ensure_calendar_access(request, member, calendar_id)
    return await AllotmentService.get_allotments(
        db, calendar_id, year or local_today().year,
    )


@admin_router.put(
    "/allotments/{calendar_id}/dates/{target}",
    response_model=AllotmentOut,
)
async def set_date_override(
    request: Request,
    calendar_id: uuid.UUID,
    target: date,
    body: AllotmentUpdate,
    admin: Member = Depends(_admin),
    db: AsyncSession = Depends(get_db),
):
    ensure_calendar_access(request, admin, calendar_id)
    return await AllotmentService.apply_override(
        db, calendar_id, target, body.max_allotment, actor_id=admin.id,
    )


@admin_router.delete(
    "/allotments/{calendar_id}/dates/{target}",
    response_model=AllotmentRemovedOut,
)
async def remove_date_override(
    request: Request,
    calendar_id: uuid.UUID,
    target: date,
    admin: Member = Depends(_admin),
    db: AsyncSession = Depends(get_db),
):
    """Drop an override; the date falls back to the year default."""
    ensure_calendar_access(request, admin, calendar_id)
    return await AllotmentService.remove_override(
        db, calendar_id, target, actor_id=admin.id,
    )


@admin_router.put(
    "/allotments/{calendar_id}/years/{year}",
    response_model=AllotmentOut,
)
async def set_year_default(
    request: Request,
    calendar_id: uuid.UUID,
    year: int,
    body: AllotmentUpdate,
    admin: Member = Depends(_admin),
    db: AsyncSession = Depends(get_db),
):
    ensure_calendar_access(request, admin, calendar_id)
    return await AllotmentService.set_year_default(
        db, calendar_id, year, body.max_allotment, actor_id=admin.id,
    )
