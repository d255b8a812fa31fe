"""Six-month advance request routers — member intake and the admin queue."""


import uuid
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from leavepool.advance.schemas import (
    AdvanceCheckOut,
    AdvanceDatesOut,
    AdvanceQueueEntry,
    AdvanceRequestCreate,
    AdvanceRequestOut,
)
from leavepool.advance.service import AdvanceRequestService
from leavepool.auth.dependencies import (
    ensure_calendar_access,
    get_current_member,
    require_role,
)
from leavepool.common.constants import UserRole
from leavepool.database import get_db
from leavepool.members.models import Member

router = APIRouter(prefix="", tags=["advance-requests"])
admin_router = APIRouter(prefix="", tags=["admin"])


@router.post("", response_model=AdvanceRequestOut, status_code=201)
async def submit_advance_request(
    body: AdvanceRequestCreate,
    member: Member = Depends(get_current_member),
    db: AsyncSession = Depends(get_db),
):
    """Queue a request for the six-month date, for the seniority run."""
    return await AdvanceRequestService.submit_advance(
        db, member.id, body.request_date, body.leave_type,
    )


@router.get("/mine", response_model=list[AdvanceRequestOut])
async def my_advance_requests(
    include_processed: bool = Query(False),
    member: Member = Depends(get_current_member),
    db: AsyncSession = Depends(get_db),
):
    return await AdvanceRequestService.list_mine(
        db, member.id, include_processed=include_processed,
    )


@router.get("/check", response_model=AdvanceCheckOut)
async def check_advance_request(
    request_date: date = Query(..., alias="date"),
    member: Member = Depends(get_current_member),
    db: AsyncSession = Depends(get_db),
):
    has_request = await AdvanceRequestService.has_advance_request(
        db, member.id, request_date,
    )
    return AdvanceCheckOut(request_date=request_date, has_request=has_request)


@router.get("/dates", response_model=AdvanceDatesOut)
async def advance_dates(
    member: Member = Depends(get_current_member),
):
    """Dates currently open for six-month requests."""
    return AdvanceRequestService.advance_dates()


@router.delete("/{request_id}", status_code=204)
async def withdraw_advance_request(
    request_id: uuid.UUID,
    member: Member = Depends(get_current_member),
    db: AsyncSession = Depends(get_db),
):
    """Withdraw an unprocessed request."""
    await AdvanceRequestService.cancel_advance(db, request_id, member.id)
    return Response(status_code=204)


# ── Admin queue ─────────────────────────────────────────────────────

@admin_router.get(
    "/calendar/{calendar_id}/advance-requests",
    response_model=list[AdvanceQueueEntry],
)
async def advance_queue(
    request: Request,
    calendar_id: uuid.UUID,
    request_date: Optional[date] = Query(None, alias="date"),
    admin: Member = Depends(require_role(UserRole.calendar_admin, UserRole.system_admin)),
    db: AsyncSession = Depends(get_db),
):
    """Unprocessed requests in seniority order."""
    ensure_calendar_access(request, admin, calendar_id)
    return await AdvanceRequestService.list_unprocessed(
        db, calendar_id, request_date=request_date,
    )


@admin_router.put(
    "/advance-requests/{request_id}/processed",
    response_model=AdvanceRequestOut,
)
async def mark_advance_processed(
    request_id: uuid.UUID,
    admin: Member = Depends(require_role(UserRole.system_admin)),
    db: AsyncSession = Depends(get_db),
):
    return await AdvanceRequestService.mark_processed(
        db, request_id, actor_id=admin.id,
    )
