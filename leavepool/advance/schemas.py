"""Six-month advance request Pydantic v2 schemas."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from leavepool.common.constants import LeaveType


class AdvanceRequestCreate(BaseModel):
    request_date: date = Field(..., description="The current six-month date")
    leave_type: LeaveType


class AdvanceRequestOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    member_id: uuid.UUID
    calendar_id: uuid.UUID
    request_date: date
    leave_type: LeaveType
    processed: bool = False
    requested_at: datetime
    processed_at: Optional[datetime] = None


class AdvanceQueueEntry(AdvanceRequestOut):
    """Unprocessed request as seen by the seniority run."""

    pin_number: Optional[int] = None
    member_name: Optional[str] = None


class AdvanceCheckOut(BaseModel):
    request_date: date
    has_request: bool


class AdvanceDatesOut(BaseModel):
    """Dates currently open for six-month requests."""

    today: date
    advance_date: date
    dates: list[date]
