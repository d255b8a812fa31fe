"""Allotment Pydantic v2 schemas."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class AllotmentUpdate(BaseModel):
    """Payload for setting an override or a year default."""

    max_allotment: int = Field(..., ge=0, description="Maximum concurrent bookings")


class AllotmentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    calendar_id: uuid.UUID
    allotment_date: Optional[date] = None
    year: Optional[int] = None
    max_allotment: int
    updated_by: Optional[uuid.UUID] = None
    updated_at: Optional[datetime] = None


class AllotmentRemovedOut(BaseModel):
    """Result of deleting a date override: the value the date reverts to."""

    calendar_id: uuid.UUID
    allotment_date: date
    removed_value: int
    effective_max_allotment: int


class CalendarAllotmentsOut(BaseModel):
    """Year default plus every date override in that year."""

    calendar_id: uuid.UUID
    year: int
    year_default: Optional[int] = None
    overrides: list[AllotmentOut] = []
