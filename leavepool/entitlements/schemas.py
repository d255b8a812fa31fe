"""Entitlement Pydantic v2 schemas."""

from __future__ import annotations

import uuid

from pydantic import BaseModel

from leavepool.common.constants import LeaveType


class LeaveBalanceOut(BaseModel):
    """One leave type's balance for one year.

    ``used`` is everything currently drawing on the entitlement:
    approved + requested + waitlisted + paid in lieu.
    """

    leave_type: LeaveType
    year: int
    total: int
    rolled_over: int = 0
    approved: int = 0
    requested: int = 0
    waitlisted: int = 0
    paid_in_lieu: int = 0
    used: int = 0
    available: int = 0


class EntitlementSummaryOut(BaseModel):
    member_id: uuid.UUID
    year: int
    balances: list[LeaveBalanceOut]
