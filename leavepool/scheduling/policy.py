"""Bind the pure window rules to the configured timezone and limits."""

from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from leavepool.config import settings
from leavepool.scheduling.window import (
    WindowEvaluation,
    advance_dates_for,
    evaluate_window,
    today_in_timezone,
)


def local_today(now: Optional[datetime] = None) -> date:
    """The organization's current calendar day for the instant *now*."""
    return today_in_timezone(now, settings.TIMEZONE)


def evaluate(today: date, candidate: date) -> WindowEvaluation:
    return evaluate_window(
        today,
        candidate,
        blackout_days=settings.BLACKOUT_DAYS,
        advance_months=settings.ADVANCE_MONTHS,
    )


def current_advance_dates(today: date) -> list[date]:
    return advance_dates_for(today, settings.ADVANCE_MONTHS)
