"""Request-window rules: which calendar dates a member may ask for today.

A date is requestable when it lies after the 48-hour blackout and no later
than the six-month horizon.  The horizon date itself is the *advance date*:
requests for it go to the six-month queue rather than straight onto the
calendar.

Six months from the last day of a short month lands on a day that is not the
last day of a longer target month (Feb 28 → Aug 28, Apr 30 → Oct 30).  No
origin date maps onto the trailing days of that target month, so on
month-end days the whole tail of the target month, from the advance date to
its last day, is treated as advance-eligible.

Everything here is pure: callers capture ``today`` once per operation and
pass it in, so the blackout and horizon checks always agree.
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from leavepool.common.constants import WindowReason

BLACKOUT_DAYS = 2
ADVANCE_MONTHS = 6


@dataclass(frozen=True)
class WindowEvaluation:
    """Outcome of checking one candidate date against one ``today``."""

    candidate: date
    eligible: bool
    is_advance_request: bool
    reason: WindowReason
    blackout_boundary: date
    advance_date: date


# ── Calendar arithmetic ─────────────────────────────────────────────

def last_day_of_month(d: date) -> int:
    return calendar.monthrange(d.year, d.month)[1]


def is_last_day_of_month(d: date) -> bool:
    return d.day == last_day_of_month(d)


def add_months(d: date, months: int) -> date:
    """Shift *d* by whole calendar months, clamping to the target month's end.

    Aug 31 + 6 months is Feb 28 (or 29), never a date in March.
    """
    month_index = d.month - 1 + months
    year = d.year + month_index // 12
    month = month_index % 12 + 1
    day = min(d.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def today_in_timezone(now: Optional[datetime] = None, tz: str = "UTC") -> date:
    """Normalize an instant to the local calendar day in *tz*.

    Naive datetimes are taken to be UTC.
    """
    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(ZoneInfo(tz)).date()


# ── Reference points ────────────────────────────────────────────────

def blackout_boundary_for(today: date, blackout_days: int = BLACKOUT_DAYS) -> date:
    """First date that is *not* too soon to request."""
    return today + timedelta(days=blackout_days)


def advance_date_for(today: date, advance_months: int = ADVANCE_MONTHS) -> date:
    return add_months(today, advance_months)


def advance_dates_for(today: date, advance_months: int = ADVANCE_MONTHS) -> list[date]:
    """Every date that currently counts as "the advance date".

    Normally a single date; on the last day of a month, the advance date
    through the end of its month.
    """
    target = advance_date_for(today, advance_months)
    if not is_last_day_of_month(today):
        return [target]
    last = last_day_of_month(target)
    return [target.replace(day=day) for day in range(target.day, last + 1)]


def is_advance_request_date(
    today: date,
    candidate: date,
    advance_months: int = ADVANCE_MONTHS,
) -> bool:
    target = advance_date_for(today, advance_months)
    if candidate == target:
        return True
    if not is_last_day_of_month(today):
        return False
    return (
        candidate.year == target.year
        and candidate.month == target.month
        and target.day <= candidate.day <= last_day_of_month(candidate)
    )


# ── Evaluator ───────────────────────────────────────────────────────

def evaluate_window(
    today: date,
    candidate: date,
    *,
    blackout_days: int = BLACKOUT_DAYS,
    advance_months: int = ADVANCE_MONTHS,
) -> WindowEvaluation:
    """Classify *candidate* relative to *today*.

    Rules, in order: too soon (inside the blackout), advance-window date,
    too far (past the advance date), otherwise the normal window.
    """
    boundary = blackout_boundary_for(today, blackout_days)
    target = advance_date_for(today, advance_months)

    def _result(eligible: bool, is_advance: bool, reason: WindowReason) -> WindowEvaluation:
        return WindowEvaluation(
            candidate=candidate,
            eligible=eligible,
            is_advance_request=is_advance,
            reason=reason,
            blackout_boundary=boundary,
            advance_date=target,
        )

    if candidate < boundary:
        return _result(False, False, WindowReason.too_soon)

    if is_advance_request_date(today, candidate, advance_months):
        return _result(True, True, WindowReason.advance)

    if candidate > target:
        return _result(False, False, WindowReason.too_far)

    return _result(True, False, WindowReason.normal)
