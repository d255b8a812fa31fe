"""Request-window tests — blackout, six-month advance date, month-end tails,
timezone normalization.

Pure functions; no database.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest

from leavepool.common.constants import WindowReason
from leavepool.scheduling.window import (
    add_months,
    advance_date_for,
    advance_dates_for,
    evaluate_window,
    is_advance_request_date,
    is_last_day_of_month,
    last_day_of_month,
    today_in_timezone,
)


def _days(start: date, end: date):
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


# ═════════════════════════════════════════════════════════════════════
# Calendar arithmetic
# ═════════════════════════════════════════════════════════════════════


class TestAddMonths:

    def test_plain_shift(self):
        assert add_months(date(2024, 4, 15), 6) == date(2024, 10, 15)

    def test_crosses_year(self):
        assert add_months(date(2024, 9, 10), 6) == date(2025, 3, 10)

    def test_clamps_to_short_month(self):
        assert add_months(date(2024, 8, 31), 6) == date(2025, 2, 28)

    def test_clamps_to_leap_february(self):
        assert add_months(date(2023, 8, 31), 6) == date(2024, 2, 29)

    def test_last_day_helpers(self):
        assert last_day_of_month(date(2024, 2, 10)) == 29
        assert is_last_day_of_month(date(2025, 2, 28))
        assert not is_last_day_of_month(date(2024, 2, 28))


class TestTodayInTimezone:

    def test_utc_evening_is_previous_day_in_new_york(self):
        now = datetime(2025, 3, 10, 3, 0, tzinfo=timezone.utc)
        assert today_in_timezone(now, "America/New_York") == date(2025, 3, 9)

    def test_naive_datetime_treated_as_utc(self):
        now = datetime(2025, 3, 10, 3, 0)
        assert today_in_timezone(now, "America/New_York") == date(2025, 3, 9)

    def test_utc_zone(self):
        now = datetime(2025, 3, 10, 3, 0, tzinfo=timezone.utc)
        assert today_in_timezone(now, "UTC") == date(2025, 3, 10)


# ═════════════════════════════════════════════════════════════════════
# Blackout
# ═════════════════════════════════════════════════════════════════════


class TestBlackout:

    @pytest.mark.parametrize(
        "today",
        [date(2024, 1, 1), date(2024, 2, 28), date(2024, 12, 30), date(2025, 7, 31)],
    )
    def test_inside_blackout_is_ineligible(self, today):
        for offset in (-3, 0, 1):
            result = evaluate_window(today, today + timedelta(days=offset))
            assert result.eligible is False
            assert result.is_advance_request is False
            assert result.reason == WindowReason.too_soon

    def test_blackout_boundary_is_eligible(self):
        today = date(2024, 5, 10)
        result = evaluate_window(today, date(2024, 5, 12))
        assert result.eligible is True
        assert result.reason == WindowReason.normal
        assert result.blackout_boundary == date(2024, 5, 12)

    def test_blackout_holds_for_every_day_of_a_year(self):
        for today in _days(date(2024, 1, 1), date(2024, 12, 31)):
            assert not evaluate_window(today, today + timedelta(days=1)).eligible


# ═════════════════════════════════════════════════════════════════════
# Advance date
# ═════════════════════════════════════════════════════════════════════


class TestAdvanceDate:

    def test_advance_date_always_advance_eligible(self):
        for today in _days(date(2023, 1, 1), date(2025, 12, 31)):
            target = advance_date_for(today)
            result = evaluate_window(today, target)
            assert result.eligible, today
            assert result.is_advance_request, today
            assert result.reason == WindowReason.advance

    def test_day_after_advance_date_is_too_far(self):
        today = date(2024, 4, 29)
        assert advance_date_for(today) == date(2024, 10, 29)
        result = evaluate_window(today, date(2024, 10, 30))
        assert result.eligible is False
        assert result.reason == WindowReason.too_far

    def test_day_before_advance_date_is_normal(self):
        today = date(2024, 4, 29)
        result = evaluate_window(today, date(2024, 10, 28))
        assert result.eligible is True
        assert result.is_advance_request is False
        assert result.reason == WindowReason.normal

    def test_mid_month_has_single_advance_date(self):
        assert advance_dates_for(date(2024, 4, 15)) == [date(2024, 10, 15)]


class TestMonthEndExtension:

    def test_scenario_august_31_to_short_february(self):
        today = date(2024, 8, 31)
        assert advance_date_for(today) == date(2025, 2, 28)
        assert evaluate_window(today, date(2025, 2, 28)).is_advance_request
        assert advance_dates_for(today) == [date(2025, 2, 28)]
        assert evaluate_window(today, date(2025, 3, 1)).reason == WindowReason.too_far

    def test_scenario_april_30_extends_to_october_31(self):
        today = date(2024, 4, 30)
        assert advance_date_for(today) == date(2024, 10, 30)
        for candidate in (date(2024, 10, 30), date(2024, 10, 31)):
            result = evaluate_window(today, candidate)
            assert result.eligible
            assert result.is_advance_request
        assert advance_dates_for(today) == [date(2024, 10, 30), date(2024, 10, 31)]
        assert evaluate_window(today, date(2024, 11, 1)).reason == WindowReason.too_far

    def test_february_28_covers_august_tail(self):
        today = date(2025, 2, 28)
        assert advance_dates_for(today) == [
            date(2025, 8, 28),
            date(2025, 8, 29),
            date(2025, 8, 30),
            date(2025, 8, 31),
        ]
        assert evaluate_window(today, date(2025, 8, 27)).reason == WindowReason.normal

    def test_leap_february_29_covers_august_tail(self):
        today = date(2024, 2, 29)
        assert advance_dates_for(today) == [
            date(2024, 8, 29),
            date(2024, 8, 30),
            date(2024, 8, 31),
        ]

    def test_non_month_end_gets_no_tail(self):
        today = date(2024, 4, 29)
        assert not is_advance_request_date(today, date(2024, 10, 30))
        assert not is_advance_request_date(today, date(2024, 10, 31))

    def test_every_month_end_covers_target_tail(self):
        for today in _days(date(2023, 1, 1), date(2026, 12, 31)):
            if not is_last_day_of_month(today):
                continue
            target = advance_date_for(today)
            for day in range(target.day, last_day_of_month(target) + 1):
                candidate = target.replace(day=day)
                assert evaluate_window(today, candidate).is_advance_request, (today, candidate)

    def test_custom_limits(self):
        today = date(2024, 1, 10)
        result = evaluate_window(
            today, date(2024, 4, 10), blackout_days=3, advance_months=3,
        )
        assert result.is_advance_request
        assert evaluate_window(
            today, date(2024, 1, 12), blackout_days=3, advance_months=3,
        ).reason == WindowReason.too_soon
