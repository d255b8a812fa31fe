"""Six-month request tests — intake, duplicate guard, withdrawal, seniority
queue, processing, and API endpoints.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime, timedelta, timezone

import pytest

from leavepool.advance.service import AdvanceRequestService
from leavepool.bookings.service import BookingService
from leavepool.common.constants import LeaveType, UserRole
from leavepool.common.exceptions import (
    DuplicateAdvanceRequest,
    DuplicateBooking,
    ForbiddenException,
    IneligibleDate,
    InsufficientEntitlement,
    ValidationException,
)
from leavepool.scheduling.policy import current_advance_dates, local_today
from tests.conftest import NOW, auth_header, seed_member

ADVANCE = date(2025, 9, 10)


async def _request(db, member, target=ADVANCE, leave_type=LeaveType.PLD, now=NOW):
    return await AdvanceRequestService.submit_advance(
        db, member.id, target, leave_type, now=now,
    )


class TestSubmitAdvance:

    async def test_queued_on_advance_date(self, db, test_calendar, test_member):
        out = await _request(db, test_member)
        assert out.request_date == ADVANCE
        assert out.processed is False
        assert out.calendar_id == test_calendar.id
        assert await AdvanceRequestService.has_advance_request(db, test_member.id, ADVANCE)

    async def test_ordinary_date_rejected(self, db, test_calendar, test_member):
        with pytest.raises(IneligibleDate) as exc:
            await _request(db, test_member, target=date(2025, 4, 15))
        assert exc.value.reason == "not_advance_date"

    async def test_outside_window_keeps_window_reason(self, db, test_calendar, test_member):
        with pytest.raises(IneligibleDate) as exc:
            await _request(db, test_member, target=ADVANCE + timedelta(days=1))
        assert exc.value.reason == "too_far"

    async def test_duplicate_rejected(self, db, test_calendar, test_member):
        await _request(db, test_member)
        with pytest.raises(DuplicateAdvanceRequest):
            await _request(db, test_member)

    async def test_existing_booking_blocks_request(self, db, test_calendar, test_member):
        await BookingService.submit(db, test_member.id, ADVANCE, LeaveType.PLD, now=NOW)
        with pytest.raises(DuplicateBooking):
            await _request(db, test_member, leave_type=LeaveType.SDV)
        assert not await AdvanceRequestService.has_advance_request(db, test_member.id, ADVANCE)

    async def test_other_leave_type_allowed(self, db, test_calendar, test_member):
        await _request(db, test_member)
        sdv = await _request(db, test_member, leave_type=LeaveType.SDV)
        assert sdv.leave_type == LeaveType.SDV

    async def test_no_balance_rejected(self, db, test_calendar):
        member = await seed_member(db, test_calendar.id, sdv_entitlement=0)
        with pytest.raises(InsufficientEntitlement):
            await _request(db, member, leave_type=LeaveType.SDV)

    async def test_month_end_tail_accepted(self, db, test_calendar, test_member):
        now = datetime(2025, 4, 30, 15, 0, tzinfo=timezone.utc)
        out = await _request(db, test_member, target=date(2025, 10, 31), now=now)
        assert out.request_date == date(2025, 10, 31)


class TestAdvanceDates:

    def test_single_date_mid_month(self):
        out = AdvanceRequestService.advance_dates(now=NOW)
        assert out.today == date(2025, 3, 10)
        assert out.advance_date == ADVANCE
        assert out.dates == [ADVANCE]

    def test_month_end_covers_tail(self):
        out = AdvanceRequestService.advance_dates(
            now=datetime(2024, 4, 30, 15, 0, tzinfo=timezone.utc),
        )
        assert out.dates == [date(2024, 10, 30), date(2024, 10, 31)]


class TestWithdrawAndProcess:

    async def test_withdraw_deletes(self, db, test_calendar, test_member):
        out = await _request(db, test_member)
        await AdvanceRequestService.cancel_advance(db, out.id, test_member.id)
        assert not await AdvanceRequestService.has_advance_request(
            db, test_member.id, ADVANCE,
        )

    async def test_withdraw_someone_elses_forbidden(self, db, test_calendar, test_member):
        out = await _request(db, test_member)
        other = await seed_member(db, test_calendar.id)
        with pytest.raises(ForbiddenException):
            await AdvanceRequestService.cancel_advance(db, out.id, other.id)

    async def test_processed_cannot_be_withdrawn(self, db, test_calendar, test_member):
        out = await _request(db, test_member)
        await AdvanceRequestService.mark_processed(db, out.id)
        with pytest.raises(ValidationException):
            await AdvanceRequestService.cancel_advance(db, out.id, test_member.id)

    async def test_mark_processed_once(self, db, test_calendar, test_member):
        out = await _request(db, test_member)
        processed = await AdvanceRequestService.mark_processed(db, out.id)
        assert processed.processed is True
        assert processed.processed_at is not None
        with pytest.raises(ValidationException):
            await AdvanceRequestService.mark_processed(db, out.id)

    async def test_processed_frees_the_duplicate_guard(self, db, test_calendar, test_member):
        out = await _request(db, test_member)
        await AdvanceRequestService.mark_processed(db, out.id)
        again = await _request(db, test_member)
        assert again.id != out.id

    async def test_list_mine_hides_processed(self, db, test_calendar, test_member):
        first = await _request(db, test_member)
        await _request(db, test_member, leave_type=LeaveType.SDV)
        await AdvanceRequestService.mark_processed(db, first.id)

        pending = await AdvanceRequestService.list_mine(db, test_member.id)
        assert [r.leave_type for r in pending] == [LeaveType.SDV]
        everything = await AdvanceRequestService.list_mine(
            db, test_member.id, include_processed=True,
        )
        assert len(everything) == 2


class TestSeniorityQueue:

    async def test_ordered_by_rank_unranked_last(self, db, test_calendar):
        unranked = await seed_member(db, test_calendar.id, last_name="Unranked")
        junior = await seed_member(db, test_calendar.id, seniority_rank=50)
        senior = await seed_member(db, test_calendar.id, seniority_rank=3)
        for member in (unranked, junior, senior):
            await _request(db, member)

        queue = await AdvanceRequestService.list_unprocessed(db, test_calendar.id)
        assert [e.member_id for e in queue] == [senior.id, junior.id, unranked.id]
        assert queue[0].pin_number == senior.pin_number
        assert queue[2].member_name == "Test Unranked"

    async def test_ties_broken_by_submission_time(self, db, test_calendar):
        late = await seed_member(db, test_calendar.id)
        early = await seed_member(db, test_calendar.id)
        await _request(db, late, now=NOW + timedelta(minutes=5))
        await _request(db, early, now=NOW)

        queue = await AdvanceRequestService.list_unprocessed(
            db, test_calendar.id, request_date=ADVANCE,
        )
        assert [e.member_id for e in queue] == [early.id, late.id]

    async def test_processed_leave_the_queue(self, db, test_calendar, test_member):
        out = await _request(db, test_member)
        await AdvanceRequestService.mark_processed(db, out.id)
        assert await AdvanceRequestService.list_unprocessed(db, test_calendar.id) == []


class TestAdvanceAPI:

    async def test_submit_check_and_withdraw(self, client, test_member, auth_headers):
        target = current_advance_dates(local_today())[0]

        resp = await client.post(
            "/api/v1/advance-requests",
            json={"request_date": target.isoformat(), "leave_type": "PLD"},
            headers=auth_headers,
        )
        assert resp.status_code == 201, resp.text
        request_id = resp.json()["id"]

        resp = await client.get(
            "/api/v1/advance-requests/check",
            params={"date": target.isoformat()},
            headers=auth_headers,
        )
        assert resp.json()["has_request"] is True

        resp = await client.delete(
            f"/api/v1/advance-requests/{request_id}", headers=auth_headers,
        )
        assert resp.status_code == 204

        resp = await client.get("/api/v1/advance-requests/mine", headers=auth_headers)
        assert resp.json() == []

    async def test_duplicate_is_409_problem(self, client, test_member, auth_headers):
        target = current_advance_dates(local_today())[0]
        body = {"request_date": target.isoformat(), "leave_type": "SDV"}
        await client.post("/api/v1/advance-requests", json=body, headers=auth_headers)
        resp = await client.post("/api/v1/advance-requests", json=body, headers=auth_headers)
        assert resp.status_code == 409
        assert resp.json()["errors"]["reason"] == "already_requested"

    async def test_dates_endpoint(self, client, test_member, auth_headers):
        resp = await client.get("/api/v1/advance-requests/dates", headers=auth_headers)
        assert resp.status_code == 200
        assert resp.json()["advance_date"] == current_advance_dates(local_today())[0].isoformat()

    async def test_queue_requires_admin(self, client, test_calendar, test_member, auth_headers):
        resp = await client.get(
            f"/api/v1/admin/calendar/{test_calendar.id}/advance-requests",
            headers=auth_headers,
        )
        assert resp.status_code == 403

    async def test_processing_requires_system_admin(
        self, client, db, test_calendar, test_member, admin_member, admin_headers,
    ):
        target = current_advance_dates(local_today())[0]
        out = await AdvanceRequestService.submit_advance(
            db, test_member.id, target, LeaveType.PLD,
        )
        await db.commit()

        resp = await client.put(
            f"/api/v1/admin/advance-requests/{out.id}/processed", headers=admin_headers,
        )
        assert resp.status_code == 403

        resp = await client.put(
            f"/api/v1/admin/advance-requests/{out.id}/processed",
            headers=auth_header(admin_member.id, UserRole.system_admin),
        )
        assert resp.status_code == 200
        assert resp.json()["processed"] is True

    async def test_unknown_request_404(self, client, admin_member):
        resp = await client.put(
            f"/api/v1/admin/advance-requests/{uuid.uuid4()}/processed",
            headers=auth_header(admin_member.id, UserRole.system_admin),
        )
        assert resp.status_code == 404
