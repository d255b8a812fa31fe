"""Custom exceptions and RFC 7807 Problem Detail error handlers."""

from __future__ import annotations

from datetime import date
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

BASE_ERROR_URI = "https://leavepool.dev/errors"


# ── Exception hierarchy ─────────────────────────────────────────────

class AppException(Exception):
    """Base for all application exceptions → RFC 7807 JSON."""

    def __init__(
        self,
        status_code: int,
        error_type: str,
        title: str,
        detail: str,
        errors: Optional[dict[str, Any]] = None,
    ) -> None:
        self.status_code = status_code
        self.error_type = error_type
        self.title = title
        self.detail = detail
        self.errors = errors
        super().__init__(detail)


class NotFoundException(AppException):
    """404 — entity not found."""

    def __init__(self, entity_type: str, entity_id: Any) -> None:
        super().__init__(
            status_code=404,
            error_type="not-found",
            title=f"{entity_type} Not Found",
            detail=f"{entity_type} with id '{entity_id}' does not exist.",
        )
        self.entity_type = entity_type
        self.entity_id = entity_id


class ForbiddenException(AppException):
    """403 — insufficient permissions."""

    def __init__(
        self,
        detail: str = "You do not have permission to perform this action.",
    ) -> None:
        super().__init__(
            status_code=403,
            error_type="forbidden",
            title="Forbidden",
            detail=detail,
        )


class ValidationException(AppException):
    """422 — business-logic validation failures."""

    def __init__(self, errors: dict[str, list[str]]) -> None:
        super().__init__(
            status_code=422,
            error_type="validation-error",
            title="Validation Error",
            detail="One or more fields failed validation.",
            errors=errors,
        )


# ── Scheduling errors ───────────────────────────────────────────────
#
# Every rejection carries the date, leave type and a machine-readable
# reason so a client can explain why a date cannot be booked.

class SchedulingError(AppException):
    """Base for rejections raised by the booking and advance-request engines."""

    def __init__(
        self,
        *,
        status_code: int,
        error_type: str,
        title: str,
        detail: str,
        request_date: Optional[date],
        leave_type: Optional[str],
        reason: str,
        extra: Optional[dict[str, Any]] = None,
    ) -> None:
        errors: dict[str, Any] = {
            "date": request_date.isoformat() if request_date else None,
            "leave_type": leave_type,
            "reason": reason,
        }
        if extra:
            errors.update(extra)
        super().__init__(
            status_code=status_code,
            error_type=error_type,
            title=title,
            detail=detail,
            errors=errors,
        )
        self.request_date = request_date
        self.leave_type = leave_type
        self.reason = reason


class IneligibleDate(SchedulingError):
    """422 — date is inside the blackout or outside the request window."""

    def __init__(
        self,
        request_date: date,
        leave_type: Optional[str],
        reason: str,
        detail: Optional[str] = None,
    ) -> None:
        messages = {
            "too_soon": "Requests must be made at least 48 hours in advance.",
            "too_far": "Requests cannot be made beyond the six-month window.",
            "not_advance_date": "This date is not open for six-month requests.",
        }
        super().__init__(
            status_code=422,
            error_type="ineligible-date",
            title="Ineligible Date",
            detail=detail or messages.get(reason, "This date cannot be requested."),
            request_date=request_date,
            leave_type=leave_type,
            reason=reason,
        )


class InsufficientEntitlement(SchedulingError):
    """422 — no remaining days of the requested leave type."""

    def __init__(self, request_date: date, leave_type: str, available: int) -> None:
        super().__init__(
            status_code=422,
            error_type="insufficient-entitlement",
            title="Insufficient Entitlement",
            detail=f"No available {leave_type} days left. Available: {available}.",
            request_date=request_date,
            leave_type=leave_type,
            reason="no_balance",
            extra={"available": available},
        )


class DuplicateBooking(SchedulingError):
    """409 — member already holds a consuming booking for the date."""

    def __init__(self, request_date: date, leave_type: str) -> None:
        super().__init__(
            status_code=409,
            error_type="duplicate-booking",
            title="Duplicate Booking",
            detail="You already have an active request for this date.",
            request_date=request_date,
            leave_type=leave_type,
            reason="already_booked",
        )


class DuplicateAdvanceRequest(SchedulingError):
    """409 — an unprocessed six-month request already exists."""

    def __init__(self, request_date: date, leave_type: str) -> None:
        super().__init__(
            status_code=409,
            error_type="duplicate-advance-request",
            title="Duplicate Advance Request",
            detail="You already have a six-month request for this date.",
            request_date=request_date,
            leave_type=leave_type,
            reason="already_requested",
        )


class ZeroCapacity(SchedulingError):
    """422 — no allotment is configured for the date."""

    def __init__(self, request_date: date, leave_type: Optional[str]) -> None:
        super().__init__(
            status_code=422,
            error_type="zero-capacity",
            title="No Allotment",
            detail="No allotments available for this date.",
            request_date=request_date,
            leave_type=leave_type,
            reason="zero_capacity",
        )


class ConcurrentCapacityConflict(SchedulingError):
    """409 — the date filled up between evaluation and commit."""

    def __init__(
        self,
        request_date: date,
        leave_type: str,
        *,
        reason: str = "capacity_race",
        detail: Optional[str] = None,
        extra: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(
            status_code=409,
            error_type="capacity-conflict",
            title="Capacity Conflict",
            detail=detail or "The date filled up while your request was being processed.",
            request_date=request_date,
            leave_type=leave_type,
            reason=reason,
            extra=extra,
        )


class InvalidBookingState(AppException):
    """409 — transition not permitted from the booking's current status."""

    def __init__(self, booking_id: Any, current: str, target: str) -> None:
        super().__init__(
            status_code=409,
            error_type="invalid-state",
            title="Invalid Booking State",
            detail=f"Booking '{booking_id}' cannot move from {current} to {target}.",
            errors={"status": [current], "target": [target]},
        )
        self.current = current
        self.target = target


# ── RFC 7807 builder ────────────────────────────────────────────────

def _build_problem_detail(exc: AppException, request: Request) -> dict[str, Any]:
    body: dict[str, Any] = {
        "type": f"{BASE_ERROR_URI}/{exc.error_type}",
        "title": exc.title,
        "status": exc.status_code,
        "detail": exc.detail,
        "instance": str(request.url.path),
    }
    if exc.errors:
        body["errors"] = exc.errors
    return body


# ── FastAPI handlers ────────────────────────────────────────────────

async def _handle_app_exception(
    request: Request,
    exc: AppException,
) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=_build_problem_detail(exc, request),
        media_type="application/problem+json",
    )


async def _handle_validation_error(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    field_errors: dict[str, list[str]] = {}
    for err in exc.errors():
        loc = err.get("loc", ())
        name = (
            ".".join(str(p) for p in loc[1:])
            if len(loc) > 1
            else str(loc[0]) if loc else "unknown"
        )
        field_errors.setdefault(name, []).append(err.get("msg", "Invalid value"))

    return JSONResponse(
        status_code=422,
        content={
            "type": f"{BASE_ERROR_URI}/validation-error",
            "title": "Validation Error",
            "status": 422,
            "detail": "Request validation failed.",
            "instance": str(request.url.path),
            "errors": field_errors,
        },
        media_type="application/problem+json",
    )


# ── Registration helper (called from main.py) ──────────────────────

def register_exception_handlers(app: FastAPI) -> None:
    """Attach all custom exception handlers to the FastAPI app."""
    app.add_exception_handler(AppException, _handle_app_exception)          # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _handle_validation_error)  # type: ignore[arg-type]
