"""Common module — shared utilities for leavepool."""

from leavepool.common.audit import AuditTrail, create_audit_entry
from leavepool.common.constants import (
    CONSUMING_STATUSES,
    DEFAULT_PAGE_SIZE,
    DISPLAY_ACTIVE_STATUSES,
    MAX_PAGE_SIZE,
    SEAT_HOLDING_STATUSES,
    Availability,
    BookingStatus,
    LeaveType,
    UserRole,
    WindowReason,
)
from leavepool.common.exceptions import (
    AppException,
    ConcurrentCapacityConflict,
    DuplicateAdvanceRequest,
    DuplicateBooking,
    ForbiddenException,
    IneligibleDate,
    InsufficientEntitlement,
    InvalidBookingState,
    NotFoundException,
    SchedulingError,
    ValidationException,
    ZeroCapacity,
    register_exception_handlers,
)
from leavepool.common.pagination import (
    PaginatedResponse,
    PaginationMeta,
    PaginationParams,
    paginate,
)

__all__ = [
    # Audit
    "AuditTrail",
    "create_audit_entry",
    # Constants / Enums
    "Availability",
    "BookingStatus",
    "LeaveType",
    "UserRole",
    "WindowReason",
    "CONSUMING_STATUSES",
    "DISPLAY_ACTIVE_STATUSES",
    "SEAT_HOLDING_STATUSES",
    "DEFAULT_PAGE_SIZE",
    "MAX_PAGE_SIZE",
    # Exceptions
    "AppException",
    "ConcurrentCapacityConflict",
    "DuplicateAdvanceRequest",
    "DuplicateBooking",
    "ForbiddenException",
    "IneligibleDate",
    "InsufficientEntitlement",
    "InvalidBookingState",
    "NotFoundException",
    "SchedulingError",
    "ValidationException",
    "ZeroCapacity",
    "register_exception_handlers",
    # Pagination
    "PaginatedResponse",
    "PaginationMeta",
    "PaginationParams",
    "paginate",
]
