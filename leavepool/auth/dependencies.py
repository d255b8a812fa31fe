"""Auth dependencies — JWT validation, RBAC enforcement.

Tokens are issued by the organization's identity provider; this service only
verifies them.  ``sub`` carries the member id and ``role`` one of
:class:`UserRole`.
"""

from __future__ import annotations

import uuid
from typing import Callable

from fastapi import Depends, Request
from fastapi.exceptions import HTTPException
from jose import ExpiredSignatureError, JWTError, jwt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from leavepool.common.constants import UserRole
from leavepool.common.exceptions import ForbiddenException
from leavepool.config import settings
from leavepool.database import get_db
from leavepool.members.models import Member

# Each role implicitly includes the lower ones
_ROLE_HIERARCHY: dict[UserRole, set[UserRole]] = {
    UserRole.system_admin: {UserRole.system_admin, UserRole.calendar_admin, UserRole.member},
    UserRole.calendar_admin: {UserRole.calendar_admin, UserRole.member},
    UserRole.member: {UserRole.member},
}


def _extract_bearer(request: Request) -> str:
    """Extract Bearer token from Authorization header."""
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Missing or invalid Authorization header.")
    return auth_header[7:]


# ── Core dependency ─────────────────────────────────────────────────

async def get_current_member(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> Member:
    """Validate the JWT and return the authenticated, active Member."""
    token = _extract_bearer(request)

    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
        )
    except ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token has expired.")
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid token.")

    if payload.get("type", "access") != "access":
        raise HTTPException(status_code=401, detail="Invalid token type.")

    try:
        member_id = uuid.UUID(payload["sub"])
    except (KeyError, TypeError, ValueError):
        raise HTTPException(status_code=401, detail="Invalid token subject.")

    result = await db.execute(
        select(Member).where(Member.id == member_id, Member.is_active.is_(True))
    )
    member = result.scalars().first()
    if member is None:
        raise HTTPException(status_code=401, detail="Member account is inactive or not found.")

    role_str = payload.get("role", UserRole.member.value)
    try:
        role = UserRole(role_str)
    except ValueError:
        role = UserRole.member
    request.state.user_role = role

    return member


# ── Role-based dependency ───────────────────────────────────────────

def require_role(*allowed_roles: UserRole) -> Callable:
    """Return a FastAPI dependency that enforces role membership.

    Respects the hierarchy: system_admin can access calendar_admin endpoints.
    """

    async def _check(
        request: Request,
        member: Member = Depends(get_current_member),
    ) -> Member:
        user_role: UserRole = request.state.user_role
        effective_roles = _ROLE_HIERARCHY.get(user_role, {user_role})
        if not effective_roles.intersection(set(allowed_roles)):
            raise ForbiddenException(
                detail=f"Role '{user_role.value}' is not permitted. Required: {[r.value for r in allowed_roles]}.",
            )
        return member

    return _check


def ensure_calendar_access(request: Request, member: Member, calendar_id: uuid.UUID) -> None:
    """Calendar admins manage only their own calendar; system admins manage all."""
    if request.state.user_role == UserRole.system_admin:
        return
    if member.calendar_id != calendar_id:
        raise ForbiddenException("You can only manage your own calendar.")
