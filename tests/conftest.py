"""Shared test fixtures — async DB, client, auth helpers, factories.

Uses SQLite + aiosqlite for fast isolated tests without PostgreSQL.
"""

from __future__ import annotations

import os

# Set test JWT_SECRET before any other import touches pydantic-settings
os.environ.setdefault("JWT_SECRET", "test-secret-for-ci-do-not-use-in-production")

import uuid
from datetime import date, datetime, timedelta, timezone
from typing import AsyncGenerator, Optional

import pytest
from httpx import ASGITransport, AsyncClient
from jose import jwt
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from leavepool.common.constants import UserRole
from leavepool.config import settings
from leavepool.database import Base, get_db
from leavepool.main import create_app

# Import ALL model modules so every table is registered on Base.metadata
import leavepool.advance.models  # noqa: F401
import leavepool.allotments.models  # noqa: F401
import leavepool.bookings.models  # noqa: F401
import leavepool.common.audit  # noqa: F401
import leavepool.members.models  # noqa: F401

# ── SQLite compat: compile PG-specific types ────────────────────────

from sqlalchemy.dialects.postgresql import JSONB, UUID as PG_UUID
from sqlalchemy.ext.compiler import compiles


@compiles(JSONB, "sqlite")
def _jsonb_sqlite(element, compiler, **kw):
    return "TEXT"


@compiles(PG_UUID, "sqlite")
def _uuid_sqlite(element, compiler, **kw):
    return "CHAR(36)"


# ── Test database (SQLite in-memory) ────────────────────────────────

TEST_DATABASE_URL = "sqlite+aiosqlite://"

engine = create_async_engine(
    TEST_DATABASE_URL,
    echo=False,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


@event.listens_for(engine.sync_engine, "connect")
def _register_sqlite_functions(dbapi_conn, connection_record):
    """Register NOW() as a SQLite custom function."""
    dbapi_conn.create_function(
        "NOW", 0, lambda: datetime.now(timezone.utc).isoformat(),
    )


TestSessionFactory = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False,
)

# A fixed instant for service-level tests: 11:00 in New York on 2025-03-10.
NOW = datetime(2025, 3, 10, 15, 0, tzinfo=timezone.utc)
TODAY = date(2025, 3, 10)


@pytest.fixture(autouse=True)
async def _setup_db():
    """Create all tables before each test, drop after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture(autouse=True)
def _reset_rate_limiter():
    """Reset rate limiter storage between tests to prevent cross-test interference."""
    from leavepool.common.rate_limit import limiter

    limiter.reset()
    yield


async def _override_get_db() -> AsyncGenerator[AsyncSession, None]:
    async with TestSessionFactory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


# ── FastAPI test client ─────────────────────────────────────────────

@pytest.fixture
async def app():
    """Create a fresh app instance with DB dependency overridden."""
    application = create_app()
    application.dependency_overrides[get_db] = _override_get_db
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client wired to the test app."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


# ── Database session (for direct DB operations in tests) ────────────

@pytest.fixture
async def db() -> AsyncGenerator[AsyncSession, None]:
    async with TestSessionFactory() as session:
        yield session
        await session.commit()


# ── Model factories ─────────────────────────────────────────────────

_pin_counter = iter(range(100000, 999999))


def _make_calendar(*, name: str = "Division 184") -> dict:
    return dict(
        id=uuid.uuid4(),
        name=name,
        is_active=True,
        created_at=datetime.now(timezone.utc),
    )


def _make_member(
    *,
    calendar_id: Optional[uuid.UUID],
    first_name: str = "Test",
    last_name: str = "Member",
    max_plds: int = 10,
    pld_rolled_over: int = 0,
    sdv_entitlement: int = 5,
    seniority_rank: Optional[int] = None,
) -> dict:
    return dict(
        id=uuid.uuid4(),
        pin_number=next(_pin_counter),
        first_name=first_name,
        last_name=last_name,
        calendar_id=calendar_id,
        company_hire_date=date(2015, 6, 1),
        seniority_rank=seniority_rank,
        max_plds=max_plds,
        pld_rolled_over=pld_rolled_over,
        sdv_entitlement=sdv_entitlement,
        is_active=True,
        created_at=datetime.now(timezone.utc),
    )


async def seed_member(db: AsyncSession, calendar_id: Optional[uuid.UUID], **kwargs):
    """Insert a member and commit so app sessions on the shared connection see it."""
    from leavepool.members.models import Member

    member = Member(**_make_member(calendar_id=calendar_id, **kwargs))
    db.add(member)
    await db.commit()
    return member


async def seed_year_default(
    db: AsyncSession,
    calendar_id: uuid.UUID,
    year: int,
    max_allotment: int,
):
    from leavepool.allotments.models import Allotment

    row = Allotment(calendar_id=calendar_id, year=year, max_allotment=max_allotment)
    db.add(row)
    await db.commit()
    return row


async def seed_override(
    db: AsyncSession,
    calendar_id: uuid.UUID,
    target: date,
    max_allotment: int,
):
    from leavepool.allotments.models import Allotment

    row = Allotment(calendar_id=calendar_id, allotment_date=target, max_allotment=max_allotment)
    db.add(row)
    await db.commit()
    return row


@pytest.fixture
async def test_calendar(db):
    """Insert a test calendar and return the ORM row."""
    from leavepool.members.models import Calendar

    calendar = Calendar(**_make_calendar())
    db.add(calendar)
    await db.commit()
    return calendar


@pytest.fixture
async def test_member(db, test_calendar):
    """An active member with 10 PLDs and 5 SDVs on test_calendar."""
    return await seed_member(db, test_calendar.id)


@pytest.fixture
async def admin_member(db, test_calendar):
    return await seed_member(db, test_calendar.id, first_name="Calendar", last_name="Admin")


# ── Auth helpers ────────────────────────────────────────────────────

def create_access_token(
    member_id: uuid.UUID,
    role: UserRole = UserRole.member,
    expired: bool = False,
) -> str:
    """Generate a JWT access token for testing."""
    if expired:
        exp = datetime.now(timezone.utc) - timedelta(hours=1)
    else:
        exp = datetime.now(timezone.utc) + timedelta(hours=1)
    payload = {
        "sub": str(member_id),
        "role": role.value,
        "type": "access",
        "exp": exp,
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def auth_header(member_id: uuid.UUID, role: UserRole = UserRole.member) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(member_id, role)}"}


@pytest.fixture
async def auth_headers(test_member) -> dict[str, str]:
    return auth_header(test_member.id)


@pytest.fixture
async def admin_headers(admin_member) -> dict[str, str]:
    return auth_header(admin_member.id, UserRole.calendar_admin)
