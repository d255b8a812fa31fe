"""001 – Initial schema: calendars, members, allotments, bookings, advance requests.

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-18 09:00:00.000000-04:00
"""

from alembic import op

# Revision identifiers
revision = "001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

ENUM_TYPES: list[tuple[str, list[str]]] = [
    ("leave_type", ["PLD", "SDV"]),
    (
        "booking_status",
        [
            "pending",
            "approved",
            "denied",
            "waitlisted",
            "cancellation_pending",
            "cancelled",
        ],
    ),
]


def _create_enum(name: str, values: list[str]) -> None:
    vals = ", ".join(f"'{v}'" for v in values)
    op.execute(f"CREATE TYPE {name} AS ENUM ({vals})")


def _drop_enum(name: str) -> None:
    op.execute(f"DROP TYPE IF EXISTS {name}")


# ---------------------------------------------------------------------------
# UPGRADE
# ---------------------------------------------------------------------------


def upgrade() -> None:
    # ── Extensions ────────────────────────────────────────────────────────
    op.execute('CREATE EXTENSION IF NOT EXISTS "uuid-ossp"')

    # ── Enum types ────────────────────────────────────────────────────────
    for name, values in ENUM_TYPES:
        _create_enum(name, values)

    # ── 1. calendars ──────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE calendars (
            id          UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            name        VARCHAR(100) NOT NULL,
            description TEXT,
            is_active   BOOLEAN DEFAULT TRUE,
            created_at  TIMESTAMPTZ DEFAULT NOW()
        )
    """)

    # ── 2. members ────────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE members (
            id                UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            pin_number        BIGINT NOT NULL UNIQUE,
            first_name        VARCHAR(100),
            last_name         VARCHAR(100),
            calendar_id       UUID REFERENCES calendars(id),
            company_hire_date DATE,
            seniority_rank    INTEGER,
            max_plds          INTEGER DEFAULT 0,
            pld_rolled_over   INTEGER DEFAULT 0,
            sdv_entitlement   INTEGER DEFAULT 0,
            is_active         BOOLEAN DEFAULT TRUE,
            created_at        TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX idx_members_calendar ON members(calendar_id)")

    # ── 3. allotments ─────────────────────────────────────────────────────
    # A row carries either a date (override) or a year (default), never both.
    op.execute("""
        CREATE TABLE allotments (
            id            UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            calendar_id   UUID NOT NULL REFERENCES calendars(id),
            date          DATE,
            year          INTEGER,
            max_allotment INTEGER NOT NULL,
            updated_by    UUID REFERENCES members(id),
            created_at    TIMESTAMPTZ DEFAULT NOW(),
            updated_at    TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT ck_allotment_scope CHECK (
                (date IS NULL AND year IS NOT NULL)
                OR (date IS NOT NULL AND year IS NULL)
            ),
            CONSTRAINT ck_allotment_non_negative CHECK (max_allotment >= 0),
            CONSTRAINT uq_allotment_calendar_date UNIQUE (calendar_id, date),
            CONSTRAINT uq_allotment_calendar_year UNIQUE (calendar_id, year)
        )
    """)

    # ── 4. bookings ───────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE bookings (
            id                UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            member_id         UUID NOT NULL REFERENCES members(id),
            calendar_id       UUID NOT NULL REFERENCES calendars(id),
            request_date      DATE NOT NULL,
            leave_type        leave_type NOT NULL,
            status            booking_status NOT NULL DEFAULT 'pending',
            waitlist_position INTEGER,
            paid_in_lieu      BOOLEAN NOT NULL DEFAULT FALSE,
            requested_at      TIMESTAMPTZ DEFAULT NOW(),
            responded_at      TIMESTAMPTZ,
            responded_by      UUID REFERENCES members(id),
            denial_comment    TEXT,
            cancelled_at      TIMESTAMPTZ,
            updated_at        TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT ck_bookings_waitlist_position_positive
                CHECK (waitlist_position IS NULL OR waitlist_position > 0)
        )
    """)
    op.execute(
        "CREATE INDEX ix_bookings_calendar_date ON bookings(calendar_id, request_date)"
    )
    op.execute(
        "CREATE INDEX ix_bookings_member_date ON bookings(member_id, request_date)"
    )
    op.execute("""
        CREATE UNIQUE INDEX uq_bookings_waitlist_position
            ON bookings(calendar_id, request_date, waitlist_position)
    """)
    op.execute("""
        CREATE UNIQUE INDEX uq_bookings_member_date_consuming
            ON bookings(member_id, request_date)
            WHERE status IN ('pending', 'approved', 'waitlisted', 'cancellation_pending')
              AND paid_in_lieu = false
    """)

    # ── 5. advance_requests ───────────────────────────────────────────────
    op.execute("""
        CREATE TABLE advance_requests (
            id           UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            member_id    UUID NOT NULL REFERENCES members(id),
            calendar_id  UUID NOT NULL REFERENCES calendars(id),
            request_date DATE NOT NULL,
            leave_type   leave_type NOT NULL,
            processed    BOOLEAN NOT NULL DEFAULT FALSE,
            requested_at TIMESTAMPTZ DEFAULT NOW(),
            processed_at TIMESTAMPTZ
        )
    """)
    op.execute("""
        CREATE INDEX ix_advance_requests_date
            ON advance_requests(calendar_id, request_date)
    """)
    op.execute("""
        CREATE UNIQUE INDEX uq_advance_requests_unprocessed
            ON advance_requests(member_id, request_date, leave_type)
            WHERE processed = false
    """)

    # ── 6. audit_trail ────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE audit_trail (
            id          UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            actor_id    UUID REFERENCES members(id),
            action      VARCHAR(50) NOT NULL,
            entity_type VARCHAR(50) NOT NULL,
            entity_id   UUID NOT NULL,
            calendar_id UUID,
            old_values  JSONB,
            new_values  JSONB,
            created_at  TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP
        )
    """)
    op.execute("CREATE INDEX ix_audit_trail_actor_id ON audit_trail(actor_id)")
    op.execute(
        "CREATE INDEX ix_audit_trail_entity ON audit_trail(entity_type, entity_id)"
    )
    op.execute("CREATE INDEX ix_audit_trail_calendar_id ON audit_trail(calendar_id)")
    op.execute("CREATE INDEX ix_audit_trail_created_at ON audit_trail(created_at)")


# ---------------------------------------------------------------------------
# DOWNGRADE
# ---------------------------------------------------------------------------


def downgrade() -> None:
    # Drop tables in reverse dependency order
    tables = [
        "audit_trail",
        "advance_requests",
        "bookings",
        "allotments",
        "members",
        "calendars",
    ]
    for t in tables:
        op.execute(f"DROP TABLE IF EXISTS {t} CASCADE")

    for name, _ in reversed(ENUM_TYPES):
        _drop_enum(name)

    op.execute('DROP EXTENSION IF EXISTS "uuid-ossp"')
