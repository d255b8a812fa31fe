"""Leavepool — FastAPI Application Factory."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from leavepool.advance.router import admin_router as advance_admin_router
from leavepool.advance.router import router as advance_router
from leavepool.allotments.router import admin_router as allotments_admin_router
from leavepool.allotments.router import router as allotments_router
from leavepool.bookings.router import admin_router as bookings_admin_router
from leavepool.bookings.router import calendar_router
from leavepool.bookings.router import router as bookings_router
from leavepool.common.exceptions import register_exception_handlers
from leavepool.common.rate_limit import limiter
from leavepool.config import settings
from leavepool.database import engine
from leavepool.entitlements.router import router as entitlements_router

logger = logging.getLogger(__name__)

VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown events."""
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger.info(
        "Leavepool %s starting (environment=%s, timezone=%s)",
        VERSION, settings.ENVIRONMENT, settings.TIMEZONE,
    )
    yield
    await engine.dispose()
    logger.info("Leavepool shut down")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Leavepool",
        description="PLD/SDV leave-day allotment, waitlist and six-month request scheduling",
        version=VERSION,
        docs_url="/api/docs" if settings.ENVIRONMENT != "production" else None,
        redoc_url="/api/redoc" if settings.ENVIRONMENT != "production" else None,
        lifespan=lifespan,
    )

    # Exception handlers (RFC 7807)
    register_exception_handlers(app)

    # Rate limiting (slowapi)
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Health check (no auth)
    @app.get("/api/v1/health", tags=["system"])
    async def health_check():
        return {
            "status": "healthy",
            "version": VERSION,
            "environment": settings.ENVIRONMENT,
        }

    # Register routers
    app.include_router(bookings_router, prefix="/api/v1/bookings", tags=["bookings"])
    app.include_router(calendar_router, prefix="/api/v1/calendar", tags=["calendar"])
    app.include_router(advance_router, prefix="/api/v1/advance-requests", tags=["advance-requests"])
    app.include_router(allotments_router, prefix="/api/v1/allotments", tags=["allotments"])
    app.include_router(entitlements_router, prefix="/api/v1/entitlements", tags=["entitlements"])
    app.include_router(bookings_admin_router, prefix="/api/v1/admin", tags=["admin"])
    app.include_router(advance_admin_router, prefix="/api/v1/admin", tags=["admin"])
    app.include_router(allotments_admin_router, prefix="/api/v1/admin", tags=["admin"])

    return app


app = create_app()
