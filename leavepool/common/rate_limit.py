"""Rate limiting configuration using slowapi.

Module-level Limiter wired into the app in main.py. Individual routes can
override the default with @limiter.limit("N/period").
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from leavepool.config import settings

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[settings.RATE_LIMIT_DEFAULT],
)
