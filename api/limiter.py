"""
api/limiter.py -- Shared slowapi rate limiter instance.

One instance for the whole process so every route shares the same in-memory
counter store. The default limit applies per client IP to every route via
SlowAPIMiddleware in api/main.py; no per-account limiting is done.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import get_settings

_settings = get_settings()

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[_settings.rate_limit],
    storage_uri="memory://",
    enabled=_settings.rate_limit_enabled,
)
