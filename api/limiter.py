"""
api/limiter.py -- Shared slowapi rate limiter instance.

Import this in both api/main.py (to mount as middleware) and
api/routes/v1/auth.py (to apply per-route limits with @limiter.limit()).

Using a single shared instance ensures all routes share the same in-memory
counter store. If this were instantiated in each module separately, each
module would get its own isolated counter and rate limits would never trigger.

This is per-client HTTP throttling on the public endpoints. The process-wide
login bucket lives in auth/limiter.py and applies regardless of client.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import get_settings

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")


def client_rate_limit() -> str:
    """Limit string for public endpoints, resolved lazily from Settings."""
    return get_settings().client_rate_limit
