"""
api/limiter.py -- Shared slowapi rate limiter instance.

Import this in api/main.py (to mount as middleware) and in
api/routes/v1/auth.py (to apply per-route limits with @limiter.limit()).

A single shared instance means all routes share one in-memory counter store.
Separate instances per module would each keep their own counters and limits
would never trigger.

The register/login limit is process-wide. slowapi calls a dynamic limit
provider with the rate-limit key only, never the request, so the value cannot
come from a particular app's state. create_app() sets it from
Settings.auth_rate_limit and the last call wins; a change is logged.
"""

import logging

from slowapi import Limiter
from slowapi.util import get_remote_address

logger = logging.getLogger("authgate.api")

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")

DEFAULT_AUTH_LIMIT = "10/minute"

_auth_limit = DEFAULT_AUTH_LIMIT


def configure_auth_limit(limit: str) -> None:
    """Set the register/login limit for every app in this process."""
    global _auth_limit
    if limit != _auth_limit:
        logger.info("Auth rate limit changed from %s to %s", _auth_limit, limit)
    _auth_limit = limit


def auth_limit() -> str:
    """Limit provider passed to @limiter.limit(); re-read on every request."""
    return _auth_limit
