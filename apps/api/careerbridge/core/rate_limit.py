"""Rate limiting for the CareerBridge API (slowapi, Redis-backed when available)."""

import logging
import os

from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from careerbridge.core.config import settings

logger = logging.getLogger(__name__)

REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")
IS_TESTING = os.getenv("TESTING", "").lower() in ("1", "true", "yes")
MEMORY_STORAGE = "memory://"


def rate_limit_key(request: Request) -> str:
    """Authenticated routes are limited per user, everything else per client IP."""
    user_id = getattr(request.state, "user_id", None)
    if user_id:
        return f"user:{user_id}"
    return get_remote_address(request)


def select_storage_uri() -> str:
    """Redis shares counters across workers; memory is the fallback."""
    if IS_TESTING:
        return MEMORY_STORAGE
    try:
        import redis

        redis.from_url(REDIS_URL, socket_connect_timeout=1).ping()
    except Exception as e:
        logger.warning("Redis unavailable for rate limiting, using in-memory: %s", e)
        return MEMORY_STORAGE
    return REDIS_URL


limiter = Limiter(
    key_func=rate_limit_key,
    storage_uri=select_storage_uri(),
    default_limits=(
        []
        if IS_TESTING or settings.RATE_LIMIT_API <= 0
        else [f"{settings.RATE_LIMIT_API}/minute"]
    ),
)
