"""Rate limiting configuration for the SupportBase API."""

import logging
import os

import redis
from slowapi import Limiter
from slowapi.util import get_remote_address

from app.core.config import settings

# Redis keeps limits consistent across workers; in-memory for dev/test
REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")
IS_TESTING = os.getenv("TESTING", "").lower() in ("1", "true", "yes")
DEFAULT_LIMITS = (
    []
    if IS_TESTING or settings.RATE_LIMIT_API <= 0
    else [f"{settings.RATE_LIMIT_API}/minute"]
)


def _storage_uri() -> str:
    if IS_TESTING:
        return "memory://"
    try:
        r = redis.from_url(REDIS_URL, socket_connect_timeout=1)
        r.ping()
    except redis.RedisError as e:
        logging.warning(f"Redis unavailable for rate limiting, using in-memory: {e}")
        return "memory://"
    return REDIS_URL


limiter = Limiter(
    key_func=get_remote_address,
    storage_uri=_storage_uri(),
    default_limits=DEFAULT_LIMITS,
    enabled=not IS_TESTING,
)
