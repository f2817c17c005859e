"""Redis connection for the device counters.

A missing or unreachable Redis never breaks the app: callers get ``None``
and fall back to in-memory counters.
"""
from __future__ import annotations

import logging

log = logging.getLogger(__name__)

_redis_client = None
_redis_checked = False


def get_redis():
    """Lazy singleton.  Returns ``redis.Redis`` or ``None`` if unavailable."""
    global _redis_client, _redis_checked
    if _redis_checked:
        return _redis_client
    _redis_checked = True
    try:
        from track_route.config import settings

        if not settings.redis_url:
            return None
        import redis

        _redis_client = redis.Redis.from_url(
            settings.redis_url, decode_responses=True, socket_connect_timeout=3
        )
        _redis_client.ping()
        log.info("Redis connected: %s", settings.redis_url)
    except Exception as exc:
        log.warning("Redis unavailable (%s), running with in-memory counters", exc)
        _redis_client = None
    return _redis_client


def redis_ok() -> bool:
    r = get_redis()
    if r is None:
        return False
    try:
        r.ping()
        return True
    except Exception:
        return False
