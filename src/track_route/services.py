"""Process-wide wiring of stores, provider, geo-filter and engine.

Backends are picked from settings: Supabase for the remote point log and
route cache, Redis for the device counters, the Google-compatible provider
when an API key is set. Anything unconfigured falls back to in-memory
stores or the mock provider.
"""
from __future__ import annotations

import logging
import threading
from typing import Optional

from track_route.cache.redis_client import get_redis
from track_route.config import settings
from track_route.core.engine import RouteEngine
from track_route.core.filter import GeoFilter
from track_route.core.models import RecordedPoint
from track_route.db import get_supabase
from track_route.providers.base import DirectionsProvider
from track_route.store.base import PointLog, QuotaStore, RouteCache
from track_route.store.memory import MemoryPointLog, MemoryQuotaStore, MemoryRouteCache

log = logging.getLogger(__name__)

_lock = threading.Lock()
_local_log: Optional[PointLog] = None
_remote_log: Optional[PointLog] = None
_route_cache: Optional[RouteCache] = None
_quota: Optional[QuotaStore] = None
_engine: Optional[RouteEngine] = None
_geo_filter: Optional[GeoFilter] = None


def build_provider(name: str = "auto") -> DirectionsProvider:
    """
    Build a directions provider from a name:
      "google" - HTTP provider (needs TRACK_ROUTE_DIRECTIONS_API_KEY)
      "mock"   - deterministic straight-line legs
      "auto"   - google when a key is configured, else mock
    """
    token = name.strip().lower()
    if token == "auto":
        token = "google" if settings.directions_api_key else "mock"

    # Local imports to keep requests out of mock-only runs
    if token == "google":
        from track_route.providers.google import GoogleDirectionsProvider
        return GoogleDirectionsProvider()
    if token == "mock":
        from track_route.providers.mock import MockDirectionsProvider
        return MockDirectionsProvider()
    raise ValueError(f"Unknown provider: '{name}' (supported: auto, google, mock)")


def get_local_log() -> PointLog:
    global _local_log
    with _lock:
        if _local_log is None:
            _local_log = MemoryPointLog()
        return _local_log


def get_remote_log() -> PointLog:
    """Remote point log; the local log doubles as remote when Supabase is off."""
    global _remote_log
    sb = get_supabase()
    with _lock:
        if _remote_log is None:
            if sb is not None:
                from track_route.store.supabase_store import SupabasePointLog
                _remote_log = SupabasePointLog(sb)
            else:
                _remote_log = None
    return _remote_log if _remote_log is not None else get_local_log()


def get_route_cache() -> RouteCache:
    global _route_cache
    sb = get_supabase()
    with _lock:
        if _route_cache is None:
            if sb is not None:
                from track_route.store.supabase_store import SupabaseRouteCache
                _route_cache = SupabaseRouteCache(sb)
            else:
                _route_cache = MemoryRouteCache()
        return _route_cache


def get_quota_store() -> QuotaStore:
    global _quota
    r = get_redis()
    with _lock:
        if _quota is None:
            if r is not None:
                from track_route.store.redis_quota import RedisQuotaStore
                _quota = RedisQuotaStore(r, device_id=settings.device_id)
            else:
                _quota = MemoryQuotaStore()
            if settings.unlimited:
                _quota.set_unlimited(True)
        return _quota


def _log_accepted(user_id: str, accepted: int, last: Optional[RecordedPoint]) -> None:
    if last is not None:
        log.info("Saved %d location(s) for %s, current: %.6f,%.6f",
                 accepted, user_id, last.latitude, last.longitude)


def get_geo_filter() -> GeoFilter:
    global _geo_filter
    local_log = get_local_log()
    remote_log = get_remote_log()
    with _lock:
        if _geo_filter is None:
            _geo_filter = GeoFilter(
                local_log=local_log,
                remote_log=remote_log if remote_log is not local_log else None,
                notify=_log_accepted,
            )
        return _geo_filter


def get_engine() -> RouteEngine:
    global _engine
    point_log = get_remote_log()
    cache = get_route_cache()
    quota = get_quota_store()
    with _lock:
        if _engine is None:
            _engine = RouteEngine(
                point_log=point_log,
                route_cache=cache,
                quota=quota,
                provider=build_provider("auto"),
            )
        return _engine
