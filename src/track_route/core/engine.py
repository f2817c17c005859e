"""Route reconstruction engine.

Rebuilds a day's travel path for a user either straight from the recorded
point log or as a road-snapped route assembled from chunked directions
requests. Provider-derived routes are cached per (user, day).

Concurrent requests for the same (user, day) share one in-flight
computation; every caller receives the same ``RouteResult``.
"""
from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, Dict, List, Optional

from track_route.config import settings
from track_route.contracts.route_contract import RouteKey
from track_route.core import codec
from track_route.core.errors import DecodeError, PersistenceError, ProviderError
from track_route.core.models import RecordedPoint, Route, RoutePoint, RouteResult, day_bucket
from track_route.core.route import next_chunk
from track_route.providers.base import DirectionsProvider
from track_route.store.base import PointLog, QuotaStore, RouteCache

log = logging.getLogger(__name__)


class RouteListener:
    """Callbacks for one caller. May be invoked from a worker thread."""

    def on_route_loaded(self, route: Route) -> None:
        pass

    def on_progress(self, percent: int) -> None:
        pass

    def on_quota_exceeded(self) -> None:
        pass


class _Flight:
    """State shared by every caller waiting on one (user, day) computation."""

    def __init__(self, key: RouteKey):
        self.key = key
        self.future: Future = Future()
        self._listeners: List[RouteListener] = []
        self._lock = threading.Lock()

    def attach(self, listener: Optional[RouteListener]) -> None:
        if listener is None:
            return
        with self._lock:
            self._listeners.append(listener)

    def detach(self, listener: RouteListener) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def _dispatch(self, fn: Callable[[RouteListener], None]) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                fn(listener)
            except Exception:
                log.exception("Route listener failed for %s", self.key)

    def progress(self, percent: int) -> None:
        self._dispatch(lambda l: l.on_progress(percent))

    def finished(self, result: RouteResult) -> None:
        if result.quota_exceeded:
            self._dispatch(lambda l: l.on_quota_exceeded())
        if result.route is not None:
            route = result.route
            self._dispatch(lambda l: l.on_route_loaded(route))


class RouteEngine:
    def __init__(
        self,
        point_log: PointLog,
        route_cache: RouteCache,
        quota: QuotaStore,
        provider: DirectionsProvider,
        daily_limit: Optional[int] = None,
        min_waypoint_distance_m: Optional[float] = None,
        max_waypoints_per_call: Optional[int] = None,
        executor: Optional[ThreadPoolExecutor] = None,
    ):
        self.point_log = point_log
        self.route_cache = route_cache
        self.quota = quota
        self.provider = provider
        self.daily_limit = daily_limit if daily_limit is not None else settings.daily_limit
        self.min_waypoint_distance_m = (
            min_waypoint_distance_m
            if min_waypoint_distance_m is not None
            else settings.min_waypoint_distance_m
        )
        self.max_waypoints_per_call = (
            max_waypoints_per_call
            if max_waypoints_per_call is not None
            else settings.max_waypoints_per_call
        )

        self._executor = executor
        self._flights: Dict[RouteKey, _Flight] = {}
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def get_raw_points(self, user_id: str, day: int) -> RouteResult:
        key = RouteKey(user_id, day_bucket(day))
        points = self._load_points(key)
        if not points:
            return self._no_data(key)
        return self._raw_result(key, points)

    def get_route(self, user_id: str, day: int, listener: Optional[RouteListener] = None) -> RouteResult:
        """Cached route, else raw points when the quota is spent, else a fresh reconstruction."""
        return self._single_flight(RouteKey(user_id, day_bucket(day)), self._get_route, listener)

    def recalculate_route(
        self, user_id: str, day: int, listener: Optional[RouteListener] = None
    ) -> RouteResult:
        """Rebuild the route ignoring any cached copy. Still subject to the quota."""
        return self._single_flight(RouteKey(user_id, day_bucket(day)), self._recalculate, listener)

    def submit_route(self, user_id: str, day: int, listener: Optional[RouteListener] = None) -> Future:
        return self._pool().submit(self.get_route, user_id, day, listener)

    def submit_recalculate(
        self, user_id: str, day: int, listener: Optional[RouteListener] = None
    ) -> Future:
        return self._pool().submit(self.recalculate_route, user_id, day, listener)

    def detach(self, user_id: str, day: int, listener: RouteListener) -> None:
        """Stop delivering callbacks to ``listener``. The computation itself carries on."""
        with self._lock:
            flight = self._flights.get(RouteKey(user_id, day_bucket(day)))
        if flight is not None:
            flight.detach(listener)

    def in_flight(self, user_id: str, day: int) -> bool:
        with self._lock:
            return RouteKey(user_id, day_bucket(day)) in self._flights

    def shutdown(self, wait: bool = True) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=wait)

    # ------------------------------------------------------------------
    # Single-flight
    # ------------------------------------------------------------------

    def _pool(self) -> ThreadPoolExecutor:
        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=settings.engine_workers, thread_name_prefix="route-engine"
                )
            return self._executor

    def _single_flight(
        self,
        key: RouteKey,
        compute: Callable[[RouteKey, _Flight], RouteResult],
        listener: Optional[RouteListener],
    ) -> RouteResult:
        with self._lock:
            flight = self._flights.get(key)
            owner = flight is None
            if owner:
                flight = self._flights[key] = _Flight(key)
            flight.attach(listener)

        if not owner:
            log.debug("Joining in-flight reconstruction for %s", key)
            return flight.future.result()

        try:
            result = compute(key, flight)
        except BaseException as e:
            with self._lock:
                self._flights.pop(key, None)
            flight.future.set_exception(e)
            raise

        # Closed to joiners before dispatch; later callers start a fresh flight
        with self._lock:
            self._flights.pop(key, None)
        flight.finished(result)
        flight.future.set_result(result)
        return result

    # ------------------------------------------------------------------
    # Pipelines
    # ------------------------------------------------------------------

    def _get_route(self, key: RouteKey, flight: _Flight) -> RouteResult:
        cached = self._load_cached(key)
        if cached is not None:
            return RouteResult(user_id=key.user_id, day=key.day, route=cached, source="cache")

        points = self._load_points(key)
        if not points:
            return self._no_data(key)

        if self._quota_exhausted():
            log.info("Directions quota exhausted, returning raw points for %s", key)
            return self._raw_result(key, points, quota_exceeded=True)

        return self._reconstruct(key, points, flight)

    def _recalculate(self, key: RouteKey, flight: _Flight) -> RouteResult:
        points = self._load_points(key)
        if not points:
            return self._no_data(key)
        return self._reconstruct(key, points, flight)

    def _reconstruct(self, key: RouteKey, points: List[RecordedPoint], flight: _Flight) -> RouteResult:
        n = len(points)
        accumulated: List[RoutePoint] = []
        provider_points = 0
        requests_made = 0
        cursor = 0

        while cursor < n - 1:
            chunk = next_chunk(points, cursor, self.min_waypoint_distance_m, self.max_waypoints_per_call)
            flight.progress(cursor * 100 // n)

            if len(chunk) <= 1:
                accumulated.append(points[-1].to_route_point())
                break

            try:
                acquired = self.quota.try_acquire(self.daily_limit)
            except PersistenceError as e:
                log.error("Quota counter unavailable for %s: %s", key, e)
                return self._fallback(key, points, f"quota store: {e}")
            if not acquired:
                log.info("Directions quota exhausted mid-route for %s after %d request(s)", key, requests_made)
                return self._raw_result(key, points, quota_exceeded=True)

            stops = [(points[i].latitude, points[i].longitude) for i in chunk.indices]
            requests_made += 1
            try:
                response = self.provider.request_route(stops[0], stops[-1], stops[1:-1])
                decoded = codec.decode_points(response)
            except (ProviderError, DecodeError) as e:
                log.warning("Directions request %d for %s failed: %s", requests_made, key, e)
                return self._fallback(key, points, str(e))

            accumulated.extend(decoded)
            provider_points += len(decoded)
            cursor = chunk.end_index

        log.debug("Calculated route for %s: points: %d; requests: %d", key, n, requests_made)

        if not accumulated:
            return self._raw_result(key, points[:1])

        route = Route(points=accumulated)
        if provider_points:
            self._save(key, route)
            return RouteResult(user_id=key.user_id, day=key.day, route=route, source="provider")
        return RouteResult(user_id=key.user_id, day=key.day, route=route, source="raw")

    # ------------------------------------------------------------------
    # Store helpers
    # ------------------------------------------------------------------

    def _load_points(self, key: RouteKey) -> List[RecordedPoint]:
        try:
            return self.point_log.points(key.user_id, key.day)
        except PersistenceError as e:
            log.error("Point log read failed for %s: %s", key, e)
            return []

    def _load_cached(self, key: RouteKey) -> Optional[Route]:
        try:
            document = self.route_cache.get(key.user_id, key.day)
        except PersistenceError as e:
            log.warning("Route cache read failed for %s: %s", key, e)
            return None
        if document is None:
            return None
        try:
            return codec.decode(document)
        except DecodeError as e:
            log.warning("Ignoring unreadable cached route for %s: %s", key, e)
            return None

    def _save(self, key: RouteKey, route: Route) -> None:
        try:
            self.route_cache.put(key.user_id, key.day, codec.encode(route))
        except PersistenceError as e:
            log.error("Route cache write failed for %s: %s", key, e)

    def _quota_exhausted(self) -> bool:
        try:
            return self.quota.exhausted(self.daily_limit)
        except PersistenceError as e:
            log.warning("Quota counter unavailable: %s", e)
            return False

    def _fallback(self, key: RouteKey, points: List[RecordedPoint], reason: str) -> RouteResult:
        cached = self._load_cached(key)
        if cached is not None:
            return RouteResult(
                user_id=key.user_id, day=key.day, route=cached, source="cache", fallback_reason=reason
            )
        return self._raw_result(key, points, fallback_reason=reason)

    def _raw_result(
        self,
        key: RouteKey,
        points: List[RecordedPoint],
        quota_exceeded: bool = False,
        fallback_reason: Optional[str] = None,
    ) -> RouteResult:
        return RouteResult(
            user_id=key.user_id,
            day=key.day,
            route=Route(points=[p.to_route_point() for p in points]),
            source="raw",
            quota_exceeded=quota_exceeded,
            fallback_reason=fallback_reason,
        )

    def _no_data(self, key: RouteKey) -> RouteResult:
        log.info("No recorded points for %s", key)
        return RouteResult(user_id=key.user_id, day=key.day, no_data=True)
