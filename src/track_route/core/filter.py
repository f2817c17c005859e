"""Geo-filter: decides which position fixes become recorded points.

A fix is kept when its accuracy radius is below the threshold and it lies
at least ``min_distance_m`` from the user's last kept point. Each kept fix
becomes the new baseline before the next fix of the batch is looked at, so
batches for one user are processed strictly in order under a per-user lock.
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional

from track_route.config import settings
from track_route.contracts.route_contract import FilterDecision
from track_route.core.errors import PersistenceError
from track_route.core.models import PositionFix, RecordedPoint
from track_route.core.route import haversine_m
from track_route.store.base import PointLog

log = logging.getLogger(__name__)

# (user_id, accepted_count, last accepted point)
NotifyFn = Callable[[str, int, Optional[RecordedPoint]], None]


def accept(
    fix: PositionFix,
    last_accepted: Optional[RecordedPoint],
    accuracy_threshold_m: float = 50.0,
    min_distance_m: float = 30.0,
) -> FilterDecision:
    """Pure filtering decision for a single fix against a baseline."""
    if fix.accuracy >= accuracy_threshold_m:
        return FilterDecision(accept=False, reason="accuracy")

    if last_accepted is None:
        return FilterDecision(accept=True, distance=0.0)

    distance = haversine_m(
        last_accepted.latitude, last_accepted.longitude, fix.latitude, fix.longitude
    )
    if distance >= min_distance_m:
        return FilterDecision(accept=True, distance=distance)
    return FilterDecision(accept=False, distance=distance, reason="distance")


@dataclass
class BatchResult:
    user_id: str
    decisions: List[FilterDecision] = field(default_factory=list)
    accepted: List[RecordedPoint] = field(default_factory=list)

    @property
    def accepted_count(self) -> int:
        return len(self.accepted)


class GeoFilter:
    def __init__(
        self,
        local_log: PointLog,
        remote_log: Optional[PointLog] = None,
        notify: Optional[NotifyFn] = None,
        accuracy_threshold_m: Optional[float] = None,
        min_distance_m: Optional[float] = None,
    ):
        self.local_log = local_log
        self.remote_log = remote_log
        self.notify = notify
        self.accuracy_threshold_m = (
            accuracy_threshold_m if accuracy_threshold_m is not None else settings.accuracy_threshold_m
        )
        self.min_distance_m = min_distance_m if min_distance_m is not None else settings.min_distance_m

        self._baselines: Dict[str, RecordedPoint] = {}
        self._user_locks: Dict[str, threading.Lock] = {}
        self._guard = threading.Lock()

    def _lock_for(self, user_id: str) -> threading.Lock:
        with self._guard:
            lock = self._user_locks.get(user_id)
            if lock is None:
                lock = self._user_locks[user_id] = threading.Lock()
            return lock

    def baseline(self, user_id: str) -> Optional[RecordedPoint]:
        return self._baselines.get(user_id)

    def _load_baseline(self, user_id: str) -> Optional[RecordedPoint]:
        if user_id in self._baselines:
            return self._baselines[user_id]
        # After a restart the last locally saved point is the baseline
        try:
            last = self.local_log.last_point(user_id)
        except PersistenceError as e:
            log.warning("Could not seed baseline for %s: %s", user_id, e)
            return None
        if last is not None:
            self._baselines[user_id] = last
        return last

    def _persist(self, point: RecordedPoint) -> None:
        try:
            self.local_log.append(point)
        except PersistenceError as e:
            log.error("Local point log write failed for %s@%d: %s", point.user_id, point.timestamp, e)
        if self.remote_log is not None:
            try:
                self.remote_log.append(point)
            except PersistenceError as e:
                log.warning("Remote point log write failed for %s@%d: %s", point.user_id, point.timestamp, e)

    def process_batch(self, user_id: str, fixes: Iterable[PositionFix]) -> BatchResult:
        result = BatchResult(user_id=user_id)

        with self._lock_for(user_id):
            last = self._load_baseline(user_id)
            for fix in fixes:
                decision = accept(fix, last, self.accuracy_threshold_m, self.min_distance_m)
                result.decisions.append(decision)
                if not decision.accept:
                    continue

                point = RecordedPoint.from_fix(user_id, fix, decision.distance)
                self._persist(point)
                self._baselines[user_id] = last = point
                result.accepted.append(point)

        log.debug("Batch for %s: %d fix(es), %d accepted",
                  user_id, len(result.decisions), result.accepted_count)

        if result.accepted and self.notify is not None:
            try:
                self.notify(user_id, result.accepted_count, result.accepted[-1])
            except Exception:
                log.exception("Accepted-points notification failed for %s", user_id)

        return result
