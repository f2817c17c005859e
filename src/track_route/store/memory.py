"""In-process stores. Used as the device-local point log and whenever a
remote backend is not configured."""
from __future__ import annotations

import json
import threading
from collections import defaultdict
from typing import Any, Dict, List, Optional, Tuple

from track_route.core.models import RecordedPoint
from track_route.store.base import PointLog, QuotaStore, RouteCache


class MemoryPointLog(PointLog):
    def __init__(self) -> None:
        self._lock = threading.Lock()
        # (user, day) -> {timestamp: point}; re-submitting a timestamp overwrites
        self._points: Dict[Tuple[str, int], Dict[int, RecordedPoint]] = defaultdict(dict)
        self._last: Dict[str, RecordedPoint] = {}

    def append(self, point: RecordedPoint) -> None:
        with self._lock:
            self._points[(point.user_id, point.day)][point.timestamp] = point
            last = self._last.get(point.user_id)
            if last is None or point.timestamp >= last.timestamp:
                self._last[point.user_id] = point

    def points(self, user_id: str, day: int) -> List[RecordedPoint]:
        with self._lock:
            bucket = self._points.get((user_id, day), {})
            return [bucket[t] for t in sorted(bucket)]

    def last_point(self, user_id: str) -> Optional[RecordedPoint]:
        with self._lock:
            return self._last.get(user_id)


class MemoryRouteCache(RouteCache):
    def __init__(self) -> None:
        self._lock = threading.Lock()
        # stored serialized so callers never share a mutable document
        self._docs: Dict[Tuple[str, int], str] = {}

    def get(self, user_id: str, day: int) -> Optional[Dict[str, Any]]:
        with self._lock:
            raw = self._docs.get((user_id, day))
        return json.loads(raw) if raw is not None else None

    def put(self, user_id: str, day: int, document: Dict[str, Any]) -> None:
        raw = json.dumps(document)
        with self._lock:
            self._docs[(user_id, day)] = raw


class MemoryQuotaStore(QuotaStore):
    def __init__(self, count: int = 0, unlimited: bool = False) -> None:
        self._lock = threading.Lock()
        self._count = count
        self._unlimited = unlimited
        self._reset_day: Optional[int] = None

    def count(self) -> int:
        with self._lock:
            return self._count

    def is_unlimited(self) -> bool:
        with self._lock:
            return self._unlimited

    def set_unlimited(self, value: bool) -> None:
        with self._lock:
            self._unlimited = bool(value)

    def try_acquire(self, limit: int) -> bool:
        with self._lock:
            if not self._unlimited and self._count > limit:
                return False
            self._count += 1
            return True

    def reset(self) -> None:
        with self._lock:
            self._count = 0

    def reset_if_new_day(self, day: int) -> bool:
        with self._lock:
            if self._reset_day == day:
                return False
            self._reset_day = day
            self._count = 0
            return True
