"""Storage contracts for the point log, the route cache and the device counters.

Implementations raise ``PersistenceError`` on backend failure; deciding
whether a failure matters is left to the caller.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from track_route.core.models import RecordedPoint


class PointLog(ABC):
    """Append-only per-(user, day) log of accepted points."""

    @abstractmethod
    def append(self, point: RecordedPoint) -> None:
        raise NotImplementedError

    @abstractmethod
    def points(self, user_id: str, day: int) -> List[RecordedPoint]:
        """All points for the key, timestamp ascending."""
        raise NotImplementedError

    @abstractmethod
    def last_point(self, user_id: str) -> Optional[RecordedPoint]:
        """Most recent point for the user across all days."""
        raise NotImplementedError


class RouteCache(ABC):
    """One encoded route document per (user, day)."""

    @abstractmethod
    def get(self, user_id: str, day: int) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    @abstractmethod
    def put(self, user_id: str, day: int, document: Dict[str, Any]) -> None:
        raise NotImplementedError


class QuotaStore(ABC):
    """Device-wide directions request counter plus the unlimited flag."""

    @abstractmethod
    def count(self) -> int:
        raise NotImplementedError

    @abstractmethod
    def is_unlimited(self) -> bool:
        raise NotImplementedError

    @abstractmethod
    def set_unlimited(self, value: bool) -> None:
        raise NotImplementedError

    @abstractmethod
    def try_acquire(self, limit: int) -> bool:
        """Atomically check the quota and take one unit.

        Returns False, without incrementing, when the counter is already past
        ``limit`` and the unlimited flag is off.
        """
        raise NotImplementedError

    @abstractmethod
    def reset(self) -> None:
        raise NotImplementedError

    @abstractmethod
    def reset_if_new_day(self, day: int) -> bool:
        """Reset the counter once per UTC day bucket. True when a reset happened."""
        raise NotImplementedError

    def exhausted(self, limit: int) -> bool:
        if self.is_unlimited():
            return False
        return self.count() > limit
