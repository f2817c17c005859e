"""
Shared fixtures: in-memory stores, a mock provider and point builders.

Points are laid out along a meridian so that the haversine distance
between two of them is exactly the metre offset used to build them.
"""

import math

import pytest

from track_route.core.engine import RouteEngine
from track_route.core.models import PositionFix, RecordedPoint
from track_route.providers.mock import MockDirectionsProvider
from track_route.store.memory import MemoryPointLog, MemoryQuotaStore, MemoryRouteCache

BASE_LAT = 50.4501
BASE_LON = 30.5234
DAY = 1_700_006_400_000  # 2023-11-15 00:00 UTC
METRES_PER_DEG_LAT = 6_371_000.0 * math.pi / 180.0


def lat_at(north_m: float) -> float:
    return BASE_LAT + north_m / METRES_PER_DEG_LAT


@pytest.fixture
def make_fix():
    def _make(north_m: float = 0.0, ts: int = DAY + 3_600_000, accuracy: float = 5.0) -> PositionFix:
        return PositionFix(
            timestamp=ts,
            latitude=lat_at(north_m),
            longitude=BASE_LON,
            altitude=120.0,
            speed=1.5,
            bearing=0.0,
            accuracy=accuracy,
        )
    return _make


@pytest.fixture
def make_points():
    """Recorded points for one user/day at the given northward offsets (metres)."""
    def _make(offsets, user_id: str = "agent-1", day: int = DAY):
        return [
            RecordedPoint(
                user_id=user_id,
                timestamp=day + 60_000 * (i + 1),
                latitude=lat_at(m),
                longitude=BASE_LON,
                distance=0.0 if i == 0 else abs(m - offsets[i - 1]),
            )
            for i, m in enumerate(offsets)
        ]
    return _make


@pytest.fixture
def point_log():
    return MemoryPointLog()


@pytest.fixture
def route_cache():
    return MemoryRouteCache()


@pytest.fixture
def quota():
    return MemoryQuotaStore()


@pytest.fixture
def provider():
    return MockDirectionsProvider()


@pytest.fixture
def engine(point_log, route_cache, quota, provider):
    eng = RouteEngine(
        point_log=point_log,
        route_cache=route_cache,
        quota=quota,
        provider=provider,
        daily_limit=20,
        min_waypoint_distance_m=100.0,
        max_waypoints_per_call=20,
    )
    yield eng
    eng.shutdown()


@pytest.fixture
def load_points(point_log, make_points):
    """Append points at the given offsets to the point log and return them."""
    def _load(offsets, user_id: str = "agent-1", day: int = DAY):
        pts = make_points(offsets, user_id=user_id, day=day)
        for p in pts:
            point_log.append(p)
        return pts
    return _load
