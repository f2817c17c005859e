from __future__ import annotations

from datetime import date, datetime, timezone
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

DAY_MS = 86_400_000


def day_bucket(timestamp_ms: int) -> int:
    """UTC-midnight-aligned bucket (ms since epoch) for a timestamp."""
    return (int(timestamp_ms) // DAY_MS) * DAY_MS


def parse_day(value: str) -> int:
    """Day bucket from either epoch milliseconds or an ISO date (YYYY-MM-DD, UTC)."""
    v = value.strip()
    if v.isdigit():
        return day_bucket(int(v))
    d = date.fromisoformat(v)
    return int(datetime(d.year, d.month, d.day, tzinfo=timezone.utc).timestamp() * 1000)


def _time_label(timestamp_ms: int) -> str:
    return datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc).strftime("%H:%M:%S")


class PositionFix(BaseModel):
    """A raw sample from the platform positioning API."""

    timestamp: int  # ms since epoch
    latitude: float
    longitude: float
    altitude: float = 0.0
    speed: float = 0.0
    bearing: float = 0.0
    accuracy: float  # radius of uncertainty, metres
    provider: Optional[str] = None


class RecordedPoint(BaseModel):
    user_id: str
    timestamp: int
    latitude: float
    longitude: float
    distance: float = 0.0  # geodesic metres from the previous accepted point
    speed: float = 0.0
    bearing: float = 0.0
    altitude: float = 0.0
    accuracy: Optional[float] = None

    model_config = {"frozen": True}

    @property
    def day(self) -> int:
        return day_bucket(self.timestamp)

    @classmethod
    def from_fix(cls, user_id: str, fix: PositionFix, distance: float) -> "RecordedPoint":
        return cls(
            user_id=user_id,
            timestamp=fix.timestamp,
            latitude=fix.latitude,
            longitude=fix.longitude,
            distance=distance,
            speed=fix.speed,
            bearing=fix.bearing,
            altitude=fix.altitude,
            accuracy=fix.accuracy,
        )

    def to_route_point(self) -> "RoutePoint":
        return RoutePoint(
            lat=self.latitude,
            lon=self.longitude,
            distance=self.distance,
            name=_time_label(self.timestamp),
            time=self.timestamp,
        )


class RoutePoint(BaseModel):
    lat: float
    lon: float
    distance: float = 0.0  # step or cumulative metres, as the source provided it

    # Encoded geometry fragment; only provider-derived points have one
    polyline: Optional[str] = None
    name: Optional[str] = None

    # UI selection state, carried through untouched
    selected: bool = True

    # Recording time for points that came straight from the point log
    time: Optional[int] = None


class Route(BaseModel):
    points: List[RoutePoint] = Field(..., min_length=1)

    @property
    def start(self) -> RoutePoint:
        return self.points[0]

    @property
    def end(self) -> RoutePoint:
        return self.points[-1]

    @property
    def total_distance_m(self) -> float:
        return sum(p.distance for p in self.points)

    def __len__(self) -> int:
        return len(self.points)


RouteSource = Literal["cache", "provider", "raw", "none"]


class RouteResult(BaseModel):
    """Outcome of a route operation.

    ``route`` is None only when ``no_data`` is set. ``quota_exceeded`` is an
    advisory that travels alongside a still-valid raw route.
    """

    user_id: str
    day: int
    route: Optional[Route] = None
    source: RouteSource = "none"
    quota_exceeded: bool = False
    no_data: bool = False
    fallback_reason: Optional[str] = None
