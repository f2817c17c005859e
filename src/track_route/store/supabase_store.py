"""Supabase-backed point log and route cache.

Tables (one row per accepted point, one row per cached day route)::

    location_points(user_id, day, time, latitude, longitude, distance,
                    speed, bearing, altitude, accuracy)   unique (user_id, time)
    location_routes(user_id, day, encoded)                unique (user_id, day)

``encoded`` holds the route document as a JSON string.
"""
from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional

from track_route.config import settings
from track_route.core.errors import PersistenceError
from track_route.core.models import RecordedPoint
from track_route.store.base import PointLog, RouteCache

log = logging.getLogger(__name__)


def _point_row(point: RecordedPoint) -> Dict[str, Any]:
    return {
        "user_id": point.user_id,
        "day": point.day,
        "time": point.timestamp,
        "latitude": point.latitude,
        "longitude": point.longitude,
        "distance": point.distance,
        "speed": point.speed,
        "bearing": point.bearing,
        "altitude": point.altitude,
        "accuracy": point.accuracy,
    }


def _row_point(row: Dict[str, Any]) -> RecordedPoint:
    return RecordedPoint(
        user_id=row["user_id"],
        timestamp=int(row["time"]),
        latitude=row["latitude"],
        longitude=row["longitude"],
        distance=row.get("distance") or 0.0,
        speed=row.get("speed") or 0.0,
        bearing=row.get("bearing") or 0.0,
        altitude=row.get("altitude") or 0.0,
        accuracy=row.get("accuracy"),
    )


class SupabasePointLog(PointLog):
    def __init__(self, client, table: Optional[str] = None):
        self.sb = client
        self.table = table or settings.points_table

    def append(self, point: RecordedPoint) -> None:
        try:
            self.sb.table(self.table).upsert(_point_row(point), on_conflict="user_id,time").execute()
        except Exception as e:
            raise PersistenceError(f"point log write failed: {e}") from e

    def points(self, user_id: str, day: int) -> List[RecordedPoint]:
        try:
            resp = (
                self.sb.table(self.table)
                .select("*")
                .eq("user_id", user_id)
                .eq("day", day)
                .order("time")
                .execute()
            )
        except Exception as e:
            raise PersistenceError(f"point log read failed: {e}") from e
        return [_row_point(row) for row in resp.data or []]

    def last_point(self, user_id: str) -> Optional[RecordedPoint]:
        try:
            resp = (
                self.sb.table(self.table)
                .select("*")
                .eq("user_id", user_id)
                .order("time", desc=True)
                .limit(1)
                .execute()
            )
        except Exception as e:
            raise PersistenceError(f"point log read failed: {e}") from e
        if not resp.data:
            return None
        return _row_point(resp.data[0])


class SupabaseRouteCache(RouteCache):
    def __init__(self, client, table: Optional[str] = None):
        self.sb = client
        self.table = table or settings.routes_table

    def get(self, user_id: str, day: int) -> Optional[Dict[str, Any]]:
        try:
            resp = (
                self.sb.table(self.table)
                .select("encoded")
                .eq("user_id", user_id)
                .eq("day", day)
                .limit(1)
                .execute()
            )
        except Exception as e:
            raise PersistenceError(f"route cache read failed: {e}") from e
        if not resp.data:
            return None
        encoded = resp.data[0].get("encoded")
        if not encoded:
            return None
        try:
            return json.loads(encoded)
        except ValueError as e:
            raise PersistenceError(f"route cache holds invalid JSON for {user_id}@{day}: {e}") from e

    def put(self, user_id: str, day: int, document: Dict[str, Any]) -> None:
        row = {"user_id": user_id, "day": day, "encoded": json.dumps(document)}
        try:
            self.sb.table(self.table).upsert(row, on_conflict="user_id,day").execute()
        except Exception as e:
            raise PersistenceError(f"route cache write failed: {e}") from e
