"""Geodesic helpers and waypoint chunking for route reconstruction."""
from __future__ import annotations

from math import atan2, cos, radians, sin, sqrt
from typing import List, Protocol, Sequence

from track_route.contracts.route_contract import Chunk


class _HasLatLon(Protocol):
    latitude: float
    longitude: float


# ---------------------------------------------------------------------------
# Geo helpers
# ---------------------------------------------------------------------------

def haversine_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in metres between two WGS-84 points."""
    R = 6_371_000.0  # Earth radius in metres
    lat1r, lon1r, lat2r, lon2r = map(radians, [lat1, lon1, lat2, lon2])
    dlat = lat2r - lat1r
    dlon = lon2r - lon1r
    a = sin(dlat / 2) ** 2 + cos(lat1r) * cos(lat2r) * sin(dlon / 2) ** 2
    return R * 2 * atan2(sqrt(a), sqrt(1 - a))


def distance_between(a: _HasLatLon, b: _HasLatLon) -> float:
    return haversine_m(a.latitude, a.longitude, b.latitude, b.longitude)


# ---------------------------------------------------------------------------
# Chunking
# ---------------------------------------------------------------------------

def next_chunk(
    points: Sequence[_HasLatLon],
    cursor: int,
    min_waypoint_distance_m: float = 100.0,
    max_waypoints: int = 20,
) -> Chunk:
    """
    Collect the waypoints for the request that starts at ``points[cursor]``.

    The scan walks forward from ``cursor + 1``. The final point of the day is
    always taken; an intermediate point is taken only when it lies more than
    ``min_waypoint_distance_m`` from the previously taken one. The scan stops
    once more than ``max_waypoints`` indices are collected or the final point
    is reached, so a chunk holds at most ``max_waypoints + 1`` waypoints.

    A cursor already on the last point yields a single-index chunk.
    """
    last_index = len(points) - 1
    indices: List[int] = [cursor]
    anchor = points[cursor]

    for i in range(cursor + 1, last_index + 1):
        if i == last_index:
            indices.append(i)
            anchor = points[i]
        elif distance_between(points[i], anchor) > min_waypoint_distance_m:
            indices.append(i)
            anchor = points[i]

        if len(indices) > max_waypoints or i == last_index:
            break

    return Chunk(indices=tuple(indices))


def plan_chunks(
    points: Sequence[_HasLatLon],
    min_waypoint_distance_m: float = 100.0,
    max_waypoints: int = 20,
) -> List[Chunk]:
    """All chunks for a day, in request order. Used for dry runs and tests."""
    chunks: List[Chunk] = []
    cursor = 0
    while cursor < len(points) - 1:
        chunk = next_chunk(points, cursor, min_waypoint_distance_m, max_waypoints)
        chunks.append(chunk)
        cursor = chunk.end_index
    return chunks
