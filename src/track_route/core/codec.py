"""Directions response codec.

``decode`` turns a directions-provider JSON document into route points;
``encode`` writes a route back into the same document shape so a cached
route replays through ``decode`` unchanged.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from track_route.core.errors import DecodeError
from track_route.core.models import Route, RoutePoint

log = logging.getLogger(__name__)


def _first_legs(response: Any) -> Optional[List[Dict[str, Any]]]:
    if not isinstance(response, dict):
        return None
    routes = response.get("routes")
    if not isinstance(routes, list) or not routes or not isinstance(routes[0], dict):
        return None
    legs = routes[0].get("legs")
    if not isinstance(legs, list) or not legs:
        return None
    return legs


def validate(response: Any) -> bool:
    """True when the response is OK and holds at least one route with a leg."""
    if not isinstance(response, dict) or "error_message" in response:
        return False
    return response.get("status") == "OK" and _first_legs(response) is not None


def _check(response: Any) -> List[Dict[str, Any]]:
    if not isinstance(response, dict):
        raise DecodeError(f"Directions response is not an object: {type(response).__name__}")

    if "error_message" in response:
        msg = str(response["error_message"])
        log.warning("Directions provider error: %s", msg)
        raise DecodeError(msg, provider_message=msg)

    status = response.get("status")
    if status != "OK":
        raise DecodeError(f"Directions status {status!r}")

    legs = _first_legs(response)
    if legs is None:
        raise DecodeError("Directions response has no route legs")
    return legs


def _location(obj: Dict[str, Any], field: str) -> tuple[float, float]:
    loc = obj[field]
    return float(loc["lat"]), float(loc["lng"])


def decode_points(response: Any) -> List[RoutePoint]:
    legs = _check(response)
    points: List[RoutePoint] = []

    try:
        for leg in legs:
            if not points:
                lat, lon = _location(leg, "start_location")
                points.append(RoutePoint(lat=lat, lon=lon, distance=0.0, name=leg.get("start_address")))

            steps = leg.get("steps") or []
            for i, step in enumerate(steps):
                lat, lon = _location(step, "end_location")
                polyline = step.get("polyline") or {}
                name = step.get("end_address")
                if i == len(steps) - 1:
                    # Legs carry a geocoded end address that steps usually lack
                    name = leg.get("end_address", name)
                points.append(
                    RoutePoint(
                        lat=lat,
                        lon=lon,
                        distance=float(step["distance"]["value"]),
                        polyline=polyline.get("points"),
                        name=name,
                    )
                )
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        raise DecodeError(f"Malformed directions response: {type(e).__name__}: {e}") from e

    return points


def decode(response: Any) -> Route:
    """Decode a directions response into a Route or raise DecodeError."""
    return Route(points=decode_points(response))


def encode(route: Route) -> Dict[str, Any]:
    """Write a route into a single-leg directions document."""
    first = route.points[0]
    last = route.points[-1]

    steps: List[Dict[str, Any]] = []
    for p in route.points[1:]:
        step: Dict[str, Any] = {
            "end_location": {"lat": p.lat, "lng": p.lon},
            "polyline": {"points": p.polyline},
            "distance": {"value": p.distance},
        }
        if p.name is not None:
            step["end_address"] = p.name
        steps.append(step)

    leg = {
        "start_location": {"lat": first.lat, "lng": first.lon},
        "start_address": first.name,
        "end_location": {"lat": last.lat, "lng": last.lon},
        "end_address": last.name,
        "steps": steps,
    }
    return {"status": "OK", "routes": [{"legs": [leg]}]}
