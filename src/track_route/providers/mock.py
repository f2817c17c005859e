from __future__ import annotations

from typing import Any, Dict, List, Sequence, Tuple

import polyline

from track_route.contracts.route_contract import LatLon
from track_route.core.route import haversine_m
from track_route.providers.base import DirectionsProvider


class MockDirectionsProvider(DirectionsProvider):
    """
    Deterministic fake directions so the pipeline runs end-to-end without APIs.
    Each leg joins two consecutive waypoints with a single straight step.

    ``calls`` records every request in order.
    """

    def __init__(self, address_prefix: str = "Point"):
        self.address_prefix = address_prefix
        self.calls: List[Tuple[LatLon, LatLon, Tuple[LatLon, ...]]] = []

    def request_route(
        self,
        origin: LatLon,
        destination: LatLon,
        waypoints: Sequence[LatLon] = (),
    ) -> Dict[str, Any]:
        self.calls.append((origin, destination, tuple(waypoints)))

        stops = [origin, *waypoints, destination]
        legs = []
        for a, b in zip(stops, stops[1:]):
            legs.append(
                {
                    "start_location": {"lat": a[0], "lng": a[1]},
                    "start_address": f"{self.address_prefix} {a[0]:.5f},{a[1]:.5f}",
                    "end_location": {"lat": b[0], "lng": b[1]},
                    "end_address": f"{self.address_prefix} {b[0]:.5f},{b[1]:.5f}",
                    "steps": [
                        {
                            "end_location": {"lat": b[0], "lng": b[1]},
                            "distance": {"value": round(haversine_m(a[0], a[1], b[0], b[1]))},
                            "polyline": {"points": polyline.encode([a, b])},
                        }
                    ],
                }
            )
        return {"status": "OK", "routes": [{"legs": legs}]}
