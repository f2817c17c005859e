from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Sequence

from track_route.config import settings
from track_route.contracts.route_contract import LatLon
from track_route.providers.base import DirectionsProvider
from track_route.providers.http import HTTPClient

log = logging.getLogger(__name__)


def _fmt(p: LatLon) -> str:
    return f"{p[0]},{p[1]}"


class GoogleDirectionsProvider(DirectionsProvider):
    """
    Directions over HTTP GET against a Google-Directions-compatible endpoint.

    Origin and destination go in their own parameters; interior waypoints are
    joined with ``|``. The response document is returned untouched, validation
    belongs to the codec.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        url: Optional[str] = None,
        client: Optional[HTTPClient] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.directions_api_key
        self.url = url or settings.directions_url
        self.client = client or HTTPClient(
            user_agent="TrackRoute/0.1.0",
            timeout_s=settings.directions_timeout_s,
            tries=settings.directions_tries,
            backoff_s=settings.directions_backoff_s,
        )

    def build_params(
        self,
        origin: LatLon,
        destination: LatLon,
        waypoints: Sequence[LatLon] = (),
    ) -> Dict[str, str]:
        params = {
            "origin": _fmt(origin),
            "destination": _fmt(destination),
        }
        if waypoints:
            params["waypoints"] = "|".join(_fmt(w) for w in waypoints)
        if self.api_key:
            params["key"] = self.api_key
        return params

    def request_route(
        self,
        origin: LatLon,
        destination: LatLon,
        waypoints: Sequence[LatLon] = (),
    ) -> Dict[str, Any]:
        params = self.build_params(origin, destination, waypoints)
        log.debug("Directions request: %s -> %s via %d waypoint(s)",
                  params["origin"], params["destination"], len(waypoints))
        return self.client.get_json(self.url, params=params)
