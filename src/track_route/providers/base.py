from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, Sequence

from track_route.contracts.route_contract import LatLon


class DirectionsProvider(ABC):
    """Road-snapped routing between an origin and a destination."""

    @abstractmethod
    def request_route(
        self,
        origin: LatLon,
        destination: LatLon,
        waypoints: Sequence[LatLon] = (),
    ) -> Dict[str, Any]:
        """Return the provider's JSON document; raise ProviderError on transport failure."""
        raise NotImplementedError
