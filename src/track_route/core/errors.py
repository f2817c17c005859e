"""Error taxonomy for the track-route engine.

Rejected fixes, empty days and an exhausted quota are ordinary outcomes:
they travel on ``FilterDecision.reason``, ``RouteResult.no_data`` and
``RouteResult.quota_exceeded`` rather than as exceptions.
"""
from __future__ import annotations

from typing import Optional


class TrackRouteError(Exception):
    """Base class for every error raised by track_route."""


class ProviderError(TrackRouteError):
    """Transport failure, timeout or HTTP error talking to the directions provider."""


class DecodeError(TrackRouteError):
    """A directions response that is not OK or not shaped like a route.

    ``provider_message`` carries the provider's ``error_message`` verbatim
    when the response had one.
    """

    def __init__(self, message: str, provider_message: Optional[str] = None):
        super().__init__(message)
        self.provider_message = provider_message


class PersistenceError(TrackRouteError):
    """Point log, route cache or counter read/write failure."""
