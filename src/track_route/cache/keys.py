"""Redis key naming conventions for the track-route counters."""
from __future__ import annotations

_PREFIX = "tr"


# ── Directions quota ─────────────────────────────────────────────────────

def quota_counter(device_id: str) -> str:
    """Key for the device-wide daily directions request counter."""
    return f"{_PREFIX}:quota:{device_id}"


def quota_unlimited(device_id: str) -> str:
    """Key for the license-derived flag that lifts the quota."""
    return f"{_PREFIX}:quota:{device_id}:unlimited"


def quota_day(device_id: str) -> str:
    """Key for the UTC day bucket the counter was last reset on."""
    return f"{_PREFIX}:quota:{device_id}:day"
