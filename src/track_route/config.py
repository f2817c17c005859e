"""Centralized settings for the track-route engine."""
from __future__ import annotations

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    model_config = {"env_prefix": "TRACK_ROUTE_"}

    # Geo-filter thresholds (metres)
    accuracy_threshold_m: float = 50.0   # fixes at or above this radius are noise
    min_distance_m: float = 30.0         # minimum movement before a new point is kept

    # Chunked reconstruction
    min_waypoint_distance_m: float = 100.0
    max_waypoints_per_call: int = 20     # a chunk may hold one more than this

    # Directions quota: one counter per device, reset daily by the worker
    daily_limit: int = 20
    unlimited: bool = False
    device_id: str = "default"

    # Directions provider: empty key means the mock provider is used
    directions_url: str = "https://maps.googleapis.com/maps/api/directions/json"
    directions_api_key: str = ""
    directions_timeout_s: int = 20
    directions_tries: int = 3
    directions_backoff_s: float = 0.8

    # Redis: empty string means disabled (in-memory counters)
    redis_url: str = ""

    # Supabase: empty strings mean disabled (in-memory point log / route cache)
    supabase_url: str = ""
    supabase_service_key: str = ""
    points_table: str = "location_points"
    routes_table: str = "location_routes"

    # Engine executor for submit_* calls
    engine_workers: int = 4

    # Background worker
    worker_interval_s: int = 300      # 5 min between quota-reset checks


settings = Settings()
