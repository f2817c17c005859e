"""FastAPI REST backend for the track-route engine."""
from __future__ import annotations

import logging

from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from track_route.cache.redis_client import redis_ok
from track_route.config import settings
from track_route.core.errors import PersistenceError
from track_route.db import get_supabase
from track_route.routers import fixes, tracks
from track_route.services import get_quota_store
from track_route.store.base import QuotaStore

log = logging.getLogger(__name__)

app = FastAPI(title="Track Route", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

# ---------------------------------------------------------------------------
# Include routers
# ---------------------------------------------------------------------------
app.include_router(fixes.router)
app.include_router(tracks.router)


class QuotaOut(BaseModel):
    device_id: str
    count: int
    daily_limit: int
    unlimited: bool
    exhausted: bool


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@app.get("/health")
def health():
    return {"status": "ok", "redis": redis_ok(), "supabase": get_supabase() is not None}


@app.get("/quota", response_model=QuotaOut)
def quota(store: QuotaStore = Depends(get_quota_store)):
    try:
        count = store.count()
        unlimited = store.is_unlimited()
    except PersistenceError as e:
        log.error("Quota read failed: %s", e)
        raise HTTPException(status_code=503, detail=str(e))
    return QuotaOut(
        device_id=settings.device_id,
        count=count,
        daily_limit=settings.daily_limit,
        unlimited=unlimited,
        exhausted=not unlimited and count > settings.daily_limit,
    )
