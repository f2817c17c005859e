"""Position fix intake."""
from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from track_route.core.filter import GeoFilter
from track_route.core.models import PositionFix
from track_route.services import get_geo_filter

router = APIRouter(prefix="/fixes", tags=["fixes"])


class FixBatch(BaseModel):
    fixes: List[PositionFix] = Field(..., min_length=1)


class DecisionOut(BaseModel):
    timestamp: int
    accept: bool
    distance: float
    reason: Optional[str] = None


class BatchOut(BaseModel):
    user_id: str
    accepted: int
    decisions: List[DecisionOut]


@router.post("/{user_id}", response_model=BatchOut)
def submit_fixes(
    user_id: str,
    body: FixBatch,
    geo_filter: GeoFilter = Depends(get_geo_filter),
):
    result = geo_filter.process_batch(user_id, body.fixes)
    return BatchOut(
        user_id=user_id,
        accepted=result.accepted_count,
        decisions=[
            DecisionOut(timestamp=fix.timestamp, accept=d.accept, distance=d.distance, reason=d.reason)
            for fix, d in zip(body.fixes, result.decisions)
        ],
    )
