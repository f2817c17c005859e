"""Day tracks: raw points, cached/reconstructed routes, forced recalculation."""
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from track_route.core.engine import RouteEngine
from track_route.core.models import RouteResult, parse_day
from track_route.services import get_engine

router = APIRouter(prefix="/tracks", tags=["tracks"])


def _day(value: str) -> int:
    try:
        return parse_day(value)
    except ValueError:
        raise HTTPException(status_code=422, detail=f"Invalid day: {value!r}")


def _or_404(result: RouteResult) -> RouteResult:
    if result.no_data:
        raise HTTPException(status_code=404, detail="No recorded points for this day")
    return result


@router.get("/{user_id}/{day}/points", response_model=RouteResult)
def get_points(user_id: str, day: str, engine: RouteEngine = Depends(get_engine)):
    return _or_404(engine.get_raw_points(user_id, _day(day)))


@router.get("/{user_id}/{day}/route", response_model=RouteResult)
def get_route(user_id: str, day: str, engine: RouteEngine = Depends(get_engine)):
    return _or_404(engine.get_route(user_id, _day(day)))


@router.post("/{user_id}/{day}/recalculate", response_model=RouteResult)
def recalculate(user_id: str, day: str, engine: RouteEngine = Depends(get_engine)):
    return _or_404(engine.recalculate_route(user_id, _day(day)))
