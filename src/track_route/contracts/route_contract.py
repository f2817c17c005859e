from __future__ import annotations
from dataclasses import dataclass
from typing import Optional, Tuple


LatLon = Tuple[float, float]


@dataclass(frozen=True)
class RouteKey:
    user_id: str
    day: int  # UTC day bucket, ms since epoch

    def __str__(self) -> str:
        return f"{self.user_id}@{self.day}"


@dataclass(frozen=True)
class FilterDecision:
    accept: bool
    distance: float = 0.0  # metres to the previous baseline; 0 for a first point
    reason: Optional[str] = None  # "accuracy" / "distance" when rejected


@dataclass(frozen=True)
class Chunk:
    """One batch of waypoints for a single directions request.

    ``indices`` are positions in the day's raw point list; the last one is
    where the cursor moves after the chunk is processed.
    """

    indices: Tuple[int, ...]

    @property
    def end_index(self) -> int:
        return self.indices[-1]

    def __len__(self) -> int:
        return len(self.indices)
