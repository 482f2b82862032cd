"""Ad-hoc round trips sized to the time a distributor has left."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from beanie import PydanticObjectId

from core.exceptions import EmptyInput, ValidationError
from core.http.openrouteservice import DEFAULT_PROFILE
from core.spatial import GeometryService, distance_meters
from db.models import SEGMENT_DONE, Segment
from routing.constants import (
    QUICK_TOUR_MAX_SEGMENTS,
    QUICK_TOUR_METERS_PER_HOUR,
    QUICK_TOUR_SEARCH_RADIUS_M,
    QUICK_TOUR_TIME_BUDGET_RATIO,
)
from routing.types import OptimizationQuality, RouteResult
from streets.services.zones import serialize_segment

if TYPE_CHECKING:
    from routing.optimizer import RouteOptimizer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QuickTour:
    route: RouteResult
    segments: list[Segment]
    budget_m: float

    @property
    def estimated_minutes(self) -> int:
        length = sum(segment.length_m for segment in self.segments)
        return round(length / QUICK_TOUR_METERS_PER_HOUR * 60)

    def as_dict(self) -> dict[str, Any]:
        return {
            "segments": [serialize_segment(segment) for segment in self.segments],
            "segment_count": len(self.segments),
            "budget_m": round(self.budget_m, 1),
            "estimated_minutes": self.estimated_minutes,
            "route": self.route.as_dict(),
        }


def select_segments(
    position: list[float],
    candidates: list[Segment],
    *,
    budget_m: float,
    radius_m: float = QUICK_TOUR_SEARCH_RADIUS_M,
    max_segments: int = QUICK_TOUR_MAX_SEGMENTS,
) -> list[Segment]:
    """Closest unfinished segments whose summed length fits in ``budget_m``."""
    nearby = sorted(
        (
            (distance_meters(position, segment.midpoint), segment)
            for segment in candidates
            if segment.status != SEGMENT_DONE
        ),
        key=lambda pair: pair[0],
    )
    chosen: list[Segment] = []
    used = 0.0
    for distance, segment in nearby:
        if distance > radius_m or len(chosen) >= max_segments:
            break
        if used + segment.length_m > budget_m:
            continue
        chosen.append(segment)
        used += segment.length_m
    return chosen


class QuickTourService:
    def __init__(self, optimizer: RouteOptimizer) -> None:
        self._optimizer = optimizer

    async def build(
        self,
        position: list[float],
        available_minutes: float,
        *,
        zone_id: PydanticObjectId | None = None,
        profile: str = DEFAULT_PROFILE,
        radius_m: float = QUICK_TOUR_SEARCH_RADIUS_M,
    ) -> QuickTour:
        is_valid, start = GeometryService.validate_coordinate_pair(position)
        if not is_valid or start is None:
            msg = "Invalid position"
            raise ValidationError(msg, {"position": position})
        if available_minutes <= 0:
            msg = "available_minutes must be positive"
            raise ValidationError(msg)

        budget_m = (
            available_minutes / 60 * QUICK_TOUR_METERS_PER_HOUR * QUICK_TOUR_TIME_BUDGET_RATIO
        )
        query: dict[str, Any] = {"status": {"$ne": SEGMENT_DONE}}
        if zone_id is not None:
            query["zone_id"] = zone_id
        candidates = await Segment.find(query).to_list()

        chosen = select_segments(start, candidates, budget_m=budget_m, radius_m=radius_m)
        if not chosen:
            msg = "No unfinished segments within reach for this time budget"
            raise EmptyInput(msg, {"radius_m": radius_m, "budget_m": round(budget_m)})

        route = await self._optimizer.optimize(
            [start, *(segment.midpoint for segment in chosen)],
            profile=profile,
            start_index=0,
            quality=OptimizationQuality.GREEDY_TWO_OPT,
            round_trip=True,
        )
        ordered = [chosen[index - 1] for index in route.visit_order if index >= 1]
        logger.info(
            "Quick tour of %d segments within %.0f m (budget %.0f m)",
            len(ordered),
            radius_m,
            budget_m,
        )
        return QuickTour(route=route, segments=ordered, budget_m=budget_m)
