"""Zone route planning: optimize a zone's segments and store the result."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from beanie import PydanticObjectId

from core.exceptions import EmptyInput, ValidationError
from core.http.openrouteservice import DEFAULT_PROFILE
from core.spatial import GeometryService
from db.models import RouteInstruction, Segment, ZoneRoute
from routing.types import OptimizationQuality, RouteResult
from streets.services.zones import get_zone, list_zone_segments

if TYPE_CHECKING:
    from routing.optimizer import RouteOptimizer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ZoneRoutePlan:
    zone_id: PydanticObjectId
    route: RouteResult
    segment_order: list[PydanticObjectId]
    start_point: list[float] | None = None

    def as_dict(self) -> dict[str, Any]:
        return {
            "zone_id": str(self.zone_id),
            "segment_order": [str(segment_id) for segment_id in self.segment_order],
            "start_point": self.start_point,
            "route": self.route.as_dict(),
        }


def _route_document(
    plan: ZoneRoutePlan,
    *,
    profile: str,
    quality: OptimizationQuality,
) -> ZoneRoute:
    route = plan.route
    return ZoneRoute(
        geometry=route.geometry,
        waypoints=route.waypoints,
        segment_order=[str(segment_id) for segment_id in plan.segment_order],
        distance_m=route.distance_m,
        duration_s=route.duration_s,
        profile=profile,
        quality=quality.value,
        start_point=plan.start_point,
        instructions=[
            RouteInstruction(
                instruction=step.instruction,
                distance_m=step.distance_m,
                duration_s=step.duration_s,
                name=step.name,
            )
            for step in route.instructions
        ],
    )


class RoutePlanningService:
    """Plans the visiting order of a stored zone."""

    def __init__(self, optimizer: RouteOptimizer) -> None:
        self._optimizer = optimizer

    async def plan_zone(
        self,
        zone_id: str | PydanticObjectId,
        *,
        start_point: list[float] | None = None,
        profile: str = DEFAULT_PROFILE,
        quality: OptimizationQuality | str = OptimizationQuality.GREEDY,
        save: bool = True,
    ) -> ZoneRoutePlan:
        """Optimize the zone's segment midpoints, optionally from a start point.

        With ``save`` the visit order (1-based) is written to each segment and
        the routed geometry is stored on the zone.
        """
        quality = OptimizationQuality(quality)
        zone = await get_zone(zone_id)
        segments = await list_zone_segments(zone.id)
        if not segments:
            msg = f"Zone {zone.id} has no segments to plan"
            raise EmptyInput(msg, {"zone_id": str(zone.id)})

        waypoints: list[list[float]] = []
        if start_point is not None:
            is_valid, pair = GeometryService.validate_coordinate_pair(start_point)
            if not is_valid or pair is None:
                msg = "Invalid start point"
                raise ValidationError(msg, {"start_point": start_point})
            waypoints.append(pair)
            start_point = pair
        offset = len(waypoints)
        waypoints.extend(segment.midpoint for segment in segments)

        route = await self._optimizer.optimize(
            waypoints,
            profile=profile,
            start_index=0,
            quality=quality,
        )

        ordered: list[Segment] = [
            segments[index - offset] for index in route.visit_order if index >= offset
        ]
        plan = ZoneRoutePlan(
            zone_id=zone.id,
            route=route,
            segment_order=[segment.id for segment in ordered],
            start_point=start_point,
        )

        if save:
            now = datetime.now(UTC)
            for rank, segment in enumerate(ordered, start=1):
                segment.visit_order = rank
                segment.updated_at = now
                await segment.save()
            zone.route = _route_document(plan, profile=profile, quality=quality)
            zone.updated_at = now
            await zone.save()

        logger.info(
            "Planned zone %s: %d segments, %.0f m, saved=%s",
            zone.id,
            len(ordered),
            route.distance_m,
            save,
        )
        return plan
