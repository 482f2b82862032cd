"""Route planning API endpoints."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from core.api import api_route
from core.http.openrouteservice import DEFAULT_PROFILE
from core.providers import get_planning_service, get_quick_tour_service
from routing.constants import QUICK_TOUR_SEARCH_RADIUS_M
from routing.quick_tour import QuickTourService
from routing.service import RoutePlanningService
from routing.types import OptimizationQuality
from streets.services.zones import coerce_oid

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["routing"])


class PlanZoneRequest(BaseModel):
    start_point: list[float] | None = Field(default=None, min_length=2, max_length=2)
    profile: str = DEFAULT_PROFILE
    quality: OptimizationQuality = OptimizationQuality.GREEDY
    save: bool = True


class QuickTourRequest(BaseModel):
    position: list[float] = Field(..., min_length=2, max_length=2)
    available_minutes: float = Field(..., gt=0)
    zone_id: str | None = None
    profile: str = DEFAULT_PROFILE
    radius_m: float = Field(default=QUICK_TOUR_SEARCH_RADIUS_M, gt=0)


@router.post("/zones/{zone_id}/plan", response_model=dict[str, Any])
@api_route(logger)
async def plan_zone_route(
    zone_id: str,
    payload: PlanZoneRequest | None = None,
    service: RoutePlanningService = Depends(get_planning_service),
):
    payload = payload or PlanZoneRequest()
    plan = await service.plan_zone(
        zone_id,
        start_point=payload.start_point,
        profile=payload.profile,
        quality=payload.quality,
        save=payload.save,
    )
    return {"status": "success", **plan.as_dict()}


@router.post("/quick-tour", response_model=dict[str, Any])
@api_route(logger)
async def build_quick_tour(
    payload: QuickTourRequest,
    service: QuickTourService = Depends(get_quick_tour_service),
):
    zone_oid = coerce_oid(payload.zone_id, field="zone_id") if payload.zone_id else None
    tour = await service.build(
        payload.position,
        payload.available_minutes,
        zone_id=zone_oid,
        profile=payload.profile,
        radius_m=payload.radius_m,
    )
    return {"status": "success", "tour": tour.as_dict()}
