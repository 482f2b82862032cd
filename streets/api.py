"""Zone creation, inspection and sizing API endpoints."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from core.api import api_route
from core.providers import (
    get_ingestion_service,
    get_street_normalizer,
    get_zone_partitioner,
)
from core.spatial import validate_polygon
from routing.constants import DEFAULT_TARGET_ZONE_MINUTES
from routing.zones import ZonePartitioner
from streets.normalizer import StreetNormalizer
from streets.services.analysis import analyze_streets
from streets.services.ingestion import ZoneIngestionService
from streets.services.zones import (
    delete_zone,
    get_zone,
    list_zone_segments,
    segments_feature_collection,
    serialize_segment,
    serialize_zone,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/zones", tags=["zones"])


class CreateZoneRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    polygon: dict[str, Any]
    user_id: str | None = None
    include_service: bool = False


class AnalyzeZoneRequest(BaseModel):
    polygon: dict[str, Any]
    include_service: bool = False


class AutoSplitRequest(BaseModel):
    polygon: dict[str, Any]
    target_minutes: int = Field(default=DEFAULT_TARGET_ZONE_MINUTES, gt=0)
    base_name: str = "Zone"


@router.post("", response_model=dict[str, Any])
@api_route(logger)
async def create_zone(
    payload: CreateZoneRequest,
    service: ZoneIngestionService = Depends(get_ingestion_service),
):
    zone, summary = await service.create_zone(
        name=payload.name,
        polygon=payload.polygon,
        user_id=payload.user_id,
        include_service=payload.include_service,
    )
    return {
        "status": "success",
        "zone": serialize_zone(zone),
        "stats": summary.as_dict(),
    }


@router.get("/{zone_id}", response_model=dict[str, Any])
@api_route(logger)
async def get_zone_detail(zone_id: str):
    zone = await get_zone(zone_id)
    return {"status": "success", "zone": serialize_zone(zone)}


@router.get("/{zone_id}/segments", response_model=dict[str, Any])
@api_route(logger)
async def get_zone_segments(zone_id: str):
    zone = await get_zone(zone_id)
    segments = await list_zone_segments(zone.id)
    return {
        "status": "success",
        "zone_id": str(zone.id),
        "count": len(segments),
        "segments": [serialize_segment(segment) for segment in segments],
        "geojson": segments_feature_collection(segments),
    }


@router.delete("/{zone_id}", response_model=dict[str, Any])
@api_route(logger)
async def remove_zone(zone_id: str):
    deleted = await delete_zone(zone_id)
    logger.info("Deleted zone %s: %s", zone_id, deleted)
    return {"status": "success", "deleted": deleted}


@router.post("/analyze", response_model=dict[str, Any])
@api_route(logger)
async def analyze_zone(
    payload: AnalyzeZoneRequest,
    normalizer: StreetNormalizer = Depends(get_street_normalizer),
):
    geometry = validate_polygon(payload.polygon)
    extraction = await normalizer.extract(
        geometry["coordinates"][0],
        include_service=payload.include_service,
    )
    analysis = analyze_streets(extraction.streets)
    return {"status": "success", "analysis": analysis.as_dict()}


@router.post("/auto-split", response_model=dict[str, Any])
@api_route(logger)
async def auto_split_zone(
    payload: AutoSplitRequest,
    partitioner: ZonePartitioner = Depends(get_zone_partitioner),
):
    plan = await partitioner.plan(
        payload.polygon,
        target_minutes=payload.target_minutes,
        base_name=payload.base_name,
    )
    return {"status": "success", **plan.as_dict()}
