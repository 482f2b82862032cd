"""Zone and segment lookups shared by planning and tracking."""

from __future__ import annotations

from typing import Any

from beanie import PydanticObjectId

from core.exceptions import ResourceNotFoundError, ValidationError
from core.serialization import serialize_datetime, serialize_oid
from core.spatial import GeometryService
from db.models import Progression, Segment, Street, TourSession, Zone


def coerce_oid(value: str | PydanticObjectId, *, field: str = "id") -> PydanticObjectId:
    if isinstance(value, PydanticObjectId):
        return value
    try:
        return PydanticObjectId(str(value))
    except Exception as exc:
        msg = f"Invalid {field}"
        raise ValidationError(msg, {field: str(value)}) from exc


async def get_zone(zone_id: str | PydanticObjectId) -> Zone:
    zone = await Zone.get(coerce_oid(zone_id, field="zone_id"))
    if zone is None:
        msg = f"Zone {zone_id} not found"
        raise ResourceNotFoundError(msg, {"zone_id": str(zone_id)})
    return zone


def visit_sort_key(segment: Segment) -> tuple[bool, int, int]:
    """Visit order first (unordered segments last), then creation sequence."""
    return (
        segment.visit_order is None,
        segment.visit_order if segment.visit_order is not None else 0,
        segment.sequence,
    )


async def list_zone_segments(zone_id: PydanticObjectId) -> list[Segment]:
    segments = await Segment.find(Segment.zone_id == zone_id).to_list()
    segments.sort(key=visit_sort_key)
    return segments


async def delete_zone(zone_id: str | PydanticObjectId) -> dict[str, int]:
    """Delete a zone together with everything that hangs off it."""
    zone = await get_zone(zone_id)
    counts: dict[str, int] = {}
    for model in (Progression, TourSession, Segment, Street):
        result = await model.find(model.zone_id == zone.id).delete()
        counts[model.Settings.name] = int(getattr(result, "deleted_count", 0) or 0)
    await zone.delete()
    return counts


def serialize_segment(segment: Segment) -> dict[str, Any]:
    return {
        "id": serialize_oid(segment.id),
        "street_id": serialize_oid(segment.street_id),
        "zone_id": serialize_oid(segment.zone_id),
        "street_name": segment.street_name,
        "side": segment.side,
        "geometry": segment.geometry,
        "length_m": round(segment.length_m, 2),
        "midpoint": segment.midpoint,
        "visit_order": segment.visit_order,
        "status": segment.status,
    }


def segments_feature_collection(segments: list[Segment]) -> dict[str, Any]:
    """Segments as a GeoJSON FeatureCollection for map display."""
    features = []
    for segment in segments:
        properties = serialize_segment(segment)
        geometry = properties.pop("geometry")
        features.append(GeometryService.feature_from_geometry(geometry, properties))
    return GeometryService.feature_collection(features)


def serialize_zone(zone: Zone, *, include_route: bool = True) -> dict[str, Any]:
    route = None
    if include_route and zone.route is not None:
        route = zone.route.model_dump(mode="json")
    return {
        "id": serialize_oid(zone.id),
        "name": zone.name,
        "polygon": zone.polygon,
        "user_id": zone.user_id,
        "stats": zone.stats or {},
        "route": route,
        "created_at": serialize_datetime(zone.created_at),
        "updated_at": serialize_datetime(zone.updated_at),
    }
