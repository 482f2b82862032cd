"""
Zone partitioning for oversized distribution zones.

Estimates how long a zone takes to distribute and, when that exceeds the
target duration, overlays a regular grid on the streets' bounding box and
turns the cells into sub-zones. A street belongs to the first cell (row-major)
that any of its vertices falls in; the other cells it touches record it as a
boundary street. Each street is therefore counted in exactly one sub-zone, so
sub-zone lengths add up to the whole zone instead of counting straddling
streets twice. Streets left over because the grid has more cells than
sub-zones are appended one by one to the lightest sub-zone.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from core.exceptions import ValidationError
from core.spatial import GeometryService, bounding_box, validate_polygon
from routing.constants import DEFAULT_TARGET_ZONE_MINUTES, SUB_ZONE_NAME_TEMPLATE
from streets.services.analysis import estimate_minutes

if TYPE_CHECKING:
    from streets.models import NormalizedStreet
    from streets.normalizer import StreetNormalizer

logger = logging.getLogger(__name__)

Bounds = tuple[float, float, float, float]


@dataclass
class SubZone:
    """A grid cell turned into a candidate zone."""

    name: str
    bounds: Bounds
    streets: list[NormalizedStreet] = field(default_factory=list)
    boundary_street_ids: list[str] = field(default_factory=list)

    @property
    def polygon(self) -> dict[str, Any]:
        return GeometryService.bounding_box_polygon(*self.bounds)

    @property
    def street_ids(self) -> list[str]:
        return [street.source_id for street in self.streets]

    @property
    def length_m(self) -> float:
        return sum(street.length_m for street in self.streets)

    @property
    def estimated_minutes(self) -> int:
        return estimate_minutes(self.length_m)

    def as_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "polygon": self.polygon,
            "bounds": list(self.bounds),
            "street_ids": self.street_ids,
            "street_count": len(self.streets),
            "boundary_street_ids": self.boundary_street_ids,
            "length_km": round(self.length_m / 1000, 2),
            "estimated_minutes": self.estimated_minutes,
            "estimated_hours": round(self.estimated_minutes / 60, 1),
        }


@dataclass
class ZoneSplitPlan:
    total_streets: int
    total_length_m: float
    estimated_minutes: int
    target_minutes: int
    zone_count: int
    zones: list[SubZone] = field(default_factory=list)

    @property
    def needs_split(self) -> bool:
        return self.zone_count > 1

    @property
    def num_zones(self) -> int:
        return len(self.zones) if self.needs_split else 1

    def as_dict(self) -> dict[str, Any]:
        return {
            "needs_split": self.needs_split,
            "num_zones": self.num_zones,
            "total_streets": self.total_streets,
            "total_length_km": round(self.total_length_m / 1000, 2),
            "estimated_minutes": self.estimated_minutes,
            "target_minutes": self.target_minutes,
            "zones": [zone.as_dict() for zone in self.zones],
        }


def zone_count_for(estimated: int, target_minutes: int) -> int:
    if estimated <= target_minutes:
        return 1
    return math.ceil(estimated / target_minutes)


def _cell_bounds(
    box: Bounds,
    row: int,
    col: int,
    rows: int,
    cols: int,
) -> Bounds:
    min_lon, min_lat, max_lon, max_lat = box
    lon_step = (max_lon - min_lon) / cols
    lat_step = (max_lat - min_lat) / rows
    return (
        min_lon + col * lon_step,
        min_lat + row * lat_step,
        max_lon if col == cols - 1 else min_lon + (col + 1) * lon_step,
        max_lat if row == rows - 1 else min_lat + (row + 1) * lat_step,
    )


def _touches(street: NormalizedStreet, bounds: Bounds) -> bool:
    min_lon, min_lat, max_lon, max_lat = bounds
    return any(
        min_lon <= lon <= max_lon and min_lat <= lat <= max_lat
        for lon, lat in street.coordinates
    )


def partition_streets(
    streets: list[NormalizedStreet],
    zone_count: int,
    base_name: str,
) -> list[SubZone]:
    """Split ``streets`` into at most ``zone_count`` grid sub-zones."""
    box = bounding_box([coord for street in streets for coord in street.coordinates])
    if box is None or zone_count < 1:
        return []

    cols = math.ceil(math.sqrt(zone_count))
    rows = math.ceil(zone_count / cols)

    zones: list[SubZone] = []
    owner: dict[int, SubZone] = {}
    for row in range(rows):
        for col in range(cols):
            if len(zones) >= zone_count:
                break
            bounds = _cell_bounds(box, row, col, rows, cols)
            touching = [
                index for index, street in enumerate(streets) if _touches(street, bounds)
            ]
            owned = [index for index in touching if index not in owner]
            if not owned:
                continue
            zone = SubZone(
                name=SUB_ZONE_NAME_TEMPLATE.format(base=base_name, index=len(zones) + 1),
                bounds=bounds,
            )
            for index in touching:
                if index in owner:
                    zone.boundary_street_ids.append(streets[index].source_id)
                else:
                    owner[index] = zone
                    zone.streets.append(streets[index])
            zones.append(zone)

    for index, street in enumerate(streets):
        if index in owner:
            continue
        lightest = min(zones, key=lambda zone: zone.length_m)
        lightest.streets.append(street)
        owner[index] = lightest

    logger.info(
        "Partitioned %d streets into %d zones on a %dx%d grid (sizes: %s)",
        len(streets),
        len(zones),
        rows,
        cols,
        [len(zone.streets) for zone in zones],
    )
    return zones


def plan_split(
    streets: list[NormalizedStreet],
    *,
    target_minutes: int = DEFAULT_TARGET_ZONE_MINUTES,
    base_name: str = "Zone",
) -> ZoneSplitPlan:
    if target_minutes <= 0:
        msg = "target_minutes must be positive"
        raise ValidationError(msg)
    total_length = sum(street.length_m for street in streets)
    estimated = estimate_minutes(total_length)
    count = zone_count_for(estimated, target_minutes)
    plan = ZoneSplitPlan(
        total_streets=len(streets),
        total_length_m=total_length,
        estimated_minutes=estimated,
        target_minutes=target_minutes,
        zone_count=count,
    )
    if plan.needs_split:
        plan.zones = partition_streets(streets, count, base_name)
    return plan


class ZonePartitioner:
    """Extracts the streets of a polygon and proposes a split."""

    def __init__(self, normalizer: StreetNormalizer) -> None:
        self._normalizer = normalizer

    async def plan(
        self,
        polygon: Any,
        *,
        target_minutes: int = DEFAULT_TARGET_ZONE_MINUTES,
        base_name: str = "Zone",
        timeout_s: float | None = None,
    ) -> ZoneSplitPlan:
        geometry = validate_polygon(polygon)
        extraction = await self._normalizer.extract(
            geometry["coordinates"][0],
            timeout_s=timeout_s,
        )
        return plan_split(
            extraction.streets,
            target_minutes=target_minutes,
            base_name=base_name,
        )
