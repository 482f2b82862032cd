"""
Zone sizing diagnostics.

Estimates how long a candidate zone takes to distribute and flags common
problems before the zone is saved: too short or too long a round, streets
cut off from the rest of the network, and a high share of dead ends.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import networkx as nx

from streets.constants import (
    DEAD_END_SHARE_THRESHOLD,
    DOOR_TO_DOOR_METERS_PER_HOUR,
    ENDPOINT_SNAP_M,
    IDEAL_ZONE_MINUTES,
    MAX_ZONE_MINUTES,
    MIN_ZONE_MINUTES,
    SERVICE_ROAD_SHARE_THRESHOLD,
)

if TYPE_CHECKING:
    from streets.models import NormalizedStreet

logger = logging.getLogger(__name__)

METERS_PER_DEGREE_LAT = 111320.0


def estimate_minutes(length_m: float) -> int:
    """Door-to-door duration for a total street length, in whole minutes."""
    return round(length_m / DOOR_TO_DOOR_METERS_PER_HOUR * 60)


@dataclass
class ZoneAnalysis:
    total_streets: int
    total_length_m: float
    estimated_minutes: int
    components: int
    dead_end_ratio: float
    suggestions: list[dict[str, Any]] = field(default_factory=list)

    @property
    def is_well_sized(self) -> bool:
        return MIN_ZONE_MINUTES <= self.estimated_minutes <= MAX_ZONE_MINUTES

    def as_dict(self) -> dict[str, Any]:
        return {
            "total_streets": self.total_streets,
            "total_length_m": round(self.total_length_m, 1),
            "total_length_km": round(self.total_length_m / 1000, 2),
            "estimated_minutes": self.estimated_minutes,
            "estimated_hours": round(self.estimated_minutes / 60, 1),
            "components": self.components,
            "dead_end_ratio": round(self.dead_end_ratio, 3),
            "is_well_sized": self.is_well_sized,
            "suggestions": self.suggestions,
        }


def _endpoint_key(coord: list[float], step_deg: float) -> tuple[int, int]:
    return (round(coord[0] / step_deg), round(coord[1] / step_deg))


def build_endpoint_graph(
    streets: list[NormalizedStreet],
    *,
    snap_m: float = ENDPOINT_SNAP_M,
) -> nx.MultiGraph:
    """Graph whose nodes are snapped street endpoints and edges are streets."""
    step_deg = snap_m / METERS_PER_DEGREE_LAT
    graph = nx.MultiGraph()
    for index, street in enumerate(streets):
        start = _endpoint_key(street.coordinates[0], step_deg)
        end = _endpoint_key(street.coordinates[-1], step_deg)
        graph.add_edge(start, end, key=index, source_id=street.source_id)
    return graph


def analyze_streets(streets: list[NormalizedStreet]) -> ZoneAnalysis:
    total_length = sum(street.length_m for street in streets)
    minutes = estimate_minutes(total_length)
    suggestions: list[dict[str, Any]] = []

    if not streets:
        return ZoneAnalysis(
            total_streets=0,
            total_length_m=0.0,
            estimated_minutes=0,
            components=0,
            dead_end_ratio=0.0,
            suggestions=[
                {
                    "type": "empty",
                    "message": "No distributable streets inside this zone.",
                },
            ],
        )

    if minutes < MIN_ZONE_MINUTES:
        suggestions.append(
            {
                "type": "too_small",
                "message": (
                    f"Zone takes about {minutes} min; aim for "
                    f"{MIN_ZONE_MINUTES}-{MAX_ZONE_MINUTES} min."
                ),
            },
        )
    elif minutes > MAX_ZONE_MINUTES:
        splits = math.ceil(minutes / IDEAL_ZONE_MINUTES)
        suggestions.append(
            {
                "type": "too_large",
                "message": f"Zone takes about {minutes} min; split it in {splits}.",
                "suggested_splits": splits,
            },
        )

    graph = build_endpoint_graph(streets)
    components = sorted(nx.connected_components(graph), key=len, reverse=True)
    if len(components) > 1:
        main = components[0]
        isolated = sorted(
            {
                data["source_id"]
                for u, v, data in graph.edges(data=True)
                if u not in main and v not in main
            },
        )
        suggestions.append(
            {
                "type": "disconnected_streets",
                "message": f"{len(isolated)} streets are not connected to the main network.",
                "street_ids": isolated,
            },
        )

    dead_ends = sum(
        1
        for u, v in graph.edges()
        if u != v and (graph.degree(u) == 1 or graph.degree(v) == 1)
    )
    dead_end_ratio = dead_ends / len(streets)
    if dead_end_ratio > DEAD_END_SHARE_THRESHOLD:
        suggestions.append(
            {
                "type": "many_dead_ends",
                "message": (
                    f"{round(dead_end_ratio * 100)}% of streets are dead ends; "
                    "expect back-tracking."
                ),
            },
        )

    service_share = sum(1 for s in streets if s.highway == "service") / len(streets)
    if service_share > SERVICE_ROAD_SHARE_THRESHOLD:
        suggestions.append(
            {
                "type": "many_service_roads",
                "message": f"{round(service_share * 100)}% of ways are service roads.",
            },
        )

    analysis = ZoneAnalysis(
        total_streets=len(streets),
        total_length_m=total_length,
        estimated_minutes=minutes,
        components=len(components),
        dead_end_ratio=dead_end_ratio,
        suggestions=suggestions,
    )
    logger.info(
        "Analyzed %d streets: %d min, %d components, %d suggestions",
        analysis.total_streets,
        analysis.estimated_minutes,
        analysis.components,
        len(suggestions),
    )
    return analysis
