from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from core.http.openrouteservice import RouteStep


class OptimizationQuality(str, Enum):
    """How hard the optimizer works on the visiting order."""

    GREEDY = "greedy"
    GREEDY_TWO_OPT = "greedy_2opt"


@dataclass(frozen=True)
class RouteResult:
    """Optimized tour over a set of waypoints.

    ``visit_order[k]`` is the input index of the k-th visited waypoint and
    ``waypoints`` lists the coordinates in that same visiting sequence.
    """

    waypoints: list[list[float]]
    visit_order: list[int]
    coordinates: list[list[float]]
    distance_m: float
    duration_s: float
    matrix_distance_m: float = 0.0
    instructions: list[RouteStep] = field(default_factory=list)
    chunks: int = 1
    round_trip: bool = False

    def __post_init__(self) -> None:
        if sorted(self.visit_order) != list(range(len(self.waypoints))):
            msg = "visit_order must be a permutation of the waypoint indices"
            raise ValueError(msg)
        if self.distance_m < 0 or self.duration_s < 0:
            msg = "route totals must be non-negative"
            raise ValueError(msg)

    @property
    def geometry(self) -> dict[str, Any]:
        return {"type": "LineString", "coordinates": self.coordinates}

    def as_dict(self) -> dict[str, Any]:
        return {
            "geometry": self.geometry,
            "waypoints": self.waypoints,
            "visit_order": self.visit_order,
            "distance_m": round(self.distance_m, 1),
            "duration_s": round(self.duration_s, 1),
            "matrix_distance_m": (
                round(self.matrix_distance_m, 1)
                if math.isfinite(self.matrix_distance_m)
                else None
            ),
            "chunks": self.chunks,
            "round_trip": self.round_trip,
            "instructions": [
                {
                    "instruction": step.instruction,
                    "distance_m": step.distance_m,
                    "duration_s": step.duration_s,
                    "name": step.name,
                }
                for step in self.instructions
            ],
        }
