from __future__ import annotations

import asyncio
from typing import Any

from core.http.openrouteservice import DirectionsResult, MatrixResult, RouteStep
from core.spatial import distance_meters, line_length_meters

WALK_MPS = 1.4


class FakeRouteOracle:
    """Straight-line matrix and directions, with call recording."""

    def __init__(
        self,
        *,
        fail_with: BaseException | None = None,
        delay_s: float = 0.0,
    ) -> None:
        self.fail_with = fail_with
        self.delay_s = delay_s
        self.matrix_calls: list[list[list[float]]] = []
        self.directions_calls: list[list[list[float]]] = []

    async def matrix(self, coordinates, *, profile: str = "foot-walking") -> MatrixResult:
        if self.delay_s:
            await asyncio.sleep(self.delay_s)
        if self.fail_with is not None:
            raise self.fail_with
        points = [list(c) for c in coordinates]
        self.matrix_calls.append(points)
        distances = [[distance_meters(a, b) for b in points] for a in points]
        durations = [[d / WALK_MPS for d in row] for row in distances]
        return MatrixResult(distances=distances, durations=durations)

    async def directions(
        self,
        coordinates,
        *,
        profile: str = "foot-walking",
        instructions: bool = True,
    ) -> DirectionsResult:
        points = [list(c) for c in coordinates]
        self.directions_calls.append(points)
        legs = [distance_meters(points[i], points[i + 1]) for i in range(len(points) - 1)]
        steps: list[Any] = []
        if instructions:
            steps = [
                RouteStep(
                    instruction=f"Walk to stop {i + 1}",
                    distance_m=leg,
                    duration_s=leg / WALK_MPS,
                )
                for i, leg in enumerate(legs)
            ]
        total = line_length_meters(points)
        return DirectionsResult(
            coordinates=points,
            distance_m=total,
            duration_s=total / WALK_MPS,
            leg_distances_m=legs,
            leg_durations_s=[leg / WALK_MPS for leg in legs],
            steps=steps,
        )
