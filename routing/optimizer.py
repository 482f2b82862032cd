"""
Route optimizer.

Orders waypoints into a short tour using an external matrix/directions
oracle: nearest neighbour over the oracle's distance matrix, optionally
refined by 2-opt, then routed through the directions oracle whose distance
and duration are authoritative.

Instances larger than one oracle request are cut into fixed-size chunks that
are solved independently (concurrently) and reassembled in chunk order. The
result is not globally optimal across chunk boundaries.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol

import aiohttp

from core.exceptions import (
    EmptyInput,
    ExternalServiceError,
    OptimizationFailed,
    OptimizationInfeasible,
    UpstreamUnavailable,
    ValidationError,
)
from core.http.openrouteservice import DEFAULT_PROFILE, SUPPORTED_PROFILES
from core.spatial import GeometryService
from routing.constants import (
    DEFAULT_CHUNK_SIZE,
    MAX_CONCURRENT_CHUNKS,
    MAX_LOCATIONS_PER_REQUEST,
)
from routing.core import nearest_neighbor_order, route_cost
from routing.local_search import improve_order_2opt
from routing.types import OptimizationQuality, RouteResult

if TYPE_CHECKING:
    from collections.abc import Sequence

    from core.http.openrouteservice import DirectionsResult, MatrixResult, RouteStep

logger = logging.getLogger(__name__)

ORACLE_ERRORS = (ExternalServiceError, aiohttp.ClientError, asyncio.TimeoutError)


class RouteOracle(Protocol):
    async def matrix(
        self,
        coordinates: Sequence[Sequence[float]],
        *,
        profile: str = ...,
    ) -> MatrixResult: ...

    async def directions(
        self,
        coordinates: Sequence[Sequence[float]],
        *,
        profile: str = ...,
        instructions: bool = ...,
    ) -> DirectionsResult: ...


@dataclass
class _ChunkRoute:
    order: list[int]
    coordinates: list[list[float]]
    distance_m: float
    duration_s: float
    matrix_distance_m: float
    steps: list[RouteStep]


class RouteOptimizer:
    """Waypoint ordering against an injected matrix/directions oracle."""

    def __init__(
        self,
        oracle: RouteOracle,
        *,
        timeout_s: float = 120.0,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        max_locations: int = MAX_LOCATIONS_PER_REQUEST,
        max_concurrent_chunks: int = MAX_CONCURRENT_CHUNKS,
    ) -> None:
        if not 2 <= chunk_size <= max_locations - 1:
            msg = "chunk_size must leave room for a closing point in one request"
            raise ValueError(msg)
        self._oracle = oracle
        self._timeout_s = timeout_s
        self._chunk_size = chunk_size
        self._max_locations = max_locations
        self._max_concurrent_chunks = max_concurrent_chunks

    async def optimize(
        self,
        waypoints: Sequence[Sequence[float]],
        *,
        profile: str = DEFAULT_PROFILE,
        start_index: int | None = None,
        quality: OptimizationQuality | str = OptimizationQuality.GREEDY,
        round_trip: bool = False,
        instructions: bool = True,
    ) -> RouteResult:
        """Compute a visiting order over ``waypoints``.

        Raises:
            EmptyInput: no waypoints were given.
            ValidationError: bad profile, start index or coordinate.
            OptimizationFailed: an oracle call failed, answered garbage or the
                whole optimization exceeded its timeout.
        """
        if not waypoints:
            msg = "Cannot optimize a route without waypoints"
            raise EmptyInput(msg)
        if profile not in SUPPORTED_PROFILES:
            msg = f"Unsupported travel profile: {profile}"
            raise ValidationError(msg, {"profile": profile})
        quality = OptimizationQuality(quality)

        points: list[list[float]] = []
        for waypoint in waypoints:
            is_valid, pair = GeometryService.validate_coordinate_pair(waypoint)
            if not is_valid or pair is None:
                msg = "Invalid waypoint coordinate"
                raise ValidationError(msg, {"waypoint": list(waypoint)})
            points.append(pair)

        start = 0 if start_index is None else start_index
        if not 0 <= start < len(points):
            msg = f"start_index {start} is out of range"
            raise ValidationError(msg, {"waypoints": len(points)})

        if len(points) == 1:
            return RouteResult(
                waypoints=[points[0]],
                visit_order=[0],
                coordinates=[points[0]],
                distance_m=0.0,
                duration_s=0.0,
                round_trip=round_trip,
            )

        try:
            return await asyncio.wait_for(
                self._optimize(points, profile, start, quality, round_trip, instructions),
                timeout=self._timeout_s,
            )
        except asyncio.TimeoutError as exc:
            msg = f"Route optimization timed out after {self._timeout_s:.0f}s"
            cause = UpstreamUnavailable(msg, {"waypoints": len(points)})
            raise OptimizationFailed(msg, cause=cause) from exc

    async def _optimize(
        self,
        points: list[list[float]],
        profile: str,
        start: int,
        quality: OptimizationQuality,
        round_trip: bool,
        instructions: bool,
    ) -> RouteResult:
        closing = 1 if round_trip else 0
        if len(points) + closing <= self._max_locations:
            chunk = await self._solve_chunk(
                points,
                profile=profile,
                start=start,
                quality=quality,
                closed=round_trip,
                return_to=points[start] if round_trip else None,
                instructions=instructions,
            )
            result = RouteResult(
                waypoints=[points[i] for i in chunk.order],
                visit_order=chunk.order,
                coordinates=chunk.coordinates,
                distance_m=chunk.distance_m,
                duration_s=chunk.duration_s,
                matrix_distance_m=chunk.matrix_distance_m,
                instructions=chunk.steps,
                chunks=1,
                round_trip=round_trip,
            )
        else:
            result = await self._optimize_chunked(
                points,
                profile=profile,
                start=start,
                quality=quality,
                round_trip=round_trip,
                instructions=instructions,
            )

        logger.info(
            "Optimized %d waypoints in %d chunk(s): %.0f m, %.0f s (%s)",
            len(points),
            result.chunks,
            result.distance_m,
            result.duration_s,
            quality.value,
        )
        return result

    async def _optimize_chunked(
        self,
        points: list[list[float]],
        *,
        profile: str,
        start: int,
        quality: OptimizationQuality,
        round_trip: bool,
        instructions: bool,
    ) -> RouteResult:
        size = self._chunk_size
        offsets = list(range(0, len(points), size))
        start_chunk = start // size
        semaphore = asyncio.Semaphore(self._max_concurrent_chunks)
        first_stop = points[start] if start_chunk == 0 else points[0]

        async def _run(chunk_index: int, offset: int) -> _ChunkRoute:
            chunk_points = points[offset : offset + size]
            is_last = chunk_index == len(offsets) - 1
            async with semaphore:
                return await self._solve_chunk(
                    chunk_points,
                    profile=profile,
                    start=start - offset if chunk_index == start_chunk else 0,
                    quality=quality,
                    closed=False,
                    return_to=first_stop if round_trip and is_last else None,
                    instructions=instructions,
                )

        # gather keeps chunk order whatever the completion order is
        chunks = await asyncio.gather(
            *(_run(index, offset) for index, offset in enumerate(offsets)),
        )

        visit_order: list[int] = []
        coordinates: list[list[float]] = []
        steps: list[RouteStep] = []
        for offset, chunk in zip(offsets, chunks, strict=True):
            visit_order.extend(offset + i for i in chunk.order)
            coordinates.extend(chunk.coordinates)
            steps.extend(chunk.steps)

        return RouteResult(
            waypoints=[points[i] for i in visit_order],
            visit_order=visit_order,
            coordinates=coordinates,
            distance_m=sum(chunk.distance_m for chunk in chunks),
            duration_s=sum(chunk.duration_s for chunk in chunks),
            matrix_distance_m=sum(chunk.matrix_distance_m for chunk in chunks),
            instructions=steps,
            chunks=len(chunks),
            round_trip=round_trip,
        )

    async def _solve_chunk(
        self,
        points: list[list[float]],
        *,
        profile: str,
        start: int,
        quality: OptimizationQuality,
        closed: bool,
        return_to: list[float] | None,
        instructions: bool,
    ) -> _ChunkRoute:
        if len(points) == 1 and return_to is None:
            return _ChunkRoute(
                order=[0],
                coordinates=[points[0]],
                distance_m=0.0,
                duration_s=0.0,
                matrix_distance_m=0.0,
                steps=[],
            )

        matrix = await self._call_oracle(
            "matrix",
            self._oracle.matrix(points, profile=profile),
        )
        order = nearest_neighbor_order(matrix.distances, start)
        if quality is OptimizationQuality.GREEDY_TWO_OPT:
            order, _stats = improve_order_2opt(order, matrix.distances, closed=closed)

        stops = [points[i] for i in order]
        if return_to is not None:
            stops.append(return_to)
        route = await self._call_oracle(
            "directions",
            self._oracle.directions(stops, profile=profile, instructions=instructions),
        )
        return _ChunkRoute(
            order=order,
            coordinates=route.coordinates,
            distance_m=route.distance_m,
            duration_s=route.duration_s,
            matrix_distance_m=route_cost(order, matrix.distances, closed=closed),
            steps=list(route.steps),
        )

    @staticmethod
    async def _call_oracle(operation: str, call: Any) -> Any:
        try:
            return await call
        except (OptimizationFailed, OptimizationInfeasible):
            raise
        except ORACLE_ERRORS as exc:
            msg = f"{operation} oracle failed: {exc}"
            raise OptimizationFailed(msg, cause=exc) from exc
