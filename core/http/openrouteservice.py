"""
OpenRouteService HTTP client.

Wraps the two oracles the route optimizer depends on: the distance/duration
matrix and the directions (routed geometry) endpoint. Both accept at most
``ORS_MAX_LOCATIONS`` coordinates per request; larger requests are refused
before anything is sent.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import aiohttp

from core.exceptions import (
    ExternalServiceException,
    OptimizationInfeasible,
    ValidationException,
)
from core.http.request import request_json
from core.http.retry import retry_async
from core.http.session import get_session

if TYPE_CHECKING:
    from collections.abc import Sequence

    from config import ServiceSettings

logger = logging.getLogger(__name__)

ORS_MAX_LOCATIONS = 50
DEFAULT_PROFILE = "foot-walking"
SUPPORTED_PROFILES = frozenset({"foot-walking", "driving-car", "cycling-regular"})


@dataclass(frozen=True)
class MatrixResult:
    """Square distance (m) and duration (s) matrices; unreachable pairs are inf."""

    distances: list[list[float]]
    durations: list[list[float]]

    def __post_init__(self) -> None:
        size = len(self.distances)
        if len(self.durations) != size:
            msg = "distance and duration matrices differ in size"
            raise ValueError(msg)
        for row in (*self.distances, *self.durations):
            if len(row) != size:
                msg = "matrix is not square"
                raise ValueError(msg)

    @property
    def size(self) -> int:
        return len(self.distances)


@dataclass(frozen=True)
class RouteStep:
    instruction: str
    distance_m: float
    duration_s: float
    name: str = ""
    step_type: int | None = None
    way_points: tuple[int, int] | None = None


@dataclass(frozen=True)
class DirectionsResult:
    """Routed path through ordered coordinates."""

    coordinates: list[list[float]]
    distance_m: float
    duration_s: float
    leg_distances_m: list[float] = field(default_factory=list)
    leg_durations_s: list[float] = field(default_factory=list)
    steps: list[RouteStep] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.distance_m < 0 or self.duration_s < 0:
            msg = "route totals must be non-negative"
            raise ValueError(msg)


def _as_cost(value: Any) -> float:
    if value is None:
        return math.inf
    cost = float(value)
    if math.isnan(cost) or cost < 0:
        msg = f"invalid matrix entry: {value!r}"
        raise ValueError(msg)
    return cost


class OpenRouteServiceClient:
    def __init__(
        self,
        settings: ServiceSettings,
        *,
        session: Any | None = None,
    ) -> None:
        self._api_key = settings.require_ors_api_key()
        self._base_url = settings.ors_base_url.rstrip("/")
        self._timeout = aiohttp.ClientTimeout(total=settings.ors_timeout_s)
        self._session = session

    async def _get_session(self) -> Any:
        if self._session is not None:
            return self._session
        return await get_session()

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": self._api_key,
            "Content-Type": "application/json",
            "Accept": "application/json, application/geo+json",
        }

    @staticmethod
    def _check_request(
        coordinates: Sequence[Sequence[float]],
        profile: str,
        *,
        minimum: int,
        operation: str,
    ) -> list[list[float]]:
        if profile not in SUPPORTED_PROFILES:
            msg = f"Unsupported travel profile: {profile}"
            raise ValidationException(msg, {"profile": profile})
        if len(coordinates) > ORS_MAX_LOCATIONS:
            msg = (
                f"OpenRouteService {operation} accepts at most "
                f"{ORS_MAX_LOCATIONS} locations, got {len(coordinates)}"
            )
            raise OptimizationInfeasible(msg, {"locations": len(coordinates)})
        if len(coordinates) < minimum:
            msg = f"OpenRouteService {operation} requires at least {minimum} locations"
            raise ValidationException(msg, {"locations": len(coordinates)})
        return [[float(c[0]), float(c[1])] for c in coordinates]

    @retry_async()
    async def matrix(
        self,
        coordinates: Sequence[Sequence[float]],
        *,
        profile: str = DEFAULT_PROFILE,
    ) -> MatrixResult:
        locations = self._check_request(
            coordinates,
            profile,
            minimum=1,
            operation="matrix",
        )
        url = f"{self._base_url}/v2/matrix/{profile}"
        session = await self._get_session()
        data = await request_json(
            "POST",
            url,
            session=session,
            json={
                "locations": locations,
                "metrics": ["distance", "duration"],
                "units": "m",
            },
            headers=self._headers(),
            service_name="OpenRouteService matrix",
            timeout=self._timeout,
        )
        return self._normalize_matrix_response(data, len(locations), url)

    @retry_async()
    async def directions(
        self,
        coordinates: Sequence[Sequence[float]],
        *,
        profile: str = DEFAULT_PROFILE,
        instructions: bool = True,
    ) -> DirectionsResult:
        points = self._check_request(
            coordinates,
            profile,
            minimum=2,
            operation="directions",
        )
        url = f"{self._base_url}/v2/directions/{profile}/geojson"
        session = await self._get_session()
        data = await request_json(
            "POST",
            url,
            session=session,
            json={
                "coordinates": points,
                "instructions": instructions,
                "preference": "shortest",
                "units": "m",
            },
            headers=self._headers(),
            service_name="OpenRouteService directions",
            timeout=self._timeout,
        )
        return self._normalize_directions_response(data, url)

    @staticmethod
    def _normalize_matrix_response(data: Any, size: int, url: str) -> MatrixResult:
        if not isinstance(data, dict):
            msg = "OpenRouteService matrix error: unexpected response"
            raise ExternalServiceException(msg, {"url": url})
        try:
            distances = [[_as_cost(v) for v in row] for row in data["distances"]]
            durations = [[_as_cost(v) for v in row] for row in data["durations"]]
            result = MatrixResult(distances=distances, durations=durations)
        except (KeyError, TypeError, ValueError) as exc:
            msg = "OpenRouteService matrix error: malformed matrix"
            raise ExternalServiceException(msg, {"url": url}) from exc
        if result.size != size:
            msg = "OpenRouteService matrix error: size mismatch"
            raise ExternalServiceException(
                msg,
                {"url": url, "expected": size, "received": result.size},
            )
        return result

    @staticmethod
    def _normalize_directions_response(data: Any, url: str) -> DirectionsResult:
        if not isinstance(data, dict):
            msg = "OpenRouteService directions error: unexpected response"
            raise ExternalServiceException(msg, {"url": url})
        try:
            feature = data["features"][0]
            coordinates = [
                [float(c[0]), float(c[1])] for c in feature["geometry"]["coordinates"]
            ]
            properties = feature.get("properties") or {}
            summary = properties.get("summary") or {}
            legs = properties.get("segments") or []
            steps = [
                RouteStep(
                    instruction=str(step.get("instruction", "")),
                    distance_m=float(step.get("distance", 0.0)),
                    duration_s=float(step.get("duration", 0.0)),
                    name=str(step.get("name", "")),
                    step_type=step.get("type"),
                    way_points=tuple(step["way_points"])
                    if step.get("way_points")
                    else None,
                )
                for leg in legs
                for step in leg.get("steps") or []
            ]
            return DirectionsResult(
                coordinates=coordinates,
                distance_m=float(summary.get("distance", 0.0)),
                duration_s=float(summary.get("duration", 0.0)),
                leg_distances_m=[float(leg.get("distance", 0.0)) for leg in legs],
                leg_durations_s=[float(leg.get("duration", 0.0)) for leg in legs],
                steps=steps,
            )
        except (KeyError, IndexError, TypeError, ValueError) as exc:
            msg = "OpenRouteService directions error: malformed route"
            raise ExternalServiceException(msg, {"url": url}) from exc
