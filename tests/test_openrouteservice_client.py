from __future__ import annotations

import math

import aiohttp
import pytest
from http_fakes import FakeResponse, FakeSession

from config import ServiceSettings
from core.exceptions import (
    ExternalServiceException,
    OptimizationInfeasible,
    RateLimitException,
    ValidationError,
)
from core.http.openrouteservice import OpenRouteServiceClient

SETTINGS = ServiceSettings(ors_api_key="secret-key", ors_base_url="https://ors.test/")
POINTS = [[2.35, 48.85], [2.351, 48.85]]


def _directions_payload() -> dict:
    return {
        "features": [
            {
                "geometry": {"coordinates": [[2.35, 48.85], [2.3505, 48.85], [2.351, 48.85]]},
                "properties": {
                    "summary": {"distance": 73.2, "duration": 52.7},
                    "segments": [
                        {
                            "distance": 73.2,
                            "duration": 52.7,
                            "steps": [
                                {
                                    "instruction": "Head east on Rue Test",
                                    "distance": 73.2,
                                    "duration": 52.7,
                                    "name": "Rue Test",
                                    "type": 11,
                                    "way_points": [0, 2],
                                },
                            ],
                        },
                    ],
                },
            },
        ],
    }


def test_client_requires_an_api_key() -> None:
    with pytest.raises(ValidationError):
        OpenRouteServiceClient(ServiceSettings(ors_api_key=""))


@pytest.mark.asyncio
async def test_matrix_posts_locations_and_parses_costs() -> None:
    session = FakeSession(
        post_responses=[
            FakeResponse(
                json_data={
                    "distances": [[0, 73.2], [None, 0]],
                    "durations": [[0, 52.7], [None, 0]],
                },
            ),
        ],
    )
    client = OpenRouteServiceClient(SETTINGS, session=session)

    result = await client.matrix(POINTS)

    assert result.size == 2
    assert result.distances[0][1] == 73.2
    assert math.isinf(result.distances[1][0])
    method, url, kwargs = session.requests[0]
    assert method == "POST"
    assert url == "https://ors.test/v2/matrix/foot-walking"
    assert kwargs["json"]["locations"] == POINTS
    assert kwargs["json"]["metrics"] == ["distance", "duration"]
    assert kwargs["headers"]["Authorization"] == "secret-key"


@pytest.mark.asyncio
async def test_directions_parses_geometry_summary_and_steps() -> None:
    session = FakeSession(post_responses=[FakeResponse(json_data=_directions_payload())])
    client = OpenRouteServiceClient(SETTINGS, session=session)

    result = await client.directions(POINTS, profile="driving-car")

    assert result.distance_m == 73.2
    assert result.duration_s == 52.7
    assert len(result.coordinates) == 3
    assert result.leg_distances_m == [73.2]
    assert result.steps[0].instruction == "Head east on Rue Test"
    assert result.steps[0].way_points == (0, 2)
    _, url, kwargs = session.requests[0]
    assert url == "https://ors.test/v2/directions/driving-car/geojson"
    assert kwargs["json"]["coordinates"] == POINTS


@pytest.mark.asyncio
async def test_requests_are_checked_before_anything_is_sent() -> None:
    session = FakeSession()
    client = OpenRouteServiceClient(SETTINGS, session=session)

    with pytest.raises(OptimizationInfeasible):
        await client.matrix([[2.35, 48.85]] * 51)
    with pytest.raises(ValidationError):
        await client.directions(POINTS[:1])
    with pytest.raises(ValidationError):
        await client.matrix(POINTS, profile="hovercraft")
    assert session.requests == []


@pytest.mark.asyncio
async def test_rate_limit_and_server_errors_map_to_domain_exceptions() -> None:
    session = FakeSession(
        post_responses=[
            FakeResponse(status=429, headers={"Retry-After": "3"}),
            FakeResponse(status=503, text_data="maintenance"),
        ],
    )
    client = OpenRouteServiceClient(SETTINGS, session=session)

    with pytest.raises(RateLimitException) as limited:
        await client.matrix(POINTS)
    assert limited.value.details["retry_after"] == 3

    with pytest.raises(ExternalServiceException) as failed:
        await client.matrix(POINTS)
    assert failed.value.details["status"] == 503
    assert failed.value.details["body"] == "maintenance"


@pytest.mark.asyncio
async def test_malformed_payloads_raise_external_service_errors() -> None:
    session = FakeSession(
        post_responses=[
            FakeResponse(json_data={"distances": [[0, 1]], "durations": [[0, 1]]}),
            FakeResponse(json_data={"distances": [[0, -1], [1, 0]], "durations": [[0, 1], [1, 0]]}),
            FakeResponse(json_data={"features": []}),
        ],
    )
    client = OpenRouteServiceClient(SETTINGS, session=session)

    with pytest.raises(ExternalServiceException):
        await client.matrix(POINTS)
    with pytest.raises(ExternalServiceException):
        await client.matrix(POINTS)
    with pytest.raises(ExternalServiceException):
        await client.directions(POINTS)


@pytest.mark.asyncio
async def test_transient_connection_errors_are_retried() -> None:
    session = FakeSession(
        post_responses=[
            aiohttp.ClientConnectionError("reset"),
            FakeResponse(json_data=_directions_payload()),
        ],
    )
    client = OpenRouteServiceClient(SETTINGS, session=session)

    result = await client.directions(POINTS)

    assert result.distance_m == 73.2
    assert len(session.requests) == 2
