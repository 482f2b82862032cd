from __future__ import annotations

import logging

import pytest
from fastapi import HTTPException

from core.api import ERROR_MAPPINGS, api_route, http_error_for
from core.exceptions import (
    EmptyInput,
    ExternalServiceError,
    GeometryDegenerate,
    NotFound,
    OptimizationFailed,
    OptimizationInfeasible,
    RateLimitError,
    SessionEnded,
    SessionStateViolation,
    UpstreamUnavailable,
    ValidationError,
)

logger = logging.getLogger("tests.core_api")


def _raising(exc: BaseException):
    @api_route(logger)
    async def handler():
        raise exc

    return handler


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("exc", "expected"),
    [
        (ValidationError("polygon ring is not closed"), (400, "polygon ring is not closed")),
        (NotFound("Zone 42 not found"), (404, "Zone 42 not found")),
        (SessionStateViolation("session is paused"), (409, "session is paused")),
        (SessionEnded("session has ended"), (409, "session has ended")),
        (OptimizationInfeasible("61 waypoints"), (422, "61 waypoints")),
        (EmptyInput("no waypoints"), (422, "no waypoints")),
        (RateLimitError("slow down"), (429, "slow down")),
        (
            OptimizationFailed("matrix oracle failed", cause=UpstreamUnavailable("down")),
            (502, "Route optimization failed: matrix oracle failed"),
        ),
        (UpstreamUnavailable("overpass down"), (502, "External service error: overpass down")),
        (GeometryDegenerate("zero-length side"), (500, "zero-length side")),
    ],
)
async def test_domain_errors_become_http_errors(exc, expected) -> None:
    with pytest.raises(HTTPException) as raised:
        await _raising(exc)()

    assert (raised.value.status_code, raised.value.detail) == expected


@pytest.mark.asyncio
async def test_http_exception_passes_through() -> None:
    with pytest.raises(HTTPException) as raised:
        await _raising(HTTPException(status_code=418, detail="nope"))()

    assert raised.value.status_code == 418
    assert raised.value.detail == "nope"


@pytest.mark.asyncio
async def test_unexpected_error_becomes_500() -> None:
    with pytest.raises(HTTPException) as raised:
        await _raising(ValueError("boom"))()

    assert raised.value.status_code == 500
    assert raised.value.detail == "boom"


def test_subclasses_are_listed_before_their_bases() -> None:
    types = [mapping.exc_type for mapping in ERROR_MAPPINGS]

    for later, mapping in enumerate(ERROR_MAPPINGS):
        for earlier in types[:later]:
            assert not issubclass(mapping.exc_type, earlier) or mapping.exc_type is earlier


def test_client_errors_log_without_traceback(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.INFO, logger="tests.core_api"):
        error = http_error_for(NotFound("Session abc not found"), logger, "get_session")

    assert error.status_code == 404
    record = caplog.records[-1]
    assert record.levelno == logging.INFO
    assert record.exc_info is None
    assert "get_session" in record.getMessage()


def test_upstream_errors_log_at_error(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.INFO, logger="tests.core_api"):
        http_error_for(ExternalServiceError("ORS timeout"), logger, "plan_zone_route")

    assert caplog.records[-1].levelno == logging.ERROR


def test_optimization_failed_keeps_its_cause() -> None:
    cause = UpstreamUnavailable("timeout")

    exc = OptimizationFailed("gave up", cause=cause, details={"waypoints": 3})

    assert exc.cause is cause
    assert exc.details == {"waypoints": 3}
    assert isinstance(exc, ExternalServiceError)
