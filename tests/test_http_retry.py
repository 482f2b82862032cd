from __future__ import annotations

import asyncio

import aiohttp
import pytest

from core.exceptions import ExternalServiceException, RateLimitException
from core.http.retry import TRANSIENT_ERRORS, retry_async


def _counting(failures: list[BaseException], *, max_retries: int):
    calls: list[int] = []

    @retry_async(max_retries=max_retries, retry_delay=0)
    async def call_oracle() -> str:
        calls.append(1)
        if failures:
            raise failures.pop(0)
        return "ok"

    return call_oracle, calls


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "transient",
    [
        asyncio.TimeoutError(),
        aiohttp.ServerDisconnectedError(),
        aiohttp.ClientConnectionError("reset by peer"),
    ],
)
async def test_transient_failures_are_retried(transient: BaseException) -> None:
    call_oracle, calls = _counting([transient, transient], max_retries=2)

    assert await call_oracle() == "ok"
    assert len(calls) == 3


@pytest.mark.asyncio
async def test_last_transient_failure_is_reraised() -> None:
    call_oracle, calls = _counting([asyncio.TimeoutError()] * 3, max_retries=1)

    with pytest.raises(asyncio.TimeoutError):
        await call_oracle()

    assert len(calls) == 2


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "answer",
    [
        RateLimitException("OpenRouteService error: 429"),
        ExternalServiceException("Overpass error: 504"),
    ],
)
async def test_upstream_answers_are_not_retried(answer: Exception) -> None:
    call_oracle, calls = _counting([answer], max_retries=3)

    with pytest.raises(type(answer)):
        await call_oracle()

    assert len(calls) == 1


def test_domain_errors_are_not_transient() -> None:
    assert not issubclass(ExternalServiceException, TRANSIENT_ERRORS)
