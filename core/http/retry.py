"""Retry policy for upstream HTTP calls (tenacity)."""

from __future__ import annotations

import asyncio
import logging

from aiohttp import ClientConnectionError, ClientPayloadError, ServerDisconnectedError
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

logger = logging.getLogger(__name__)

TRANSIENT_ERRORS: tuple[type[BaseException], ...] = (
    ClientConnectionError,
    ServerDisconnectedError,
    ClientPayloadError,
    asyncio.TimeoutError,
)


def retry_async(
    max_retries: int = 2,
    retry_delay: float = 0.5,
    backoff_factor: float = 2.0,
    retry_exceptions: tuple[type[BaseException], ...] = TRANSIENT_ERRORS,
):
    """Build a tenacity decorator that retries transient transport failures.

    Upstream answers with an error status are mapped to domain exceptions by
    ``request_json`` and are not retried here; only connection-level
    failures and timeouts are.

    Args:
        max_retries: Retry attempts after the first call.
        retry_delay: Multiplier of the exponential wait, in seconds.
        backoff_factor: Base of the exponential wait.
        retry_exceptions: Exception types that trigger another attempt.
    """
    return retry(
        stop=stop_after_attempt(max_retries + 1),
        wait=wait_exponential(multiplier=retry_delay, exp_base=backoff_factor),
        retry=retry_if_exception_type(retry_exceptions),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
