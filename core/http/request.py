"""
JSON request helper shared by the Overpass and OpenRouteService clients.

Upstream answers are turned into domain errors here; transport failures are
left alone so ``retry_async`` can tell them apart.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from aiohttp import ContentTypeError

from core.exceptions import ExternalServiceException, RateLimitException

if TYPE_CHECKING:
    from collections.abc import Iterable

logger = logging.getLogger(__name__)

MAX_ERROR_BODY_CHARS = 2000
DEFAULT_RETRY_AFTER_S = 5


def _retry_after(headers: Any) -> int:
    raw = headers.get("Retry-After") if headers else None
    try:
        return int(raw) if raw is not None else DEFAULT_RETRY_AFTER_S
    except (TypeError, ValueError):
        return DEFAULT_RETRY_AFTER_S


async def _raise_for_upstream_status(
    response: Any,
    url: str,
    expected: set[int],
    service_name: str,
) -> None:
    if response.status in expected:
        return
    where = str(getattr(response, "url", url))
    if response.status == 429:
        msg = f"{service_name} error: 429"
        raise RateLimitException(
            msg,
            {"status": 429, "retry_after": _retry_after(response.headers), "url": where},
        )
    body = await response.text()
    logger.warning("%s answered %s for %s", service_name, response.status, where)
    msg = f"{service_name} error: {response.status}"
    raise ExternalServiceException(
        msg,
        {"status": response.status, "body": body[:MAX_ERROR_BODY_CHARS], "url": where},
    )


async def request_json(
    method: str,
    url: str,
    *,
    session: Any,
    params: dict[str, Any] | None = None,
    json: dict[str, Any] | None = None,
    data: dict[str, Any] | None = None,
    headers: dict[str, str] | None = None,
    expected_status: int | Iterable[int] = 200,
    service_name: str = "Service",
    timeout: Any | None = None,
) -> Any:
    """Send a GET or POST and return the decoded JSON body.

    Raises ``RateLimitException`` on 429 and ``ExternalServiceException`` for
    any other unexpected status or an undecodable body.
    """
    expected = {expected_status} if isinstance(expected_status, int) else set(expected_status)
    verb = method.upper()
    send = {"GET": session.get, "POST": session.post}.get(verb)
    if send is None:
        msg = f"{service_name} request error: unsupported method {verb}"
        raise ExternalServiceException(msg, {"url": url})

    options = {
        key: value
        for key, value in (
            ("params", params),
            ("json", json),
            ("data", data),
            ("timeout", timeout),
        )
        if value is not None
    }
    async with send(url, headers=headers, **options) as response:
        await _raise_for_upstream_status(response, url, expected, service_name)
        try:
            return await response.json()
        except (ContentTypeError, ValueError) as exc:
            msg = f"{service_name} returned a non-JSON body"
            raise ExternalServiceException(msg, {"url": url}) from exc
