"""
Overpass HTTP client.

Extracts the street ways (and their nodes) lying inside a zone polygon.
The raw element collection is returned untouched; turning it into street
records is the job of ``streets.normalizer``.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

import aiohttp

from core.exceptions import ExternalServiceException, ValidationException
from core.http.request import request_json
from core.http.retry import retry_async
from core.http.session import get_session

if TYPE_CHECKING:
    from collections.abc import Sequence

    from config import ServiceSettings

logger = logging.getLogger(__name__)

DISTRIBUTABLE_HIGHWAYS: tuple[str, ...] = (
    "primary",
    "secondary",
    "tertiary",
    "unclassified",
    "residential",
    "living_street",
    "pedestrian",
)
SERVICE_HIGHWAYS: tuple[str, ...] = ("service",)
FOOT_HIGHWAYS: tuple[str, ...] = ("footway", "path", "steps")

# Slack between the Overpass server-side timeout and the HTTP timeout.
HTTP_TIMEOUT_MARGIN_S = 10.0


def polygon_filter(ring: Sequence[Sequence[float]]) -> str:
    """Render a [lon, lat] ring as the ``poly:"lat lon ..."`` filter body."""
    return " ".join(f"{float(lat):.7f} {float(lon):.7f}" for lon, lat, *_ in ring)


class OverpassClient:
    def __init__(
        self,
        settings: ServiceSettings,
        *,
        session: Any | None = None,
    ) -> None:
        self._url = settings.overpass_url
        self._timeout_s = settings.overpass_timeout_s
        self._session = session

    async def _get_session(self) -> Any:
        if self._session is not None:
            return self._session
        return await get_session()

    @staticmethod
    def build_query(
        ring: Sequence[Sequence[float]],
        *,
        timeout_s: float,
        highway_types: Sequence[str] = DISTRIBUTABLE_HIGHWAYS,
    ) -> str:
        if len(ring) < 3:
            msg = "Overpass polygon filter requires at least 3 positions"
            raise ValidationException(msg)
        highway_regex = "|".join(highway_types)
        return (
            f"[out:json][timeout:{int(timeout_s)}];"
            f'(way["highway"~"^({highway_regex})$"](poly:"{polygon_filter(ring)}"););'
            "out body;>;out body qt;"
        )

    @retry_async()
    async def _post_query(self, query: str, query_timeout: float) -> Any:
        session = await self._get_session()
        return await request_json(
            "POST",
            self._url,
            session=session,
            data={"data": query},
            service_name="Overpass",
            timeout=aiohttp.ClientTimeout(total=query_timeout + HTTP_TIMEOUT_MARGIN_S),
        )

    async def fetch_streets(
        self,
        ring: Sequence[Sequence[float]],
        *,
        timeout_s: float | None = None,
        include_service: bool = False,
        include_footways: bool = False,
    ) -> dict[str, Any]:
        """Return the raw ``{"elements": [...]}`` payload for ways in ``ring``.

        Zero elements is a valid answer. Unexpected statuses, and transport
        failures that outlast the retries, raise ``ExternalServiceException``.
        """
        query_timeout = timeout_s if timeout_s is not None else self._timeout_s
        highway_types = list(DISTRIBUTABLE_HIGHWAYS)
        if include_service:
            highway_types.extend(SERVICE_HIGHWAYS)
        if include_footways:
            highway_types.extend(FOOT_HIGHWAYS)

        query = self.build_query(
            ring,
            timeout_s=query_timeout,
            highway_types=highway_types,
        )
        try:
            data = await self._post_query(query, query_timeout)
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            logger.warning("Overpass unreachable at %s: %s", self._url, exc)
            msg = f"Overpass request failed: {exc.__class__.__name__}"
            raise ExternalServiceException(msg, {"url": self._url}) from exc
        if not isinstance(data, dict) or not isinstance(data.get("elements"), list):
            msg = "Overpass error: response has no elements"
            raise ExternalServiceException(msg, {"url": self._url})

        logger.info(
            "Overpass returned %d elements for a %d-position polygon",
            len(data["elements"]),
            len(ring),
        )
        return data
