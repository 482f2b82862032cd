"""
Street normalization.

Turns the raw element collection returned by the street-extraction service
(Overpass nodes and ways) into validated ``NormalizedStreet`` records plus
aggregate statistics. Invalid ways are dropped and counted; nothing here
raises for a single bad street.
"""

from __future__ import annotations

import asyncio
import logging
import re
from typing import Any

import aiohttp
from pydantic import ValidationError as PydanticValidationError

from core.exceptions import ExternalServiceException
from core.spatial import GeometryService
from streets.constants import NAME_TAG_FALLBACK, UNNAMED_STREET
from streets.models import (
    ExtractionResult,
    ExtractionStats,
    HouseNumber,
    NormalizedStreet,
)

logger = logging.getLogger(__name__)

_HOUSE_NUMBER_RE = re.compile(r"\d+")


def street_display_name(tags: dict[str, Any]) -> str:
    """``name`` then ``ref`` then ``addr:street``, else the unnamed sentinel."""
    for key in NAME_TAG_FALLBACK:
        value = tags.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return UNNAMED_STREET


def parse_house_number(raw: Any) -> int | None:
    """First integer found in an ``addr:housenumber`` value ("12bis" -> 12)."""
    if raw is None:
        return None
    match = _HOUSE_NUMBER_RE.search(str(raw))
    if match is None:
        return None
    return int(match.group())


def _node_index(elements: list[dict[str, Any]]) -> dict[int, dict[str, Any]]:
    return {
        element["id"]: element
        for element in elements
        if element.get("type") == "node" and "id" in element
    }


def _way_coordinates(
    way: dict[str, Any],
    nodes: dict[int, dict[str, Any]],
) -> list[list[Any]]:
    inline = way.get("geometry")
    if isinstance(inline, list) and inline:
        return [
            [point.get("lon"), point.get("lat")]
            for point in inline
            if isinstance(point, dict)
        ]

    coords: list[list[Any]] = []
    for ref in way.get("nodes") or []:
        node = nodes.get(ref)
        if node is None:
            continue
        coords.append([node.get("lon"), node.get("lat")])
    return coords


def _way_house_numbers(
    way: dict[str, Any],
    nodes: dict[int, dict[str, Any]],
) -> list[HouseNumber]:
    observations: list[HouseNumber] = []
    for ref in way.get("nodes") or []:
        node = nodes.get(ref)
        if node is None:
            continue
        raw = (node.get("tags") or {}).get("addr:housenumber")
        value = parse_house_number(raw)
        if value is None:
            continue
        position = None
        if node.get("lon") is not None or node.get("lat") is not None:
            valid, position = GeometryService.validate_coordinate_pair(
                [node.get("lon"), node.get("lat")]
            )
            if not valid:
                logger.debug("Dropping house number on node %s: bad position", ref)
                continue
        observations.append(HouseNumber(raw=str(raw), value=value, position=position))
    return observations


def normalize_elements(payload: Any) -> ExtractionResult:
    """Normalize an Overpass ``{"elements": [...]}`` payload.

    A payload without an element list is a parse-level failure of the
    extraction collaborator and raises ``ExternalServiceException``.
    """
    if not isinstance(payload, dict) or not isinstance(payload.get("elements"), list):
        msg = "Street extraction returned an unparseable payload"
        raise ExternalServiceException(msg)

    elements: list[dict[str, Any]] = [
        element for element in payload["elements"] if isinstance(element, dict)
    ]
    nodes = _node_index(elements)

    streets: list[NormalizedStreet] = []
    skipped = 0
    for way in elements:
        if way.get("type") != "way":
            continue
        try:
            tags = {
                str(key): str(value)
                for key, value in (way.get("tags") or {}).items()
            }
            street = NormalizedStreet(
                source_id=str(way.get("id")),
                name=street_display_name(tags),
                coordinates=_way_coordinates(way, nodes),
                tags=tags,
                house_numbers=_way_house_numbers(way, nodes),
            )
        except PydanticValidationError as exc:
            skipped += 1
            logger.warning(
                "Skipping way %s with invalid geometry: %s",
                way.get("id"),
                exc.errors()[0].get("msg") if exc.errors() else exc,
            )
            continue
        except (AttributeError, TypeError, ValueError) as exc:
            skipped += 1
            logger.warning("Skipping malformed way %s: %s", way.get("id"), exc)
            continue
        streets.append(street)

    stats = ExtractionStats(
        total=len(streets),
        named=sum(1 for s in streets if s.name != UNNAMED_STREET),
        with_house_numbers=sum(1 for s in streets if s.house_numbers),
        total_length_m=sum(s.length_m for s in streets),
        skipped=skipped,
    )
    logger.info(
        "Normalized %d streets (%d named, %d with house numbers, %d skipped)",
        stats.total,
        stats.named,
        stats.with_house_numbers,
        stats.skipped,
    )
    return ExtractionResult(streets=streets, stats=stats)


class StreetNormalizer:
    """Fetches and normalizes the streets of a polygon.

    ``client`` is any object exposing ``fetch_streets(ring, timeout_s=...)``,
    normally ``core.http.OverpassClient``.
    """

    def __init__(self, client: Any) -> None:
        self._client = client

    async def extract(
        self,
        ring: list[list[float]],
        *,
        timeout_s: float | None = None,
        include_service: bool = False,
    ) -> ExtractionResult:
        try:
            payload = await self._client.fetch_streets(
                ring,
                timeout_s=timeout_s,
                include_service=include_service,
            )
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            msg = f"Street extraction failed: {exc.__class__.__name__}"
            raise ExternalServiceException(msg, {"cause": str(exc)}) from exc
        return normalize_elements(payload)
