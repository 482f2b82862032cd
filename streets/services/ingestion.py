"""Zone creation pipeline: polygon -> streets -> segments."""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from pymongo.errors import PyMongoError

from core.exceptions import RoundPlannerError, ValidationError
from core.spatial import validate_polygon
from db.models import HouseNumberObservation, Segment, Street, Zone
from streets.segmentation import SegmentationEngine

if TYPE_CHECKING:
    from streets.models import NormalizedStreet
    from streets.normalizer import StreetNormalizer

logger = logging.getLogger(__name__)


@dataclass
class IngestionSummary:
    streets_extracted: int = 0
    streets_saved: int = 0
    streets_failed: int = 0
    streets_skipped: int = 0
    streets_named: int = 0
    streets_with_house_numbers: int = 0
    segments_created: int = 0
    total_length_m: float = 0.0
    failed_source_ids: list[str] = field(default_factory=list)

    def as_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["total_length_m"] = round(self.total_length_m, 1)
        return payload


def _street_document(street: NormalizedStreet, zone: Zone) -> Street:
    return Street(
        zone_id=zone.id,
        source_id=street.source_id,
        name=street.name,
        geometry=street.geometry(),
        tags=dict(street.tags),
        house_numbers=[
            HouseNumberObservation(
                raw=house.raw,
                value=house.value,
                parity=house.parity,
                position=house.position,
            )
            for house in street.house_numbers
        ],
        length_m=street.length_m,
    )


class ZoneIngestionService:
    """Creates a zone and fills it with streets and segments."""

    def __init__(
        self,
        normalizer: StreetNormalizer,
        engine: SegmentationEngine | None = None,
    ) -> None:
        self._normalizer = normalizer
        self._engine = engine or SegmentationEngine()

    async def create_zone(
        self,
        *,
        name: str,
        polygon: Any,
        user_id: str | None = None,
        include_service: bool = False,
        timeout_s: float | None = None,
    ) -> tuple[Zone, IngestionSummary]:
        """Validate the polygon, create the zone and ingest its streets.

        Malformed input is rejected before anything is written. If street
        extraction fails the new zone is removed again and the error is
        re-raised. A street that cannot be stored is logged, counted and
        skipped.
        """
        clean_name = (name or "").strip()
        if not clean_name:
            msg = "Zone name is required"
            raise ValidationError(msg)
        geometry = validate_polygon(polygon)

        zone = Zone(name=clean_name, polygon=geometry, user_id=user_id)
        await zone.insert()

        try:
            extraction = await self._normalizer.extract(
                geometry["coordinates"][0],
                timeout_s=timeout_s,
                include_service=include_service,
            )
        except Exception:
            await zone.delete()
            raise

        summary = IngestionSummary(
            streets_extracted=extraction.stats.total,
            streets_skipped=extraction.stats.skipped,
            streets_named=extraction.stats.named,
            streets_with_house_numbers=extraction.stats.with_house_numbers,
            total_length_m=extraction.stats.total_length_m,
        )
        sequence = 0
        for street in extraction.streets:
            document = _street_document(street, zone)
            try:
                await document.insert()
                segments = await self._engine.persist(
                    street,
                    street_id=document.id,
                    zone_id=zone.id,
                    first_sequence=sequence,
                )
            except (PyMongoError, RoundPlannerError, ValueError) as exc:
                summary.streets_failed += 1
                summary.failed_source_ids.append(street.source_id)
                logger.warning(
                    "Failed to store street %s (%s) in zone %s: %s",
                    street.source_id,
                    street.name,
                    zone.id,
                    exc,
                )
                if document.id is not None:
                    await Segment.find(Segment.street_id == document.id).delete()
                    await document.delete()
                continue
            sequence += len(segments)
            summary.streets_saved += 1
            summary.segments_created += len(segments)

        zone.stats = summary.as_dict()
        zone.updated_at = datetime.now(UTC)
        await zone.save()

        logger.info(
            "Created zone %s '%s': %d streets, %d segments, %d failed",
            zone.id,
            zone.name,
            summary.streets_saved,
            summary.segments_created,
            summary.streets_failed,
        )
        return zone, summary
