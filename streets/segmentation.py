"""
Segmentation engine.

Splits each normalized street into the units a distributor walks: one pass
per side of the street (even / odd house numbers) or a single undivided pass.
Side geometry is drawn with a fixed lateral offset of ``SIDE_OFFSET_M``;
road width is unknown, so this is a known approximation.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from core.exceptions import GeometryDegenerate
from core.spatial import (
    GeometryService,
    line_length_meters,
    line_midpoint,
    offset_line,
    side_of_line,
)
from db.models import SEGMENT_TODO, SIDE_EVEN, SIDE_ODD, SIDE_UNDIVIDED, Segment
from streets.constants import MIN_SPLIT_LENGTH_M, SIDE_OFFSET_M
from streets.models import PARITY_EVEN, PARITY_ODD, SegmentDraft

if TYPE_CHECKING:
    from beanie import PydanticObjectId

    from streets.models import HouseNumber, NormalizedStreet

logger = logging.getLogger(__name__)


def _even_side_sign(street: NormalizedStreet, evens: list[HouseNumber]) -> int:
    """+1 when even numbers sit right of the street direction, -1 when left.

    Observations taken from the street's own nodes lie on the line and carry
    no side information; with no majority the even side defaults to the right.
    """
    votes = 0
    for house in evens:
        if house.position is not None:
            votes += side_of_line(house.position, street.coordinates)
    return -1 if votes < 0 else 1


def _side_draft(
    street: NormalizedStreet,
    side: str,
    offset_m: float,
) -> SegmentDraft:
    coords = offset_line(street.coordinates, offset_m)
    length = line_length_meters(coords)
    if length <= 0:
        msg = f"offset {side} side of street {street.source_id} has zero length"
        raise GeometryDegenerate(msg)
    return SegmentDraft(side=side, coordinates=coords, length_m=length)


def _undivided_draft(street: NormalizedStreet) -> SegmentDraft:
    return SegmentDraft(
        side=SIDE_UNDIVIDED,
        coordinates=street.coordinates,
        length_m=street.length_m,
    )


def segment_street(
    street: NormalizedStreet,
    *,
    offset_m: float = SIDE_OFFSET_M,
    min_split_length_m: float = MIN_SPLIT_LENGTH_M,
) -> list[SegmentDraft]:
    """Compute the segments of one street.

    With house numbers, a side is emitted for each parity present. Without
    them, streets shorter than ``min_split_length_m`` stay undivided and
    longer streets always get both sides.
    """
    sides: list[tuple[str, float]] = []
    if street.house_numbers:
        evens = [h for h in street.house_numbers if h.parity == PARITY_EVEN]
        odds = [h for h in street.house_numbers if h.parity == PARITY_ODD]
        even_sign = _even_side_sign(street, evens)
        if evens:
            sides.append((SIDE_EVEN, even_sign * offset_m))
        if odds:
            sides.append((SIDE_ODD, -even_sign * offset_m))
    elif street.length_m >= min_split_length_m:
        sides = [(SIDE_EVEN, offset_m), (SIDE_ODD, -offset_m)]

    if not sides:
        return [_undivided_draft(street)]

    try:
        return [_side_draft(street, side, offset) for side, offset in sides]
    except GeometryDegenerate as exc:
        logger.debug("Falling back to an undivided segment: %s", exc)
        return [_undivided_draft(street)]


class SegmentationEngine:
    """Computes and persists the segments of a zone's streets."""

    def __init__(
        self,
        *,
        offset_m: float = SIDE_OFFSET_M,
        min_split_length_m: float = MIN_SPLIT_LENGTH_M,
    ) -> None:
        self.offset_m = offset_m
        self.min_split_length_m = min_split_length_m

    def segment(self, street: NormalizedStreet) -> list[SegmentDraft]:
        return segment_street(
            street,
            offset_m=self.offset_m,
            min_split_length_m=self.min_split_length_m,
        )

    async def persist(
        self,
        street: NormalizedStreet,
        *,
        street_id: PydanticObjectId,
        zone_id: PydanticObjectId,
        first_sequence: int = 0,
    ) -> list[Segment]:
        """Insert the street's segments as ``todo`` with no visit order."""
        segments = [
            Segment(
                street_id=street_id,
                zone_id=zone_id,
                street_name=street.name,
                side=draft.side,
                geometry=GeometryService.line_string(draft.coordinates),
                length_m=draft.length_m,
                midpoint=line_midpoint(draft.coordinates),
                sequence=first_sequence + index,
                visit_order=None,
                status=SEGMENT_TODO,
            )
            for index, draft in enumerate(self.segment(street))
        ]
        for segment in segments:
            await segment.insert()
        return segments
