"""Typed records passed between the normalizer and the segmentation engine.

Records validate their invariants when they are built, so downstream code
never re-checks geometry it receives.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from core.spatial import GeometryService, line_length_meters

PARITY_EVEN = "even"
PARITY_ODD = "odd"


def _validated_line(coords: list[list[float]]) -> list[list[float]]:
    if len(coords) < 2:
        msg = "a street polyline needs at least 2 coordinates"
        raise ValueError(msg)
    cleaned: list[list[float]] = []
    for coord in coords:
        is_valid, pair = GeometryService.validate_coordinate_pair(coord)
        if not is_valid or pair is None:
            msg = f"invalid coordinate {coord!r}"
            raise ValueError(msg)
        cleaned.append(pair)
    return cleaned


class HouseNumber(BaseModel):
    model_config = ConfigDict(frozen=True)

    raw: str
    value: int = Field(ge=0)
    position: list[float] | None = None

    @property
    def parity(self) -> str:
        return PARITY_EVEN if self.value % 2 == 0 else PARITY_ODD


class NormalizedStreet(BaseModel):
    """A validated street ready for segmentation."""

    model_config = ConfigDict(frozen=True)

    source_id: str
    name: str
    coordinates: list[list[float]]
    tags: dict[str, str] = Field(default_factory=dict)
    house_numbers: list[HouseNumber] = Field(default_factory=list)

    @field_validator("coordinates")
    @classmethod
    def check_coordinates(cls, value: list[list[float]]) -> list[list[float]]:
        return _validated_line(value)

    @property
    def length_m(self) -> float:
        return line_length_meters(self.coordinates)

    @property
    def highway(self) -> str | None:
        return self.tags.get("highway")

    def geometry(self) -> dict[str, Any]:
        return GeometryService.line_string(self.coordinates)


class SegmentDraft(BaseModel):
    """A segment computed for a street, not yet persisted."""

    model_config = ConfigDict(frozen=True)

    side: str
    coordinates: list[list[float]]
    length_m: float = Field(ge=0)

    @field_validator("coordinates")
    @classmethod
    def check_coordinates(cls, value: list[list[float]]) -> list[list[float]]:
        return _validated_line(value)

    @model_validator(mode="after")
    def check_side(self) -> SegmentDraft:
        if self.side not in {"even", "odd", "undivided"}:
            msg = f"unknown segment side {self.side!r}"
            raise ValueError(msg)
        return self


class ExtractionStats(BaseModel):
    total: int = 0
    named: int = 0
    with_house_numbers: int = 0
    total_length_m: float = 0.0
    skipped: int = 0


class ExtractionResult(BaseModel):
    streets: list[NormalizedStreet] = Field(default_factory=list)
    stats: ExtractionStats = Field(default_factory=ExtractionStats)
