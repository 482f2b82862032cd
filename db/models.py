"""Beanie ODM document models for MongoDB collections.

Usage:
    from db.models import Zone, Segment

    zone = await Zone.get(zone_id)
    segments = await Segment.find(Segment.zone_id == zone.id).to_list()

    segment.status = "done"
    await segment.save()
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from beanie import Document, PydanticObjectId
from pydantic import BaseModel, Field, field_validator
from pymongo import ASCENDING, DESCENDING, IndexModel

SEGMENT_TODO = "todo"
SEGMENT_IN_PROGRESS = "in_progress"
SEGMENT_DONE = "done"
SEGMENT_STATUSES = {SEGMENT_TODO, SEGMENT_IN_PROGRESS, SEGMENT_DONE}

SIDE_EVEN = "even"
SIDE_ODD = "odd"
SIDE_UNDIVIDED = "undivided"
SIDES = {SIDE_EVEN, SIDE_ODD, SIDE_UNDIVIDED}


def _utcnow() -> datetime:
    return datetime.now(UTC)


class HouseNumberObservation(BaseModel):
    """A house number seen on one of a street's nodes."""

    raw: str
    value: int
    parity: str
    position: list[float] | None = None


class RouteInstruction(BaseModel):
    instruction: str
    distance_m: float = 0.0
    duration_s: float = 0.0
    name: str = ""


class ZoneRoute(BaseModel):
    """Optimized route stored on a zone."""

    geometry: dict[str, Any]
    waypoints: list[list[float]] = Field(default_factory=list)
    segment_order: list[str] = Field(default_factory=list)
    distance_m: float = 0.0
    duration_s: float = 0.0
    profile: str = "foot-walking"
    quality: str = "greedy"
    start_point: list[float] | None = None
    instructions: list[RouteInstruction] = Field(default_factory=list)
    optimized_at: datetime = Field(default_factory=_utcnow)


class Zone(Document):
    """User-drawn distribution zone."""

    name: str
    polygon: dict[str, Any]
    user_id: str | None = None
    route: ZoneRoute | None = None
    stats: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime | None = None

    class Settings:
        name = "zones"
        indexes = [
            IndexModel([("user_id", ASCENDING)], name="zones_user_idx"),
            IndexModel([("created_at", DESCENDING)], name="zones_created_idx"),
        ]


class Street(Document):
    """Street extracted from OpenStreetMap inside a zone."""

    zone_id: PydanticObjectId
    source_id: str
    name: str
    geometry: dict[str, Any]
    tags: dict[str, str] = Field(default_factory=dict)
    house_numbers: list[HouseNumberObservation] = Field(default_factory=list)
    length_m: float = 0.0
    created_at: datetime = Field(default_factory=_utcnow)

    class Settings:
        name = "streets"
        indexes = [
            IndexModel([("zone_id", ASCENDING)], name="streets_zone_idx"),
        ]


class Segment(Document):
    """One distributable side of a street, or the whole street."""

    street_id: PydanticObjectId
    zone_id: PydanticObjectId
    street_name: str = ""
    side: str = SIDE_UNDIVIDED
    geometry: dict[str, Any]
    length_m: float = 0.0
    midpoint: list[float]
    sequence: int = 0
    visit_order: int | None = None
    status: str = SEGMENT_TODO
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime | None = None

    @field_validator("side")
    @classmethod
    def check_side(cls, value: str) -> str:
        if value not in SIDES:
            msg = f"side must be one of {sorted(SIDES)}"
            raise ValueError(msg)
        return value

    @field_validator("status")
    @classmethod
    def check_status(cls, value: str) -> str:
        if value not in SEGMENT_STATUSES:
            msg = f"status must be one of {sorted(SEGMENT_STATUSES)}"
            raise ValueError(msg)
        return value

    class Settings:
        name = "segments"
        indexes = [
            IndexModel(
                [("zone_id", ASCENDING), ("sequence", ASCENDING)],
                name="segments_zone_sequence_idx",
            ),
            IndexModel([("street_id", ASCENDING)], name="segments_street_idx"),
            IndexModel(
                [("zone_id", ASCENDING), ("status", ASCENDING)],
                name="segments_zone_status_idx",
            ),
        ]


class TourSession(Document):
    """Live distribution round on a zone."""

    zone_id: PydanticObjectId
    user_id: str | None = None
    status: str = "active"
    started_at: datetime = Field(default_factory=_utcnow)
    ended_at: datetime | None = None
    paused_at: datetime | None = None
    updated_at: datetime | None = None
    last_position: list[float] | None = None
    last_position_at: datetime | None = None
    current_segment_id: PydanticObjectId | None = None
    route_snapshot: dict[str, Any] | None = None
    notes: str | None = None
    final_stats: dict[str, Any] | None = None

    class Settings:
        name = "sessions"
        indexes = [
            IndexModel(
                [("zone_id", ASCENDING), ("status", ASCENDING)],
                name="sessions_zone_status_idx",
            ),
        ]


class Progression(Document):
    """Per-segment completion record scoped to one session."""

    session_id: PydanticObjectId
    segment_id: PydanticObjectId
    zone_id: PydanticObjectId
    done: bool = False
    started_at: datetime | None = None
    completed_at: datetime | None = None

    class Settings:
        name = "progression"
        indexes = [
            IndexModel(
                [("session_id", ASCENDING), ("segment_id", ASCENDING)],
                name="progression_session_segment_idx",
                unique=True,
            ),
        ]

    @property
    def status(self) -> str:
        if self.done:
            return SEGMENT_DONE
        if self.started_at is not None:
            return SEGMENT_IN_PROGRESS
        return SEGMENT_TODO


ALL_DOCUMENT_MODELS = [Zone, Street, Segment, TourSession, Progression]
