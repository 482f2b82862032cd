"""Live distribution session lifecycle and progression tracking.

A session walks through ``active <-> paused`` and ends in ``ended``. Every
mutating call takes the session's lock, re-reads the session from storage and
checks the state before touching anything, so a rejected call leaves the
session unchanged.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from beanie import PydanticObjectId
from pymongo.errors import PyMongoError

from core.exceptions import (
    ResourceNotFoundError,
    SessionEnded,
    SessionStateViolation,
    ValidationError,
)
from core.serialization import as_utc, serialize_datetime, serialize_oid
from core.spatial import GeometryService, distance_meters
from db.models import (
    SEGMENT_DONE,
    SEGMENT_IN_PROGRESS,
    Progression,
    Segment,
    TourSession,
)
from streets.services.zones import coerce_oid, get_zone, visit_sort_key
from tracking.locks import SessionLockRegistry

logger = logging.getLogger(__name__)

SESSION_ACTIVE = "active"
SESSION_PAUSED = "paused"
SESSION_ENDED = "ended"

DETECTION_THRESHOLD_M = 15.0


def _now() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class ProgressSummary:
    total: int
    completed: int
    in_progress: int

    @property
    def remaining(self) -> int:
        return self.total - self.completed

    @property
    def percentage(self) -> float:
        if self.total == 0:
            return 0.0
        return round(self.completed / self.total * 100, 1)

    def as_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "completed": self.completed,
            "in_progress": self.in_progress,
            "remaining": self.remaining,
            "percentage": self.percentage,
        }


def summarize(entries: list[Progression]) -> ProgressSummary:
    return ProgressSummary(
        total=len(entries),
        completed=sum(1 for entry in entries if entry.done),
        in_progress=sum(
            1 for entry in entries if not entry.done and entry.started_at is not None
        ),
    )


@dataclass(frozen=True)
class PositionUpdate:
    session: TourSession
    progress: ProgressSummary
    position_applied: bool
    detected_segment_id: PydanticObjectId | None = None
    detected_distance_m: float | None = None
    auto_completed_segment_id: PydanticObjectId | None = None

    def as_dict(self) -> dict[str, Any]:
        return {
            "session": serialize_session(self.session),
            "progress": self.progress.as_dict(),
            "position_applied": self.position_applied,
            "detected_segment_id": serialize_oid(self.detected_segment_id),
            "detected_distance_m": (
                round(self.detected_distance_m, 2)
                if self.detected_distance_m is not None
                else None
            ),
            "auto_completed_segment_id": serialize_oid(self.auto_completed_segment_id),
        }


def serialize_session(
    session: TourSession,
    progress: ProgressSummary | None = None,
) -> dict[str, Any]:
    payload = {
        "id": serialize_oid(session.id),
        "zone_id": serialize_oid(session.zone_id),
        "user_id": session.user_id,
        "status": session.status,
        "started_at": serialize_datetime(session.started_at),
        "paused_at": serialize_datetime(session.paused_at),
        "ended_at": serialize_datetime(session.ended_at),
        "last_position": session.last_position,
        "last_position_at": serialize_datetime(session.last_position_at),
        "current_segment_id": serialize_oid(session.current_segment_id),
        "route_snapshot": session.route_snapshot or {},
        "notes": session.notes,
        "final_stats": session.final_stats,
    }
    if progress is not None:
        payload["progress"] = progress.as_dict()
    return payload


def serialize_progression(entry: Progression, segment: Segment | None = None) -> dict[str, Any]:
    payload = {
        "segment_id": serialize_oid(entry.segment_id),
        "status": entry.status,
        "done": entry.done,
        "started_at": serialize_datetime(entry.started_at),
        "completed_at": serialize_datetime(entry.completed_at),
    }
    if segment is not None:
        payload.update(
            {
                "street_name": segment.street_name,
                "side": segment.side,
                "visit_order": segment.visit_order,
                "length_m": round(segment.length_m, 2),
                "midpoint": segment.midpoint,
            },
        )
    return payload


def _validated_position(lon: float, lat: float) -> list[float]:
    is_valid, pair = GeometryService.validate_coordinate_pair([lon, lat])
    if not is_valid or pair is None:
        msg = "Invalid GPS position"
        raise ValidationError(msg, {"lon": lon, "lat": lat})
    return pair


def _require_state(session: TourSession, *allowed: str) -> None:
    if session.status == SESSION_ENDED:
        msg = f"Session {session.id} has ended"
        raise SessionEnded(msg, {"status": session.status})
    if session.status not in allowed:
        msg = f"Session {session.id} is {session.status}"
        raise SessionStateViolation(
            msg,
            {"status": session.status, "allowed": sorted(allowed)},
        )


class TourSessionService:
    """Business logic for live distribution sessions."""

    def __init__(
        self,
        *,
        locks: SessionLockRegistry | None = None,
        detection_threshold_m: float = DETECTION_THRESHOLD_M,
        auto_complete_on_reentry: bool = False,
    ) -> None:
        self._locks = locks or SessionLockRegistry()
        self.detection_threshold_m = detection_threshold_m
        self.auto_complete_on_reentry = auto_complete_on_reentry

    @staticmethod
    async def get_session(session_id: str | PydanticObjectId) -> TourSession:
        session = await TourSession.get(coerce_oid(session_id, field="session_id"))
        if session is None:
            msg = f"Session {session_id} not found"
            raise ResourceNotFoundError(msg, {"session_id": str(session_id)})
        return session

    @staticmethod
    async def get_entries(session_id: PydanticObjectId) -> list[Progression]:
        return await Progression.find(Progression.session_id == session_id).to_list()

    @staticmethod
    async def _get_entry(
        session_id: PydanticObjectId,
        segment_id: str | PydanticObjectId,
    ) -> Progression:
        segment_oid = coerce_oid(segment_id, field="segment_id")
        entry = await Progression.find_one(
            Progression.session_id == session_id,
            Progression.segment_id == segment_oid,
        )
        if entry is None:
            msg = f"Segment {segment_id} is not part of session {session_id}"
            raise ResourceNotFoundError(msg, {"segment_id": str(segment_id)})
        return entry

    async def start_session(
        self,
        zone_id: str | PydanticObjectId,
        *,
        user_id: str | None = None,
        route_snapshot: dict[str, Any] | None = None,
    ) -> tuple[TourSession, ProgressSummary]:
        """Open a session with one progression entry per zone segment."""
        zone = await get_zone(zone_id)
        segments = await Segment.find(Segment.zone_id == zone.id).to_list()
        if route_snapshot is None and zone.route is not None:
            route_snapshot = zone.route.model_dump(mode="json")

        session = TourSession(
            zone_id=zone.id,
            user_id=user_id,
            status=SESSION_ACTIVE,
            route_snapshot=route_snapshot,
            updated_at=_now(),
        )
        await session.insert()

        entries = [
            Progression(session_id=session.id, segment_id=segment.id, zone_id=zone.id)
            for segment in segments
        ]
        try:
            if entries:
                await Progression.insert_many(entries)
        except PyMongoError:
            logger.exception("Failed to create progression for session %s", session.id)
            await Progression.find(Progression.session_id == session.id).delete()
            await session.delete()
            raise

        logger.info(
            "Started session %s on zone %s with %d segments",
            session.id,
            zone.id,
            len(entries),
        )
        return session, ProgressSummary(total=len(entries), completed=0, in_progress=0)

    async def get_progress(
        self,
        session_id: str | PydanticObjectId,
    ) -> tuple[TourSession, ProgressSummary, list[dict[str, Any]]]:
        """Session, aggregate progress and per-segment entries in visit order."""
        session = await self.get_session(session_id)
        entries = await self.get_entries(session.id)
        segments = {
            segment.id: segment
            for segment in await Segment.find(
                {"_id": {"$in": [entry.segment_id for entry in entries]}},
            ).to_list()
        }
        ordered = sorted(
            entries,
            key=lambda entry: (
                visit_sort_key(segments[entry.segment_id])
                if entry.segment_id in segments
                else (True, 0, 0)
            ),
        )
        return (
            session,
            summarize(entries),
            [serialize_progression(entry, segments.get(entry.segment_id)) for entry in ordered],
        )

    async def update_position(
        self,
        session_id: str | PydanticObjectId,
        lon: float,
        lat: float,
        *,
        recorded_at: datetime | None = None,
    ) -> PositionUpdate:
        """Record a GPS fix and mark the nearest pending segment in progress.

        A fix older than the stored one does not replace the stored position
        but is still used for detection.
        """
        position = _validated_position(lon, lat)
        session_oid = coerce_oid(session_id, field="session_id")
        async with self._locks.hold(session_oid):
            session = await self.get_session(session_oid)
            _require_state(session, SESSION_ACTIVE)
            now = _now()

            fix_time = as_utc(recorded_at) if recorded_at is not None else now
            stale = (
                session.last_position_at is not None
                and fix_time < as_utc(session.last_position_at)
            )
            if not stale:
                session.last_position = position
                session.last_position_at = fix_time

            entries = await self.get_entries(session.id)
            detected, distance = await self._detect_segment(position, entries)
            auto_completed: PydanticObjectId | None = None
            if detected is not None:
                reentry = (
                    detected.started_at is not None
                    and session.current_segment_id is not None
                    and session.current_segment_id != detected.segment_id
                )
                if self.auto_complete_on_reentry and reentry:
                    await self._mark_done(detected, now)
                    auto_completed = detected.segment_id
                else:
                    await self._mark_in_progress(detected, now)
                session.current_segment_id = detected.segment_id

            session.updated_at = now
            await session.save()

        return PositionUpdate(
            session=session,
            progress=summarize(entries),
            position_applied=not stale,
            detected_segment_id=detected.segment_id if detected else None,
            detected_distance_m=distance if detected else None,
            auto_completed_segment_id=auto_completed,
        )

    async def start_segment(
        self,
        session_id: str | PydanticObjectId,
        segment_id: str | PydanticObjectId,
    ) -> Progression:
        session_oid = coerce_oid(session_id, field="session_id")
        async with self._locks.hold(session_oid):
            session = await self.get_session(session_oid)
            _require_state(session, SESSION_ACTIVE)
            entry = await self._get_entry(session.id, segment_id)
            await self._mark_in_progress(entry, _now())
            session.current_segment_id = entry.segment_id
            session.updated_at = _now()
            await session.save()
        return entry

    async def complete_segment(
        self,
        session_id: str | PydanticObjectId,
        segment_id: str | PydanticObjectId,
    ) -> Progression:
        """Mark a segment done. Completing a done segment changes nothing."""
        session_oid = coerce_oid(session_id, field="session_id")
        async with self._locks.hold(session_oid):
            session = await self.get_session(session_oid)
            _require_state(session, SESSION_ACTIVE)
            entry = await self._get_entry(session.id, segment_id)
            await self._mark_done(entry, _now())
            session.updated_at = _now()
            await session.save()
        logger.info("Session %s completed segment %s", session.id, entry.segment_id)
        return entry

    async def pause(
        self,
        session_id: str | PydanticObjectId,
        *,
        position: list[float] | None = None,
    ) -> TourSession:
        pair = _validated_position(position[0], position[1]) if position else None
        session_oid = coerce_oid(session_id, field="session_id")
        async with self._locks.hold(session_oid):
            session = await self.get_session(session_oid)
            _require_state(session, SESSION_ACTIVE)
            now = _now()
            if pair is not None:
                session.last_position = pair
                session.last_position_at = now
            session.status = SESSION_PAUSED
            session.paused_at = now
            session.updated_at = now
            await session.save()
        logger.info("Paused session %s", session.id)
        return session

    async def resume(self, session_id: str | PydanticObjectId) -> TourSession:
        session_oid = coerce_oid(session_id, field="session_id")
        async with self._locks.hold(session_oid):
            session = await self.get_session(session_oid)
            _require_state(session, SESSION_PAUSED)
            session.status = SESSION_ACTIVE
            session.paused_at = None
            session.updated_at = _now()
            await session.save()
        logger.info("Resumed session %s", session.id)
        return session

    async def complete_session(
        self,
        session_id: str | PydanticObjectId,
        *,
        notes: str | None = None,
    ) -> TourSession:
        """End the session and store its final statistics."""
        session_oid = coerce_oid(session_id, field="session_id")
        async with self._locks.hold(session_oid):
            session = await self.get_session(session_oid)
            _require_state(session, SESSION_ACTIVE, SESSION_PAUSED)
            now = _now()
            entries = await self.get_entries(session.id)
            summary = summarize(entries)
            done_ids = [entry.segment_id for entry in entries if entry.done]
            done_segments = (
                await Segment.find({"_id": {"$in": done_ids}}).to_list() if done_ids else []
            )
            session.status = SESSION_ENDED
            session.ended_at = now
            session.paused_at = None
            session.updated_at = now
            if notes is not None:
                session.notes = notes
            session.final_stats = {
                **summary.as_dict(),
                "distance_m": round(sum(s.length_m for s in done_segments), 1),
                "duration_s": round((now - as_utc(session.started_at)).total_seconds(), 1),
            }
            await session.save()
        self._locks.discard(session_oid)
        logger.info(
            "Ended session %s: %d/%d segments (%.1f%%)",
            session.id,
            summary.completed,
            summary.total,
            summary.percentage,
        )
        return session

    async def _detect_segment(
        self,
        position: list[float],
        entries: list[Progression],
    ) -> tuple[Progression | None, float | None]:
        pending = {entry.segment_id: entry for entry in entries if not entry.done}
        if not pending:
            return None, None
        segments = await Segment.find({"_id": {"$in": list(pending)}}).to_list()

        best: Progression | None = None
        best_distance: float | None = None
        for segment in segments:
            distance = distance_meters(position, segment.midpoint)
            if best_distance is None or distance < best_distance:
                best, best_distance = pending[segment.id], distance
        if best is None or best_distance is None or best_distance > self.detection_threshold_m:
            return None, None
        return best, best_distance

    @staticmethod
    async def _mark_in_progress(entry: Progression, now: datetime) -> None:
        if entry.done:
            return
        if entry.started_at is None:
            entry.started_at = now
            await entry.save()
        segment = await Segment.get(entry.segment_id)
        if segment is not None and segment.status not in (SEGMENT_DONE, SEGMENT_IN_PROGRESS):
            segment.status = SEGMENT_IN_PROGRESS
            segment.updated_at = now
            await segment.save()

    @staticmethod
    async def _mark_done(entry: Progression, now: datetime) -> None:
        if entry.done:
            return
        entry.done = True
        entry.completed_at = now
        if entry.started_at is None:
            entry.started_at = now
        await entry.save()
        segment = await Segment.get(entry.segment_id)
        if segment is not None and segment.status != SEGMENT_DONE:
            segment.status = SEGMENT_DONE
            segment.updated_at = now
            await segment.save()
