"""Live distribution session API endpoints."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from core.api import api_route
from core.providers import get_session_service
from tracking.services.session_service import (
    TourSessionService,
    serialize_progression,
    serialize_session,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/sessions", tags=["sessions"])


class StartSessionRequest(BaseModel):
    zone_id: str
    user_id: str | None = None
    route_snapshot: dict[str, Any] | None = None


class PositionRequest(BaseModel):
    lon: float
    lat: float
    recorded_at: datetime | None = None


class PauseRequest(BaseModel):
    position: list[float] | None = Field(default=None, min_length=2, max_length=2)


class CompleteSessionRequest(BaseModel):
    notes: str | None = None


@router.post("", response_model=dict[str, Any])
@api_route(logger)
async def start_session(
    payload: StartSessionRequest,
    service: TourSessionService = Depends(get_session_service),
):
    session, progress = await service.start_session(
        payload.zone_id,
        user_id=payload.user_id,
        route_snapshot=payload.route_snapshot,
    )
    return {"status": "success", "session": serialize_session(session, progress)}


@router.get("/{session_id}", response_model=dict[str, Any])
@api_route(logger)
async def get_session_progress(
    session_id: str,
    service: TourSessionService = Depends(get_session_service),
):
    session, progress, segments = await service.get_progress(session_id)
    return {
        "status": "success",
        "session": serialize_session(session, progress),
        "segments": segments,
    }


@router.post("/{session_id}/position", response_model=dict[str, Any])
@api_route(logger)
async def update_position(
    session_id: str,
    payload: PositionRequest,
    service: TourSessionService = Depends(get_session_service),
):
    update = await service.update_position(
        session_id,
        payload.lon,
        payload.lat,
        recorded_at=payload.recorded_at,
    )
    return {"status": "success", **update.as_dict()}


@router.post("/{session_id}/segments/{segment_id}/start", response_model=dict[str, Any])
@api_route(logger)
async def start_segment(
    session_id: str,
    segment_id: str,
    service: TourSessionService = Depends(get_session_service),
):
    entry = await service.start_segment(session_id, segment_id)
    return {"status": "success", "progression": serialize_progression(entry)}


@router.post(
    "/{session_id}/segments/{segment_id}/complete",
    response_model=dict[str, Any],
)
@api_route(logger)
async def complete_segment(
    session_id: str,
    segment_id: str,
    service: TourSessionService = Depends(get_session_service),
):
    entry = await service.complete_segment(session_id, segment_id)
    return {"status": "success", "progression": serialize_progression(entry)}


@router.post("/{session_id}/pause", response_model=dict[str, Any])
@api_route(logger)
async def pause_session(
    session_id: str,
    payload: PauseRequest | None = None,
    service: TourSessionService = Depends(get_session_service),
):
    position = payload.position if payload else None
    session = await service.pause(session_id, position=position)
    return {"status": "success", "session": serialize_session(session)}


@router.post("/{session_id}/resume", response_model=dict[str, Any])
@api_route(logger)
async def resume_session(
    session_id: str,
    service: TourSessionService = Depends(get_session_service),
):
    session = await service.resume(session_id)
    return {"status": "success", "session": serialize_session(session)}


@router.post("/{session_id}/complete", response_model=dict[str, Any])
@api_route(logger)
async def complete_session(
    session_id: str,
    payload: CompleteSessionRequest | None = None,
    service: TourSessionService = Depends(get_session_service),
):
    session = await service.complete_session(
        session_id,
        notes=payload.notes if payload else None,
    )
    return {"status": "success", "session": serialize_session(session)}
