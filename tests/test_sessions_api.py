from __future__ import annotations

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from zone_fakes import ZONE_POLYGON, fake_normalizer

from core.providers import get_session_service
from streets.services.ingestion import ZoneIngestionService
from streets.services.zones import list_zone_segments
from tracking.api.sessions import router as sessions_router
from tracking.services.session_service import TourSessionService


def _build_app() -> FastAPI:
    app = FastAPI()
    app.include_router(sessions_router)
    service = TourSessionService()
    app.dependency_overrides[get_session_service] = lambda: service
    return app


async def _zone_with_segments():
    zone, _ = await ZoneIngestionService(fake_normalizer()).create_zone(
        name="Session API",
        polygon=ZONE_POLYGON,
    )
    return zone, await list_zone_segments(zone.id)


@pytest.mark.asyncio
async def test_session_lifecycle_endpoints(beanie_db) -> None:
    zone, segments = await _zone_with_segments()
    client = TestClient(_build_app())

    start_resp = client.post("/api/sessions", json={"zone_id": str(zone.id), "user_id": "u1"})
    assert start_resp.status_code == 200
    session = start_resp.json()["session"]
    assert session["status"] == "active"
    assert session["progress"]["total"] == 4
    session_id = session["id"]

    lon, lat = segments[0].midpoint
    position_resp = client.post(
        f"/api/sessions/{session_id}/position",
        json={"lon": lon, "lat": lat},
    )
    assert position_resp.status_code == 200
    assert position_resp.json()["detected_segment_id"] == str(segments[0].id)

    start_seg = client.post(f"/api/sessions/{session_id}/segments/{segments[1].id}/start")
    assert start_seg.status_code == 200
    assert start_seg.json()["progression"]["status"] == "in_progress"

    complete_seg = client.post(f"/api/sessions/{session_id}/segments/{segments[0].id}/complete")
    assert complete_seg.status_code == 200
    assert complete_seg.json()["progression"]["done"] is True

    progress_resp = client.get(f"/api/sessions/{session_id}")
    assert progress_resp.status_code == 200
    body = progress_resp.json()
    assert body["session"]["progress"]["completed"] == 1
    assert body["session"]["progress"]["percentage"] == 25.0
    assert len(body["segments"]) == 4

    pause_resp = client.post(f"/api/sessions/{session_id}/pause", json={"position": [lon, lat]})
    assert pause_resp.status_code == 200
    assert pause_resp.json()["session"]["status"] == "paused"

    rejected = client.post(f"/api/sessions/{session_id}/position", json={"lon": lon, "lat": lat})
    assert rejected.status_code == 409

    resume_resp = client.post(f"/api/sessions/{session_id}/resume")
    assert resume_resp.status_code == 200
    assert resume_resp.json()["session"]["status"] == "active"

    end_resp = client.post(f"/api/sessions/{session_id}/complete", json={"notes": "fin"})
    assert end_resp.status_code == 200
    ended = end_resp.json()["session"]
    assert ended["status"] == "ended"
    assert ended["final_stats"]["completed"] == 1

    after_end = client.post(f"/api/sessions/{session_id}/segments/{segments[2].id}/complete")
    assert after_end.status_code == 409


@pytest.mark.asyncio
async def test_session_endpoints_error_mapping(beanie_db) -> None:
    client = TestClient(_build_app())

    missing_zone = client.post("/api/sessions", json={"zone_id": "0123456789abcdef01234567"})
    assert missing_zone.status_code == 404

    bad_id = client.get("/api/sessions/not-an-id")
    assert bad_id.status_code == 400

    missing = client.post("/api/sessions/0123456789abcdef01234567/resume")
    assert missing.status_code == 404

    bad_body = client.post("/api/sessions/0123456789abcdef01234567/position", json={"lon": "x"})
    assert bad_body.status_code == 422
