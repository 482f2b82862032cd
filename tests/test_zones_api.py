from __future__ import annotations

from unittest.mock import AsyncMock, patch

import aiohttp
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from zone_fakes import ZONE_POLYGON, fake_normalizer

from core.exceptions import ExternalServiceException
from core.providers import get_ingestion_service, get_street_normalizer, get_zone_partitioner
from routing.zones import ZonePartitioner, ZoneSplitPlan
from streets.api import router as zones_router
from streets.services.ingestion import ZoneIngestionService


def _build_app(normalizer=None) -> FastAPI:
    normalizer = normalizer or fake_normalizer()
    app = FastAPI()
    app.include_router(zones_router)
    app.dependency_overrides[get_street_normalizer] = lambda: normalizer
    app.dependency_overrides[get_ingestion_service] = lambda: ZoneIngestionService(normalizer)
    app.dependency_overrides[get_zone_partitioner] = lambda: ZonePartitioner(normalizer)
    return app


@pytest.mark.asyncio
async def test_create_zone_and_list_segments(beanie_db) -> None:
    client = TestClient(_build_app())

    create_resp = client.post("/api/zones", json={"name": "Centre", "polygon": ZONE_POLYGON})
    assert create_resp.status_code == 200
    payload = create_resp.json()
    assert payload["stats"]["segments_created"] == 4
    zone_id = payload["zone"]["id"]

    detail = client.get(f"/api/zones/{zone_id}")
    assert detail.status_code == 200
    assert detail.json()["zone"]["name"] == "Centre"

    segments_resp = client.get(f"/api/zones/{zone_id}/segments")
    assert segments_resp.status_code == 200
    body = segments_resp.json()
    assert body["count"] == 4
    assert {segment["status"] for segment in body["segments"]} == {"todo"}
    assert body["geojson"]["type"] == "FeatureCollection"
    assert len(body["geojson"]["features"]) == 4
    assert body["geojson"]["features"][0]["geometry"]["type"] == "LineString"

    delete_resp = client.delete(f"/api/zones/{zone_id}")
    assert delete_resp.status_code == 200
    assert client.get(f"/api/zones/{zone_id}").status_code == 404


@pytest.mark.asyncio
async def test_create_zone_rejects_bad_polygons(beanie_db) -> None:
    client = TestClient(_build_app())

    resp = client.post(
        "/api/zones",
        json={"name": "Bad", "polygon": {"type": "Polygon", "coordinates": [[[0, 0], [1, 1]]]}},
    )

    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_create_zone_reports_extraction_failures(beanie_db) -> None:
    failing = fake_normalizer(error=ExternalServiceException("Overpass error: 504"))
    client = TestClient(_build_app(failing))

    resp = client.post("/api/zones", json={"name": "Down", "polygon": ZONE_POLYGON})

    assert resp.status_code == 502
    assert "Overpass" in resp.json()["detail"]


def test_analyze_zone_reports_unreachable_extraction_as_bad_gateway() -> None:
    failing = fake_normalizer(error=aiohttp.ClientConnectionError("refused"))
    client = TestClient(_build_app(failing))

    resp = client.post("/api/zones/analyze", json={"polygon": ZONE_POLYGON})

    assert resp.status_code == 502
    assert "Street extraction failed" in resp.json()["detail"]


def test_analyze_zone_returns_diagnostics() -> None:
    client = TestClient(_build_app())

    resp = client.post("/api/zones/analyze", json={"polygon": ZONE_POLYGON})

    assert resp.status_code == 200
    analysis = resp.json()["analysis"]
    assert analysis["total_streets"] == 2
    assert "too_small" in {s["type"] for s in analysis["suggestions"]}


def test_auto_split_uses_the_partitioner() -> None:
    plan = ZoneSplitPlan(
        total_streets=2,
        total_length_m=200.0,
        estimated_minutes=8,
        target_minutes=120,
        zone_count=1,
    )
    with patch.object(ZonePartitioner, "plan", new=AsyncMock(return_value=plan)) as mocked:
        client = TestClient(_build_app())
        resp = client.post(
            "/api/zones/auto-split",
            json={"polygon": ZONE_POLYGON, "target_minutes": 120, "base_name": "Est"},
        )

    assert resp.status_code == 200
    assert resp.json()["needs_split"] is False
    assert resp.json()["num_zones"] == 1
    assert mocked.await_args.kwargs["base_name"] == "Est"


def test_auto_split_rejects_non_positive_targets() -> None:
    client = TestClient(_build_app())

    resp = client.post("/api/zones/auto-split", json={"polygon": ZONE_POLYGON, "target_minutes": 0})

    assert resp.status_code == 422
