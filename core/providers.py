"""
Service wiring for the HTTP layer.

Each provider builds a service from the cached ``ServiceSettings``. Routers
take them through ``Depends`` so tests can swap them with
``app.dependency_overrides``.
"""

from __future__ import annotations

from functools import lru_cache

from config import get_settings
from core.http.openrouteservice import OpenRouteServiceClient
from core.http.overpass import OverpassClient
from routing.optimizer import RouteOptimizer
from routing.quick_tour import QuickTourService
from routing.service import RoutePlanningService
from routing.zones import ZonePartitioner
from streets.normalizer import StreetNormalizer
from streets.services.ingestion import ZoneIngestionService
from tracking.services.session_service import TourSessionService


def get_street_normalizer() -> StreetNormalizer:
    return StreetNormalizer(OverpassClient(get_settings()))


def get_route_optimizer() -> RouteOptimizer:
    settings = get_settings()
    return RouteOptimizer(
        OpenRouteServiceClient(settings),
        timeout_s=settings.optimization_timeout_s,
    )


def get_ingestion_service() -> ZoneIngestionService:
    return ZoneIngestionService(get_street_normalizer())


def get_zone_partitioner() -> ZonePartitioner:
    return ZonePartitioner(get_street_normalizer())


def get_planning_service() -> RoutePlanningService:
    return RoutePlanningService(get_route_optimizer())


def get_quick_tour_service() -> QuickTourService:
    return QuickTourService(get_route_optimizer())


@lru_cache(maxsize=1)
def get_session_service() -> TourSessionService:
    """One tracker per process, so every request shares its session locks."""
    return TourSessionService()
