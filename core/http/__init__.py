"""HTTP client utilities and session management."""

from core.http.openrouteservice import (
    DirectionsResult,
    MatrixResult,
    OpenRouteServiceClient,
    RouteStep,
)
from core.http.overpass import OverpassClient
from core.http.request import request_json
from core.http.retry import retry_async
from core.http.session import cleanup_session, get_session

__all__ = [
    "DirectionsResult",
    "MatrixResult",
    "OpenRouteServiceClient",
    "OverpassClient",
    "RouteStep",
    "cleanup_session",
    "get_session",
    "request_json",
    "retry_async",
]
