"""Shared constants for the HTTP clients and geometry helpers."""

from typing import Final

# Shared aiohttp session
HTTP_CONNECTION_LIMIT: Final[int] = 10
HTTP_TIMEOUT_CONNECT: Final[float] = 10.0
HTTP_TIMEOUT_SOCK_READ: Final[float] = 60.0
HTTP_TIMEOUT_TOTAL: Final[float] = 120.0
HTTP_USER_AGENT: Final[str] = "RoundPlanner/1.0"

# Mean Earth radius used by the haversine helpers
EARTH_RADIUS_M: Final[float] = 6371000.0
