"""Tunable constants for route optimization and zone planning."""

from typing import Final

from core.http.openrouteservice import ORS_MAX_LOCATIONS

# Oracle size limits and chunking
MAX_LOCATIONS_PER_REQUEST: Final[int] = ORS_MAX_LOCATIONS
DEFAULT_CHUNK_SIZE: Final[int] = 40
MAX_CONCURRENT_CHUNKS: Final[int] = 4

# Local search
TWO_OPT_EPSILON: Final[float] = 1e-9

# Zone partitioning
DEFAULT_TARGET_ZONE_MINUTES: Final[int] = 120
SUB_ZONE_NAME_TEMPLATE: Final[str] = "{base} - Sector {index}"

# Quick tour
QUICK_TOUR_METERS_PER_HOUR: Final[float] = 2500.0
QUICK_TOUR_TIME_BUDGET_RATIO: Final[float] = 0.8
QUICK_TOUR_MAX_SEGMENTS: Final[int] = 40
QUICK_TOUR_SEARCH_RADIUS_M: Final[float] = 2000.0
