"""Constants for street normalization and segmentation."""

from typing import Final

UNNAMED_STREET: Final[str] = "unnamed"
NAME_TAG_FALLBACK: Final[tuple[str, ...]] = ("name", "ref", "addr:street")

# Fixed lateral offset used to draw each side of a street. Road width is not
# known, so this is an approximation applied to every street alike.
SIDE_OFFSET_M: Final[float] = 3.0

# Streets shorter than this are distributed in a single pass.
MIN_SPLIT_LENGTH_M: Final[float] = 20.0

# Door-to-door walking speed used for zone duration estimates.
DOOR_TO_DOOR_METERS_PER_HOUR: Final[float] = 1500.0

# Zone sizing diagnostics.
MIN_ZONE_MINUTES: Final[int] = 90
MAX_ZONE_MINUTES: Final[int] = 150
IDEAL_ZONE_MINUTES: Final[int] = 120
ENDPOINT_SNAP_M: Final[float] = 10.0
SERVICE_ROAD_SHARE_THRESHOLD: Final[float] = 0.3
DEAD_END_SHARE_THRESHOLD: Final[float] = 0.3
