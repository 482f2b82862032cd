"""
Spatial and geometry utilities.

Pure geodesic helpers used by every planning component: great-circle
distance, bearings, destination points, polyline length and midpoint,
lateral offsets, simplification, nearest-point projection, bounding boxes and
point-in-polygon tests. Coordinates are ``[lon, lat]`` pairs in WGS84, the
GeoJSON order.

None of these functions perform I/O. Degenerate lines (empty or a single
point) produce zero-length or identity results instead of raising, unless a
precondition is documented on the function.
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING, Any

from shapely.geometry import LineString, Polygon

from core.constants import EARTH_RADIUS_M
from core.exceptions import ValidationError

if TYPE_CHECKING:
    from collections.abc import Sequence


Coordinate = list[float]


class GeometryService:
    """Authoritative geometry operations for the application."""

    EARTH_RADIUS_M = EARTH_RADIUS_M

    @staticmethod
    def validate_coordinate_pair(
        coord: Sequence[Any],
    ) -> tuple[bool, list[float] | None]:
        """Validate a [lon, lat] coordinate pair."""
        if not isinstance(coord, (list, tuple)) or len(coord) < 2:
            return False, None
        try:
            lon = float(coord[0])
            lat = float(coord[1])
        except (TypeError, ValueError, IndexError):
            return False, None
        if not (math.isfinite(lon) and math.isfinite(lat)):
            return False, None
        if not (-180 <= lon <= 180 and -90 <= lat <= 90):
            return False, None
        return True, [lon, lat]

    @staticmethod
    def haversine_distance(
        lon1: float,
        lat1: float,
        lon2: float,
        lat2: float,
        unit: str = "meters",
    ) -> float:
        """Calculate the great-circle distance using the Haversine formula."""
        phi1 = math.radians(lat1)
        phi2 = math.radians(lat2)
        dphi = math.radians(lat2 - lat1)
        dlmb = math.radians(lon2 - lon1)
        a = (
            math.sin(dphi / 2) ** 2
            + math.cos(phi1) * math.cos(phi2) * math.sin(dlmb / 2) ** 2
        )
        distance_m = (
            2 * GeometryService.EARTH_RADIUS_M * math.asin(min(1.0, math.sqrt(a)))
        )
        if unit == "meters":
            return distance_m
        if unit == "miles":
            return distance_m / 1609.344
        if unit == "km":
            return distance_m / 1000.0
        msg = "Invalid unit. Use 'meters', 'miles', or 'km'."
        raise ValueError(msg)

    @staticmethod
    def initial_bearing(
        lon1: float,
        lat1: float,
        lon2: float,
        lat2: float,
    ) -> float:
        """Initial great-circle bearing from point 1 to point 2, in degrees [0, 360)."""
        phi1 = math.radians(lat1)
        phi2 = math.radians(lat2)
        dlmb = math.radians(lon2 - lon1)
        y = math.sin(dlmb) * math.cos(phi2)
        x = math.cos(phi1) * math.sin(phi2) - math.sin(phi1) * math.cos(
            phi2,
        ) * math.cos(dlmb)
        return (math.degrees(math.atan2(y, x)) + 360.0) % 360.0

    @staticmethod
    def destination_point(
        lon: float,
        lat: float,
        distance_m: float,
        bearing_deg: float,
    ) -> Coordinate:
        """Point reached from (lon, lat) after ``distance_m`` along ``bearing_deg``.

        The resulting longitude is normalized to [-180, 180).
        """
        delta = distance_m / GeometryService.EARTH_RADIUS_M
        theta = math.radians(bearing_deg)
        phi1 = math.radians(lat)
        lmb1 = math.radians(lon)

        sin_phi2 = math.sin(phi1) * math.cos(delta) + math.cos(phi1) * math.sin(
            delta,
        ) * math.cos(theta)
        phi2 = math.asin(max(-1.0, min(1.0, sin_phi2)))
        lmb2 = lmb1 + math.atan2(
            math.sin(theta) * math.sin(delta) * math.cos(phi1),
            math.cos(delta) - math.sin(phi1) * math.sin(phi2),
        )
        lon2 = (math.degrees(lmb2) + 540.0) % 360.0 - 180.0
        return [lon2, math.degrees(phi2)]

    @staticmethod
    def line_string(coords: Sequence[Sequence[float]]) -> dict[str, Any]:
        """Build a GeoJSON LineString from coordinate pairs."""
        return {
            "type": "LineString",
            "coordinates": [[float(c[0]), float(c[1])] for c in coords],
        }

    @staticmethod
    def bounding_box_polygon(
        min_lon: float,
        min_lat: float,
        max_lon: float,
        max_lat: float,
    ) -> dict[str, Any]:
        """Create a GeoJSON Polygon for a bounding box."""
        coords = [
            [min_lon, min_lat],
            [max_lon, min_lat],
            [max_lon, max_lat],
            [min_lon, max_lat],
            [min_lon, min_lat],
        ]
        return {"type": "Polygon", "coordinates": [coords]}

    @staticmethod
    def feature_from_geometry(
        geometry: dict[str, Any] | None,
        properties: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Build a GeoJSON Feature from geometry and properties."""
        return {
            "type": "Feature",
            "geometry": geometry,
            "properties": properties or {},
        }

    @staticmethod
    def feature_collection(features: list[dict[str, Any]]) -> dict[str, Any]:
        """Build a GeoJSON FeatureCollection."""
        return {"type": "FeatureCollection", "features": features}


def distance_meters(a: Sequence[float], b: Sequence[float]) -> float:
    """Great-circle distance between two [lon, lat] pairs in meters."""
    return GeometryService.haversine_distance(a[0], a[1], b[0], b[1])


def line_length_meters(coords: Sequence[Sequence[float]]) -> float:
    """Sum of consecutive haversine distances along a polyline."""
    if len(coords) < 2:
        return 0.0
    return sum(
        distance_meters(coords[i], coords[i + 1]) for i in range(len(coords) - 1)
    )


def line_midpoint(coords: Sequence[Sequence[float]]) -> Coordinate | None:
    """Point at half the cumulative length of a polyline.

    Interpolates linearly inside the segment that straddles the half-way
    mark. A single point is its own midpoint; an empty line has none.
    """
    if not coords:
        return None
    if len(coords) == 1:
        return [float(coords[0][0]), float(coords[0][1])]

    lengths = [distance_meters(coords[i], coords[i + 1]) for i in range(len(coords) - 1)]
    total = sum(lengths)
    if total <= 0:
        return [float(coords[0][0]), float(coords[0][1])]

    target = total / 2.0
    walked = 0.0
    for i, seg_len in enumerate(lengths):
        if walked + seg_len >= target:
            ratio = (target - walked) / seg_len if seg_len > 0 else 0.0
            a, b = coords[i], coords[i + 1]
            return [
                float(a[0]) + (float(b[0]) - float(a[0])) * ratio,
                float(a[1]) + (float(b[1]) - float(a[1])) * ratio,
            ]
        walked += seg_len

    return [float(coords[-1][0]), float(coords[-1][1])]


def offset_line(
    coords: Sequence[Sequence[float]],
    offset_m: float,
) -> list[Coordinate]:
    """Translate every vertex laterally by ``offset_m`` meters.

    The local direction at each vertex is the bearing from its previous to
    its next neighbour (the adjacent vertex at the ends). Positive offsets
    move to the right of the direction of travel, negative to the left.
    Sharp turns can make the offset line self-intersect; that is accepted.
    Lines with fewer than two points are returned unchanged.
    """
    copied = [[float(c[0]), float(c[1])] for c in coords]
    if len(copied) < 2 or offset_m == 0:
        return copied

    shifted: list[Coordinate] = []
    last = len(copied) - 1
    for i, point in enumerate(copied):
        prev_pt = copied[i - 1] if i > 0 else point
        next_pt = copied[i + 1] if i < last else point
        bearing = GeometryService.initial_bearing(
            prev_pt[0],
            prev_pt[1],
            next_pt[0],
            next_pt[1],
        )
        shifted.append(
            GeometryService.destination_point(
                point[0],
                point[1],
                offset_m,
                bearing + 90.0,
            ),
        )
    return shifted


def simplify_line(
    coords: Sequence[Sequence[float]],
    tolerance_deg: float,
) -> list[Coordinate]:
    """Ramer-Douglas-Peucker simplification; tolerance is in coordinate degrees.

    Endpoints are always kept.
    """
    copied = [[float(c[0]), float(c[1])] for c in coords]
    if len(copied) < 3 or tolerance_deg <= 0:
        return copied
    simplified = LineString(copied).simplify(tolerance_deg, preserve_topology=False)
    result = [[float(x), float(y)] for x, y in simplified.coords]
    if len(result) < 2:
        return [copied[0], copied[-1]]
    return result


def _project_on_segment(
    point: Sequence[float],
    a: Sequence[float],
    b: Sequence[float],
) -> tuple[Coordinate, float]:
    """Project ``point`` on segment a-b in a locally scaled plane.

    Returns the projected point and the clamped segment parameter.
    """
    scale = math.cos(math.radians(float(point[1])))
    ax, ay = float(a[0]) * scale, float(a[1])
    bx, by = float(b[0]) * scale, float(b[1])
    px, py = float(point[0]) * scale, float(point[1])

    dx, dy = bx - ax, by - ay
    seg_sq = dx * dx + dy * dy
    if seg_sq == 0:
        return [float(a[0]), float(a[1])], 0.0
    t = max(0.0, min(1.0, ((px - ax) * dx + (py - ay) * dy) / seg_sq))
    return (
        [
            float(a[0]) + (float(b[0]) - float(a[0])) * t,
            float(a[1]) + (float(b[1]) - float(a[1])) * t,
        ],
        t,
    )


def nearest_point_on_line(
    point: Sequence[float],
    coords: Sequence[Sequence[float]],
) -> tuple[Coordinate, float, int]:
    """Project a point onto a polyline.

    Requires at least one vertex. Returns ``(nearest_point, distance_m,
    segment_index)`` where ``segment_index`` is the index of the vertex that
    starts the closest segment.
    """
    if not coords:
        msg = "nearest_point_on_line requires at least one point"
        raise ValueError(msg)
    if len(coords) == 1:
        only = [float(coords[0][0]), float(coords[0][1])]
        return only, distance_meters(point, only), 0

    best_point: Coordinate = [float(coords[0][0]), float(coords[0][1])]
    best_distance = math.inf
    best_index = 0
    for i in range(len(coords) - 1):
        candidate, _ = _project_on_segment(point, coords[i], coords[i + 1])
        dist = distance_meters(point, candidate)
        if dist < best_distance:
            best_point, best_distance, best_index = candidate, dist, i
    return best_point, best_distance, best_index


def side_of_line(
    point: Sequence[float],
    coords: Sequence[Sequence[float]],
    *,
    epsilon: float = 1e-12,
) -> int:
    """Which side of a polyline a point lies on.

    Returns ``1`` for the right of the direction of travel, ``-1`` for the
    left and ``0`` when the point is on the line or the line is degenerate.
    """
    if len(coords) < 2:
        return 0
    _, _, index = nearest_point_on_line(point, coords)
    a, b = coords[index], coords[index + 1]
    scale = math.cos(math.radians(float(point[1])))
    cross = (float(b[0]) - float(a[0])) * scale * (float(point[1]) - float(a[1])) - (
        float(b[1]) - float(a[1])
    ) * (float(point[0]) - float(a[0])) * scale
    if abs(cross) <= epsilon:
        return 0
    return -1 if cross > 0 else 1


def bounding_box(
    coords: Sequence[Sequence[float]],
) -> tuple[float, float, float, float] | None:
    """Axis-aligned ``(min_lon, min_lat, max_lon, max_lat)``; ``None`` when empty."""
    if not coords:
        return None
    lons = [float(c[0]) for c in coords]
    lats = [float(c[1]) for c in coords]
    return min(lons), min(lats), max(lons), max(lats)


def point_in_polygon(point: Sequence[float], ring: Sequence[Sequence[float]]) -> bool:
    """Ray-casting containment test against a simple ring."""
    if len(ring) < 3:
        return False
    x, y = float(point[0]), float(point[1])
    inside = False
    j = len(ring) - 1
    for i in range(len(ring)):
        xi, yi = float(ring[i][0]), float(ring[i][1])
        xj, yj = float(ring[j][0]), float(ring[j][1])
        if (yi > y) != (yj > y) and x < (xj - xi) * (y - yi) / (yj - yi) + xi:
            inside = not inside
        j = i
    return inside


def validate_polygon(polygon: Any) -> dict[str, Any]:
    """Validate a GeoJSON Polygon drawn by a user and return it normalized.

    The outer ring must hold at least three distinct valid positions and form
    a simple, non self-intersecting shape. An open ring is closed.
    """
    if not isinstance(polygon, dict) or polygon.get("type") != "Polygon":
        msg = "Zone geometry must be a GeoJSON Polygon"
        raise ValidationError(msg)
    rings = polygon.get("coordinates")
    if not isinstance(rings, list) or not rings or not isinstance(rings[0], list):
        msg = "Polygon has no outer ring"
        raise ValidationError(msg)

    ring: list[Coordinate] = []
    for position in rings[0]:
        is_valid, pair = GeometryService.validate_coordinate_pair(position)
        if not is_valid or pair is None:
            msg = "Polygon contains an invalid coordinate"
            raise ValidationError(msg, {"coordinate": position})
        ring.append(pair)

    if ring and ring[0] != ring[-1]:
        ring.append(list(ring[0]))
    if len(ring) < 4:
        msg = "Polygon ring needs at least 4 positions"
        raise ValidationError(msg, {"positions": len(ring)})

    shape = Polygon(ring)
    if not shape.is_valid or not shape.exterior.is_simple or shape.area == 0:
        msg = "Polygon must be simple and non self-intersecting"
        raise ValidationError(msg)

    return {"type": "Polygon", "coordinates": [ring]}
