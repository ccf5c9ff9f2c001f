"""
Boundary geometry for the design area.

This module implements:
- Boundary ingestion from GeoJSON or plain (lng, lat) rings
- Ray-casting point-in-polygon containment
- Rejection sampling of interior points
- Vertex centroid and nearest-point-on-boundary projection
- Bounding regions, widened when degenerate

Coordinates are treated as locally Euclidean. Boundary rings are stored
in GeoJSON order (lng, lat); points handed to and returned from this
module are (lat, lng).
"""

import math
import sys
from dataclasses import dataclass
from typing import Any, Iterable, List, NamedTuple, Optional, Sequence, Tuple

import structlog

from .alea_prng import AleaPRNG

logger = structlog.get_logger()

MAX_SAMPLING_ATTEMPTS = 1000
MIN_REGION_EXTENT = 1e-6
INVALID_BOUNDARY_SIZE = (0.01, 0.01)
DEFAULT_ANCHOR = (10.85, 76.27)

_EPSILON = sys.float_info.epsilon


class LatLng(NamedTuple):
    """A (lat, lng) coordinate."""

    lat: float
    lng: float


class InteriorSample(NamedTuple):
    """Result of interior sampling; ``degraded`` marks the bbox fallback."""

    point: LatLng
    degraded: bool


@dataclass(frozen=True)
class Region:
    """Axis-aligned bounding box in degrees."""

    min_lat: float
    max_lat: float
    min_lng: float
    max_lng: float

    @property
    def lat_extent(self) -> float:
        return self.max_lat - self.min_lat

    @property
    def lng_extent(self) -> float:
        return self.max_lng - self.min_lng

    @property
    def center(self) -> LatLng:
        return LatLng((self.min_lat + self.max_lat) / 2, (self.min_lng + self.max_lng) / 2)

    def widened(self, min_extent: float = MIN_REGION_EXTENT) -> "Region":
        """
        Return a copy where each axis spans at least ``min_extent``.

        Degenerate axes are grown symmetrically around their midpoint.
        """
        min_lat, max_lat = self.min_lat, self.max_lat
        min_lng, max_lng = self.min_lng, self.max_lng

        if max_lat - min_lat < min_extent:
            mid = (min_lat + max_lat) / 2
            min_lat, max_lat = mid - min_extent / 2, mid + min_extent / 2
        if max_lng - min_lng < min_extent:
            mid = (min_lng + max_lng) / 2
            min_lng, max_lng = mid - min_extent / 2, mid + min_extent / 2

        return Region(min_lat, max_lat, min_lng, max_lng)

    @classmethod
    def around(cls, center: Tuple[float, float], radius: float) -> "Region":
        """Square region of half-width ``radius`` around a (lat, lng) center."""
        lat, lng = center
        return cls(lat - radius, lat + radius, lng - radius, lng + radius).widened()


@dataclass(frozen=True)
class Boundary:
    """
    Closed ring of (lng, lat) vertices delimiting the design area.

    The closing vertex is implicit; a repeated first vertex at the end of
    the input is dropped on construction.
    """

    ring: Tuple[Tuple[float, float], ...]

    def __post_init__(self):
        ring = tuple((float(lng), float(lat)) for lng, lat in self.ring)
        if len(ring) > 1 and ring[0] == ring[-1]:
            ring = ring[:-1]
        object.__setattr__(self, "ring", ring)

    @classmethod
    def from_coordinates(cls, coordinates: Iterable[Sequence[float]]) -> "Boundary":
        """Build from an iterable of [lng, lat] pairs."""
        return cls(tuple((pt[0], pt[1]) for pt in coordinates))

    @classmethod
    def from_geojson(cls, data: dict) -> "Boundary":
        """
        Build from a GeoJSON Feature or Polygon geometry.

        Only the outer ring is used.

        Raises:
            ValueError: If the object carries no polygon ring
        """
        geometry = data.get("geometry", data) if data.get("type") == "Feature" else data
        if not geometry or geometry.get("type") != "Polygon":
            raise ValueError("Boundary must be a GeoJSON Polygon or a Feature wrapping one")

        rings = geometry.get("coordinates") or []
        if not rings:
            raise ValueError("Boundary polygon has no coordinates")

        return cls.from_coordinates(rings[0])

    def to_geojson(self) -> dict:
        """Serialize as a GeoJSON Feature with an explicitly closed ring."""
        coords = [list(pt) for pt in self.ring]
        if coords:
            coords.append(list(self.ring[0]))
        return {
            "type": "Feature",
            "properties": {},
            "geometry": {"type": "Polygon", "coordinates": [coords]},
        }

    @property
    def is_valid(self) -> bool:
        """At least three distinct vertices."""
        return len(set(self.ring)) >= 3

    @property
    def edges(self) -> List[Tuple[Tuple[float, float], Tuple[float, float]]]:
        """Ring edges including the closing edge."""
        n = len(self.ring)
        return [(self.ring[i], self.ring[(i + 1) % n]) for i in range(n)]

    def region(self) -> Region:
        """Bounding region, widened if degenerate."""
        if not self.ring:
            return Region.around(DEFAULT_ANCHOR, INVALID_BOUNDARY_SIZE[0] / 2)
        lngs = [lng for lng, _ in self.ring]
        lats = [lat for _, lat in self.ring]
        return Region(min(lats), max(lats), min(lngs), max(lngs)).widened()


def _usable(boundary: Optional[Boundary]) -> bool:
    return boundary is not None and boundary.is_valid


def as_lat_lng(point: Any) -> LatLng:
    """
    Normalize a point-like value to LatLng.

    Accepts (lat, lng) sequences, dicts with 'lat'/'lng' keys and objects
    with ``lat``/``lng`` attributes (e.g. elevation samples).
    """
    if isinstance(point, LatLng):
        return point
    if isinstance(point, dict):
        return LatLng(float(point["lat"]), float(point["lng"]))
    if hasattr(point, "lat") and hasattr(point, "lng"):
        return LatLng(float(point.lat), float(point.lng))
    lat, lng = point
    return LatLng(float(lat), float(lng))


def point_in_ring(x: float, y: float, ring: Sequence[Tuple[float, float]]) -> bool:
    """
    Ray-casting test of (x, y) against a ring of (x, y) vertices.

    Points exactly on an edge may land on either side.
    """
    inside = False
    j = len(ring) - 1
    for i in range(len(ring)):
        xi, yi = ring[i]
        xj, yj = ring[j]
        if (yi > y) != (yj > y):
            intercept = (xj - xi) * (y - yi) / (yj - yi + _EPSILON) + xi
            if x < intercept:
                inside = not inside
        j = i
    return inside


def contains(point: Any, boundary: Optional[Boundary]) -> bool:
    """
    Check whether a (lat, lng) point lies inside the boundary.

    A missing or invalid boundary places no constraint and contains
    every point.
    """
    if not _usable(boundary):
        return True
    lat, lng = as_lat_lng(point)
    return point_in_ring(lng, lat, boundary.ring)


def filter_interior(points: Iterable[Any], boundary: Optional[Boundary]) -> List[Any]:
    """Keep only the points (of any point-like type) inside the boundary."""
    if not _usable(boundary):
        return list(points)
    return [p for p in points if contains(p, boundary)]


def sample_interior(boundary: Optional[Boundary], prng: AleaPRNG,
                    max_attempts: int = MAX_SAMPLING_ATTEMPTS) -> InteriorSample:
    """
    Draw a uniformly distributed point inside the boundary.

    Rejection-samples the bounding box. When ``max_attempts`` draws all
    miss, returns the bounding-box midpoint flagged as degraded.

    Args:
        boundary: Design boundary
        prng: Random source
        max_attempts: Rejection sampling budget

    Returns:
        InteriorSample with the point and the degraded flag
    """
    if not _usable(boundary):
        return InteriorSample(LatLng(*DEFAULT_ANCHOR), True)

    region = boundary.region()
    for _ in range(max_attempts):
        lng = region.min_lng + prng.random() * region.lng_extent
        lat = region.min_lat + prng.random() * region.lat_extent
        if point_in_ring(lng, lat, boundary.ring):
            return InteriorSample(LatLng(lat, lng), False)

    logger.warning("Could not find point inside boundary", attempts=max_attempts)
    return InteriorSample(region.center, True)


def centroid(boundary: Optional[Boundary]) -> LatLng:
    """Arithmetic mean of the ring vertices (not the area centroid)."""
    if boundary is None or not boundary.ring:
        return LatLng(*DEFAULT_ANCHOR)
    n = len(boundary.ring)
    return LatLng(
        sum(lat for _, lat in boundary.ring) / n,
        sum(lng for lng, _ in boundary.ring) / n,
    )


def closest_point_on_segment(px: float, py: float, x1: float, y1: float,
                             x2: float, y2: float) -> Tuple[float, float]:
    """Perpendicular projection of (px, py) onto a segment, clamped to its ends."""
    dx = x2 - x1
    dy = y2 - y1
    len_sq = dx * dx + dy * dy
    if len_sq == 0:
        return x1, y1

    t = ((px - x1) * dx + (py - y1) * dy) / len_sq
    if t < 0:
        return x1, y1
    if t > 1:
        return x2, y2
    return x1 + t * dx, y1 + t * dy


def closest_boundary_point(point: Any, boundary: Optional[Boundary]) -> LatLng:
    """
    Nearest point on any boundary edge.

    Without a usable boundary the point itself is returned.
    """
    target = as_lat_lng(point)
    if not _usable(boundary):
        return target

    best = target
    best_distance = math.inf
    for (x1, y1), (x2, y2) in boundary.edges:
        cx, cy = closest_point_on_segment(target.lng, target.lat, x1, y1, x2, y2)
        distance = math.hypot(cx - target.lng, cy - target.lat)
        if distance < best_distance:
            best_distance = distance
            best = LatLng(cy, cx)
    return best


def distance_to_boundary(point: Any, boundary: Optional[Boundary]) -> float:
    """Euclidean (degree) distance to the nearest boundary edge."""
    target = as_lat_lng(point)
    nearest = closest_boundary_point(target, boundary)
    return math.hypot(nearest.lat - target.lat, nearest.lng - target.lng)


def on_boundary(point: Any, boundary: Optional[Boundary], tolerance: float = 1e-9) -> bool:
    """Whether the point lies on a boundary edge within ``tolerance``."""
    if not _usable(boundary):
        return False
    return distance_to_boundary(point, boundary) <= tolerance


def contains_or_touches(point: Any, boundary: Optional[Boundary], tolerance: float = 1e-9) -> bool:
    """Inside the boundary or on one of its edges."""
    return contains(point, boundary) or on_boundary(point, boundary, tolerance)


def approximate_size(boundary: Optional[Boundary]) -> Tuple[float, float]:
    """
    Bounding-box (width, height) of the boundary in degrees.

    Invalid boundaries report a small default size.
    """
    if not _usable(boundary):
        logger.warning("Invalid boundary for size calculation")
        return INVALID_BOUNDARY_SIZE

    lngs = [lng for lng, _ in boundary.ring]
    lats = [lat for _, lat in boundary.ring]
    return max(lngs) - min(lngs), max(lats) - min(lats)


def diagonal(boundary: Optional[Boundary]) -> float:
    """Length of the bounding-box diagonal in degrees."""
    width, height = approximate_size(boundary)
    return math.hypot(width, height)


def circle_polygon(center: Any, radius: float, vertices: int = 36) -> List[LatLng]:
    """
    Closed circular ring of (lat, lng) points around ``center``.

    The first vertex is repeated at the end.
    """
    lat, lng = as_lat_lng(center)
    ring = []
    for i in range(vertices):
        angle = math.radians(i * 360.0 / vertices)
        ring.append(LatLng(lat + radius * math.cos(angle), lng + radius * math.sin(angle)))
    ring.append(ring[0])
    return ring
