"""
Rule-driven placement of site elements.

The synthesizer lays out a design in a fixed priority order:

1. house() - random interior point, becomes the new terrain anchor
2. water_tank() - highest interior terrain sample (gravity-fed irrigation)
3. pond() - circular area around the lowest interior terrain sample
4. satellites() - compost, chicken coop, beehive and shed offset from the house
5. swales() - simplified 1 m contour bands inside the boundary
6. windbreak() - line perpendicular to the prevailing wind
7. zones() - vegetable garden, fruit orchard and grain field circles

Every step is skipped when its kind is already present, so re-running
the synthesizer only fills in what is missing. Steps never mutate the
element list; they return new elements which the caller merges. A step
that fails or whose target falls outside the boundary is skipped without
affecting the remaining steps.
"""

import math
import uuid
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, Set, Tuple

import structlog
from pydantic import BaseModel, Field

from ..config.element_catalog import GeometryKind, get_element_kind
from ..utils.random import get_prng
from .alea_prng import AleaPRNG
from .boundary import (
    Boundary,
    LatLng,
    circle_polygon,
    closest_boundary_point,
    contains,
    contains_or_touches,
    diagonal,
    filter_interior,
    on_boundary,
    sample_interior,
)
from .contours import ContourExtractor
from .elevation_model import ElevationSample
from .hydrology import find_high_points, find_low_points

logger = structlog.get_logger()


class PlacedElement(BaseModel):
    """An element placed on the design."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex, description="Unique element identifier")
    kind: str = Field(description="Element catalog code")
    geometry_kind: GeometryKind = Field(description="Geometry used by the element")
    name: str = Field(description="Display name")
    position: Optional[Tuple[float, float]] = Field(default=None, description="(lat, lng) for point elements")
    points: Optional[List[Tuple[float, float]]] = Field(default=None, description="(lat, lng) list for lines")
    polygon: Optional[List[Tuple[float, float]]] = Field(default=None, description="Closed (lat, lng) ring for polygons")

    @property
    def coordinates(self) -> List[Tuple[float, float]]:
        """All coordinates of the element regardless of geometry."""
        if self.geometry_kind == GeometryKind.POINT:
            return [self.position] if self.position is not None else []
        if self.geometry_kind == GeometryKind.LINE:
            return list(self.points or [])
        return list(self.polygon or [])

    @property
    def center(self) -> Optional[LatLng]:
        """Position for points, vertex mean otherwise."""
        coords = self.coordinates
        if self.geometry_kind == GeometryKind.POLYGON and len(coords) > 1 and coords[0] == coords[-1]:
            coords = coords[:-1]
        if not coords:
            return None
        return LatLng(sum(c[0] for c in coords) / len(coords), sum(c[1] for c in coords) / len(coords))


class PlacementOptions(BaseModel):
    """Placement synthesis options."""

    base_size_fraction: float = Field(default=0.1, description="Base element size as a fraction of the boundary diagonal")
    pond_radius_factor: float = Field(default=0.8, description="Pond radius relative to the base size")
    circle_vertices: int = Field(default=36, description="Vertices of synthesized circular areas")

    satellite_offsets: Dict[str, Tuple[float, float]] = Field(
        default={
            "COMPOST": (0.0003, 0.0002),  # about 30-40 m from the house
            "CHICKEN_COOP": (0.0005, 0.0004),  # about 50-60 m
            "BEEHIVE": (0.0004, -0.0003),  # about 40-50 m
            "SHED": (0.0001, 0.0002),  # about 10-20 m
        },
        description="(dlat, dlng) offsets from the house, in placement order",
    )

    swale_contour_interval: float = Field(default=1.0, description="Contour interval used for swales (m)")
    swale_min_contour_points: int = Field(default=6, description="Contours with fewer points are ignored")
    swale_stride: int = Field(default=3, description="Keep every n-th contour point")
    swale_min_points: int = Field(default=3, description="Minimum interior points for a swale line")
    max_swales: int = Field(default=3, description="Maximum swales per synthesis")

    windbreak_length_fraction: float = Field(default=0.3, description="Windbreak length as a fraction of the diagonal")

    zone_tiers: Dict[str, float] = Field(
        default={"VEGETABLE_GARDEN": 1.0, "FRUIT_ORCHARD": 1.2, "GRAIN_FIELD": 1.5},
        description="Zone kinds and their size multipliers, in placement order",
    )

    manual_polygon_radius: float = Field(default=0.002, description="Radius for hand-placed polygon elements")
    manual_line_length: float = Field(default=0.003, description="Diagonal length for hand-placed line elements")


@dataclass
class PlacementResult:
    """Outcome of one synthesis run."""

    added: List[PlacedElement] = field(default_factory=list)
    new_anchor: Optional[LatLng] = None
    skipped: List[str] = field(default_factory=list)  # Kind codes, or step names for failed steps
    superseded: bool = False

    def kinds(self) -> List[str]:
        return [e.kind for e in self.added]


@dataclass
class _SynthesisContext:
    boundary: Boundary
    topography: Sequence[ElevationSample]
    dem_samples: Sequence[ElevationSample]
    present: Set[str]
    house_position: LatLng
    wind_direction: float
    diagonal: float
    base_size: float


def placement_candidates(topography: Sequence[ElevationSample],
                         boundary: Boundary) -> List[ElevationSample]:
    """Terrain samples strictly inside the boundary; samples on an edge are excluded."""
    return [s for s in filter_interior(topography, boundary) if not on_boundary(s, boundary)]


def build_element(kind: str, lat: float, lng: float,
                  options: Optional[PlacementOptions] = None) -> PlacedElement:
    """
    Create an element of ``kind`` at a clicked (lat, lng).

    Point kinds sit on the click, polygon kinds become a small circle
    around it and line kinds a short diagonal segment centred on it.

    Raises:
        ValueError: If the kind is not in the catalog
    """
    options = options or PlacementOptions()
    element_kind = get_element_kind(kind)

    if element_kind.geometry == GeometryKind.POINT:
        return PlacedElement(kind=kind, geometry_kind=GeometryKind.POINT,
                             name=element_kind.name, position=(lat, lng))

    if element_kind.geometry == GeometryKind.POLYGON:
        ring = circle_polygon((lat, lng), options.manual_polygon_radius, options.circle_vertices)
        return PlacedElement(kind=kind, geometry_kind=GeometryKind.POLYGON,
                             name=element_kind.name, polygon=[tuple(p) for p in ring])

    half = options.manual_line_length / 2
    return PlacedElement(kind=kind, geometry_kind=GeometryKind.LINE, name=element_kind.name,
                         points=[(lat - half, lng - half), (lat + half, lng + half)])


class PlacementSynthesizer:
    """
    Synthesizes a layout of site elements from terrain and boundary.

    Args:
        options: Placement options
        prng: Random source for interior sampling; the shared PRNG when omitted
    """

    def __init__(self, options: Optional[PlacementOptions] = None,
                 prng: Optional[AleaPRNG] = None):
        self.options = options or PlacementOptions()
        self._prng = prng

    @property
    def prng(self) -> AleaPRNG:
        if self._prng is None:
            self._prng = get_prng()
        return self._prng

    def synthesize(self, boundary: Boundary, topography: Sequence[ElevationSample],
                   dem_samples: Sequence[ElevationSample], existing_elements: Sequence[PlacedElement],
                   wind_direction: float, anchor: Tuple[float, float]) -> PlacementResult:
        """
        Run all placement steps once.

        Args:
            boundary: Design boundary
            topography: Analyzed terrain samples
            dem_samples: Raw elevation samples (used for swale contours)
            existing_elements: Elements already on the design; never modified
            wind_direction: Prevailing wind direction in degrees
            anchor: Current terrain anchor, used as house position fallback

        Returns:
            PlacementResult with the new elements only

        Raises:
            ValueError: If the boundary is missing or invalid
        """
        if boundary is None or not boundary.is_valid:
            raise ValueError("A valid boundary is required for placement synthesis")

        logger.info("Starting placement synthesis", existing=len(existing_elements))

        present = {e.kind for e in existing_elements}
        existing_house = next((e for e in existing_elements if e.kind == "HOUSE" and e.position), None)
        size = diagonal(boundary)

        ctx = _SynthesisContext(
            boundary=boundary,
            topography=topography,
            dem_samples=dem_samples,
            present=present,
            house_position=LatLng(*(existing_house.position if existing_house else anchor)),
            wind_direction=wind_direction,
            diagonal=size,
            base_size=size * self.options.base_size_fraction,
        )

        result = PlacementResult()
        steps: List[Tuple[str, Callable[[_SynthesisContext, PlacementResult], List[PlacedElement]]]] = [
            ("house", self._place_house),
            ("water_tank", self._place_water_tank),
            ("pond", self._place_pond),
            ("satellites", self._place_satellites),
            ("swales", self._place_swales),
            ("windbreak", self._place_windbreak),
            ("zones", self._place_zones),
        ]

        for step_name, step in steps:
            try:
                delta = step(ctx, result)
            except Exception as e:
                logger.error("Placement step failed", step=step_name, error=str(e))
                result.skipped.append(step_name)
                continue
            result.added.extend(delta)

        logger.info("Placement synthesis completed", added=len(result.added), skipped=result.skipped)
        return result

    def _skip(self, result: PlacementResult, kind: str, reason: str) -> List[PlacedElement]:
        logger.info("Placement skipped", kind=kind, reason=reason)
        result.skipped.append(kind)
        return []

    def _element(self, kind: str, **geometry) -> PlacedElement:
        element_kind = get_element_kind(kind)
        name = geometry.pop("name", element_kind.name)
        return PlacedElement(kind=kind, geometry_kind=element_kind.geometry, name=name, **geometry)

    def _interior_point(self, ctx: _SynthesisContext) -> Optional[LatLng]:
        """Interior sample, or None if sampling degraded to a point outside."""
        sample = sample_interior(ctx.boundary, self.prng)
        if sample.degraded and not contains(sample.point, ctx.boundary):
            return None
        return sample.point

    def _place_house(self, ctx: _SynthesisContext, result: PlacementResult) -> List[PlacedElement]:
        if "HOUSE" in ctx.present:
            return []

        point = self._interior_point(ctx)
        if point is None:
            return self._skip(result, "HOUSE", "interior sampling degraded")

        ctx.house_position = point
        result.new_anchor = point
        return [self._element("HOUSE", position=tuple(point))]

    def _place_water_tank(self, ctx: _SynthesisContext, result: PlacementResult) -> List[PlacedElement]:
        if "WATER_TANK" in ctx.present:
            return []

        interior = placement_candidates(ctx.topography, ctx.boundary)
        if not interior:
            return self._skip(result, "WATER_TANK", "no interior terrain samples")

        highest = find_high_points(interior, 1)[0]
        return [self._element("WATER_TANK", position=(highest.lat, highest.lng))]

    def _place_pond(self, ctx: _SynthesisContext, result: PlacementResult) -> List[PlacedElement]:
        if "POND_AREA" in ctx.present:
            return []

        interior = placement_candidates(ctx.topography, ctx.boundary)
        if not interior:
            return self._skip(result, "POND_AREA", "no interior terrain samples")

        lowest = find_low_points(interior, 1)[0]
        radius = ctx.base_size * self.options.pond_radius_factor
        ring = circle_polygon(lowest, radius, self.options.circle_vertices)
        return [self._element("POND_AREA", polygon=[tuple(p) for p in ring])]

    def _place_satellites(self, ctx: _SynthesisContext, result: PlacementResult) -> List[PlacedElement]:
        placed = []
        for kind, (d_lat, d_lng) in self.options.satellite_offsets.items():
            if kind in ctx.present:
                continue

            position = (ctx.house_position.lat + d_lat, ctx.house_position.lng + d_lng)
            if not contains(position, ctx.boundary):
                self._skip(result, kind, "offset from house falls outside boundary")
                continue

            placed.append(self._element(kind, position=position))
        return placed

    def _place_swales(self, ctx: _SynthesisContext, result: PlacementResult) -> List[PlacedElement]:
        if "SWALE" in ctx.present:
            return []

        opts = self.options
        contours = ContourExtractor().extract(ctx.dem_samples, opts.swale_contour_interval)

        swales = []
        for contour in contours:
            if len(contour.points) < opts.swale_min_contour_points:
                continue

            simplified = contour.points[::opts.swale_stride]
            if len(simplified) < opts.swale_min_points:
                continue

            valid = filter_interior(simplified, ctx.boundary)
            if len(valid) < opts.swale_min_points:
                continue

            swales.append(self._element(
                "SWALE",
                name=f"Swale at {contour.level:g}m",
                points=[(p.lat, p.lng) for p in valid],
            ))

        if not swales:
            return self._skip(result, "SWALE", "no contour with enough interior points")
        return swales[:opts.max_swales]

    def _place_windbreak(self, ctx: _SynthesisContext, result: PlacementResult) -> List[PlacedElement]:
        if "WINDBREAK" in ctx.present:
            return []

        start = self._interior_point(ctx)
        if start is None:
            return self._skip(result, "WINDBREAK", "interior sampling degraded")

        # Perpendicular to the prevailing wind
        angle = math.radians(ctx.wind_direction + 90)
        length = ctx.diagonal * self.options.windbreak_length_fraction
        end = LatLng(start.lat + length * math.cos(angle), start.lng + length * math.sin(angle))

        if not contains(end, ctx.boundary):
            end = closest_boundary_point(end, ctx.boundary)

        if not (contains_or_touches(start, ctx.boundary) and contains_or_touches(end, ctx.boundary)):
            return self._skip(result, "WINDBREAK", "endpoint outside boundary")

        return [self._element("WINDBREAK", points=[tuple(start), tuple(end)])]

    def _place_zones(self, ctx: _SynthesisContext, result: PlacementResult) -> List[PlacedElement]:
        zones = []
        for kind, factor in self.options.zone_tiers.items():
            if kind in ctx.present:
                continue

            center = self._interior_point(ctx)
            if center is None:
                self._skip(result, kind, "interior sampling degraded")
                continue

            ring = circle_polygon(center, ctx.base_size * factor, self.options.circle_vertices)
            zones.append(self._element(kind, polygon=[tuple(p) for p in ring]))
        return zones
