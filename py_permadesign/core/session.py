"""
Design session state.

A DesignSession owns everything about one design:

- the boundary and the terrain anchor
- the derived terrain snapshot (elevation, topography, flow paths, contours)
- the placed elements
- the site climate record

The boundary, anchor and derived terrain form one invalidation group. Any
change to the boundary or anchor regenerates the whole snapshot, and each
regeneration is tagged with a generation number. A computation finishing
after a newer one was started is dropped rather than committed.
Placement synthesis is serialised by the ``is_designing`` flag, and climate
lookups use request tokens so only the most recently issued one is applied.
"""

import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional, Tuple

import structlog

from ..config.config import settings
from ..config.element_catalog import GeometryKind
from ..utils.random import make_prng
from .boundary import Boundary, LatLng, Region, contains
from .climate import ClimateOptions, ClimateRecord, ClimateService, fallback_slope
from .contours import Contour, ContourExtractor
from .elevation_model import ElevationModelConfig, ElevationModelGenerator, ElevationSample
from .hydrology import FlowPath, HydrologyOptions, HydrologySimulator
from .patterns import generate_pattern
from .placement import PlacedElement, PlacementOptions, PlacementResult, PlacementSynthesizer, build_element
from .topography import TopographicAnalyzer, TopographyOptions, TopoSample, site_slope_percent

logger = structlog.get_logger()


class MoveResult(str, Enum):
    """Outcome of moving an element."""

    MOVED = "moved"
    REJECTED_OUTSIDE_BOUNDARY = "rejected_outside_boundary"
    NOT_FOUND = "not_found"
    NOT_MOVABLE = "not_movable"


class SynthesisInProgressError(RuntimeError):
    """Raised when placement synthesis is requested while one is running."""


@dataclass(frozen=True)
class TerrainSnapshot:
    """Derived terrain for one boundary/anchor state."""

    generation: int
    boundary: Optional[Boundary]
    anchor: LatLng
    region: Region
    elevation: List[ElevationSample] = field(default_factory=list)
    topography: List[TopoSample] = field(default_factory=list)
    flow_paths: List[FlowPath] = field(default_factory=list)
    contours: List[Contour] = field(default_factory=list)

    def summary(self) -> dict:
        return {
            "generation": self.generation,
            "samples": len(self.elevation),
            "analyzed": len(self.topography),
            "flow_paths": len(self.flow_paths),
            "contours": len(self.contours),
        }


class DesignSession:
    """
    Owns one design and keeps its derived terrain consistent.

    Args:
        anchor: Initial (lat, lng) anchor; from settings when omitted
        seed: PRNG seed; from settings, or random, when omitted
        radius: Anchor window half-width in degrees
        wind_direction: Prevailing wind direction in degrees
        elevation_config: Elevation model parameters
        placement_options: Placement synthesis options
        climate_service: Climate lookup collaborator
        contour_interval: Spacing of the derived contours in meters
    """

    def __init__(self, anchor: Optional[Tuple[float, float]] = None, seed: Optional[str] = None,
                 radius: Optional[float] = None, wind_direction: Optional[float] = None,
                 elevation_config: Optional[ElevationModelConfig] = None,
                 placement_options: Optional[PlacementOptions] = None,
                 climate_service: Optional[ClimateService] = None,
                 contour_interval: float = 2.0):
        self._lock = threading.RLock()
        self._generation = 0
        self._climate_token = 0

        self.prng = make_prng(seed if seed is not None else settings.random_seed)
        self.radius = radius if radius is not None else settings.default_radius_deg
        self.wind_direction = wind_direction if wind_direction is not None else settings.default_wind_direction
        self.contour_interval = contour_interval

        self.elevation_model = ElevationModelGenerator(elevation_config, self.prng)
        self.synthesizer = PlacementSynthesizer(placement_options, self.prng)
        self.climate_service = climate_service or ClimateService(
            ClimateOptions(
                api_url=settings.climate_api_url,
                timeout_seconds=settings.climate_timeout_seconds,
                enabled=settings.climate_enabled,
            )
        )

        self.boundary: Optional[Boundary] = None
        self.anchor = LatLng(*(anchor or (settings.default_anchor_lat, settings.default_anchor_lng)))
        self.elements: List[PlacedElement] = []
        self.climate: Optional[ClimateRecord] = None
        self.is_designing = False
        self.terrain: Optional[TerrainSnapshot] = None

        self.regenerate_terrain()

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def has_boundary(self) -> bool:
        return self.boundary is not None and self.boundary.is_valid

    # Boundary and anchor

    def set_boundary(self, boundary: Boundary) -> Optional[TerrainSnapshot]:
        """Replace the boundary wholesale and regenerate terrain."""
        with self._lock:
            self.boundary = boundary
        logger.info("Boundary set", vertices=len(boundary.ring), valid=boundary.is_valid)
        return self.regenerate_terrain()

    def clear_boundary(self) -> Optional[TerrainSnapshot]:
        with self._lock:
            self.boundary = None
        logger.info("Boundary cleared")
        return self.regenerate_terrain()

    def set_anchor(self, lat: float, lng: float) -> Optional[TerrainSnapshot]:
        """Relocate the terrain anchor and regenerate terrain."""
        with self._lock:
            self.anchor = LatLng(lat, lng)
        logger.info("Anchor moved", lat=lat, lng=lng)
        return self.regenerate_terrain()

    # Terrain

    def regenerate_terrain(self) -> Optional[TerrainSnapshot]:
        """
        Recompute the whole terrain snapshot.

        Returns:
            The committed snapshot, or None if a newer regeneration started
            while this one was computing
        """
        with self._lock:
            self._generation += 1
            generation = self._generation
            boundary = self.boundary
            anchor = self.anchor

        snapshot = self._compute_terrain(generation, boundary, anchor)

        with self._lock:
            if generation != self._generation:
                logger.info("Terrain superseded", generation=generation, latest=self._generation)
                return None
            self.terrain = snapshot

        logger.info("Terrain regenerated", **snapshot.summary())
        return snapshot

    def _compute_terrain(self, generation: int, boundary: Optional[Boundary],
                         anchor: LatLng) -> TerrainSnapshot:
        usable = boundary if boundary is not None and boundary.is_valid else None
        region = usable.region() if usable else Region.around(anchor, self.radius)

        # Neighbourhood windows follow the actual grid spacing
        scale = self.elevation_model.resolution_scale(self.radius, usable)
        elevation = self.elevation_model.generate(anchor, self.radius, usable)
        topography = TopographicAnalyzer(TopographyOptions().scaled(scale)).analyze(elevation)
        flow_paths = HydrologySimulator(HydrologyOptions().scaled(scale)).trace(topography)
        contours = ContourExtractor().extract(elevation, self.contour_interval)

        return TerrainSnapshot(
            generation=generation,
            boundary=boundary,
            anchor=anchor,
            region=region,
            elevation=elevation,
            topography=topography,
            flow_paths=flow_paths,
            contours=contours,
        )

    def slope_percent(self) -> float:
        """Site slope from the analyzed terrain, or a latitude estimate."""
        terrain = self.terrain
        slope = site_slope_percent(terrain.topography) if terrain else None
        return slope if slope is not None else float(fallback_slope(self.anchor.lat))

    # Elements

    def get_element(self, element_id: str) -> Optional[PlacedElement]:
        with self._lock:
            return next((e for e in self.elements if e.id == element_id), None)

    def add_element(self, kind: str, lat: float, lng: float) -> Optional[PlacedElement]:
        """
        Place an element of ``kind`` at (lat, lng).

        Returns:
            The new element, or None if the point is outside the boundary

        Raises:
            ValueError: If the kind is unknown
        """
        element = build_element(kind, lat, lng, self.synthesizer.options)
        with self._lock:
            if not contains((lat, lng), self.boundary):
                logger.warning("Element outside boundary", kind=kind, lat=lat, lng=lng)
                return None
            self.elements.append(element)

        logger.info("Element added", kind=kind, id=element.id)
        return element

    def clear_elements(self) -> int:
        """Remove all elements; returns how many were removed."""
        with self._lock:
            removed = len(self.elements)
            self.elements = []
        logger.info("Elements cleared", removed=removed)
        return removed

    def move_element(self, element_id: str, lat: float, lng: float) -> MoveResult:
        """
        Move a point element, re-validating containment.

        Line and polygon elements cannot be moved.
        """
        with self._lock:
            for index, element in enumerate(self.elements):
                if element.id != element_id:
                    continue
                if element.geometry_kind != GeometryKind.POINT:
                    return MoveResult.NOT_MOVABLE
                if not contains((lat, lng), self.boundary):
                    logger.warning("Move rejected outside boundary", id=element_id, lat=lat, lng=lng)
                    return MoveResult.REJECTED_OUTSIDE_BOUNDARY

                self.elements[index] = element.model_copy(update={"position": (lat, lng)})
                logger.info("Element moved", id=element_id, lat=lat, lng=lng)
                return MoveResult.MOVED

        return MoveResult.NOT_FOUND

    def load_elements(self, elements: List[PlacedElement]) -> None:
        with self._lock:
            self.elements = list(elements)

    # Placement synthesis

    def request_placement_synthesis(self) -> PlacementResult:
        """
        Synthesize missing elements from the current terrain snapshot.

        Raises:
            SynthesisInProgressError: If a synthesis is already running
            ValueError: If no valid boundary is set
        """
        with self._lock:
            if self.is_designing:
                raise SynthesisInProgressError("Placement synthesis already in progress")
            if not self.has_boundary:
                raise ValueError("Draw a boundary before synthesizing a layout")
            self.is_designing = True
            generation = self._generation
            terrain = self.terrain
            boundary = self.boundary
            anchor = self.anchor
            existing = list(self.elements)

        try:
            if settings.synthesis_delay_seconds > 0:
                time.sleep(settings.synthesis_delay_seconds)

            result = self.synthesizer.synthesize(
                boundary=boundary,
                topography=terrain.topography if terrain else [],
                dem_samples=terrain.elevation if terrain else [],
                existing_elements=existing,
                wind_direction=self.wind_direction,
                anchor=anchor,
            )

            result = self._commit_placement(result, generation, boundary)
            if result.new_anchor is not None:
                self.set_anchor(result.new_anchor.lat, result.new_anchor.lng)
            return result
        finally:
            with self._lock:
                self.is_designing = False

    def _commit_placement(self, result: PlacementResult, generation: int,
                          boundary: Boundary) -> PlacementResult:
        """
        Merge a synthesis result into the session.

        The whole result is dropped if the boundary or terrain changed while
        it was computed. Otherwise kinds placed by hand in the meantime are
        not added twice, and the anchor only follows a house that was kept.
        """
        with self._lock:
            if self.boundary is not boundary or self._generation != generation:
                logger.info("Placement superseded", generation=generation, latest=self._generation)
                return PlacementResult(skipped=result.skipped, superseded=True)

            present = {e.kind for e in self.elements}
            added = [e for e in result.added if e.kind not in present]
            dropped = [e.kind for e in result.added if e.kind in present]
            self.elements.extend(added)

        if dropped:
            logger.info("Placed kinds already present", kinds=dropped)
        new_anchor = result.new_anchor if any(e.kind == "HOUSE" for e in added) else None
        return PlacementResult(added=added, new_anchor=new_anchor,
                               skipped=result.skipped + dropped)

    # Climate

    def refresh_climate(self, lat: Optional[float] = None,
                        lng: Optional[float] = None) -> Optional[ClimateRecord]:
        """
        Look up climate for (lat, lng), defaulting to the anchor.

        Returns:
            The applied record, or None if a newer request was issued
            while this one was in flight
        """
        with self._lock:
            self._climate_token += 1
            token = self._climate_token
            if lat is None or lng is None:
                lat, lng = self.anchor

        record = self.climate_service.lookup(lat, lng)

        with self._lock:
            if token != self._climate_token:
                logger.info("Stale climate result dropped", token=token, latest=self._climate_token)
                return None
            self.climate = record
        return record

    # Patterns

    def pattern_points(self, pattern: str, center: Optional[Any] = None) -> List[LatLng]:
        """Pattern points around ``center``, the anchor by default."""
        return generate_pattern(pattern, center if center is not None else self.anchor)
