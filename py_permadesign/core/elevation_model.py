"""
Synthetic elevation model generation.

The generator produces a dense grid of elevation samples either over the
bounding region of a design boundary or, without a boundary, over a square
window centered on the anchor. Elevations come from a smooth sine/cosine
base surface, an optional eastward rise across the region, and bounded
random jitter drawn from a seedable Alea PRNG. This is a stand-in for real
elevation data, not a model of any particular place.
"""

import math
from dataclasses import dataclass
from typing import List, Optional, Tuple

import structlog
from pydantic import BaseModel, ConfigDict, Field

from ..utils.random import get_prng
from .alea_prng import AleaPRNG
from .boundary import Boundary, Region

logger = structlog.get_logger()


class ElevationSample(BaseModel):
    """A single elevation sample."""

    model_config = ConfigDict(frozen=True)

    lat: float = Field(description="Latitude in degrees")
    lng: float = Field(description="Longitude in degrees")
    elevation: float = Field(description="Elevation in meters")

    @property
    def key(self) -> Tuple[float, float]:
        """Coordinate identity of the sample."""
        return (self.lat, self.lng)


@dataclass
class ElevationModelConfig:
    """Elevation model parameters."""

    min_grid_points: int = 15  # Floor for the per-axis grid resolution
    max_grid_points: int = 200  # Ceiling for the per-axis grid resolution
    density_per_degree: float = 2000.0  # Grid points per degree of latitude extent
    base_elevation: float = 5.0  # Meters before hills and gradient
    lat_wave_amplitude: float = 3.0  # sin(lat * frequency) amplitude
    lng_wave_amplitude: float = 2.0  # cos(lng * frequency) amplitude
    wave_frequency: float = 50.0
    eastward_rise: float = 8.0  # Meters gained crossing the region west to east
    jitter_amplitude: float = 2.0  # Total width of the uniform jitter
    min_elevation: float = 2.0  # Elevation floor
    decimals: int = 1


class ElevationModelGenerator:
    """
    Generates synthetic elevation samples for a design region.

    Args:
        config: Model parameters
        prng: Random source for jitter; the shared PRNG when omitted
    """

    def __init__(self, config: Optional[ElevationModelConfig] = None,
                 prng: Optional[AleaPRNG] = None):
        self.config = config or ElevationModelConfig()
        self._prng = prng

    @property
    def prng(self) -> AleaPRNG:
        if self._prng is None:
            self._prng = get_prng()
        return self._prng

    def grid_points(self, region: Region) -> int:
        """Per-axis grid resolution, proportional to latitude extent."""
        cfg = self.config
        points = max(cfg.min_grid_points, int(math.floor(region.lat_extent * cfg.density_per_degree)))
        return min(points, cfg.max_grid_points)

    def cell_size(self, radius: float = 0.05, boundary: Optional[Boundary] = None) -> float:
        """
        Latitude spacing in degrees between neighbouring grid rows.

        Args:
            radius: Anchor window half-width used when no boundary is given
            boundary: Design boundary
        """
        if boundary is not None and boundary.is_valid:
            region = boundary.region()
            return region.lat_extent / self.grid_points(region)
        return radius / self.config.min_grid_points

    def resolution_scale(self, radius: float = 0.05, boundary: Optional[Boundary] = None) -> float:
        """
        Ratio of the actual grid spacing to the native density spacing.

        Neighbourhood windows tuned for the native density are multiplied
        by this factor when the grid is coarser, e.g. on capped or
        anchor-only grids. Never below 1.
        """
        native = 1.0 / self.config.density_per_degree
        return max(1.0, self.cell_size(radius, boundary) / native)

    def _base_surface(self, lat: float, lng: float) -> float:
        cfg = self.config
        return (
            cfg.base_elevation
            + math.sin(lat * cfg.wave_frequency) * cfg.lat_wave_amplitude
            + math.cos(lng * cfg.wave_frequency) * cfg.lng_wave_amplitude
        )

    def _finish(self, elevation: float) -> float:
        """Add jitter, apply the floor and round."""
        cfg = self.config
        elevation += self.prng.jitter(cfg.jitter_amplitude)
        elevation = max(cfg.min_elevation, elevation)
        return round(elevation, cfg.decimals)

    def generate(self, anchor: Tuple[float, float], radius: float = 0.05,
                 boundary: Optional[Boundary] = None) -> List[ElevationSample]:
        """
        Generate elevation samples.

        Args:
            anchor: (lat, lng) used when no usable boundary is given
            radius: Half-width in degrees of the anchor window
            boundary: Design boundary; its bounding region is sampled when valid

        Returns:
            Flat list of samples with no ordering guarantee
        """
        if boundary is not None and boundary.is_valid:
            samples = self._generate_for_region(boundary.region())
        else:
            samples = self._generate_around_anchor(anchor, radius)

        logger.info("Elevation model generated", samples=len(samples),
                    bounded=boundary is not None and boundary.is_valid)
        return samples

    def _generate_for_region(self, region: Region) -> List[ElevationSample]:
        cfg = self.config
        points = self.grid_points(region)
        lat_extent = region.lat_extent
        lng_extent = region.lng_extent

        samples = []
        for i in range(points + 1):
            lat = region.min_lat + (i / points) * lat_extent
            for j in range(points + 1):
                lng = region.min_lng + (j / points) * lng_extent

                elevation = self._base_surface(lat, lng)
                # Terrain rises toward the east across the region
                elevation += (lng - region.min_lng) / lng_extent * cfg.eastward_rise

                samples.append(ElevationSample(lat=lat, lng=lng, elevation=self._finish(elevation)))
        return samples

    def _generate_around_anchor(self, anchor: Tuple[float, float], radius: float) -> List[ElevationSample]:
        points = self.config.min_grid_points
        step = radius / points
        center_lat, center_lng = anchor

        samples = []
        for i in range(-points, points + 1):
            lat = center_lat + i * step
            for j in range(-points, points + 1):
                lng = center_lng + j * step
                elevation = self._finish(self._base_surface(lat, lng))
                samples.append(ElevationSample(lat=lat, lng=lng, elevation=elevation))
        return samples
