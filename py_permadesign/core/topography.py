"""
Topographic analysis of elevation samples.

Slope and aspect are estimated per sample from its local neighbourhood:

- Neighbours are the other samples inside a small lat/lng window
- Slope is the absolute deviation from the neighbour mean, as a percentage
- Aspect comes from the nearest eastward and northward neighbours

Samples with too few neighbours are left out of the result rather than
assigned a default slope. The estimates are coarse by construction and
kept that way so outputs stay comparable between versions.
"""

import math
from dataclasses import dataclass, replace
from typing import List, Optional, Sequence

import numpy as np
import structlog
from pydantic import Field
from scipy.spatial import cKDTree

from .elevation_model import ElevationSample

logger = structlog.get_logger()


class TopoSample(ElevationSample):
    """Elevation sample with slope and aspect."""

    slope: float = Field(ge=0, description="Local slope in percent")
    aspect: float = Field(ge=0, lt=360, description="Facing bearing in degrees")


@dataclass
class TopographyOptions:
    """Neighbourhood parameters for slope/aspect estimation."""

    neighbor_tolerance: float = 0.003  # Half-width of the neighbour window (degrees)
    directional_tolerance: float = 0.001  # Off-axis tolerance for east/north neighbours
    min_neighbors: int = 3
    slope_scale: float = 100.0  # Elevation deviation to percent
    decimals: int = 1

    def scaled(self, factor: float) -> "TopographyOptions":
        """Copy with both windows multiplied by ``factor``."""
        return replace(
            self,
            neighbor_tolerance=self.neighbor_tolerance * factor,
            directional_tolerance=self.directional_tolerance * factor,
        )


class TopographicAnalyzer:
    """Computes slope and aspect for elevation samples."""

    def __init__(self, options: Optional[TopographyOptions] = None):
        self.options = options or TopographyOptions()

    def analyze(self, samples: Sequence[ElevationSample]) -> List[TopoSample]:
        """
        Compute slope and aspect for every sample with enough neighbours.

        Args:
            samples: Elevation samples in any order

        Returns:
            Topographic samples in (lat, lng) order
        """
        if not samples:
            return []

        opts = self.options
        ordered = sorted(samples, key=lambda s: (s.lat, s.lng))
        coords = np.array([[s.lat, s.lng] for s in ordered], dtype=np.float64)
        elevations = np.array([s.elevation for s in ordered], dtype=np.float64)

        # Chebyshev ball == axis-aligned square window; strictness is applied below
        tree = cKDTree(coords)
        candidates = tree.query_ball_point(coords, r=opts.neighbor_tolerance, p=np.inf)

        topography = []
        dropped = 0
        for i, sample in enumerate(ordered):
            idx = np.array(sorted(candidates[i]), dtype=np.int64)
            idx = idx[idx != i]
            if idx.size:
                d_lat = coords[idx, 0] - sample.lat
                d_lng = coords[idx, 1] - sample.lng
                strict = (np.abs(d_lat) < opts.neighbor_tolerance) & (np.abs(d_lng) < opts.neighbor_tolerance)
                idx, d_lat, d_lng = idx[strict], d_lat[strict], d_lng[strict]

            if idx.size < opts.min_neighbors:
                dropped += 1
                continue

            slope = abs(sample.elevation - float(elevations[idx].mean())) * opts.slope_scale
            aspect = self._aspect(sample, idx, d_lat, d_lng, elevations)

            topography.append(
                TopoSample(
                    lat=sample.lat,
                    lng=sample.lng,
                    elevation=sample.elevation,
                    slope=round(slope, opts.decimals),
                    aspect=aspect,
                )
            )

        logger.info("Topography calculated", analyzed=len(topography), dropped=dropped)
        return topography

    def _aspect(self, sample: ElevationSample, idx: np.ndarray, d_lat: np.ndarray,
                d_lng: np.ndarray, elevations: np.ndarray) -> float:
        """Bearing from the east/north partial differences; 0 if either is missing."""
        opts = self.options
        distance = np.hypot(d_lat, d_lng)

        east = (d_lng > 0) & (np.abs(d_lat) < opts.directional_tolerance)
        north = (d_lat > 0) & (np.abs(d_lng) < opts.directional_tolerance)
        if not east.any() or not north.any():
            return 0.0

        east_idx = idx[east][int(np.argmin(distance[east]))]
        north_idx = idx[north][int(np.argmin(distance[north]))]

        dz_dx = float(elevations[east_idx]) - sample.elevation
        dz_dy = float(elevations[north_idx]) - sample.elevation
        aspect = math.degrees(math.atan2(dz_dy, dz_dx))
        if aspect < 0:
            aspect += 360.0

        aspect = round(aspect, opts.decimals)
        if aspect >= 360.0:
            aspect -= 360.0
        return aspect


def site_slope_percent(topography: Sequence[TopoSample]) -> Optional[float]:
    """Mean slope over the analyzed samples, or None when there are none."""
    if not topography:
        return None
    return round(float(np.mean([s.slope for s in topography])), 1)
