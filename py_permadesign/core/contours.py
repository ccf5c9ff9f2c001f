"""
Contour band extraction.

Contours here are clusters of samples lying close to a common elevation
level, not connected polylines. Consumers that need a line (e.g. swale
placement) simplify the cluster themselves.
"""

import math
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

import structlog

from .elevation_model import ElevationSample

logger = structlog.get_logger()


@dataclass
class ContourOptions:
    """Contour extraction options."""

    band_half_width: float = 0.5  # Samples within +- this of a level belong to it
    min_points: int = 11  # Levels with fewer samples are discarded


@dataclass
class Contour:
    """Samples near one elevation level."""

    level: float
    points: List[ElevationSample] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "level": self.level,
            "points": [{"lat": p.lat, "lng": p.lng, "elevation": p.elevation} for p in self.points],
        }


class ContourExtractor:
    """Groups samples into near-iso-elevation bands."""

    def __init__(self, options: Optional[ContourOptions] = None):
        self.options = options or ContourOptions()

    def extract(self, samples: Sequence[ElevationSample], interval: float = 2.0) -> List[Contour]:
        """
        Extract contour bands.

        Levels start at the ceiling of the minimum elevation and step by
        ``interval`` up to the maximum elevation.

        Args:
            samples: Elevation samples
            interval: Spacing between levels in meters

        Returns:
            Contours in ascending level order

        Raises:
            ValueError: If interval is not positive
        """
        if interval <= 0:
            raise ValueError(f"Contour interval must be positive, got {interval}")
        if not samples:
            return []

        opts = self.options
        min_elevation = min(s.elevation for s in samples)
        max_elevation = max(s.elevation for s in samples)

        contours = []
        level = float(math.ceil(min_elevation))
        while level <= max_elevation:
            points = [s for s in samples if abs(s.elevation - level) < opts.band_half_width]
            if len(points) >= opts.min_points:
                contours.append(Contour(level=level, points=points))
            level += interval

        logger.info("Contours extracted", contours=len(contours), interval=interval)
        return contours
