"""
Surface water flow simulation.

This module implements:
- Seeding from the highest analyzed samples
- Greedy steepest-descent walks through a local window
- A global visited set so paths never share a waypoint

Flow paths are a visual aid for water movement over the synthetic
terrain, not a hydraulic model.
"""

from dataclasses import dataclass, field, replace
from typing import List, Optional, Sequence, Set, Tuple

import numpy as np
import structlog
from scipy.spatial import cKDTree

from .elevation_model import ElevationSample

logger = structlog.get_logger()


@dataclass
class HydrologyOptions:
    """Flow tracing options."""

    seed_count: int = 10  # Number of high points to start from
    max_steps: int = 20  # Maximum downhill moves per path
    step_window: float = 0.002  # Half-width of the search window (degrees)
    min_path_length: int = 4  # Paths shorter than this are discarded

    def scaled(self, factor: float) -> "HydrologyOptions":
        """Copy with the search window multiplied by ``factor``."""
        return replace(self, step_window=self.step_window * factor)


@dataclass
class FlowPath:
    """Represents a downhill flow path."""

    id: int
    points: List[ElevationSample] = field(default_factory=list)

    @property
    def source(self) -> ElevationSample:
        return self.points[0]

    @property
    def outlet(self) -> ElevationSample:
        return self.points[-1]

    @property
    def total_drop(self) -> float:
        """Elevation lost between source and outlet in meters."""
        return self.source.elevation - self.outlet.elevation

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "total_drop": round(self.total_drop, 2),
            "points": [{"lat": p.lat, "lng": p.lng, "elevation": p.elevation} for p in self.points],
        }


def find_high_points(samples: Sequence[ElevationSample], count: int = 5) -> List[ElevationSample]:
    """The ``count`` highest samples, highest first; ties keep input order."""
    return sorted(samples, key=lambda s: -s.elevation)[:count]


def find_low_points(samples: Sequence[ElevationSample], count: int = 5) -> List[ElevationSample]:
    """The ``count`` lowest samples, lowest first; ties keep input order."""
    return sorted(samples, key=lambda s: s.elevation)[:count]


class HydrologySimulator:
    """Traces greedy downhill flow paths over analyzed terrain."""

    def __init__(self, options: Optional[HydrologyOptions] = None):
        self.options = options or HydrologyOptions()
        self.flow_paths: List[FlowPath] = []

    def trace(self, topography: Sequence[ElevationSample]) -> List[FlowPath]:
        """
        Trace flow paths from the highest samples.

        Args:
            topography: Analyzed samples

        Returns:
            Flow paths with strictly decreasing elevation
        """
        logger.info("Tracing water flow", samples=len(topography))
        self.flow_paths = []
        if not topography:
            return self.flow_paths

        opts = self.options
        samples = list(topography)
        coords = np.array([[s.lat, s.lng] for s in samples], dtype=np.float64)
        elevations = np.array([s.elevation for s in samples], dtype=np.float64)
        tree = cKDTree(coords)

        # Stable sort keeps input order among equal elevations
        seeds = sorted(range(len(samples)), key=lambda k: -elevations[k])[:opts.seed_count]
        visited: Set[Tuple[float, float]] = set()

        for seed in seeds:
            if samples[seed].key in visited:
                continue

            path = [seed]
            current = seed
            visited.add(samples[current].key)

            for _ in range(opts.max_steps):
                nxt = self._steepest_unvisited_neighbor(current, samples, coords, elevations, tree, visited)
                if nxt is None:
                    break
                path.append(nxt)
                current = nxt
                visited.add(samples[current].key)

            if len(path) >= opts.min_path_length:
                self.flow_paths.append(
                    FlowPath(id=len(self.flow_paths) + 1, points=[samples[k] for k in path])
                )

        logger.info("Water flow traced", paths=len(self.flow_paths))
        return self.flow_paths

    def _steepest_unvisited_neighbor(self, current: int, samples: List[ElevationSample],
                                     coords: np.ndarray, elevations: np.ndarray,
                                     tree: cKDTree, visited: Set[Tuple[float, float]]) -> Optional[int]:
        window = self.options.step_window
        idx = np.array(sorted(tree.query_ball_point(coords[current], r=window, p=np.inf)), dtype=np.int64)
        if idx.size == 0:
            return None

        d = np.abs(coords[idx] - coords[current])
        lower = (d[:, 0] < window) & (d[:, 1] < window) & (elevations[idx] < elevations[current])
        idx = idx[lower]
        idx = np.array([k for k in idx if samples[k].key not in visited], dtype=np.int64)
        if idx.size == 0:
            return None

        # Largest drop wins; argmax keeps the first on ties
        drops = elevations[current] - elevations[idx]
        return int(idx[int(np.argmax(drops))])
