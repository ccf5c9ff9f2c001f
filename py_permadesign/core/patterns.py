"""
Natural layout patterns.

Point generators for herb spirals, mandala gardens and branching
distribution networks. All take and return (lat, lng) points.
"""

import math
from typing import Callable, Dict, List, Tuple

from pydantic import BaseModel

from .boundary import LatLng, as_lat_lng


class PatternInfo(BaseModel):
    """Display metadata for a pattern."""

    name: str
    description: str
    color: str


def spiral(center, size: float = 0.01, rotations: int = 3, step_degrees: int = 15) -> List[LatLng]:
    """Archimedean spiral whose radius grows linearly to ``size``."""
    lat, lng = as_lat_lng(center)
    total = 360 * rotations
    points = []
    for i in range(0, total, step_degrees):
        angle = math.radians(i)
        distance = size * i / total
        points.append(LatLng(lat + distance * math.cos(angle), lng + distance * math.sin(angle)))
    return points


def mandala(center, radius: float = 0.01, sectors: int = 8) -> List[LatLng]:
    """Evenly spaced points on a circle, one per sector."""
    lat, lng = as_lat_lng(center)
    return [
        LatLng(lat + radius * math.cos(2 * math.pi * i / sectors),
               lng + radius * math.sin(2 * math.pi * i / sectors))
        for i in range(sectors)
    ]


def branching(start, angle: float = -math.pi / 2, length: float = 0.01,
              generations: int = 3, decay: float = 0.7) -> List[LatLng]:
    """
    Binary branching tree flattened depth-first.

    Each node emits itself, then its left subtree (angle - 45 degrees), then
    its right subtree (angle + 45 degrees), with the branch length scaled by
    ``decay`` per generation. Returns ``2 ** (generations + 1) - 1`` points.

    Raises:
        ValueError: If generations is negative
    """
    if generations < 0:
        raise ValueError(f"generations must be >= 0, got {generations}")

    points: List[LatLng] = []
    stack: List[Tuple[LatLng, float, float, int]] = [(as_lat_lng(start), angle, length, generations)]
    while stack:
        point, heading, step, remaining = stack.pop()
        points.append(point)
        if remaining <= 0:
            continue

        children = []
        for branch_angle in (heading - math.pi / 4, heading + math.pi / 4):
            end = LatLng(point.lat + step * math.cos(branch_angle), point.lng + step * math.sin(branch_angle))
            children.append((end, branch_angle, step * decay, remaining - 1))
        # Right pushed first so the left subtree is emitted first
        stack.extend(reversed(children))

    return points


PATTERNS: Dict[str, Callable[..., List[LatLng]]] = {
    "SPIRAL": spiral,
    "MANDALA": mandala,
    "BRANCHING": branching,
}

PATTERN_INFO: Dict[str, PatternInfo] = {
    "SPIRAL": PatternInfo(name="Spiral", color="#8e44ad",
                          description="Herb spirals maximize growing space and create microclimates"),
    "MANDALA": PatternInfo(name="Mandala", color="#e74c3c",
                           description="Mandala gardens create efficient, beautiful growing spaces"),
    "BRANCHING": PatternInfo(name="Branching", color="#3498db",
                             description="Branching patterns efficiently distribute resources"),
}


def generate_pattern(pattern: str, center) -> List[LatLng]:
    """
    Points for a named pattern around ``center`` with default sizing.

    Raises:
        ValueError: If the pattern name is unknown
    """
    key = pattern.upper()
    if key not in PATTERNS:
        raise ValueError(f"Unknown pattern '{pattern}'")
    return PATTERNS[key](center)
