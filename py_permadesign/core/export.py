"""
Design export and import.

Exports are plain JSON-compatible dictionaries; only placed elements are
read back, terrain is always regenerated from the boundary.
"""

import json
from typing import Any, Dict, List, Union

import structlog

from .placement import PlacedElement

logger = structlog.get_logger()

EXPORT_VERSION = 1


def export_design(session) -> Dict[str, Any]:
    """Snapshot of a DesignSession as structured data."""
    terrain = session.terrain
    boundary = session.boundary

    data = {
        "version": EXPORT_VERSION,
        "anchor": {"lat": session.anchor.lat, "lng": session.anchor.lng},
        "boundary": boundary.to_geojson() if boundary is not None else None,
        "wind_direction": session.wind_direction,
        "generation": terrain.generation if terrain else None,
        "elevation": [s.model_dump() for s in terrain.elevation] if terrain else [],
        "topography": [s.model_dump() for s in terrain.topography] if terrain else [],
        "flow_paths": [p.to_dict() for p in terrain.flow_paths] if terrain else [],
        "contours": [c.to_dict() for c in terrain.contours] if terrain else [],
        "elements": [e.model_dump(mode="json") for e in session.elements],
        "climate": session.climate.model_dump() if session.climate else None,
    }

    logger.info("Design exported", elements=len(data["elements"]), samples=len(data["elevation"]))
    return data


def to_json(session, indent: int = None) -> str:
    return json.dumps(export_design(session), indent=indent)


def load_elements(data: Union[str, Dict[str, Any]]) -> List[PlacedElement]:
    """
    Parse placed elements from an export (dict or JSON text).

    Raises:
        ValueError: If the payload is not a JSON object or an element is malformed
    """
    if isinstance(data, str):
        data = json.loads(data)
    if not isinstance(data, dict):
        raise ValueError(f"Expected an export object, got {type(data).__name__}")

    elements = [PlacedElement.model_validate(item) for item in data.get("elements", [])]
    logger.info("Elements loaded", count=len(elements))
    return elements
