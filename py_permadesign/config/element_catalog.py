"""
Catalog of placeable site elements.

Each element kind carries the geometry it is drawn with, its placement
priority and a hint about the permaculture zone it belongs in. The table
is read-only reference data shared by direct placement and by the
placement synthesizer.
"""

from enum import Enum
from typing import Dict, List

from pydantic import BaseModel, ConfigDict, Field


class GeometryKind(str, Enum):
    """How an element is represented on the map."""

    POINT = "point"
    LINE = "line"
    POLYGON = "polygon"


class ElementKind(BaseModel):
    """Definition of one element kind."""

    model_config = ConfigDict(frozen=True)

    code: str = Field(description="Catalog key, e.g. 'WATER_TANK'")
    name: str = Field(description="Display name")
    description: str = Field(default="", description="Short explanation")
    optimal_zone: str = Field(description="Zone hint: '0'..'3', 'high', 'low', 'contour', 'perimeter'")
    geometry: GeometryKind = Field(description="Geometry used to draw the element")
    priority: int = Field(description="Placement priority, lower places first")
    color: str = Field(default="#cccccc", description="Display color in hex")
    icon: str = Field(default="", description="Display icon")


_CATALOG: List[ElementKind] = [
    ElementKind(code="HOUSE", name="House", icon="🏠",
                description="Main dwelling - place first as reference point",
                optimal_zone="0", color="#e74c3c", geometry=GeometryKind.POINT, priority=1),
    ElementKind(code="WATER_TANK", name="Water Tank", icon="💧",
                description="Water storage for irrigation",
                optimal_zone="high", color="#3498db", geometry=GeometryKind.POINT, priority=2),
    ElementKind(code="COMPOST", name="Compost", icon="♻️",
                description="Organic waste recycling",
                optimal_zone="1", color="#8e44ad", geometry=GeometryKind.POINT, priority=3),
    ElementKind(code="CHICKEN_COOP", name="Chicken Coop", icon="🐓",
                description="Poultry for eggs and manure",
                optimal_zone="1-2", color="#e67e22", geometry=GeometryKind.POINT, priority=4),
    ElementKind(code="BEEHIVE", name="Beehive", icon="🐝",
                description="Pollination and honey production",
                optimal_zone="1-2", color="#f1c40f", geometry=GeometryKind.POINT, priority=5),
    ElementKind(code="WINDBREAK", name="Windbreak", icon="🌴",
                description="Protection from wind",
                optimal_zone="perimeter", color="#27ae60", geometry=GeometryKind.LINE, priority=6),
    ElementKind(code="SHED", name="Tool Shed", icon="🔧",
                description="Storage for tools and equipment",
                optimal_zone="0-1", color="#7f8c8d", geometry=GeometryKind.POINT, priority=7),
    ElementKind(code="POND", name="Pond", icon="🐟",
                description="Water storage and aquaculture",
                optimal_zone="low", color="#2980b9", geometry=GeometryKind.POLYGON, priority=8),
    ElementKind(code="HERB_SPIRAL", name="Herb Spiral", icon="🌀",
                description="Vertical herb garden with microclimates",
                optimal_zone="1", color="#8e44ad", geometry=GeometryKind.POINT, priority=9),
    ElementKind(code="MANDALA_GARDEN", name="Mandala Garden", icon="⭕",
                description="Circular patterned garden",
                optimal_zone="1-2", color="#e74c3c", geometry=GeometryKind.POINT, priority=10),
    ElementKind(code="SWALE", name="Swale", icon="🔻",
                description="Water harvesting trench on contour",
                optimal_zone="contour", color="#16a085", geometry=GeometryKind.LINE, priority=11),
    ElementKind(code="POND_AREA", name="Pond Area", icon="🐟",
                description="Water storage and aquaculture area",
                optimal_zone="low", color="#2980b9", geometry=GeometryKind.POLYGON, priority=12),
    ElementKind(code="VEGETABLE_GARDEN", name="Vegetable Garden", icon="🥬",
                description="Area for growing vegetables",
                optimal_zone="1", color="#8bc34a", geometry=GeometryKind.POLYGON, priority=13),
    ElementKind(code="FRUIT_ORCHARD", name="Fruit Orchard", icon="🍎",
                description="Area for fruit trees",
                optimal_zone="2", color="#ffd54f", geometry=GeometryKind.POLYGON, priority=14),
    ElementKind(code="GRAIN_FIELD", name="Grain Field", icon="🌾",
                description="Area for grain crops",
                optimal_zone="3", color="#a1887f", geometry=GeometryKind.POLYGON, priority=15),
]

ELEMENT_KINDS: Dict[str, ElementKind] = {kind.code: kind for kind in _CATALOG}


def get_element_kind(code: str) -> ElementKind:
    """
    Look up an element kind by its catalog code.

    Raises:
        ValueError: If the code is not in the catalog
    """
    try:
        return ELEMENT_KINDS[code]
    except KeyError:
        raise ValueError(f"Unknown element kind '{code}'") from None


def is_known_kind(code: str) -> bool:
    return code in ELEMENT_KINDS


def list_element_kinds() -> List[ElementKind]:
    """All kinds ordered by placement priority."""
    return sorted(ELEMENT_KINDS.values(), key=lambda kind: kind.priority)
