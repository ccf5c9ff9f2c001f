"""
Water planning helpers.

Rule-of-thumb sizing for rain harvesting, swale layout and flood risk,
driven by the site slope and the climate record.
"""

from typing import Optional

import structlog
from pydantic import BaseModel, Field

from .boundary import Region

logger = structlog.get_logger()

CATCHMENT_EFFICIENCY = 0.8
DEFAULT_ROOF_AREA = 100.0  # m²


class HarvestingPotential(BaseModel):
    """Yearly harvestable water volumes."""

    roof_harvest: int
    land_harvest: int
    total: int
    units: str = "m³"


class SwaleSpecification(BaseModel):
    """Recommended swale layout."""

    spacing: float = Field(description="Distance between swales in meters")
    depth: float = Field(description="Swale depth in meters")


def land_capture_ratio(slope_percent: float) -> float:
    """Fraction of rainfall captured by earthworks at the given slope."""
    if slope_percent < 5:
        return 0.3
    if slope_percent < 15:
        return 0.5
    return 0.7


def harvesting_potential(rainfall_mm: float, slope_percent: float,
                         roof_area: Optional[float] = None) -> HarvestingPotential:
    """
    Annual roof and land harvesting potential.

    Args:
        rainfall_mm: Annual rainfall in millimetres
        slope_percent: Site slope
        roof_area: Roof catchment in m²; 100 when omitted

    Returns:
        HarvestingPotential with rounded volumes
    """
    roof_area = roof_area or DEFAULT_ROOF_AREA
    rainfall_m = rainfall_mm / 1000

    roof = roof_area * rainfall_m * CATCHMENT_EFFICIENCY
    # Land figure is per square meter of catchment
    land = rainfall_m * land_capture_ratio(slope_percent)

    return HarvestingPotential(
        roof_harvest=round(roof),
        land_harvest=round(land),
        total=round(roof + land),
    )


def swale_specification(slope_percent: float) -> SwaleSpecification:
    """Steeper ground gets closer, deeper swales."""
    if slope_percent < 5:
        return SwaleSpecification(spacing=50, depth=0.3)
    if slope_percent < 10:
        return SwaleSpecification(spacing=25, depth=0.4)
    if slope_percent < 20:
        return SwaleSpecification(spacing=15, depth=0.5)
    return SwaleSpecification(spacing=10, depth=0.6)


def flood_risk_level(slope_percent: float, rainfall_mm: float) -> str:
    if slope_percent < 5 and rainfall_mm > 2200:
        return "high"
    if slope_percent < 10 and rainfall_mm > 1800:
        return "medium"
    return "low"


def flood_risk_map(lat: float, lng: float, slope_percent: float, rainfall_mm: float,
                   half_width: float = 0.05) -> dict:
    """GeoJSON Feature classifying flood risk over a square around (lat, lng)."""
    risk = flood_risk_level(slope_percent, rainfall_mm)
    region = Region.around((lat, lng), half_width)
    ring = [
        [region.min_lng, region.min_lat],
        [region.max_lng, region.min_lat],
        [region.max_lng, region.max_lat],
        [region.min_lng, region.max_lat],
        [region.min_lng, region.min_lat],
    ]
    logger.info("Flood risk classified", risk=risk, slope=slope_percent, rainfall=rainfall_mm)
    return {
        "type": "Feature",
        "properties": {"risk": risk},
        "geometry": {"type": "Polygon", "coordinates": [ring]},
    }


def water_plan(lat: float, lng: float, slope_percent: float, rainfall_mm: float,
               roof_area: Optional[float] = None) -> dict:
    """Harvesting, swale and flood-risk figures bundled for reporting."""
    return {
        "slope_percent": slope_percent,
        "rainfall_mm": rainfall_mm,
        "harvesting": harvesting_potential(rainfall_mm, slope_percent, roof_area).model_dump(),
        "swales": swale_specification(slope_percent).model_dump(),
        "flood_risk": flood_risk_map(lat, lng, slope_percent, rainfall_mm),
    }
