"""
Site climate lookup.

This module implements:
- NASA POWER climatology request (precipitation and solar irradiance)
- Conversion to annual/monthly rainfall and daily sun hours
- Latitude-based fallbacks used whenever the remote lookup fails

The record is consumed as an opaque input by the water planning helpers;
no attempt is made to validate it beyond parsing.
"""

from dataclasses import dataclass
from typing import List, Optional

import requests
import structlog
from pydantic import BaseModel, Field

logger = structlog.get_logger()

DAYS_IN_MONTH = [31, 28, 31, 30, 31, 30, 31, 31, 30, 31, 30, 31]

NASA_SOURCE = "NASA POWER"
FALLBACK_SOURCE = "fallback"


class ClimateRecord(BaseModel):
    """Climate summary for a site."""

    avg_rainfall_mm: float = Field(description="Annual rainfall in millimetres")
    sun_hours: float = Field(description="Average daily sun hours")
    monthly_rainfall: List[float] = Field(description="Rainfall per calendar month in millimetres")
    source: str = Field(description="Where the figures came from")


@dataclass
class ClimateOptions:
    """Climate lookup options."""

    api_url: str = "https://power.larc.nasa.gov/api/temporal/climatology/point"
    timeout_seconds: float = 10.0
    enabled: bool = True
    community: str = "AG"
    start_year: int = 1991
    end_year: int = 2020
    min_sun_hours: float = 3.0
    max_sun_hours: float = 10.0


def in_kerala_band(lat: float, lng: float) -> bool:
    """Monsoon coast band with markedly higher rainfall."""
    return lat >= 9.2 and 75.5 <= lng <= 76.9


def fallback_rain(lat: float, lng: float) -> int:
    """Annual rainfall estimate in mm from position alone."""
    if in_kerala_band(lat, lng):
        return 2500 + round((11.5 - lat) * 100)
    return 1500 + round((10.5 - lat) * 50)


def fallback_sun_hours(lat: float) -> float:
    return 6.5 + (10 - abs(lat - 10.5)) * 0.1


def fallback_slope(lat: float) -> int:
    """Site slope estimate in percent used before terrain is available."""
    if lat > 10.5:
        return 8 + round(abs(lat - 11) * 2)
    return 3 + round(abs(lat - 9.5) * 1.5)


def fallback_record(lat: float, lng: float) -> ClimateRecord:
    rainfall = fallback_rain(lat, lng)
    return ClimateRecord(
        avg_rainfall_mm=rainfall,
        sun_hours=fallback_sun_hours(lat),
        monthly_rainfall=[round(rainfall / 12)] * 12,
        source=FALLBACK_SOURCE,
    )


class ClimateService:
    """
    Looks up climate figures for a coordinate.

    Args:
        options: Lookup options
        session: requests session; module-level ``requests`` when omitted
    """

    def __init__(self, options: Optional[ClimateOptions] = None, session=None):
        self.options = options or ClimateOptions()
        self.session = session or requests

    def lookup(self, lat: float, lng: float) -> ClimateRecord:
        """
        Climate record for (lat, lng).

        Never raises for network or payload problems; the fallback record
        is returned instead.
        """
        if not self.options.enabled:
            return fallback_record(lat, lng)

        try:
            record = self._fetch(lat, lng)
        except (requests.RequestException, KeyError, TypeError, ValueError) as e:
            logger.warning("Climate lookup failed, using fallback", lat=lat, lng=lng, error=str(e))
            return fallback_record(lat, lng)

        logger.info("Climate fetched", lat=lat, lng=lng, rainfall=record.avg_rainfall_mm)
        return record

    def _fetch(self, lat: float, lng: float) -> ClimateRecord:
        opts = self.options
        params = {
            "parameters": "PRECTOTCORR,ALLSKY_SFC_SW_DWN",
            "community": opts.community,
            "longitude": lng,
            "latitude": lat,
            "start": opts.start_year,
            "end": opts.end_year,
            "format": "JSON",
        }
        response = self.session.get(opts.api_url, params=params, timeout=opts.timeout_seconds)
        response.raise_for_status()
        return parse_power_response(response.json(), opts)


def parse_power_response(data: dict, options: Optional[ClimateOptions] = None) -> ClimateRecord:
    """
    Convert a POWER climatology payload to a ClimateRecord.

    Precipitation arrives as mm/day per month and solar irradiance as
    kWh/m2/day; only the first twelve (monthly) values are used.

    Raises:
        KeyError: If the expected parameters are missing
        ValueError: If fewer than twelve monthly values are present
    """
    options = options or ClimateOptions()
    parameters = data["properties"]["parameter"]
    precipitation = [float(v) for v in list(parameters["PRECTOTCORR"].values())[:12]]
    solar = [float(v) for v in list(parameters["ALLSKY_SFC_SW_DWN"].values())[:12]]
    if len(precipitation) < 12 or len(solar) < 12:
        raise ValueError("Climatology payload lacks monthly values")

    monthly_raw = [mm * days for mm, days in zip(precipitation, DAYS_IN_MONTH)]
    avg_kwh = sum(solar) / len(solar)

    return ClimateRecord(
        avg_rainfall_mm=round(sum(monthly_raw)),
        sun_hours=max(options.min_sun_hours, min(options.max_sun_hours, avg_kwh)),
        monthly_rainfall=[round(v) for v in monthly_raw],
        source=NASA_SOURCE,
    )
