"""Tests for water planning helpers."""

import pytest

from py_permadesign.core.water_management import (
    flood_risk_level,
    flood_risk_map,
    harvesting_potential,
    swale_specification,
    water_plan,
)


class TestHarvesting:
    """Test harvesting potential."""

    def test_roof_harvest(self):
        potential = harvesting_potential(2500, slope_percent=8)
        assert potential.roof_harvest == 200
        assert potential.units == "m³"

    def test_custom_roof_area(self):
        assert harvesting_potential(1000, 3, roof_area=250).roof_harvest == 200

    @pytest.mark.parametrize("slope,expected", [(2, 3), (10, 5), (30, 7)])
    def test_land_harvest_by_slope(self, slope, expected):
        # 10 m of rainfall
        assert harvesting_potential(10000, slope).land_harvest == expected

    def test_total(self):
        potential = harvesting_potential(3000, 12)
        assert potential.total == round(100 * 3.0 * 0.8 + 3.0 * 0.5)


class TestSwales:
    """Test swale specification tiers."""

    @pytest.mark.parametrize("slope,spacing,depth", [
        (2, 50, 0.3),
        (7, 25, 0.4),
        (15, 15, 0.5),
        (25, 10, 0.6),
    ])
    def test_tiers(self, slope, spacing, depth):
        spec = swale_specification(slope)
        assert spec.spacing == spacing
        assert spec.depth == depth


class TestFloodRisk:
    """Test flood risk classification."""

    def test_levels(self):
        assert flood_risk_level(3, 2500) == "high"
        assert flood_risk_level(3, 2000) == "medium"
        assert flood_risk_level(8, 2500) == "medium"
        assert flood_risk_level(12, 3000) == "low"
        assert flood_risk_level(3, 1500) == "low"

    def test_map_geometry(self):
        feature = flood_risk_map(10.0, 76.0, 3, 2500)

        assert feature["properties"]["risk"] == "high"
        ring = feature["geometry"]["coordinates"][0]
        assert len(ring) == 5
        assert ring[0] == ring[-1]
        assert ring[0] == pytest.approx([75.95, 9.95])
        assert ring[2] == pytest.approx([76.05, 10.05])


class TestWaterPlan:
    """Test the bundled plan."""

    def test_plan(self):
        plan = water_plan(10.0, 76.0, 6, 2000)
        assert set(plan) == {"slope_percent", "rainfall_mm", "harvesting", "swales", "flood_risk"}
        assert plan["swales"] == {"spacing": 25, "depth": 0.4}
        assert plan["flood_risk"]["properties"]["risk"] == "medium"
