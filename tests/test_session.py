"""Tests for the design session."""

from collections import Counter
from unittest.mock import Mock

import pytest

from py_permadesign.core.boundary import Boundary, contains
from py_permadesign.core.climate import ClimateRecord, fallback_slope
from py_permadesign.core.elevation_model import ElevationModelConfig
from py_permadesign.core.session import DesignSession, MoveResult, SynthesisInProgressError


def climate_record(source="test", rainfall=2000.0):
    return ClimateRecord(avg_rainfall_mm=rainfall, sun_hours=6.0, monthly_rainfall=[rainfall / 12] * 12, source=source)


@pytest.fixture
def square():
    return Boundary.from_coordinates([
        [76.270, 10.850], [76.280, 10.850], [76.280, 10.860], [76.270, 10.860],
    ])


@pytest.fixture
def session():
    climate_service = Mock()
    climate_service.lookup.return_value = climate_record()
    return DesignSession(
        anchor=(10.855, 76.275),
        seed="session_test",
        elevation_config=ElevationModelConfig(max_grid_points=40),
        climate_service=climate_service,
    )


@pytest.fixture
def bounded_session(session, square):
    session.set_boundary(square)
    return session


class TestTerrainRegeneration:
    """Test the terrain invalidation group."""

    def test_initial_terrain(self, session):
        assert session.terrain is not None
        assert session.terrain.generation == 1
        assert session.terrain.boundary is None
        assert len(session.terrain.elevation) == 31 * 31

    def test_boundary_change_regenerates(self, session, square):
        snapshot = session.set_boundary(square)

        assert snapshot is session.terrain
        assert snapshot.generation == 2
        assert snapshot.boundary == square
        assert snapshot.region == square.region()

    def test_clear_boundary_regenerates(self, bounded_session):
        bounded_session.clear_boundary()

        assert bounded_session.boundary is None
        assert bounded_session.terrain.boundary is None
        assert bounded_session.terrain.generation == 3

    def test_anchor_change_regenerates(self, session):
        session.set_anchor(11.0, 76.0)

        assert session.terrain.generation == 2
        assert session.terrain.anchor == (11.0, 76.0)

    def test_superseded_generation_dropped(self, session, square):
        results = []
        started = []
        real_compute = session._compute_terrain

        def compute(generation, boundary, anchor):
            if not started:
                started.append(generation)
                # A newer regeneration starts while this one is computing
                results.append(session.set_boundary(square))
            return real_compute(generation, boundary, anchor)

        session._compute_terrain = compute
        stale = session.set_anchor(10.9, 76.3)

        assert stale is None
        assert results[0] is not None
        assert session.terrain is results[0]
        assert session.terrain.generation == session.generation

    def test_slope_percent(self, session):
        assert session.slope_percent() >= 0

    def test_slope_percent_fallback(self, session):
        session.terrain = None
        assert session.slope_percent() == fallback_slope(session.anchor.lat)


class TestElements:
    """Test element management."""

    def test_add_element(self, bounded_session):
        element = bounded_session.add_element("BEEHIVE", 10.855, 76.275)

        assert element is not None
        assert bounded_session.elements == [element]
        assert bounded_session.get_element(element.id) == element

    def test_add_element_outside_boundary(self, bounded_session):
        assert bounded_session.add_element("BEEHIVE", 11.0, 77.0) is None
        assert bounded_session.elements == []

    def test_add_unknown_kind(self, bounded_session):
        with pytest.raises(ValueError):
            bounded_session.add_element("SPACESHIP", 10.855, 76.275)
        assert bounded_session.elements == []

    def test_without_boundary_anything_goes(self, session):
        assert session.add_element("SHED", 40.0, -3.0) is not None

    def test_clear_elements(self, bounded_session):
        bounded_session.add_element("SHED", 10.855, 76.275)
        bounded_session.add_element("COMPOST", 10.856, 76.276)

        assert bounded_session.clear_elements() == 2
        assert bounded_session.elements == []

    def test_move_element(self, bounded_session, square):
        element = bounded_session.add_element("SHED", 10.855, 76.275)

        assert bounded_session.move_element(element.id, 10.858, 76.278) == MoveResult.MOVED
        moved = bounded_session.get_element(element.id)
        assert moved.position == (10.858, 76.278)
        assert contains(moved.position, square)

    def test_move_outside_rejected(self, bounded_session):
        element = bounded_session.add_element("SHED", 10.855, 76.275)

        result = bounded_session.move_element(element.id, 12.0, 76.275)

        assert result == MoveResult.REJECTED_OUTSIDE_BOUNDARY
        assert bounded_session.get_element(element.id).position == (10.855, 76.275)

    def test_move_unknown(self, bounded_session):
        assert bounded_session.move_element("missing", 10.855, 76.275) == MoveResult.NOT_FOUND

    def test_move_polygon_not_allowed(self, bounded_session):
        pond = bounded_session.add_element("POND_AREA", 10.855, 76.275)
        assert bounded_session.move_element(pond.id, 10.856, 76.276) == MoveResult.NOT_MOVABLE


class TestSynthesis:
    """Test placement synthesis through the session."""

    def test_requires_boundary(self, session):
        with pytest.raises(ValueError):
            session.request_placement_synthesis()
        assert not session.is_designing

    def test_rejected_while_designing(self, bounded_session):
        bounded_session.is_designing = True
        with pytest.raises(SynthesisInProgressError):
            bounded_session.request_placement_synthesis()

    def test_synthesis_adds_elements(self, bounded_session, square):
        generation = bounded_session.generation
        result = bounded_session.request_placement_synthesis()

        kinds = Counter(e.kind for e in bounded_session.elements)
        assert kinds["HOUSE"] == 1
        assert kinds["WATER_TANK"] == 1
        assert not bounded_session.is_designing

        house = next(e for e in bounded_session.elements if e.kind == "HOUSE")
        assert result.new_anchor == pytest.approx(house.position)
        assert bounded_session.anchor == pytest.approx(house.position)
        assert bounded_session.generation == generation + 1
        assert contains(house.position, square)

    def test_rerun_does_not_duplicate(self, bounded_session):
        bounded_session.request_placement_synthesis()
        first = Counter(e.kind for e in bounded_session.elements)

        bounded_session.request_placement_synthesis()
        second = Counter(e.kind for e in bounded_session.elements)

        for kind, count in first.items():
            assert second[kind] == count

    def test_boundary_replaced_during_synthesis(self, bounded_session):
        elsewhere = Boundary.from_coordinates([
            [77.270, 11.850], [77.280, 11.850], [77.280, 11.860], [77.270, 11.860],
        ])
        real_synthesize = bounded_session.synthesizer.synthesize

        def synthesize(**kwargs):
            bounded_session.set_boundary(elsewhere)
            return real_synthesize(**kwargs)

        bounded_session.synthesizer.synthesize = synthesize
        anchor = bounded_session.anchor
        generation = bounded_session.generation + 1

        result = bounded_session.request_placement_synthesis()

        assert result.superseded
        assert result.added == []
        assert bounded_session.elements == []
        assert bounded_session.anchor == anchor
        assert bounded_session.generation == generation
        assert not bounded_session.is_designing

    def test_kind_added_during_synthesis_not_duplicated(self, bounded_session):
        real_synthesize = bounded_session.synthesizer.synthesize
        manual = []

        def synthesize(**kwargs):
            manual.append(bounded_session.add_element("HOUSE", 10.851, 76.271))
            return real_synthesize(**kwargs)

        bounded_session.synthesizer.synthesize = synthesize
        anchor = bounded_session.anchor

        result = bounded_session.request_placement_synthesis()

        houses = [e for e in bounded_session.elements if e.kind == "HOUSE"]
        assert houses == manual
        assert "HOUSE" not in result.kinds()
        assert "HOUSE" in result.skipped
        assert result.new_anchor is None
        assert bounded_session.anchor == anchor
        assert Counter(e.kind for e in bounded_session.elements)["WATER_TANK"] == 1

    def test_flag_reset_after_failure(self, bounded_session):
        bounded_session.synthesizer.synthesize = Mock(side_effect=RuntimeError("boom"))

        with pytest.raises(RuntimeError):
            bounded_session.request_placement_synthesis()
        assert not bounded_session.is_designing


class TestClimate:
    """Test climate refresh."""

    def test_refresh_uses_anchor(self, session):
        record = session.refresh_climate()

        assert record.source == "test"
        assert session.climate == record
        session.climate_service.lookup.assert_called_once_with(10.855, 76.275)

    def test_stale_result_dropped(self, session):
        nested = []

        def lookup(lat, lng):
            if not nested:
                nested.append(session.refresh_climate(1.0, 2.0))
                return climate_record(source="first")
            return climate_record(source="second")

        session.climate_service.lookup.side_effect = lookup
        stale = session.refresh_climate(10.0, 76.0)

        assert stale is None
        assert nested[0].source == "second"
        assert session.climate.source == "second"


class TestPatterns:
    """Test pattern generation around the anchor."""

    def test_pattern_points(self, session):
        assert len(session.pattern_points("mandala")) == 8

    def test_unknown_pattern(self, session):
        with pytest.raises(ValueError):
            session.pattern_points("fractal")
