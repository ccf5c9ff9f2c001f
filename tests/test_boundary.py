"""Tests for boundary geometry."""

import math

import pytest

from py_permadesign.core.alea_prng import AleaPRNG
from py_permadesign.core.boundary import (
    DEFAULT_ANCHOR,
    INVALID_BOUNDARY_SIZE,
    MIN_REGION_EXTENT,
    Boundary,
    LatLng,
    Region,
    approximate_size,
    as_lat_lng,
    centroid,
    circle_polygon,
    closest_boundary_point,
    contains,
    contains_or_touches,
    diagonal,
    filter_interior,
    on_boundary,
    sample_interior,
)
from py_permadesign.core.elevation_model import ElevationSample


@pytest.fixture
def unit_square():
    return Boundary.from_coordinates([[0, 0], [1, 0], [1, 1], [0, 1]])


@pytest.fixture
def l_shape():
    """Concave ring; the upper right quadrant is outside."""
    return Boundary.from_coordinates([[0, 0], [2, 0], [2, 1], [1, 1], [1, 2], [0, 2]])


@pytest.fixture
def sliver_triangle():
    return Boundary.from_coordinates([[0, 0], [1e-12, 0], [0, 1e-12]])


class TestBoundaryConstruction:
    """Test boundary ingestion."""

    def test_closing_vertex_dropped(self):
        boundary = Boundary.from_coordinates([[0, 0], [1, 0], [1, 1], [0, 1], [0, 0]])
        assert len(boundary.ring) == 4

    def test_from_geojson_feature(self):
        feature = {
            "type": "Feature",
            "properties": {},
            "geometry": {"type": "Polygon", "coordinates": [[[0, 0], [1, 0], [1, 1], [0, 0]]]},
        }
        boundary = Boundary.from_geojson(feature)
        assert boundary.ring == ((0.0, 0.0), (1.0, 0.0), (1.0, 1.0))
        assert boundary.is_valid

    def test_from_geojson_polygon(self):
        polygon = {"type": "Polygon", "coordinates": [[[0, 0], [1, 0], [1, 1], [0, 1]]]}
        assert len(Boundary.from_geojson(polygon).ring) == 4

    def test_from_geojson_rejects_other_geometry(self):
        with pytest.raises(ValueError):
            Boundary.from_geojson({"type": "LineString", "coordinates": [[0, 0], [1, 1]]})

    def test_to_geojson_closes_ring(self, unit_square):
        ring = unit_square.to_geojson()["geometry"]["coordinates"][0]
        assert ring[0] == ring[-1]
        assert len(ring) == 5

    def test_validity_requires_three_distinct_vertices(self):
        assert not Boundary.from_coordinates([[0, 0], [1, 1], [1, 1]]).is_valid
        assert Boundary.from_coordinates([[0, 0], [1, 1], [1, 0]]).is_valid

    def test_as_lat_lng_accepts_point_like_values(self):
        sample = ElevationSample(lat=1.0, lng=2.0, elevation=3.0)
        assert as_lat_lng(sample) == LatLng(1.0, 2.0)
        assert as_lat_lng({"lat": 1, "lng": 2}) == LatLng(1.0, 2.0)
        assert as_lat_lng((1, 2)) == LatLng(1.0, 2.0)


class TestContainment:
    """Test ray-casting containment."""

    def test_square(self, unit_square):
        assert contains((0.5, 0.5), unit_square)
        assert not contains((0.5, 1.5), unit_square)
        assert not contains((-0.1, 0.5), unit_square)

    def test_concave(self, l_shape):
        assert contains((0.5, 1.5), l_shape)
        assert contains((1.5, 0.5), l_shape)
        assert not contains((1.5, 1.5), l_shape)

    def test_invalid_boundary_contains_everything(self):
        degenerate = Boundary.from_coordinates([[0, 0], [1, 1]])
        assert contains((50.0, 50.0), degenerate)
        assert contains((50.0, 50.0), None)

    def test_filter_interior_is_idempotent(self, l_shape):
        points = [(x / 10, y / 10) for x in range(-5, 25) for y in range(-5, 25)]
        once = filter_interior(points, l_shape)
        assert 0 < len(once) < len(points)
        assert filter_interior(once, l_shape) == once

    def test_filter_interior_accepts_samples(self, unit_square):
        samples = [
            ElevationSample(lat=0.5, lng=0.5, elevation=3.0),
            ElevationSample(lat=2.0, lng=0.5, elevation=3.0),
        ]
        assert filter_interior(samples, unit_square) == samples[:1]


class TestInteriorSampling:
    """Test rejection sampling."""

    def test_samples_are_inside(self, l_shape):
        prng = AleaPRNG("interior")
        for _ in range(100):
            sample = sample_interior(l_shape, prng)
            assert not sample.degraded
            assert contains(sample.point, l_shape)

    def test_seeded_sampling_is_reproducible(self, unit_square):
        first = sample_interior(unit_square, AleaPRNG("repeat"))
        second = sample_interior(unit_square, AleaPRNG("repeat"))
        assert first == second

    def test_degraded_fallback_is_region_center(self, sliver_triangle):
        sample = sample_interior(sliver_triangle, AleaPRNG("sliver"), max_attempts=20)
        assert sample.degraded
        assert sample.point == sliver_triangle.region().center

    def test_invalid_boundary_returns_default_anchor(self):
        sample = sample_interior(None, AleaPRNG("none"))
        assert sample.degraded
        assert sample.point == LatLng(*DEFAULT_ANCHOR)


class TestRegion:
    """Test bounding regions."""

    def test_degenerate_region_is_widened(self, sliver_triangle):
        region = sliver_triangle.region()
        assert region.lat_extent >= MIN_REGION_EXTENT * 0.999
        assert region.lng_extent >= MIN_REGION_EXTENT * 0.999
        assert region.max_lat >= region.min_lat

    def test_empty_ring_region(self):
        region = Boundary.from_coordinates([]).region()
        assert region.center == pytest.approx(DEFAULT_ANCHOR)
        assert (region.lat_extent, region.lng_extent) == pytest.approx(INVALID_BOUNDARY_SIZE)

    def test_region_around(self):
        region = Region.around((10.0, 76.0), 0.05)
        assert region.center == pytest.approx((10.0, 76.0))
        assert region.lat_extent == pytest.approx(0.1)


class TestBoundaryMetrics:
    """Test centroid, projection and size helpers."""

    def test_centroid_is_vertex_mean(self, unit_square):
        assert centroid(unit_square) == pytest.approx((0.5, 0.5))

    def test_centroid_ignores_closing_vertex(self):
        closed = Boundary.from_coordinates([[0, 0], [3, 0], [0, 3], [0, 0]])
        assert centroid(closed) == pytest.approx((1.0, 1.0))

    def test_closest_boundary_point(self, unit_square):
        assert closest_boundary_point((0.5, 2.0), unit_square) == pytest.approx((0.5, 1.0))

    def test_closest_boundary_point_uses_closing_edge(self, unit_square):
        assert closest_boundary_point((0.5, -1.0), unit_square) == pytest.approx((0.5, 0.0))

    def test_closest_boundary_point_clamps_to_vertex(self, unit_square):
        assert closest_boundary_point((2.0, 2.0), unit_square) == pytest.approx((1.0, 1.0))

    def test_on_boundary(self, unit_square):
        assert on_boundary((0.5, 1.0), unit_square)
        assert not on_boundary((0.5, 0.5), unit_square)
        assert contains_or_touches((0.5, 1.0), unit_square)

    def test_approximate_size(self, unit_square):
        assert approximate_size(unit_square) == (1.0, 1.0)
        assert diagonal(unit_square) == pytest.approx(math.sqrt(2))

    def test_invalid_boundary_size(self):
        assert approximate_size(None) == INVALID_BOUNDARY_SIZE

    def test_circle_polygon(self):
        ring = circle_polygon((1.0, 2.0), 0.5)
        assert len(ring) == 37
        assert ring[0] == ring[-1]
        for lat, lng in ring:
            assert math.hypot(lat - 1.0, lng - 2.0) == pytest.approx(0.5)
