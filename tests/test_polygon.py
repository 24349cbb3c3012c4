"""
Tests for Polygon Tools
"""

import pytest
import numpy as np
from hypothesis import given, strategies as st

from depth_volume.geometry.polygon import (
    point_in_polygon, points_in_polygon, winding_numbers, points_on_polygon_boundary,
    douglas_peucker, perpendicular_distance, convex_hull_2d, polygon_bounds, polygon_area
)

SQUARE_CCW = [(0, 0), (10, 0), (10, 10), (0, 10)]
SQUARE_CW = list(reversed(SQUARE_CCW))

coordinates = st.floats(min_value=-100, max_value=100, allow_nan=False, allow_infinity=False)
points_2d = st.tuples(coordinates, coordinates)


class TestPointInPolygon:
    """Test suite for winding-number containment."""

    def test_interior_and_exterior(self):
        """Test clear inside and outside points."""
        assert point_in_polygon((5, 5), SQUARE_CCW)
        assert not point_in_polygon((15, 5), SQUARE_CCW)
        assert not point_in_polygon((-1, -1), SQUARE_CCW)

    @pytest.mark.parametrize("polygon", [SQUARE_CCW, SQUARE_CW], ids=["ccw", "cw"])
    def test_boundary_convention(self, polygon):
        """Minimum-x / minimum-y edges are inside, maximum edges outside, for either order."""
        assert point_in_polygon((0, 5), polygon)
        assert point_in_polygon((5, 0), polygon)
        assert not point_in_polygon((10, 5), polygon)
        assert not point_in_polygon((5, 10), polygon)

    def test_degenerate_polygon(self):
        """Test that fewer than 3 vertices contain nothing."""
        assert not point_in_polygon((0, 0), [])
        assert not point_in_polygon((0.5, 0), [(0, 0), (1, 0)])
        assert not points_in_polygon(np.array([[0.5, 0.0]]), [(0, 0), (1, 0)]).any()

    def test_concave_polygon(self):
        """Test containment for a U-shaped polygon."""
        u_shape = [(0, 0), (9, 0), (9, 9), (6, 9), (6, 3), (3, 3), (3, 9), (0, 9)]
        assert point_in_polygon((1, 5), u_shape)
        assert point_in_polygon((7, 5), u_shape)
        assert not point_in_polygon((4.5, 6), u_shape)

    def test_winding_sign_follows_orientation(self):
        """Test that CCW polygons wind +1 and CW polygons -1."""
        assert winding_numbers(np.array([[5, 5]]), SQUARE_CCW)[0] == 1
        assert winding_numbers(np.array([[5, 5]]), SQUARE_CW)[0] == -1

    @pytest.mark.property
    @given(point=points_2d)
    def test_property_vectorized_matches_scalar(self, point):
        """Property test: the vectorized test agrees with the scalar one."""
        polygon = [(-50, -40), (60, -30), (20, 10), (70, 80), (-30, 60)]
        vectorized = points_in_polygon(np.array([point]), polygon)[0]
        assert vectorized == point_in_polygon(point, polygon)


class TestBoundary:
    """Test suite for the on-edge test."""

    def test_points_on_edges(self):
        """Test vertices and edge midpoints are on the boundary."""
        points = np.array([[0, 0], [5, 0], [10, 5], [5, 10], [0, 7], [5, 5], [11, 0]])
        on_edge = points_on_polygon_boundary(points, SQUARE_CCW)
        assert on_edge.tolist() == [True, True, True, True, True, False, False]

    def test_diagonal_edge(self):
        """Test exact on-edge detection for a sloped edge."""
        triangle = [(0, 0), (4, 0), (0, 4)]
        on_edge = points_on_polygon_boundary(np.array([[2, 2], [1, 3], [2, 1]]), triangle)
        assert on_edge.tolist() == [True, True, False]


class TestDouglasPeucker:
    """Test suite for polyline simplification."""

    def test_collinear_points_removed(self):
        """Test that points on a straight line are dropped."""
        line = [(i, 2 * i) for i in range(20)]
        assert douglas_peucker(line, 1.0) == [(0.0, 0.0), (19.0, 38.0)]

    def test_corner_preserved(self):
        """Test that a sharp corner survives simplification."""
        path = [(0, 0), (5, 0.2), (10, 0), (10, 10)]
        simplified = douglas_peucker(path, 1.0)
        assert simplified == [(0.0, 0.0), (10.0, 0.0), (10.0, 10.0)]

    def test_short_inputs_unchanged(self):
        """Test that inputs of two points or fewer are returned as-is."""
        assert douglas_peucker([], 1.0) == []
        assert douglas_peucker([(1, 2)], 1.0) == [(1.0, 2.0)]
        assert douglas_peucker([(1, 2), (3, 4)], 1.0) == [(1.0, 2.0), (3.0, 4.0)]

    def test_negative_epsilon(self):
        """Test that a negative tolerance is rejected."""
        with pytest.raises(ValueError, match="non-negative"):
            douglas_peucker([(0, 0), (1, 1), (2, 0)], -0.5)

    def test_closed_loop_uses_point_distance(self):
        """Test that a closed path (equal endpoints) keeps its far points."""
        loop = [(0, 0), (10, 0), (10, 10), (0, 10), (0, 0)]
        simplified = douglas_peucker(loop, 1.0)
        assert simplified[0] == simplified[-1] == (0.0, 0.0)
        assert len(simplified) >= 3

    def test_perpendicular_distance(self):
        """Test distance to a line and to a degenerate chord."""
        assert perpendicular_distance((0, 5), (-1, 0), (1, 0)) == pytest.approx(5.0)
        assert perpendicular_distance((3, 4), (0, 0), (0, 0)) == pytest.approx(5.0)

    @pytest.mark.property
    @given(path=st.lists(points_2d, min_size=2, max_size=60),
           epsilon=st.floats(min_value=0.0, max_value=20.0))
    def test_property_endpoints_preserved(self, path, epsilon):
        """Property test: endpoints kept, output never longer than input."""
        simplified = douglas_peucker(path, epsilon)
        assert simplified[0] == (float(path[0][0]), float(path[0][1]))
        assert simplified[-1] == (float(path[-1][0]), float(path[-1][1]))
        assert 2 <= len(simplified) <= len(path)


class TestConvexHull:
    """Test suite for the monotone-chain convex hull."""

    def test_square_with_interior_and_collinear_points(self):
        """Test that interior and collinear points are dropped."""
        points = [(0, 0), (1, 0), (2, 0), (2, 2), (0, 2), (1, 1), (0, 1)]
        hull = convex_hull_2d(points)
        assert set(hull) == {(0, 0), (2, 0), (2, 2), (0, 2)}
        assert polygon_area(hull) > 0  # counter-clockwise

    def test_degenerate_inputs(self):
        """Test fewer than 3 distinct points and collinear input."""
        assert convex_hull_2d([]) == []
        assert convex_hull_2d([(1, 1), (1, 1)]) == [(1, 1)]
        assert convex_hull_2d([(0, 0), (1, 1), (2, 2)]) == [(0, 0), (2, 2)]

    @pytest.mark.property
    @given(points=st.lists(points_2d, min_size=3, max_size=40))
    def test_property_hull_contains_all_points(self, points):
        """Property test: every input point is inside or on the hull."""
        hull = convex_hull_2d(points)
        if len(hull) < 3:
            return
        query = np.array(points, dtype=np.float64)
        inside = points_in_polygon(query, hull) | points_on_polygon_boundary(query, hull, tolerance=1e-6)
        assert inside.all()


class TestPolygonMeasures:
    """Test suite for bounds and area helpers."""

    def test_bounds_use_floor_and_ceil(self):
        """Test integer bounding box rounding."""
        assert polygon_bounds([(0.4, 1.6), (9.2, 3.1), (4.0, 7.9)]) == (0, 1, 10, 8)

    def test_bounds_empty(self):
        """Test that an empty polygon has no bounds."""
        with pytest.raises(ValueError):
            polygon_bounds([])

    def test_area_sign(self):
        """Test signed shoelace area."""
        assert polygon_area(SQUARE_CCW) == pytest.approx(100.0)
        assert polygon_area(SQUARE_CW) == pytest.approx(-100.0)
