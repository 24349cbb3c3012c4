"""
Polygon Geometry Module

Implements winding-number containment, polyline simplification and 2-D convex hulls.
"""

from .polygon import (
    point_in_polygon, points_in_polygon, winding_numbers, points_on_polygon_boundary,
    douglas_peucker, perpendicular_distance, convex_hull_2d, polygon_bounds, polygon_area
)

__all__ = [
    'point_in_polygon', 'points_in_polygon', 'winding_numbers', 'points_on_polygon_boundary',
    'douglas_peucker', 'perpendicular_distance', 'convex_hull_2d', 'polygon_bounds', 'polygon_area'
]
