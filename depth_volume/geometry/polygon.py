"""
Polygon Tools

Winding-number containment, Douglas-Peucker simplification and 2-D convex
hulls shared by the croppers and the voxelizer.

Boundary convention of the winding-number test: an edge only contributes
when the query point lies strictly to its inner side, and the vertical
crossing rule is half-open (``y_i <= y < y_j``). For an axis-aligned
rectangle this puts the minimum-x and minimum-y edges inside and the
maximum-x and maximum-y edges outside, whatever the vertex order.
"""

from typing import List, Sequence, Tuple
import numpy as np

Point2D = Tuple[float, float]


def _as_polygon(polygon) -> np.ndarray:
    return np.asarray(polygon, dtype=np.float64).reshape(-1, 2)


def point_in_polygon(point: Sequence[float], polygon) -> bool:
    """
    Test whether a point lies inside a closed polygon (winding number != 0).

    Args:
        point: (x, y) query point
        polygon: Ordered vertex list; the closing edge is implicit

    Returns:
        True if the winding number is non-zero. Polygons with fewer than
        3 vertices contain nothing.
    """
    vertices = _as_polygon(polygon)
    if vertices.shape[0] < 3:
        return False

    x, y = float(point[0]), float(point[1])
    winding = 0
    count = vertices.shape[0]

    for i in range(count):
        xi, yi = vertices[i]
        xj, yj = vertices[(i + 1) % count]

        if yi <= y:
            if yj > y:  # upward crossing
                cross = (xj - xi) * (y - yi) - (x - xi) * (yj - yi)
                if cross > 0:
                    winding += 1
        elif yj <= y:  # downward crossing
            cross = (xj - xi) * (y - yi) - (x - xi) * (yj - yi)
            if cross < 0:
                winding -= 1

    return winding != 0


def winding_numbers(points, polygon) -> np.ndarray:
    """
    Vectorized winding number of many points against one polygon.

    Args:
        points: Nx2 array of query points
        polygon: Ordered vertex list

    Returns:
        Integer array of length N
    """
    pts = np.asarray(points, dtype=np.float64).reshape(-1, 2)
    vertices = _as_polygon(polygon)
    winding = np.zeros(pts.shape[0], dtype=np.int64)
    if vertices.shape[0] < 3 or pts.shape[0] == 0:
        return winding

    x = pts[:, 0]
    y = pts[:, 1]
    next_vertices = np.roll(vertices, -1, axis=0)

    for (xi, yi), (xj, yj) in zip(vertices, next_vertices):
        cross = (xj - xi) * (y - yi) - (x - xi) * (yj - yi)
        upward = (yi <= y) & (yj > y) & (cross > 0)
        downward = (yi > y) & (yj <= y) & (cross < 0)
        winding += upward.astype(np.int64)
        winding -= downward.astype(np.int64)

    return winding


def points_in_polygon(points, polygon) -> np.ndarray:
    """Boolean containment mask for an Nx2 array of points."""
    return winding_numbers(points, polygon) != 0


def points_on_polygon_boundary(points, polygon, tolerance: float = 0.0) -> np.ndarray:
    """
    Boolean mask of points lying on any polygon edge.

    Args:
        points: Nx2 array of query points
        polygon: Ordered vertex list
        tolerance: Allowed absolute cross-product deviation (0 for exact
            integer geometry)
    """
    pts = np.asarray(points, dtype=np.float64).reshape(-1, 2)
    vertices = _as_polygon(polygon)
    on_edge = np.zeros(pts.shape[0], dtype=bool)
    if vertices.shape[0] == 0 or pts.shape[0] == 0:
        return on_edge

    x = pts[:, 0]
    y = pts[:, 1]
    next_vertices = np.roll(vertices, -1, axis=0)

    for (xi, yi), (xj, yj) in zip(vertices, next_vertices):
        cross = (xj - xi) * (y - yi) - (x - xi) * (yj - yi)
        within = ((x >= min(xi, xj)) & (x <= max(xi, xj)) &
                  (y >= min(yi, yj)) & (y <= max(yi, yj)))
        on_edge |= within & (np.abs(cross) <= tolerance)

    return on_edge


def perpendicular_distance(point: Sequence[float],
                           line_start: Sequence[float],
                           line_end: Sequence[float]) -> float:
    """Distance from a point to the infinite line through two points."""
    dx = line_end[0] - line_start[0]
    dy = line_end[1] - line_start[1]

    if dx == 0 and dy == 0:
        # Chord is a single point
        return float(np.hypot(point[0] - line_start[0], point[1] - line_start[1]))

    numerator = abs(dy * point[0] - dx * point[1] + line_end[0] * line_start[1] - line_end[1] * line_start[0])
    return float(numerator / np.hypot(dx, dy))


def douglas_peucker(points, epsilon: float) -> List[Point2D]:
    """
    Simplify a polyline with the Douglas-Peucker algorithm.

    The recursion is unrolled onto an explicit stack so long freehand
    outlines cannot exhaust the interpreter's recursion limit.

    Args:
        points: Ordered sequence of (x, y) points
        epsilon: Distance tolerance in the polyline's own units

    Returns:
        Simplified point list; first and last points equal the input's
    """
    if epsilon < 0:
        raise ValueError("epsilon must be non-negative")

    path = [(float(p[0]), float(p[1])) for p in points]
    if len(path) <= 2:
        return path

    keep = [False] * len(path)
    keep[0] = keep[-1] = True
    stack = [(0, len(path) - 1)]

    while stack:
        start, end = stack.pop()
        if end - start < 2:
            continue

        max_distance = 0.0
        max_index = start
        for i in range(start + 1, end):
            distance = perpendicular_distance(path[i], path[start], path[end])
            if distance > max_distance:
                max_distance = distance
                max_index = i

        if max_distance > epsilon:
            keep[max_index] = True
            stack.append((start, max_index))
            stack.append((max_index, end))

    return [p for p, kept in zip(path, keep) if kept]


def _cross(o, a, b) -> float:
    return (a[0] - o[0]) * (b[1] - o[1]) - (a[1] - o[1]) * (b[0] - o[0])


def convex_hull_2d(points) -> List[Tuple]:
    """
    Convex hull by Andrew's monotone chain.

    Args:
        points: Iterable of (x, y) points; duplicates are ignored

    Returns:
        Hull vertices in counter-clockwise order without collinear points.
        Fewer than 3 distinct input points are returned as-is (sorted).
    """
    unique = sorted({(p[0], p[1]) for p in points})
    if len(unique) < 3:
        return unique

    lower: List[Tuple] = []
    for p in unique:
        while len(lower) >= 2 and _cross(lower[-2], lower[-1], p) <= 0:
            lower.pop()
        lower.append(p)

    upper: List[Tuple] = []
    for p in reversed(unique):
        while len(upper) >= 2 and _cross(upper[-2], upper[-1], p) <= 0:
            upper.pop()
        upper.append(p)

    return lower[:-1] + upper[:-1]


def polygon_bounds(polygon) -> Tuple[int, int, int, int]:
    """Integer bounding box (floor of minima, ceil of maxima) of a polygon."""
    vertices = _as_polygon(polygon)
    if vertices.shape[0] == 0:
        raise ValueError("Cannot compute bounds of an empty polygon")
    min_x, min_y = np.floor(vertices.min(axis=0)).astype(int)
    max_x, max_y = np.ceil(vertices.max(axis=0)).astype(int)
    return int(min_x), int(min_y), int(max_x), int(max_y)


def polygon_area(polygon) -> float:
    """Signed shoelace area (positive for counter-clockwise order)."""
    vertices = _as_polygon(polygon)
    if vertices.shape[0] < 3:
        return 0.0
    x = vertices[:, 0]
    y = vertices[:, 1]
    return float(0.5 * (np.dot(x, np.roll(y, -1)) - np.dot(y, np.roll(x, -1))))
