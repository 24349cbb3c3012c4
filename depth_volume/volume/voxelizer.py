"""
Budgeted Voxelizer

Buckets a camera-facing point cloud into a regular grid and fills each
horizontal layer's convex footprint to approximate the solid behind the
visible surface.
"""

import logging
import math
from typing import Optional, Tuple

import numpy as np

from ..data_models import VoxelGrid
from ..geometry.polygon import convex_hull_2d, points_in_polygon, points_on_polygon_boundary
from ..utils.config_manager import ConfigManager


def _column_extremes(footprints: np.ndarray) -> np.ndarray:
    """Per-column (x) minimum and maximum y; the hull only depends on these."""
    order = np.lexsort((footprints[:, 1], footprints[:, 0]))
    ordered = footprints[order]
    columns, starts = np.unique(ordered[:, 0], return_index=True)
    y_min = np.minimum.reduceat(ordered[:, 1], starts)
    y_max = np.maximum.reduceat(ordered[:, 1], starts)
    return np.vstack([np.column_stack([columns, y_min]), np.column_stack([columns, y_max])])


def _column_keys(columns: np.ndarray, low: np.ndarray, span_y: int) -> np.ndarray:
    return (columns[:, 0] - low[0]) * span_y + (columns[:, 1] - low[1])


class Voxelizer:
    """Voxelizes point clouds under a fixed cell budget with per-layer convex fill."""

    def __init__(self, config_manager: Optional[ConfigManager] = None, voxel_budget: Optional[int] = None):
        """
        Initialize voxelizer.

        Args:
            config_manager: Configuration manager instance
            voxel_budget: Maximum number of grid cells. Defaults to the
                configured accuracy-first budget.
        """
        self.config = config_manager or ConfigManager()
        self.logger = logging.getLogger(__name__)

        vox_config = self.config.get_voxelizer_params()
        budget = voxel_budget if voxel_budget is not None else vox_config.get('voxel_budget', 1_000_000)
        self.voxel_budget = int(budget)
        if self.voxel_budget < 1:
            raise ValueError("voxel_budget must be at least 1")

        self.growth_factor = float(vox_config.get('growth_factor', 1.01))
        self.column_tolerance = int(vox_config.get('column_tolerance', 1))
        self.flat_cloud_policy = vox_config.get('flat_cloud_policy', 'single_layer')

        self.logger.info(f"Voxelizer initialized: budget={self.voxel_budget}, "
                         f"flat_cloud_policy={self.flat_cloud_policy}")

    @classmethod
    def for_mode(cls, mode: str, config_manager: Optional[ConfigManager] = None) -> "Voxelizer":
        """Create a voxelizer using the 'accuracy' or 'latency' budget."""
        config = config_manager or ConfigManager()
        return cls(config, voxel_budget=config.voxel_budget_for_mode(mode))

    @staticmethod
    def grid_dimensions(extent: np.ndarray, voxel_size: float) -> Tuple[int, int, int]:
        """Cells per axis; zero-extent axes occupy exactly one cell."""
        dims = []
        for length in extent:
            cells = math.ceil(float(length) / voxel_size) if length > 0 else 1
            dims.append(max(1, int(cells)))
        return dims[0], dims[1], dims[2]

    def solve_voxel_size(self, extent: np.ndarray) -> Optional[Tuple[float, Tuple[int, int, int]]]:
        """
        Find a voxel size whose grid fits within the budget.

        Starts from ``(bbox_measure / budget) ** (1 / n)`` over the n axes
        with non-zero extent (but never below ``max_extent / budget``) and
        inflates by the growth factor until the cell count is within budget.
        Inflation monotonically shrinks the cell count, so the loop
        terminates.

        Returns:
            (voxel_size, dims), or None for a degenerate bounding box
        """
        extent = np.asarray(extent, dtype=np.float64)
        if not np.all(np.isfinite(extent)):
            self.logger.warning("Non-finite bounding box; cannot size voxels")
            return None

        active = extent > 0
        if not np.any(active):
            self.logger.warning("Bounding box has zero extent on every axis")
            return None
        if not np.all(active) and self.flat_cloud_policy == 'empty':
            self.logger.warning("Zero-volume bounding box; returning empty voxel grid")
            return None

        measure = float(np.prod(extent[active]))
        voxel_size = (measure / self.voxel_budget) ** (1.0 / int(active.sum()))
        # No axis may need more cells than the whole budget
        voxel_size = max(voxel_size, float(extent.max()) / self.voxel_budget)
        if not voxel_size > 0:
            self.logger.warning("Bounding box too small to size voxels")
            return None

        dims = self.grid_dimensions(extent, voxel_size)
        while dims[0] * dims[1] * dims[2] > self.voxel_budget:
            voxel_size *= self.growth_factor
            dims = self.grid_dimensions(extent, voxel_size)

        return voxel_size, dims

    def surface_voxels(self, points: np.ndarray, origin: np.ndarray,
                       voxel_size: float, dims: Tuple[int, int, int]) -> np.ndarray:
        """Unique voxel indices containing at least one point (clamped to the grid)."""
        indices = np.floor((points - origin) / voxel_size).astype(np.int64)
        indices = np.clip(indices, 0, np.asarray(dims, dtype=np.int64) - 1)
        return np.unique(indices, axis=0)

    def fill_layer(self, footprints: np.ndarray) -> np.ndarray:
        """
        Fill the convex hull of one layer's (x, y) footprints.

        Args:
            footprints: Kx2 unique integer footprints of a single z layer

        Returns:
            Mx2 integer cells inside or on the hull (empty for < 3 footprints
            or collinear footprints)
        """
        if footprints.shape[0] < 3:
            return np.zeros((0, 2), dtype=np.int64)

        hull = convex_hull_2d(map(tuple, _column_extremes(footprints).tolist()))
        if len(hull) < 3:
            return np.zeros((0, 2), dtype=np.int64)

        min_x, min_y = footprints.min(axis=0)
        max_x, max_y = footprints.max(axis=0)
        grid_x, grid_y = np.meshgrid(np.arange(min_x, max_x + 1), np.arange(min_y, max_y + 1), indexing='ij')
        candidates = np.column_stack([grid_x.ravel(), grid_y.ravel()])

        inside = points_in_polygon(candidates, hull) | points_on_polygon_boundary(candidates, hull)
        return candidates[inside]

    def fill_interior(self, surface: np.ndarray) -> np.ndarray:
        """Per-layer convex fill unioned with the surface voxels."""
        if surface.shape[0] == 0:
            return surface

        order = np.argsort(surface[:, 2], kind='stable')
        ordered = surface[order]
        layers, starts = np.unique(ordered[:, 2], return_index=True)
        bounds = list(starts[1:]) + [ordered.shape[0]]

        filled = [surface]
        for z, start, end in zip(layers, starts, bounds):
            cells = self.fill_layer(ordered[start:end, :2])
            if cells.shape[0] > 0:
                filled.append(np.column_stack([cells, np.full(cells.shape[0], z, dtype=np.int64)]))

        return np.unique(np.vstack(filled), axis=0)

    def restrict_to_columns(self, indices: np.ndarray, mask_points: np.ndarray,
                            origin: np.ndarray, voxel_size: float) -> np.ndarray:
        """
        Drop voxels whose (x, y) column the mask cloud does not touch.

        Mask columns are computed in the same grid (floored, not clamped) and
        dilated by ``column_tolerance`` cells along both axes.
        """
        if indices.shape[0] == 0:
            return indices

        columns = np.floor((mask_points[:, :2] - origin[:2]) / voxel_size).astype(np.int64)
        tol = self.column_tolerance
        offsets = np.array([(dx, dy) for dx in range(-tol, tol + 1) for dy in range(-tol, tol + 1)],
                           dtype=np.int64)
        touched = np.unique((columns[:, None, :] + offsets[None, :, :]).reshape(-1, 2), axis=0)

        candidates = indices[:, :2]
        low = np.minimum(candidates.min(axis=0), touched.min(axis=0))
        high = np.maximum(candidates.max(axis=0), touched.max(axis=0))
        span_y = int(high[1] - low[1] + 1)

        keep = np.isin(_column_keys(candidates, low, span_y), _column_keys(touched, low, span_y))
        return indices[keep]

    def voxelize(self, points: np.ndarray, restrict_to: Optional[np.ndarray] = None) -> VoxelGrid:
        """
        Voxelize a point cloud into a filled solid.

        Args:
            points: Nx3 point cloud in meters
            restrict_to: Optional refinement cloud; only voxel columns it
                touches (with tolerance) are kept. Empty clouds impose no
                restriction.

        Returns:
            VoxelGrid whose cell count never exceeds the budget. Empty or
            degenerate input yields an empty grid.
        """
        points = np.asarray(points, dtype=np.float64).reshape(-1, 3)
        if points.shape[0] == 0:
            return VoxelGrid.empty()

        bbox_min = points.min(axis=0)
        bbox_max = points.max(axis=0)
        solved = self.solve_voxel_size(bbox_max - bbox_min)
        if solved is None:
            return VoxelGrid.empty()
        voxel_size, dims = solved

        surface = self.surface_voxels(points, bbox_min, voxel_size, dims)
        indices = self.fill_interior(surface)

        if restrict_to is not None:
            mask_points = np.asarray(restrict_to, dtype=np.float64).reshape(-1, 3)
            if mask_points.shape[0] > 0:
                before = indices.shape[0]
                indices = self.restrict_to_columns(indices, mask_points, bbox_min, voxel_size)
                self.logger.debug(f"Column restriction kept {indices.shape[0]} of {before} voxels")

        self.logger.debug(f"Voxelized {points.shape[0]} points: grid {dims}, voxel size {voxel_size:.6f} m, "
                          f"{surface.shape[0]} surface / {indices.shape[0]} filled voxels")

        return VoxelGrid(origin=bbox_min, voxel_size=voxel_size, dims=dims,
                         indices=indices, surface_count=int(surface.shape[0]))
