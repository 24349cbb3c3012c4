"""
Pinhole Back-Projector

Converts filtered depth samples into a metric camera-space point cloud.
"""

import logging
from typing import List, Optional, Tuple

import numpy as np

from ..data_models import CameraIntrinsics, DepthSampleStore
from ..exceptions import MissingCalibrationError
from ..utils.config_manager import ConfigManager


def bounding_box(points: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Axis-aligned bounding box (min, max) of an Nx3 cloud; zeros when empty."""
    points = np.asarray(points, dtype=np.float64).reshape(-1, 3)
    if points.shape[0] == 0:
        return np.zeros(3), np.zeros(3)
    return points.min(axis=0), points.max(axis=0)


def center_point_clouds(*clouds: np.ndarray) -> List[np.ndarray]:
    """
    Shift several clouds by the center of their joint bounding box.

    Used when a primary and a refinement cloud must share one coordinate
    frame. Empty clouds are passed through unchanged.
    """
    arrays = [np.asarray(c, dtype=np.float64).reshape(-1, 3) for c in clouds]
    non_empty = [a for a in arrays if a.shape[0] > 0]
    if not non_empty:
        return arrays

    bbox_min, bbox_max = bounding_box(np.vstack(non_empty))
    center = (bbox_min + bbox_max) / 2.0
    return [a - center if a.shape[0] > 0 else a for a in arrays]


class BackProjector:
    """Average-depth pinhole back-projection of depth samples."""

    def __init__(self, config_manager: Optional[ConfigManager] = None):
        """
        Initialize back-projector.

        Args:
            config_manager: Configuration manager instance
        """
        self.config = config_manager or ConfigManager()
        self.logger = logging.getLogger(__name__)

        bp_config = self.config.get_back_projection_params()
        width, height = bp_config.get('sample_width'), bp_config.get('sample_height')
        if (width is None) != (height is None):
            raise ValueError("sample_width and sample_height must be configured together")
        self.sample_width = float(width) if width is not None else None
        self.sample_height = float(height) if height is not None else None
        self.center_point_cloud = bool(bp_config.get('center_point_cloud', False))

        if self.sample_width is None:
            self.logger.info("Back-projector initialized: sample grid taken from the samples")
        else:
            self.logger.info(f"Back-projector initialized: sample grid {self.sample_width:g}x{self.sample_height:g}")

    def resolve_sample_resolution(self,
                                  store: DepthSampleStore,
                                  sample_resolution: Optional[Tuple[float, float]] = None) -> Tuple[float, float]:
        """
        Pick the sample grid resolution for a capture.

        An explicit resolution wins, then the configured override, then the
        grid implied by the full (uncropped) store.
        """
        if sample_resolution is not None:
            return sample_resolution
        if self.sample_width is not None:
            return self.sample_width, self.sample_height
        return float(store.original_width), float(store.original_height)

    def effective_intrinsics(self,
                             intrinsics: CameraIntrinsics,
                             sample_resolution: Optional[Tuple[float, float]] = None) -> CameraIntrinsics:
        """
        Rescale intrinsics from their reference resolution to the sample grid.

        Args:
            intrinsics: Calibrated intrinsics
            sample_resolution: (width, height) of the sample grid. Defaults to
                the configured override, or the reference resolution (no
                rescaling) when none is configured.
        """
        if sample_resolution is None and self.sample_width is not None:
            sample_resolution = (self.sample_width, self.sample_height)
        if sample_resolution is None:
            return intrinsics
        width, height = sample_resolution
        return intrinsics.rescaled_to(width, height)

    def back_project(self,
                     store: DepthSampleStore,
                     sample_resolution: Optional[Tuple[float, float]] = None,
                     center: Optional[bool] = None) -> np.ndarray:
        """
        Back-project samples into camera space.

        X and Y are unprojected with the mean depth of the whole set; Z keeps
        each sample's own depth.

        Args:
            store: Filtered samples (intrinsics required)
            sample_resolution: (width, height) of the sample grid. Defaults to
                the configured override, else the grid implied by ``store``.
                Pass the full capture's grid when ``store`` is a crop.
            center: Subtract the bounding-box center. Defaults to config.

        Returns:
            Nx3 point cloud in meters

        Raises:
            MissingCalibrationError: If the store carries no intrinsics
        """
        if store.intrinsics is None:
            self.logger.error("Back-projection requested without camera intrinsics")
            raise MissingCalibrationError()

        if len(store) == 0:
            self.logger.warning("Back-projection of an empty sample set")
            return np.zeros((0, 3))

        k = self.effective_intrinsics(store.intrinsics, self.resolve_sample_resolution(store, sample_resolution))
        average_depth = float(store.depths.mean())

        points = np.empty((len(store), 3), dtype=np.float64)
        points[:, 0] = (store.xs - k.cx) * average_depth / k.fx
        points[:, 1] = (store.ys - k.cy) * average_depth / k.fy
        points[:, 2] = store.depths

        center = self.center_point_cloud if center is None else center
        if center:
            points = center_point_clouds(points)[0]

        self.logger.debug(f"Back-projected {len(store)} samples at average depth {average_depth:.4f} m")
        return points
