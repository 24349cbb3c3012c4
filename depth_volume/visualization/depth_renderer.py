"""
Depth Visualization

Rasterizes depth samples into the rotated display image and colorizes them
with an OpenCV colormap (near = hot, far = cool).
"""

import logging
from pathlib import Path
from typing import Optional, Union

import cv2
import numpy as np

from ..data_models import DepthSampleStore
from ..exceptions import DepthArtifactIOError
from ..cropping.display_transform import DisplayTransform
from ..utils.config_manager import ConfigManager


def rasterize_depth(store: DepthSampleStore, transform: Optional[DisplayTransform] = None) -> np.ndarray:
    """
    Average sample depths into a display-space float32 image.

    Args:
        store: Depth samples
        transform: Sensor/display transform. Defaults to the store's own.

    Returns:
        HxW depth image in meters (display orientation), 0 where no sample
    """
    transform = transform or DisplayTransform.from_store(store)
    width, height = transform.display_size
    depth_sum = np.zeros((height, width), dtype=np.float64)
    counts = np.zeros((height, width), dtype=np.int64)

    if len(store) > 0 and width > 0 and height > 0:
        display = transform.store_to_display(store)
        in_bounds = ((display[:, 0] >= 0) & (display[:, 0] < width) &
                     (display[:, 1] >= 0) & (display[:, 1] < height))
        cols = display[in_bounds, 0]
        rows = display[in_bounds, 1]
        np.add.at(depth_sum, (rows, cols), store.depths[in_bounds])
        np.add.at(counts, (rows, cols), 1)

    depth = np.zeros((height, width), dtype=np.float32)
    filled = counts > 0
    depth[filled] = (depth_sum[filled] / counts[filled]).astype(np.float32)
    return depth


class DepthVisualizer:
    """Renders sample stores as colorized display-space images."""

    def __init__(self, config_manager: Optional[ConfigManager] = None):
        """
        Initialize depth visualizer.

        Args:
            config_manager: Configuration manager instance
        """
        self.config = config_manager or ConfigManager()
        self.logger = logging.getLogger(__name__)

        vis_config = self.config.get_visualization_params()
        colormap_name = vis_config.get('colormap', 'COLORMAP_JET')
        if not hasattr(cv2, colormap_name):
            raise ValueError(f"Unknown OpenCV colormap: {colormap_name}")
        self.colormap = getattr(cv2, colormap_name)
        self.invert_depth = bool(vis_config.get('invert_depth', True))

    def render(self, store: DepthSampleStore, transform: Optional[DisplayTransform] = None) -> np.ndarray:
        """
        Colorize samples into a BGR display image.

        Depths are normalized over the valid range; pixels without a sample
        stay black.

        Returns:
            HxWx3 uint8 BGR image (empty array for an empty store)
        """
        depth = rasterize_depth(store, transform)
        if depth.size == 0:
            return np.zeros((*depth.shape, 3), dtype=np.uint8)

        valid = depth > 0
        if not np.any(valid):
            return np.zeros((*depth.shape, 3), dtype=np.uint8)

        min_depth = float(depth[valid].min())
        max_depth = float(depth[valid].max())
        span = max_depth - min_depth

        normalized = np.zeros(depth.shape, dtype=np.float64)
        if span > 0:
            normalized[valid] = (depth[valid] - min_depth) / span
        if self.invert_depth:
            normalized[valid] = 1.0 - normalized[valid]

        colored = cv2.applyColorMap((normalized * 255).astype(np.uint8), self.colormap)
        colored[~valid] = 0
        return colored

    def save(self, store: DepthSampleStore, path: Union[str, Path],
             transform: Optional[DisplayTransform] = None) -> np.ndarray:
        """Render and write the image; returns the BGR image."""
        image = self.render(store, transform)
        if image.size == 0:
            raise DepthArtifactIOError(path, "no samples to visualize")
        try:
            written = cv2.imwrite(str(path), image)
        except cv2.error as e:
            raise DepthArtifactIOError(path, f"could not write depth visualization: {e}") from e
        if not written:
            raise DepthArtifactIOError(path, "could not write depth visualization")
        self.logger.info(f"Saved depth visualization to {path}")
        return image
