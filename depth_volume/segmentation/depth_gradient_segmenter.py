"""
Depth-Gradient Segmentation

Proposes an object outline from depth discontinuities: holes are inpainted,
the map is smoothed, strong Sobel gradients are kept and the largest
plausible external contour is returned in display coordinates.
"""

import logging
from typing import Optional

import cv2
import numpy as np

from ..data_models import DepthSampleStore, SegmentationResult
from ..cropping.display_transform import DisplayTransform
from ..visualization.depth_renderer import rasterize_depth
from ..utils.config_manager import ConfigManager


class DepthGradientSegmenter:
    """Finds the dominant depth-edge contour of a sample set."""

    def __init__(self, config_manager: Optional[ConfigManager] = None):
        """
        Initialize depth-gradient segmenter.

        Args:
            config_manager: Configuration manager instance
        """
        self.config = config_manager or ConfigManager()
        self.logger = logging.getLogger(__name__)

        seg = self.config.get_segmentation_params()
        self.inpaint_radius = float(seg.get('inpaint_radius', 3))
        self.blur_kernel_size = int(seg.get('blur_kernel_size', 5))
        self.blur_sigma = float(seg.get('blur_sigma', 1.0))
        self.sobel_kernel_size = int(seg.get('sobel_kernel_size', 3))
        self.gradient_percentile = float(seg.get('gradient_percentile', 85))
        self.close_kernel_size = int(seg.get('close_kernel_size', 3))
        self.min_area_ratio = float(seg.get('min_area_ratio', 0.001))
        self.min_aspect_ratio = float(seg.get('min_aspect_ratio', 0.2))
        self.max_aspect_ratio = float(seg.get('max_aspect_ratio', 5.0))

        self.logger.info(f"Depth-gradient segmenter initialized: percentile={self.gradient_percentile}")

    def edge_mask(self, depth: np.ndarray) -> np.ndarray:
        """
        Compute the closed binary edge image of a depth map.

        Args:
            depth: HxW float depth map, 0 marking missing values

        Returns:
            HxW uint8 image (255 on edges)
        """
        depth = depth.astype(np.float32)
        holes = (depth == 0).astype(np.uint8) * 255
        if cv2.countNonZero(holes) > 0:
            depth = cv2.inpaint(depth, holes, self.inpaint_radius, cv2.INPAINT_TELEA)

        k = self.blur_kernel_size
        smoothed = cv2.GaussianBlur(depth, (k, k), self.blur_sigma)

        grad_x = cv2.Sobel(smoothed, cv2.CV_64F, 1, 0, ksize=self.sobel_kernel_size)
        grad_y = cv2.Sobel(smoothed, cv2.CV_64F, 0, 1, ksize=self.sobel_kernel_size)
        magnitude = cv2.magnitude(grad_x, grad_y)

        edges = np.zeros(depth.shape, dtype=np.uint8)
        positive = np.sort(magnitude[magnitude > 0])
        if positive.size > 0:
            index = min(int(positive.size * self.gradient_percentile / 100.0), positive.size - 1)
            edges[magnitude > positive[index]] = 255

        kernel = cv2.getStructuringElement(cv2.MORPH_RECT, (self.close_kernel_size, self.close_kernel_size))
        return cv2.morphologyEx(edges, cv2.MORPH_CLOSE, kernel)

    def largest_contour(self, edges: np.ndarray):
        """(contour, area) of the largest external contour passing the filters; contour is None if none does."""
        height, width = edges.shape
        min_area = width * height * self.min_area_ratio

        contours, _ = cv2.findContours(edges, cv2.RETR_EXTERNAL, cv2.CHAIN_APPROX_SIMPLE)

        best, best_area = None, 0.0
        for contour in contours:
            area = cv2.contourArea(contour)
            if area <= min_area:
                continue
            _, _, w, h = cv2.boundingRect(contour)
            aspect = w / h if h > 0 else 0.0
            if not self.min_aspect_ratio < aspect < self.max_aspect_ratio:
                continue
            if area > best_area:
                best, best_area = contour, area

        return best, best_area

    def segment(self, store: DepthSampleStore,
                transform: Optional[DisplayTransform] = None) -> SegmentationResult:
        """
        Propose an outline for the object in a sample set.

        Args:
            store: Full (uncropped) depth samples
            transform: Sensor/display transform. Defaults to the store's own.

        Returns:
            SegmentationResult; ``found`` is False when no contour qualifies
        """
        depth = rasterize_depth(store, transform)
        no_outline = np.zeros((0, 2), dtype=np.int64)

        if depth.shape[0] < 2 or depth.shape[1] < 2 or not np.any(depth > 0):
            self.logger.warning("Depth map too small or empty for segmentation")
            return SegmentationResult(outline=no_outline, edge_mask=np.zeros(depth.shape, dtype=np.uint8))

        edges = self.edge_mask(depth)
        contour, area = self.largest_contour(edges)
        if contour is None:
            self.logger.info("No depth-gradient contour passed the filters")
            return SegmentationResult(outline=no_outline, edge_mask=edges)

        outline = contour.reshape(-1, 2).astype(np.int64)
        self.logger.info(f"Depth-gradient contour found: {outline.shape[0]} vertices, area {area:.1f} px")
        return SegmentationResult(outline=outline, edge_mask=edges, contour_area=float(area))
