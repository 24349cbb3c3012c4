"""
Polygon Outline Cropper

Selects the depth samples whose display-space projection falls inside a
user-drawn outline.
"""

import logging
from pathlib import Path
from typing import Optional, Sequence, Union

import numpy as np

from ..data_models import CropResult, DepthSampleStore
from ..geometry.polygon import douglas_peucker, points_in_polygon, polygon_bounds
from ..storage.depth_csv import DepthCSVWriter
from ..utils.config_manager import ConfigManager
from .display_transform import DisplayTransform


class PolygonCropper:
    """Crops sample stores with a freehand outline drawn in display space."""

    def __init__(self, config_manager: Optional[ConfigManager] = None,
                 writer: Optional[DepthCSVWriter] = None):
        """
        Initialize polygon cropper.

        Args:
            config_manager: Configuration manager instance
            writer: CSV writer used by :meth:`crop_to_file`
        """
        self.config = config_manager or ConfigManager()
        self.logger = logging.getLogger(__name__)
        self.writer = writer or DepthCSVWriter(self.config)

        crop_config = self.config.get_cropping_params()
        self.simplify_epsilon = float(crop_config.get('simplify_epsilon', 1.0))

        self.logger.info(f"Polygon cropper initialized: epsilon={self.simplify_epsilon}")

    def simplify_outline(self, outline: Sequence[Sequence[float]]) -> np.ndarray:
        """Simplify a drawn path to bound the cost of containment tests."""
        simplified = douglas_peucker(outline, self.simplify_epsilon)
        return np.asarray(simplified, dtype=np.float64).reshape(-1, 2)

    def crop(self,
             store: DepthSampleStore,
             outline: Sequence[Sequence[float]],
             transform: Optional[DisplayTransform] = None) -> CropResult:
        """
        Keep samples whose display coordinate lies inside the outline.

        Args:
            store: Samples to crop
            outline: Closed polygon in display pixel coordinates
            transform: Sensor/display transform of the full sample set.
                Defaults to the transform implied by ``store``.

        Returns:
            CropResult wrapping a new store (the input is never modified)
        """
        transform = transform or DisplayTransform.from_store(store)
        polygon = self.simplify_outline(outline)
        selected = np.zeros(len(store), dtype=bool)

        if polygon.shape[0] >= 3 and len(store) > 0:
            display = transform.store_to_display(store)
            min_x, min_y, max_x, max_y = polygon_bounds(polygon)

            # Bounding-box fast reject before the winding-number test
            candidates = ((display[:, 0] >= min_x) & (display[:, 0] <= max_x) &
                          (display[:, 1] >= min_y) & (display[:, 1] <= max_y))
            if np.any(candidates):
                selected[candidates] = points_in_polygon(display[candidates], polygon)
        elif polygon.shape[0] < 3:
            self.logger.warning("Outline has fewer than 3 vertices after simplification; nothing selected")

        cropped = store.subset(selected).with_metadata(
            f"# Cropped with polygon outline ({polygon.shape[0]} vertices)")
        accepted = int(selected.sum())

        self.logger.info(f"Cropped {accepted} of {len(store)} samples with polygon outline")
        if accepted == 0:
            self.logger.warning("Polygon crop selected no samples")

        return CropResult(store=cropped, accepted_count=accepted, total_count=len(store), method="polygon")

    def crop_to_file(self,
                     store: DepthSampleStore,
                     outline: Sequence[Sequence[float]],
                     output_path: Union[str, Path],
                     transform: Optional[DisplayTransform] = None) -> CropResult:
        """Crop and persist the accepted subset as a CSV artifact."""
        result = self.crop(store, outline, transform)
        self.writer.write(output_path, result.store)
        return result
