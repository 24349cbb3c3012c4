"""
Sensor/Display Coordinate Transform

Depth visualizations are rotated 90 degrees to match portrait capture, so
outlines and masks arrive in display space while samples live in sensor
space. The renderer, the segmenter and both croppers share this transform.
"""

from dataclasses import dataclass
from typing import Tuple
import numpy as np

from ..data_models import DepthSampleStore


@dataclass(frozen=True)
class DisplayTransform:
    """Maps sensor pixels ``(x, y)`` to display pixels ``(H - 1 - y, x)``."""
    original_width: int
    original_height: int

    @classmethod
    def from_store(cls, store: DepthSampleStore) -> "DisplayTransform":
        """Build the transform from the full, uncropped sample set."""
        return cls(original_width=store.original_width, original_height=store.original_height)

    @property
    def display_size(self) -> Tuple[int, int]:
        """Display image (width, height)."""
        return self.original_height, self.original_width

    def to_display(self, xs, ys) -> Tuple[np.ndarray, np.ndarray]:
        """
        Convert sensor coordinates to integer display coordinates.

        Args:
            xs: Sensor pixel columns
            ys: Sensor pixel rows

        Returns:
            Tuple of (display_x, display_y) integer arrays
        """
        sensor_x = np.trunc(np.asarray(xs, dtype=np.float64)).astype(np.int64)
        sensor_y = np.trunc(np.asarray(ys, dtype=np.float64)).astype(np.int64)
        return self.original_height - 1 - sensor_y, sensor_x

    def to_sensor(self, display_x, display_y) -> Tuple[np.ndarray, np.ndarray]:
        """Inverse of :meth:`to_display` for integer display coordinates."""
        display_x = np.asarray(display_x, dtype=np.int64)
        display_y = np.asarray(display_y, dtype=np.int64)
        return display_y, self.original_height - 1 - display_x

    def store_to_display(self, store: DepthSampleStore) -> np.ndarray:
        """Display coordinates of every sample in a store as an Nx2 array."""
        display_x, display_y = self.to_display(store.xs, store.ys)
        return np.column_stack([display_x, display_y])
