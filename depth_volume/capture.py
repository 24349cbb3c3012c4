"""
Capture Adapters

Sources of depth samples and segmentation masks. The pipeline only depends on
the two protocols below, so camera sessions and mask models stay outside the
package.
"""

import logging
from pathlib import Path
from typing import Iterable, Optional, Protocol, Tuple, Union

import numpy as np

from .cropping.mask_cropper import MaskImage, composite_masks
from .data_models import CameraIntrinsics, DepthSampleStore
from .storage.depth_csv import DepthCSVReader

logger = logging.getLogger(__name__)


class CaptureSource(Protocol):
    """Protocol for anything that can produce a depth sample store."""

    def capture(self) -> DepthSampleStore: ...


class MaskProvider(Protocol):
    """Protocol for a segmentation model answering tap prompts with masks."""

    def mask_for_tap(self, point: Tuple[float, float],
                     display_size: Tuple[int, int]) -> Optional[MaskImage]: ...


class CSVCaptureSource:
    """Replays a previously exported CSV depth artifact."""

    def __init__(self, path: Union[str, Path], reader: Optional[DepthCSVReader] = None):
        self.path = Path(path)
        self.reader = reader or DepthCSVReader()

    def capture(self) -> DepthSampleStore:
        return self.reader.read(self.path)


class DepthMapCaptureSource:
    """
    Wraps a dense HxW depth (or disparity) map as a sample store.

    Every pixel becomes one sample at its (column, row) coordinate; invalid
    depths are dropped. Intrinsics, when given, are written as the usual
    comment lines so exported artifacts stay calibrated.
    """

    def __init__(self,
                 depth_map: np.ndarray,
                 intrinsics: Optional[CameraIntrinsics] = None,
                 is_disparity: bool = False):
        """
        Args:
            depth_map: HxW array in meters (or 1/meters when ``is_disparity``)
            intrinsics: Calibration of the camera that produced the map
            is_disparity: Convert disparity to depth (``1 / disparity``)
        """
        depth_map = np.asarray(depth_map, dtype=np.float64)
        if depth_map.ndim != 2:
            raise ValueError(f"Depth map must be 2-D, got shape {depth_map.shape}")
        self.depth_map = depth_map
        self.intrinsics = intrinsics
        self.is_disparity = is_disparity

    def capture(self) -> DepthSampleStore:
        values = self.depth_map
        if self.is_disparity:
            with np.errstate(divide='ignore', invalid='ignore'):
                values = np.where(values > 0, 1.0 / values, 0.0)

        rows, cols = np.nonzero(np.isfinite(values) & (values > 0))
        samples = np.column_stack([cols, rows, values[rows, cols]]).astype(np.float64)

        metadata = []
        if self.intrinsics is not None:
            metadata.extend(self.intrinsics.to_comment_lines())
        if self.is_disparity:
            metadata.append("# Original Data: Disparity (converted to depth)")
        else:
            metadata.append("# Original Data: Depth")

        dropped = self.depth_map.size - samples.shape[0]
        if dropped:
            logger.debug(f"Dropped {dropped} invalid depth pixels from capture")

        return DepthSampleStore(samples, self.intrinsics, tuple(metadata))


def accumulate_masks(provider: MaskProvider,
                     taps: Iterable[Tuple[float, float]],
                     display_size: Tuple[int, int],
                     threshold: int = 128) -> Optional[MaskImage]:
    """
    Ask the provider for a mask per tap and union the answers.

    Taps the provider cannot answer (None) are skipped.

    Returns:
        Accumulated mask, or None if no tap produced one
    """
    accumulated = None
    for tap in taps:
        mask = provider.mask_for_tap(tap, display_size)
        if mask is None:
            logger.warning(f"Mask provider returned no mask for tap {tap}")
            continue
        accumulated = composite_masks(accumulated, mask, threshold)
    return accumulated
